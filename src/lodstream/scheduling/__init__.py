"""Level selection: the strategy table and its runtime-switchable front end."""

from .context import SchedulingContext
from .scheduler import StrategyScheduler
from .strategies import STRATEGIES, StrategyKind, incremental_cost

__all__ = ["STRATEGIES", "SchedulingContext", "StrategyKind", "StrategyScheduler", "incremental_cost"]

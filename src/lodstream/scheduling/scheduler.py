"""Runtime-switchable front end over the strategy table."""

from __future__ import annotations

import logging
from typing import List, Union

from lodstream.runtime.stats import BUDGET
from lodstream.scene.catalog import ObjectCatalog
from lodstream.scene.renderable import Renderable
from lodstream.scheduling.context import SchedulingContext
from lodstream.scheduling.strategies import STRATEGIES, StrategyKind


logger = logging.getLogger(__name__)


class StrategyScheduler:
    """Runs the active strategy for one catalog pass.

    The strategy may be changed between ticks; a pass already running keeps
    the strategy it started with.
    """

    def __init__(self, ctx: SchedulingContext, kind: Union[StrategyKind, str, None] = None) -> None:
        self.ctx = ctx
        self._kind = StrategyKind.parse(kind if kind is not None else ctx.cfg.strategy)

    def set_strategy(self, kind: Union[StrategyKind, str]) -> None:
        new_kind = StrategyKind.parse(kind)
        if new_kind is not self._kind:
            logger.info("strategy: %s -> %s", self._kind.display_name, new_kind.display_name)
        self._kind = new_kind

    @property
    def kind(self) -> StrategyKind:
        return self._kind

    @property
    def name(self) -> str:
        return self._kind.display_name

    async def execute_strategy(self, catalog: ObjectCatalog) -> List[Renderable]:
        kind = self._kind
        ctx = self.ctx
        if ctx.stats is not None:
            ctx.stats.set(BUDGET, ctx.budget())
        if ctx.log_throughput:
            logger.info("throughput: %s budget=%.1f", ctx.estimator.snapshot(), ctx.budget())
        meshes = await STRATEGIES[kind](ctx, catalog)
        if ctx.log_strategy:
            logger.info("%s: imported %s", kind.display_name, [m.name for m in meshes])
        return meshes


__all__ = ["StrategyScheduler"]

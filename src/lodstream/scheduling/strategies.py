"""The six level-selection strategies.

Single-pick strategies (``naive1``, ``greedy1``, ``proposed1``) choose one
(object, level) among objects visible now or at the look-ahead horizon.
Allocation strategies (``greedy2``, ``uniform2``, ``hybrid2``) rank every
object by utility and raise per-object target levels while the incremental
cost fits the pass budget, then fetch each raised target in rank order.

Every strategy returns the renderables it imported. Recoverable import
failures are logged and skipped; they never abort a pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

from lodstream.camera.kinds import Camera
from lodstream.errors import RECOVERABLE_ERRORS
from lodstream.runtime.stats import (
    BANDWIDTH,
    BYTES_TOTAL,
    DECODE_RATE,
    FETCHES_TOTAL,
    FETCH_FAILURES_TOTAL,
    FETCH_MS,
)
from lodstream.scene.catalog import ObjectCatalog
from lodstream.scene.renderable import Renderable
from lodstream.scene.streamable import MIN_ELAPSED_S, StreamableObject
from lodstream.scheduling.context import SchedulingContext


logger = logging.getLogger(__name__)


class StrategyKind(str, Enum):
    NAIVE1 = "naive1"
    GREEDY1 = "greedy1"
    PROPOSED1 = "proposed1"
    GREEDY2 = "greedy2"
    UNIFORM2 = "uniform2"
    HYBRID2 = "hybrid2"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @classmethod
    def parse(cls, value: Union["StrategyKind", str]) -> "StrategyKind":
        if isinstance(value, StrategyKind):
            return value
        key = str(value).strip().lower().replace("_", "").replace("-", "")
        for kind in cls:
            if key == kind.value:
                return kind
        raise ValueError(f"unknown strategy {value!r}; expected one of {[k.value for k in cls]}")


# ---- shared helpers ----------------------------------------------------------


async def import_level(ctx: SchedulingContext, obj: StreamableObject, level: int) -> Optional[Renderable]:
    """Fetch one level, recording stats; recoverable failures return None."""
    started = ctx.now_fn()
    try:
        mesh = await obj.fetch_level(level)
    except RECOVERABLE_ERRORS as exc:
        if ctx.stats is not None:
            ctx.stats.inc(FETCH_FAILURES_TOTAL)
        logger.warning("import %s[%d] skipped: %s", obj.name, level, exc)
        return None
    if ctx.stats is not None:
        ctx.stats.inc(FETCHES_TOTAL)
        ctx.stats.inc(BYTES_TOTAL, obj.level_size(level))
        ctx.stats.observe_ms(FETCH_MS, (ctx.now_fn() - started) * 1000.0)
        ctx.stats.set(BANDWIDTH, ctx.estimator.current_bandwidth())
        ctx.stats.set(DECODE_RATE, ctx.estimator.current_decode_rate())
    return mesh


def _visible_now_and_later(ctx: SchedulingContext, catalog: ObjectCatalog) -> List[StreamableObject]:
    visible = catalog.visible_objects(ctx.predictor.current())
    with ctx.predictor.predicted(ctx.cfg.horizon_s) as later:
        visible_later = catalog.visible_objects(later)
    seen = {id(obj) for obj in visible}
    return visible + [obj for obj in visible_later if id(obj) not in seen]


def _fetch_time(ctx: SchedulingContext, obj: StreamableObject, level: int) -> float:
    return max(ctx.estimator.fetch_time(obj.level_size(level)), MIN_ELAPSED_S)


def _utility_at(ctx: SchedulingContext, obj: StreamableObject, delta_s: float) -> float:
    with ctx.predictor.predicted(delta_s) as camera:
        return ctx.metrics.score(obj, camera)


Choice = Tuple[StreamableObject, int, float]


async def _import_choice(ctx: SchedulingContext, strategy: str, choice: Optional[Choice]) -> List[Renderable]:
    if choice is None:
        return []
    obj, level, score = choice
    if ctx.log_strategy:
        logger.info("%s: pick %s[%d] score=%.6g", strategy, obj.name, level, score)
    mesh = await import_level(ctx, obj, level)
    return [mesh] if mesh is not None else []


# ---- single-pick strategies --------------------------------------------------


async def naive1(ctx: SchedulingContext, catalog: ObjectCatalog) -> List[Renderable]:
    """Best ``quality * utility(now)`` among objects visible now or later."""
    candidates = _visible_now_and_later(ctx, catalog)
    if not candidates:
        return []
    camera = ctx.predictor.current()
    best: Optional[Choice] = None
    for obj in candidates:
        levels = obj.open_levels()
        if not levels:
            continue
        utility = ctx.metrics.score(obj, camera)
        for level in levels:
            score = obj.level_quality(level) * utility
            if best is None or score > best[2]:
                best = (obj, level, score)
    return await _import_choice(ctx, "naive1", best)


async def greedy1(ctx: SchedulingContext, catalog: ObjectCatalog) -> List[Renderable]:
    """Best utility at arrival time, per second of transfer."""
    candidates = _visible_now_and_later(ctx, catalog)
    if not candidates:
        return []
    best: Optional[Choice] = None
    for obj in candidates:
        for level in obj.open_levels():
            t_next = _fetch_time(ctx, obj, level)
            score = _utility_at(ctx, obj, t_next) * obj.level_quality(level) / t_next
            if best is None or score > best[2]:
                best = (obj, level, score)
    return await _import_choice(ctx, "greedy1", best)


async def proposed1(ctx: SchedulingContext, catalog: ObjectCatalog) -> List[Renderable]:
    """Best utility integrated from arrival time to the horizon.

    The integral is a left Riemann sum over ``riemann_steps`` predicted
    viewpoints. Levels that cannot arrive before the horizon are scored the
    greedy1 way, but only while no integrable candidate has been seen, and
    that fallback pick is used only if none was seen at all.
    """
    candidates = _visible_now_and_later(ctx, catalog)
    if not candidates:
        return []
    horizon = float(ctx.cfg.horizon_s)
    steps = max(1, int(ctx.cfg.riemann_steps))
    best: Optional[Choice] = None
    late_best: Optional[Choice] = None
    for obj in candidates:
        for level in obj.open_levels():
            t_next = _fetch_time(ctx, obj, level)
            increment = (horizon - t_next) / steps
            if increment > 0.0:
                integral = sum(
                    increment * _utility_at(ctx, obj, t_next + k * increment) for k in range(steps)
                )
                score = integral * obj.level_quality(level)
                if best is None or score > best[2]:
                    best = (obj, level, score)
            elif best is None:
                score = _utility_at(ctx, obj, t_next) * obj.level_quality(level) / t_next
                if late_best is None or score > late_best[2]:
                    late_best = (obj, level, score)
    return await _import_choice(ctx, "proposed1", best if best is not None else late_best)


# ---- allocation strategies ---------------------------------------------------


@dataclass
class Allocation:
    obj: StreamableObject
    utility: float
    target: int


def incremental_cost(obj: StreamableObject, current: int, target: int) -> float:
    """Extra bytes to move ``obj`` from level ``current`` to ``target``.

    Loaded levels cost nothing; the (unloaded) level being replaced is
    credited back.
    """
    cost = 0.0 if obj.is_loaded(target) else obj.level_size(target)
    if current >= 0 and not obj.is_loaded(current):
        cost -= obj.level_size(current)
    return cost


def rank_objects(ctx: SchedulingContext, objects: Sequence[StreamableObject], camera: Camera) -> List[Allocation]:
    allocations = [Allocation(obj, ctx.metrics.score(obj, camera), obj.current_level) for obj in objects]
    # sorted() is stable: equal utilities keep catalog order.
    return sorted(allocations, key=lambda a: -a.utility)


def _plannable(obj: StreamableObject, level: int) -> bool:
    # A requested level that never loaded has failed; it is passed over, never targeted.
    return obj.is_loaded(level) or not obj.is_requested(level)


def greedy_fill(allocations: Sequence[Allocation], budget: float, spent: float = 0.0) -> Tuple[float, bool]:
    """Raise each object as far as the budget allows before the next one."""
    upgraded = False
    for alloc in allocations:
        level = alloc.target + 1
        while level < alloc.obj.num_levels:
            if not _plannable(alloc.obj, level):
                level += 1
                continue
            cost = incremental_cost(alloc.obj, alloc.target, level)
            if spent + cost > budget:
                break
            spent += cost
            alloc.target = level
            upgraded = True
            level += 1
    return spent, upgraded


def uniform_fill(allocations: Sequence[Allocation], budget: float, spent: float = 0.0) -> Tuple[float, bool]:
    """Offer every object a shared level 1, 2, 3, ... while anything fits."""
    upgraded = False
    level = 1
    changed = True
    while changed:
        changed = False
        for alloc in allocations:
            if level >= alloc.obj.num_levels:
                continue
            if not _plannable(alloc.obj, level):
                changed = True
                continue
            cost = incremental_cost(alloc.obj, alloc.target, level)
            if spent + cost > budget:
                continue
            changed = True
            if level > alloc.target:
                alloc.target = level
                spent += cost
                upgraded = True
        level += 1
    return spent, upgraded


async def fetch_targets(ctx: SchedulingContext, allocations: Sequence[Allocation]) -> List[Renderable]:
    meshes: List[Renderable] = []
    for alloc in allocations:
        if alloc.target == alloc.obj.current_level:
            continue
        mesh = await import_level(ctx, alloc.obj, alloc.target)
        if mesh is not None:
            meshes.append(mesh)
    return meshes


async def fetch_fallback(ctx: SchedulingContext, *groups: Sequence[Allocation]) -> List[Renderable]:
    """Import the lowest open level of the first ranked object that can still grow.

    Used when nothing fit the budget; the single import may exceed it so a
    large next level cannot stall streaming forever. Failed levels are
    stepped over.
    """
    for allocations in groups:
        for alloc in allocations:
            nxt = next((lvl for lvl in alloc.obj.open_levels() if lvl > alloc.target), None)
            if nxt is None:
                continue
            if ctx.log_strategy:
                logger.info("fallback: %s[%d] over budget", alloc.obj.name, nxt)
            mesh = await import_level(ctx, alloc.obj, nxt)
            return [mesh] if mesh is not None else []
    return []


def _log_plan(ctx: SchedulingContext, strategy: str, budget: float, spent: float, allocations: Sequence[Allocation]) -> None:
    if not ctx.log_strategy:
        return
    plan = [
        f"{a.obj.name}:{a.obj.current_level}->{a.target}"
        for a in allocations
        if a.target != a.obj.current_level
    ]
    logger.info("%s: budget=%.1f spent=%.1f plan=%s", strategy, budget, spent, plan or "none")


async def greedy2(ctx: SchedulingContext, catalog: ObjectCatalog) -> List[Renderable]:
    camera = ctx.predictor.current()
    budget = ctx.budget()
    allocations = rank_objects(ctx, catalog.all_objects(), camera)
    spent, upgraded = greedy_fill(allocations, budget)
    _log_plan(ctx, "greedy2", budget, spent, allocations)
    if not upgraded:
        return await fetch_fallback(ctx, allocations)
    return await fetch_targets(ctx, allocations)


async def uniform2(ctx: SchedulingContext, catalog: ObjectCatalog) -> List[Renderable]:
    camera = ctx.predictor.current()
    budget = ctx.budget()
    allocations = rank_objects(ctx, catalog.all_objects(), camera)
    spent, upgraded = uniform_fill(allocations, budget)
    _log_plan(ctx, "uniform2", budget, spent, allocations)
    if not upgraded:
        return await fetch_fallback(ctx, allocations)
    return await fetch_targets(ctx, allocations)


async def hybrid2(ctx: SchedulingContext, catalog: ObjectCatalog) -> List[Renderable]:
    """Uniform on visible objects, then greedy on the rest with what is left."""
    camera = ctx.predictor.current()
    budget = ctx.budget()
    visible, invisible = catalog.partition(camera)
    visible_allocs = rank_objects(ctx, visible, camera)
    invisible_allocs = rank_objects(ctx, invisible, camera)
    spent, upgraded_visible = uniform_fill(visible_allocs, budget)
    spent, upgraded_invisible = greedy_fill(invisible_allocs, budget, spent)
    _log_plan(ctx, "hybrid2", budget, spent, [*visible_allocs, *invisible_allocs])
    if not (upgraded_visible or upgraded_invisible):
        return await fetch_fallback(ctx, visible_allocs, invisible_allocs)
    meshes = await fetch_targets(ctx, visible_allocs)
    meshes.extend(await fetch_targets(ctx, invisible_allocs))
    return meshes


StrategyFn = Callable[[SchedulingContext, ObjectCatalog], Awaitable[List[Renderable]]]

STRATEGIES: Dict[StrategyKind, StrategyFn] = {
    StrategyKind.NAIVE1: naive1,
    StrategyKind.GREEDY1: greedy1,
    StrategyKind.PROPOSED1: proposed1,
    StrategyKind.GREEDY2: greedy2,
    StrategyKind.UNIFORM2: uniform2,
    StrategyKind.HYBRID2: hybrid2,
}


__all__ = [
    "Allocation",
    "STRATEGIES",
    "StrategyKind",
    "fetch_fallback",
    "fetch_targets",
    "greedy1",
    "greedy2",
    "greedy_fill",
    "hybrid2",
    "import_level",
    "incremental_cost",
    "naive1",
    "proposed1",
    "rank_objects",
    "uniform2",
    "uniform_fill",
]

"""Headless streaming run from the command line.

Loads a catalog (directory, URL or a generated one), orbits a camera around
the scene origin and streams levels with the chosen strategy and metric. The
session statistics are printed as JSON when the run ends.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import math
import sys
from dataclasses import replace
from typing import Callable, Optional, Sequence

from lodstream.camera import CameraRig, DesktopCamera, ImmersiveCamera, ViewpointPredictor
from lodstream.camera.kinds import Camera
from lodstream.config import SessionCtx, load_session_ctx
from lodstream.errors import LodStreamError
from lodstream.runtime.session import StreamingSession
from lodstream.runtime.stats import SessionStats
from lodstream.scene import ObjectCatalog, TrimeshDecoder, fetcher_from_config
from lodstream.scene.assets import AssetFetcher, HttpAssetFetcher
from lodstream.scene.synthetic import build_synthetic_catalog
from lodstream.scheduling import SchedulingContext, StrategyKind, StrategyScheduler
from lodstream.throughput import ThroughputEstimator
from lodstream.utility import MetricKind, MetricSelector


logger = logging.getLogger(__name__)

EYE_HEIGHT = 1.6


def orbit_path(radius: float, period_s: float, *, immersive: bool = False) -> Callable[[float], Camera]:
    """Camera circling the origin at eye height, always looking outwards."""

    def _at(t: float) -> Camera:
        theta = 2.0 * math.pi * t / period_s
        position = (radius * math.sin(theta), EYE_HEIGHT, radius * math.cos(theta))
        target = (2.0 * position[0], EYE_HEIGHT, 2.0 * position[2])
        base: Camera = ImmersiveCamera(position=position) if immersive else DesktopCamera(position=position)
        return base.retargeted(target)

    return _at


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lodstream", description="Adaptive level-of-detail streaming run")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--root", default=None, help="Catalog directory (default: LODSTREAM_ASSETS_ROOT)")
    source.add_argument("--url", default=None, help="Catalog base URL (default: LODSTREAM_ASSETS_URL)")
    source.add_argument(
        "--synthetic",
        type=int,
        metavar="N",
        default=None,
        help="Generate N sphere objects in memory instead of reading a catalog",
    )
    parser.add_argument("--levels", type=int, default=4, help="Levels per synthetic object (default: 4)")
    parser.add_argument(
        "--strategy",
        default=None,
        choices=[k.value for k in StrategyKind],
        help="Scheduling strategy (default: LODSTREAM_STRATEGY or naive1)",
    )
    parser.add_argument(
        "--metric",
        default=None,
        choices=[k.value for k in MetricKind],
        help="Utility metric (default: LODSTREAM_METRIC or distance)",
    )
    parser.add_argument("--frames", type=int, default=600, help="Frames to simulate (default: 600)")
    parser.add_argument("--buffer", type=float, default=None, help="Download buffer in seconds")
    parser.add_argument("--horizon", type=float, default=None, help="Prediction horizon in seconds")
    parser.add_argument("--orbit-radius", type=float, default=2.0, help="Camera orbit radius (default: 2.0)")
    parser.add_argument("--orbit-period", type=float, default=20.0, help="Seconds per orbit (default: 20)")
    parser.add_argument("--immersive", action="store_true", help="Use a headset camera instead of a desktop one")
    parser.add_argument("--realtime", action="store_true", help="Sleep one frame interval between ticks")
    parser.add_argument("--log-level", default=None, help="Logging level (default: LODSTREAM_LOG_LEVEL or INFO)")
    return parser


def _apply_overrides(ctx: SessionCtx, args: argparse.Namespace) -> SessionCtx:
    cfg = ctx.cfg
    if args.strategy:
        cfg = replace(cfg, strategy=args.strategy)
    if args.metric:
        cfg = replace(cfg, metric=args.metric)
    if args.buffer is not None and args.buffer > 0:
        cfg = replace(cfg, buffer_s=args.buffer)
    if args.horizon is not None and args.horizon > 0:
        cfg = replace(cfg, horizon_s=args.horizon)
    assets = ctx.assets
    if args.root:
        assets = replace(assets, root=args.root, base_url=None)
    if args.url:
        assets = replace(assets, base_url=args.url, root=None)
    log_level = (args.log_level or ctx.log_level).upper()
    return replace(ctx, cfg=cfg, assets=assets, log_level=log_level)


async def run_session(ctx: SessionCtx, args: argparse.Namespace) -> SessionStats:
    cfg = ctx.cfg
    stats = SessionStats()
    estimator = ThroughputEstimator(window=cfg.throughput_window, default_rate=cfg.default_rate)

    fetcher: AssetFetcher
    if args.synthetic:
        fetcher = build_synthetic_catalog(args.synthetic, args.levels, descriptor=ctx.assets.descriptor)
    else:
        fetcher = fetcher_from_config(ctx.assets.root, ctx.assets.base_url, timeout_s=ctx.assets.timeout_s)

    try:
        catalog = await ObjectCatalog.load(
            fetcher,
            TrimeshDecoder(),
            estimator,
            descriptor=ctx.assets.descriptor,
            stats=stats,
            debug_policy=ctx.debug_policy,
        )
        path = orbit_path(args.orbit_radius, args.orbit_period, immersive=args.immersive)
        rig = CameraRig(path(0.0))
        predictor = ViewpointPredictor(rig, debug_policy=ctx.debug_policy)
        scheduling = SchedulingContext(
            predictor=predictor,
            metrics=MetricSelector(cfg.metric, debug_policy=ctx.debug_policy),
            estimator=estimator,
            cfg=cfg,
            debug_policy=ctx.debug_policy,
            stats=stats,
        )
        scheduler = StrategyScheduler(scheduling)
        logger.info(
            "streaming %d objects with %s/%s, budget %.1f",
            len(catalog),
            scheduler.name,
            scheduling.metrics.name,
            scheduling.budget(),
        )
        session = StreamingSession(
            catalog,
            scheduler,
            rig=rig,
            camera_path=path,
            frame_rate=cfg.frame_rate,
        )
        await session.run(args.frames, realtime=args.realtime)
        logger.info(
            "finished after %d frames: %d renderables imported, all loaded=%s",
            session.frames,
            len(session.imported),
            catalog.check_all_loaded(),
        )
    finally:
        if isinstance(fetcher, HttpAssetFetcher):
            await fetcher.aclose()
    return stats


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    ctx = _apply_overrides(load_session_ctx(), args)

    logging.basicConfig(
        level=getattr(logging, ctx.log_level, logging.INFO),
        format="[%(asctime)s] %(name)s - %(levelname)s - %(message)s",
    )
    logger.debug("Resolved StreamingConfig: %s", ctx.cfg)

    if not (args.synthetic or ctx.assets.root or ctx.assets.base_url):
        parser.error("one of --root, --url or --synthetic is required")

    try:
        stats = asyncio.run(run_session(ctx, args))
    except (LodStreamError, ValueError) as exc:
        logger.error("streaming run failed: %s", exc)
        return 1
    json.dump(stats.snapshot(), sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


__all__ = ["main", "orbit_path", "run_session"]

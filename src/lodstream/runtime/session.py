"""Render-loop driver for a streaming session.

One ``tick`` per rendered frame:

1. move the camera (scripted path, if any),
2. fire a scheduling pass as a task when streaming is on,
3. let the pass plan against this frame's pose,
4. save the pose for the next frame's prediction.

Passes overlap frames; the catalog drops ticks while one is in flight.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Set

from lodstream.camera.kinds import Camera
from lodstream.camera.predictor import CameraRig
from lodstream.scene.catalog import ObjectCatalog
from lodstream.scene.renderable import Renderable
from lodstream.scheduling.scheduler import StrategyScheduler


logger = logging.getLogger(__name__)

CameraPath = Callable[[float], Camera]


class StreamingSession:
    def __init__(
        self,
        catalog: ObjectCatalog,
        scheduler: StrategyScheduler,
        *,
        rig: Optional[CameraRig] = None,
        camera_path: Optional[CameraPath] = None,
        frame_rate: float = 60.0,
        streaming: bool = True,
    ) -> None:
        if camera_path is not None and rig is None:
            raise ValueError("a camera path needs a CameraRig to drive")
        self.catalog = catalog
        self.scheduler = scheduler
        self.predictor = scheduler.ctx.predictor
        self.rig = rig
        self.camera_path = camera_path
        self.frame_delta_s = 1.0 / float(frame_rate) if frame_rate > 0 else 1.0 / 60.0
        self.streaming = bool(streaming)
        self.elapsed_s = 0.0
        self.frames = 0
        self._tasks: Set[asyncio.Task] = set()
        self.imported: List[Renderable] = []

    def toggle_import(self) -> bool:
        self.streaming = not self.streaming
        logger.info("streaming %s", "on" if self.streaming else "off")
        return self.streaming

    def _schedule_coro(self, coro: Awaitable[List[Renderable]], label: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)

        def _log_task_result(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if t.cancelled():
                return
            try:
                self.imported.extend(t.result())
            except Exception:
                logger.exception("Scheduled task '%s' failed", label)

        task.add_done_callback(_log_task_result)
        return task

    async def tick(self, frame_delta_s: Optional[float] = None) -> Optional[asyncio.Task]:
        dt = self.frame_delta_s if frame_delta_s is None else float(frame_delta_s)
        self.elapsed_s += dt
        self.frames += 1
        if self.camera_path is not None and self.rig is not None:
            self.rig.set(self.camera_path(self.elapsed_s))

        task: Optional[asyncio.Task] = None
        if self.streaming:
            task = self._schedule_coro(self.catalog.run_tick(self.scheduler), "scheduling pass")
            # Let the pass score candidates before this frame's pose becomes "previous".
            await asyncio.sleep(0)
        self.predictor.save_frame(dt)
        return task

    async def run(self, frames: int, *, realtime: bool = False) -> None:
        """Drive ``frames`` ticks, then wait for in-flight passes."""
        for _ in range(int(frames)):
            await self.tick()
            await asyncio.sleep(self.frame_delta_s if realtime else 0)
            if self.catalog.check_all_loaded() and not self._tasks:
                logger.info("all levels loaded after %d frames", self.frames)
                break
        await self.drain()

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


__all__ = ["CameraPath", "StreamingSession"]

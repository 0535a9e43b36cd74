"""Progressive multi-process rendering sessions.

A ProgressiveRenderer owns one render session: a pool of worker processes
(one per core by default), a driver thread per process, a shared Accumulator
and a cancellation event. Work is handed out as batches of full-frame passes
from a shared counter, so every pass adds exactly one sample to every pixel:

    driver loop:
        claim passes [k, k + batch_size) from the shared counter
        render the batch in a worker process into a fresh PartialBuffer
        merge the returned buffer into the Accumulator
        stop on cancellation, an exhausted sample budget or the deadline

Tracing runs in processes, so it scales across cores; merging and the
counter stay in the parent, guarded by the accumulator's row locks and the
session lock. Cancellation is checked between batches and the deadline
between passes, so stopping never leaves a pass half-merged and the image
stays valid at any moment.

Every pass draws its random numbers from its own stream derived from the
session seed (see workers.pass_rng), so a fixed seed gives the same image
for any number of workers.

Example:
    >>> from prismtrace.scene.cornell_box import create_cornell_box_scene
    >>> scene, camera = create_cornell_box_scene()
    >>> settings = RenderSettings(width=64, height=64, samples_per_pixel=16)
    >>> renderer = ProgressiveRenderer(scene, camera, settings)
    >>> image = renderer.render()
    >>> image.shape
    (64, 64, 3)
"""

from __future__ import annotations

import logging
import math
import os
import threading
import time
from collections.abc import Callable, Generator
from concurrent.futures import ProcessPoolExecutor
from contextlib import closing
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from prismtrace.camera.thin_lens import ThinLensCamera
from prismtrace.errors import ConfigurationError, WorkerStartError
from prismtrace.preview.tonemap import Tonemapper
from prismtrace.scene.intersection import Scene

from .accumulator import Accumulator, FrameSnapshot
from .integrator import IntegratorConfig, PathTracer
from .workers import create_pool, render_batch

logger = logging.getLogger(__name__)

# Type alias for progress callback
# Callback receives (current_samples_per_pixel, target_samples_per_pixel)
ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class RenderSettings:
    """Image size, sample budget and parallelism for a render session.

    At least one of ``samples_per_pixel`` and ``time_budget`` must be given;
    with both, rendering stops at whichever is reached first.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        samples_per_pixel: Target number of full-frame passes.
        time_budget: Wall-clock budget in seconds.
        threads: Worker process count. None means one per CPU core.
        batch_size: Passes a worker renders between merges. Cancellation
            takes effect at the end of the batch in flight.
        seed: Seed for the per-pass random streams (None = fresh entropy).

    Raises:
        ConfigurationError: If any setting is out of range.
    """

    width: int
    height: int
    samples_per_pixel: int | None = None
    time_budget: float | None = None
    threads: int | None = None
    batch_size: int = 4
    seed: int | None = None

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ConfigurationError(
                f"Image size must be positive, got {self.width}x{self.height}"
            )
        if self.samples_per_pixel is None and self.time_budget is None:
            raise ConfigurationError("Either samples_per_pixel or time_budget must be set")
        if self.samples_per_pixel is not None and self.samples_per_pixel <= 0:
            raise ConfigurationError(
                f"samples_per_pixel must be positive, got {self.samples_per_pixel}"
            )
        if self.time_budget is not None and not (
            math.isfinite(self.time_budget) and self.time_budget > 0.0
        ):
            raise ConfigurationError(f"time_budget must be positive, got {self.time_budget}")
        if self.batch_size <= 0:
            raise ConfigurationError(f"batch_size must be positive, got {self.batch_size}")

        threads = self.threads if self.threads is not None else (os.cpu_count() or 1)
        if threads <= 0:
            raise ConfigurationError(f"threads must be positive, got {threads}")
        object.__setattr__(self, "threads", threads)


class ProgressiveRenderer:
    """A multi-process render session that accumulates samples over time.

    Args:
        scene: The scene to render.
        camera: The camera generating primary rays.
        settings: Image size, budgets and threading.
        config: Integrator settings (defaults to IntegratorConfig()).
        tonemapper: Display transform used by get_image() and render().
    """

    def __init__(
        self,
        scene: Scene,
        camera: ThinLensCamera,
        settings: RenderSettings,
        config: IntegratorConfig | None = None,
        tonemapper: Tonemapper | None = None,
    ) -> None:
        self._settings = settings
        self._tracer = PathTracer(scene, camera, config)
        self._tonemapper = tonemapper if tonemapper is not None else Tonemapper()
        self._accumulator = Accumulator(settings.width, settings.height)

        self._cancel_event = threading.Event()
        self._lock = threading.Lock()
        self._threads: list[threading.Thread] = []
        self._pool: ProcessPoolExecutor | None = None
        self._errors: list[BaseException] = []
        self._next_pass = 0
        self._active_workers = 0
        self._entropy = 0
        self._deadline: float | None = None
        # Same deadline on the wall clock, which worker processes share
        self._wall_deadline: float | None = None
        self._started_at: float | None = None

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def settings(self) -> RenderSettings:
        return self._settings

    @property
    def width(self) -> int:
        return self._settings.width

    @property
    def height(self) -> int:
        return self._settings.height

    @property
    def accumulator(self) -> Accumulator:
        return self._accumulator

    @property
    def running(self) -> bool:
        """True while any driver thread is alive."""
        return any(t.is_alive() for t in self._threads)

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def sample_count(self) -> int:
        """Samples per pixel completed so far (minimum over pixels)."""
        return self._accumulator.snapshot().sample_count

    @property
    def target_samples(self) -> int:
        """Planned samples per pixel, or 0 for a purely time-budgeted session."""
        return self._settings.samples_per_pixel or 0

    # =========================================================================
    # Session Control
    # =========================================================================

    def start(self) -> None:
        """Start the worker pool and its driver threads, then return.

        Raises:
            RuntimeError: If the session is already running.
            WorkerStartError: If a driver thread could not be started. Any
                drivers already started are cancelled and joined, and the
                pool is shut down first.
        """
        if self.running:
            raise RuntimeError("Render session is already running")

        settings = self._settings
        self._cancel_event.clear()
        self._errors = []
        self._threads = []
        self._started_at = time.monotonic()
        if settings.time_budget is not None:
            self._deadline = self._started_at + settings.time_budget
            self._wall_deadline = time.time() + settings.time_budget
        else:
            self._deadline = self._wall_deadline = None
        self._entropy = (
            settings.seed if settings.seed is not None else np.random.SeedSequence().entropy
        )

        self._pool = create_pool(self._tracer, settings.threads)
        with self._lock:
            self._active_workers = settings.threads

        for index in range(settings.threads):
            thread = threading.Thread(
                target=self._worker,
                args=(index,),
                name=f"prismtrace-worker-{index}",
                daemon=True,
            )
            try:
                thread.start()
            except RuntimeError as exc:
                logger.error("Could not start worker %d: %s", index, exc)
                with self._lock:
                    self._active_workers -= settings.threads - len(self._threads)
                self._cancel_event.set()
                for started in self._threads:
                    started.join()
                self._pool.shutdown(wait=True, cancel_futures=True)
                raise WorkerStartError(f"Could not start worker thread {index}") from exc
            self._threads.append(thread)

        logger.info(
            "Render started: %dx%d, %s spp, %s s budget, %d workers",
            settings.width,
            settings.height,
            settings.samples_per_pixel if settings.samples_per_pixel is not None else "unlimited",
            settings.time_budget if settings.time_budget is not None else "no",
            settings.threads,
        )

    def cancel(self) -> None:
        """Ask the workers to stop after the batch they are rendering."""
        if not self._cancel_event.is_set():
            logger.info("Render cancelled at %d samples per pixel", self.sample_count)
        self._cancel_event.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the workers finish or the timeout elapses.

        Args:
            timeout: Maximum seconds to wait. None waits indefinitely.

        Returns:
            True if every worker has finished.

        Raises:
            Exception: The first exception raised by a worker, once all
                workers have stopped.
        """
        end = None if timeout is None else time.monotonic() + timeout
        for thread in self._threads:
            remaining = None if end is None else max(0.0, end - time.monotonic())
            thread.join(remaining)
        if self.running:
            return False
        if self._errors:
            raise self._errors[0]
        return True

    def render(
        self,
        callback: ProgressCallback | None = None,
        interval: float = 0.5,
    ) -> npt.NDArray[np.float32]:
        """Run the whole session and return the tonemapped image.

        Args:
            callback: Called every ``interval`` seconds and once at the end
                with (current_samples_per_pixel, target_samples_per_pixel).
            interval: Seconds between progress callbacks.

        Returns:
            The final (height, width, 3) float32 image.
        """
        with closing(self.render_progressive(interval)) as progress:
            for current, target in progress:
                if callback is not None:
                    callback(current, target)
        return self.get_image()

    def render_progressive(self, interval: float = 0.5) -> Generator[tuple[int, int], None, None]:
        """Run the session, yielding progress every ``interval`` seconds.

        A KeyboardInterrupt (or closing the generator early) cancels the
        session and waits for the workers before propagating.

        Yields:
            Tuple of (current_samples_per_pixel, target_samples_per_pixel).
        """
        self.start()
        try:
            while not self.wait(interval):
                yield self.sample_count, self.target_samples
        except BaseException:
            self.cancel()
            self.wait()
            raise
        yield self.sample_count, self.target_samples

    def reset(self) -> None:
        """Discard the accumulated samples so the session can start over.

        Raises:
            RuntimeError: If the session is running.
        """
        if self.running:
            raise RuntimeError("Cannot reset a running render session")
        self._accumulator.reset()
        with self._lock:
            self._next_pass = 0
        self._cancel_event.clear()

    # =========================================================================
    # Results
    # =========================================================================

    def snapshot(self) -> FrameSnapshot:
        """A consistent copy of the frame, safe to take while rendering."""
        return self._accumulator.snapshot()

    def get_image(self) -> npt.NDArray[np.float32]:
        """The current frame, tonemapped to a (height, width, 3) image."""
        return self._tonemapper(self.snapshot())

    # =========================================================================
    # Workers
    # =========================================================================

    def _claim_batch(self) -> range | None:
        target = self._settings.samples_per_pixel
        with self._lock:
            start = self._next_pass
            stop = start + self._settings.batch_size
            if target is not None:
                if start >= target:
                    return None
                stop = min(stop, target)
            self._next_pass = stop
        return range(start, stop)

    def _should_stop(self) -> bool:
        if self._cancel_event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def _worker(self, index: int) -> None:
        settings = self._settings
        pool = self._pool
        passes = 0
        try:
            while not self._should_stop():
                batch = self._claim_batch()
                if batch is None:
                    break
                # The process checks the deadline between passes
                future = pool.submit(
                    render_batch,
                    batch,
                    settings.width,
                    settings.height,
                    settings.samples_per_pixel,
                    self._entropy,
                    self._wall_deadline,
                )
                buffer = future.result()
                if buffer.total_samples:
                    self._accumulator.merge(buffer)
                    passes += int(buffer.counts.max())
        except Exception as exc:
            logger.exception("Worker %d failed", index)
            with self._lock:
                self._errors.append(exc)
            self._cancel_event.set()
        finally:
            logger.debug("Worker %d finished after %d passes", index, passes)
            with self._lock:
                self._active_workers -= 1
                last = self._active_workers == 0
            if last:
                pool.shutdown(wait=True, cancel_futures=True)
                self._log_summary()

    def _log_summary(self) -> None:
        elapsed = time.monotonic() - (self._started_at or time.monotonic())
        snapshot = self._accumulator.snapshot()
        logger.info(
            "Render finished: %d samples per pixel in %.2f s%s",
            snapshot.sample_count,
            elapsed,
            " (cancelled)" if self._cancel_event.is_set() else "",
        )
        degenerate = self._accumulator.degenerate_samples
        if degenerate:
            logger.warning("%d degenerate samples were recorded as zero", degenerate)

    def __repr__(self) -> str:
        return (
            f"ProgressiveRenderer(width={self.width}, height={self.height}, "
            f"samples={self.sample_count})"
        )

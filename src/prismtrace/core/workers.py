"""Worker processes for render sessions.

The integrator is plain Python, so threads alone cannot trace in parallel.
A render session therefore hands its passes to a pool of processes. Each
process receives the PathTracer once, through the pool initializer, and then
renders batches of passes into a fresh PartialBuffer that is sent back to
the session to be merged.

Pass k of a session always draws its random numbers from
``SeedSequence(entropy, spawn_key=(k,))``. A seeded image is then the same
however the passes were split between workers.

This module must stay importable without the preview package, so spawned
processes never import Taichi.
"""

from __future__ import annotations

import logging
import multiprocessing
import time
from concurrent.futures import ProcessPoolExecutor

import numpy as np

from .accumulator import PartialBuffer
from .integrator import PathTracer

logger = logging.getLogger(__name__)

# Set in each worker process by _init_worker
_tracer: PathTracer | None = None


def _init_worker(tracer: PathTracer) -> None:
    global _tracer
    _tracer = tracer


def create_pool(tracer: PathTracer, processes: int) -> ProcessPoolExecutor:
    """Start a process pool whose workers all hold a copy of ``tracer``.

    Processes are spawned, not forked, so children inherit no render
    thread state.
    """
    return ProcessPoolExecutor(
        max_workers=processes,
        mp_context=multiprocessing.get_context("spawn"),
        initializer=_init_worker,
        initargs=(tracer,),
    )


def pass_rng(entropy: int, pass_index: int) -> np.random.Generator:
    """The random stream for one pass of a session."""
    return np.random.default_rng(np.random.SeedSequence(entropy, spawn_key=(pass_index,)))


def render_batch(
    passes: range,
    width: int,
    height: int,
    pass_count: int | None,
    entropy: int,
    deadline: float | None = None,
) -> PartialBuffer:
    """Render a batch of full-frame passes in a worker process.

    Args:
        passes: Indices of the passes to render.
        width: Image width in pixels.
        height: Image height in pixels.
        pass_count: Total passes planned for the session, or None.
        entropy: Session entropy the per-pass streams are derived from.
        deadline: Wall-clock time (``time.time()``) after which no further
            pass is started.

    Returns:
        A buffer holding one sample per pixel for every pass rendered.

    Raises:
        RuntimeError: If called in a process the pool did not initialize.
    """
    if _tracer is None:
        raise RuntimeError("render_batch must run in a pool created by create_pool")
    buffer = PartialBuffer(width, height)
    for pass_index in passes:
        if deadline is not None and time.time() >= deadline:
            logger.debug("Deadline reached before pass %d", pass_index)
            break
        _tracer.render_pass(buffer, pass_rng(entropy, pass_index), pass_index, pass_count)
    return buffer

"""Per-pixel sample accumulation for progressive rendering.

Each worker renders into its own PartialBuffer without any locking and
periodically merges it into the shared Accumulator. The accumulator keeps,
for every pixel, the sample count and the compensated (Kahan) sum of the XYZ
samples, so the mean does not drift when millions of small contributions are
added to a large total.

Merges lock one image row at a time: two workers merging at once only
contend on the row they both touch, and a merge is never visible half-way
through a pixel. A snapshot takes every row lock in order, so it always sees
whole merges and never a torn frame.

Example:
    >>> partial = PartialBuffer(2, 1)
    >>> partial.add_sample(0, 0, (1.0, 1.0, 1.0))
    >>> acc = Accumulator(2, 1)
    >>> acc.merge(partial)
    >>> acc.snapshot().counts.tolist()
    [[1, 0]]
"""

from __future__ import annotations

import contextlib
import logging
import math
import threading
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from prismtrace.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _check_size(width: int, height: int) -> None:
    if width <= 0 or height <= 0:
        raise ConfigurationError(f"Image size must be positive, got {width}x{height}")


class PartialBuffer:
    """A worker-private buffer of XYZ sums and sample counts.

    Not thread-safe; each worker owns exactly one.

    Attributes:
        sums: (height, width, 3) float64 XYZ sums.
        counts: (height, width) int64 sample counts.
        degenerate: Samples that were non-finite or negative and were
            recorded as zero.
    """

    def __init__(self, width: int, height: int) -> None:
        _check_size(width, height)
        self.width = width
        self.height = height
        self.sums = np.zeros((height, width, 3), dtype=np.float64)
        self.counts = np.zeros((height, width), dtype=np.int64)
        self.degenerate = 0

    def add_sample(self, x: int, y: int, xyz: tuple[float, float, float]) -> None:
        """Add one XYZ sample to pixel (x, y), with y = 0 the top row."""
        if all(math.isfinite(c) and c >= 0.0 for c in xyz):
            cell = self.sums[y, x]
            cell[0] += xyz[0]
            cell[1] += xyz[1]
            cell[2] += xyz[2]
        else:
            self.degenerate += 1
        self.counts[y, x] += 1

    def add_row(self, y: int, samples: npt.NDArray[np.float64]) -> None:
        """Add one sample to every pixel of row y.

        Args:
            y: Row index (0 = top).
            samples: (width, 3) array of XYZ samples, one per pixel.
        """
        bad = ~np.isfinite(samples).all(axis=1) | (samples < 0.0).any(axis=1)
        if bad.any():
            samples = np.where(bad[:, None], 0.0, samples)
            self.degenerate += int(bad.sum())
        self.sums[y] += samples
        self.counts[y] += 1

    def clear(self) -> None:
        self.sums.fill(0.0)
        self.counts.fill(0)
        self.degenerate = 0

    @property
    def total_samples(self) -> int:
        return int(self.counts.sum())


@dataclass(frozen=True)
class FrameSnapshot:
    """A consistent copy of the accumulated frame.

    Attributes:
        sums: (height, width, 3) XYZ sums.
        counts: (height, width) sample counts.
    """

    sums: npt.NDArray[np.float64]
    counts: npt.NDArray[np.int64]

    @property
    def width(self) -> int:
        return int(self.counts.shape[1])

    @property
    def height(self) -> int:
        return int(self.counts.shape[0])

    @property
    def sample_count(self) -> int:
        """Samples in the least-sampled pixel."""
        return int(self.counts.min())

    @property
    def total_samples(self) -> int:
        return int(self.counts.sum())

    def mean(self) -> npt.NDArray[np.float64]:
        """Per-pixel mean XYZ, 0 where no sample has landed yet."""
        counts = self.counts[..., None].astype(np.float64)
        out = np.zeros_like(self.sums)
        np.divide(self.sums, counts, out=out, where=counts > 0)
        return out


class Accumulator:
    """Shared per-pixel accumulator merged from worker partial buffers.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.
    """

    def __init__(self, width: int, height: int) -> None:
        _check_size(width, height)
        self.width = width
        self.height = height
        self._sums = np.zeros((height, width, 3), dtype=np.float64)
        self._compensation = np.zeros((height, width, 3), dtype=np.float64)
        self._counts = np.zeros((height, width), dtype=np.int64)
        self._row_locks = [threading.Lock() for _ in range(height)]
        self._stats_lock = threading.Lock()
        self._degenerate = 0
        self._merges = 0

    def merge(self, partial: PartialBuffer) -> None:
        """Add a partial buffer's sums and counts into the frame.

        The partial buffer is left untouched; callers clear it when they
        reuse it.

        Raises:
            ConfigurationError: If the buffer's size differs from the frame's.
        """
        if (partial.width, partial.height) != (self.width, self.height):
            raise ConfigurationError(
                f"Cannot merge a {partial.width}x{partial.height} buffer into a "
                f"{self.width}x{self.height} frame"
            )

        for y in range(self.height):
            row_counts = partial.counts[y]
            if not row_counts.any():
                continue
            with self._row_locks[y]:
                # Kahan summation per component
                s = self._sums[y]
                c = self._compensation[y]
                v = partial.sums[y] - c
                t = s + v
                c[...] = (t - s) - v
                s[...] = t
                self._counts[y] += row_counts

        with self._stats_lock:
            self._degenerate += partial.degenerate
            self._merges += 1
        logger.debug("Merged %d samples", partial.total_samples)

    @contextlib.contextmanager
    def _all_rows(self):
        with contextlib.ExitStack() as stack:
            for lock in self._row_locks:
                stack.enter_context(lock)
            yield

    def snapshot(self) -> FrameSnapshot:
        """Copy the frame. Each row is copied between merges, never halfway through one."""
        with self._all_rows():
            sums = self._sums.copy()
            counts = self._counts.copy()
        return FrameSnapshot(sums=sums, counts=counts)

    def reset(self) -> None:
        """Discard every accumulated sample."""
        with self._all_rows():
            self._sums.fill(0.0)
            self._compensation.fill(0.0)
            self._counts.fill(0)
        with self._stats_lock:
            self._degenerate = 0
            self._merges = 0

    @property
    def total_samples(self) -> int:
        return int(self._counts.sum())

    @property
    def degenerate_samples(self) -> int:
        with self._stats_lock:
            return self._degenerate

    @property
    def merge_count(self) -> int:
        with self._stats_lock:
            return self._merges

"""Tests for sample accumulation.

Tests cover:
- PartialBuffer sample and row accumulation
- Degenerate (non-finite or negative) samples
- Accumulator merging, snapshots and reset
- Order independence and concurrent merges
"""

import threading

import numpy as np
import pytest


def _random_partial(width, height, rng, passes=3):
    from prismtrace.core.accumulator import PartialBuffer

    buffer = PartialBuffer(width, height)
    for _ in range(passes):
        for y in range(height):
            buffer.add_row(y, rng.random((width, 3)) * 10.0)
    return buffer


class TestPartialBuffer:
    """Tests for PartialBuffer."""

    def test_add_sample(self):
        """Test adding single samples to a pixel."""
        from prismtrace.core.accumulator import PartialBuffer

        buffer = PartialBuffer(3, 2)
        buffer.add_sample(2, 1, (1.0, 2.0, 3.0))
        buffer.add_sample(2, 1, (0.5, 0.5, 0.5))

        assert buffer.counts[1, 2] == 2
        np.testing.assert_allclose(buffer.sums[1, 2], [1.5, 2.5, 3.5])
        assert buffer.total_samples == 2

    def test_add_row(self):
        """Test adding a sample to every pixel of a row."""
        from prismtrace.core.accumulator import PartialBuffer

        buffer = PartialBuffer(4, 3)
        samples = np.arange(12, dtype=np.float64).reshape(4, 3)
        buffer.add_row(0, samples)

        np.testing.assert_array_equal(buffer.counts[0], [1, 1, 1, 1])
        np.testing.assert_array_equal(buffer.counts[1:], 0)
        np.testing.assert_allclose(buffer.sums[0], samples)

    @pytest.mark.parametrize(
        "bad",
        [(float("nan"), 0.0, 0.0), (float("inf"), 1.0, 1.0), (-1.0, 0.5, 0.5)],
    )
    def test_degenerate_sample_counts_as_zero(self, bad):
        """Test that bad samples are recorded as zero contributions."""
        from prismtrace.core.accumulator import PartialBuffer

        buffer = PartialBuffer(2, 2)
        buffer.add_sample(0, 0, bad)

        assert buffer.counts[0, 0] == 1
        np.testing.assert_array_equal(buffer.sums[0, 0], [0.0, 0.0, 0.0])
        assert buffer.degenerate == 1

    def test_degenerate_row_entries(self):
        """Test that only the bad pixels of a row are zeroed."""
        from prismtrace.core.accumulator import PartialBuffer

        buffer = PartialBuffer(3, 1)
        buffer.add_row(0, np.array([[1.0, 1.0, 1.0], [np.nan, 1.0, 1.0], [2.0, -3.0, 2.0]]))

        expected = [[1.0, 1.0, 1.0], [0.0, 0.0, 0.0], [0.0, 0.0, 0.0]]
        np.testing.assert_allclose(buffer.sums[0], expected)
        np.testing.assert_array_equal(buffer.counts[0], [1, 1, 1])
        assert buffer.degenerate == 2

    def test_clear(self):
        """Test that clear empties the buffer."""
        from prismtrace.core.accumulator import PartialBuffer

        buffer = PartialBuffer(2, 2)
        buffer.add_sample(0, 0, (1.0, 1.0, 1.0))
        buffer.add_sample(1, 1, (np.nan, 0.0, 0.0))
        buffer.clear()

        assert buffer.total_samples == 0
        assert buffer.sums.sum() == 0.0
        assert buffer.degenerate == 0

    @pytest.mark.parametrize(("width", "height"), [(0, 4), (4, 0), (-1, 2)])
    def test_rejects_bad_size(self, width, height):
        """Test that non-positive sizes raise ConfigurationError."""
        from prismtrace.core.accumulator import PartialBuffer
        from prismtrace.errors import ConfigurationError

        with pytest.raises(ConfigurationError):
            PartialBuffer(width, height)


class TestAccumulator:
    """Tests for Accumulator merge, snapshot and reset."""

    def test_empty_snapshot(self):
        """Test a fresh frame has no samples and a zero mean."""
        from prismtrace.core.accumulator import Accumulator

        snapshot = Accumulator(5, 3).snapshot()
        assert (snapshot.width, snapshot.height) == (5, 3)
        assert snapshot.sample_count == 0
        assert snapshot.total_samples == 0
        np.testing.assert_array_equal(snapshot.mean(), 0.0)

    def test_merge_and_mean(self):
        """Test that merged samples average per pixel."""
        from prismtrace.core.accumulator import Accumulator, PartialBuffer

        acc = Accumulator(2, 1)
        buffer = PartialBuffer(2, 1)
        buffer.add_sample(0, 0, (1.0, 2.0, 3.0))
        buffer.add_sample(0, 0, (3.0, 2.0, 1.0))
        acc.merge(buffer)

        snapshot = acc.snapshot()
        np.testing.assert_allclose(snapshot.mean()[0, 0], [2.0, 2.0, 2.0])
        # The other pixel is still empty
        np.testing.assert_array_equal(snapshot.mean()[0, 1], [0.0, 0.0, 0.0])
        assert snapshot.sample_count == 0
        assert acc.total_samples == 2
        assert acc.merge_count == 1

    def test_merge_leaves_partial_untouched(self):
        """Test that merging does not clear the caller's buffer."""
        from prismtrace.core.accumulator import Accumulator

        rng = np.random.default_rng(1)
        buffer = _random_partial(3, 3, rng)
        before = buffer.sums.copy()
        Accumulator(3, 3).merge(buffer)

        np.testing.assert_array_equal(buffer.sums, before)

    def test_merge_size_mismatch(self):
        """Test that merging a differently sized buffer fails."""
        from prismtrace.core.accumulator import Accumulator, PartialBuffer
        from prismtrace.errors import ConfigurationError

        with pytest.raises(ConfigurationError):
            Accumulator(4, 4).merge(PartialBuffer(4, 3))

    def test_degenerate_count_propagates(self):
        """Test that degenerate samples are tallied on merge."""
        from prismtrace.core.accumulator import Accumulator, PartialBuffer

        acc = Accumulator(2, 2)
        buffer = PartialBuffer(2, 2)
        buffer.add_sample(1, 0, (np.inf, 0.0, 0.0))
        acc.merge(buffer)
        acc.merge(buffer)

        assert acc.degenerate_samples == 2

    def test_snapshot_is_a_copy(self):
        """Test that later merges do not change an earlier snapshot."""
        from prismtrace.core.accumulator import Accumulator

        rng = np.random.default_rng(2)
        acc = Accumulator(3, 2)
        acc.merge(_random_partial(3, 2, rng))
        snapshot = acc.snapshot()
        sums = snapshot.sums.copy()
        acc.merge(_random_partial(3, 2, rng))

        np.testing.assert_array_equal(snapshot.sums, sums)
        assert snapshot.sample_count == 3

    def test_reset(self):
        """Test that reset discards everything."""
        from prismtrace.core.accumulator import Accumulator

        rng = np.random.default_rng(3)
        acc = Accumulator(3, 2)
        acc.merge(_random_partial(3, 2, rng))
        acc.reset()

        assert acc.total_samples == 0
        assert acc.merge_count == 0
        np.testing.assert_array_equal(acc.snapshot().sums, 0.0)

    def test_kahan_summation_keeps_small_contributions(self):
        """Test that many tiny samples are not lost against a large one."""
        from prismtrace.core.accumulator import Accumulator, PartialBuffer

        acc = Accumulator(1, 1)
        big = PartialBuffer(1, 1)
        big.add_sample(0, 0, (1e16, 1e16, 1e16))
        acc.merge(big)

        small = PartialBuffer(1, 1)
        small.add_sample(0, 0, (1.0, 1.0, 1.0))
        for _ in range(1000):
            acc.merge(small)

        # Naive float64 summation would round every +1 away
        total = acc.snapshot().sums[0, 0, 0]
        assert total - 1e16 == pytest.approx(1000.0, abs=4.0)


class TestMergeOrderIndependence:
    """Merging in any order or from any number of threads gives the same frame."""

    def test_merge_order_does_not_matter(self):
        """Test forward, reversed and shuffled merge orders."""
        from prismtrace.core.accumulator import Accumulator

        rng = np.random.default_rng(42)
        partials = [_random_partial(8, 6, rng) for _ in range(12)]

        means = []
        for order in (range(12), reversed(range(12)), rng.permutation(12)):
            acc = Accumulator(8, 6)
            for index in order:
                acc.merge(partials[index])
            means.append(acc.snapshot().mean())

        np.testing.assert_allclose(means[1], means[0], rtol=1e-12)
        np.testing.assert_allclose(means[2], means[0], rtol=1e-12)

    def test_concurrent_merges(self):
        """Test that merges from many threads lose no samples."""
        from prismtrace.core.accumulator import Accumulator

        rng = np.random.default_rng(7)
        partials = [_random_partial(16, 16, rng, passes=1) for _ in range(64)]

        sequential = Accumulator(16, 16)
        for partial in partials:
            sequential.merge(partial)

        concurrent = Accumulator(16, 16)
        barrier = threading.Barrier(8)

        def worker(chunk):
            barrier.wait()
            for partial in chunk:
                concurrent.merge(partial)

        threads = [threading.Thread(target=worker, args=(partials[i::8],)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        a = sequential.snapshot()
        b = concurrent.snapshot()
        np.testing.assert_array_equal(b.counts, a.counts)
        assert b.sample_count == 64
        np.testing.assert_allclose(b.mean(), a.mean(), rtol=1e-12)
        assert concurrent.merge_count == 64

    def test_snapshots_during_merges_are_consistent(self):
        """Test that every pixel's sum and count agree while merges run."""
        from prismtrace.core.accumulator import Accumulator, PartialBuffer

        acc = Accumulator(4, 32)
        buffer = PartialBuffer(4, 32)
        for y in range(32):
            buffer.add_row(y, np.ones((4, 3)))

        stop = threading.Event()

        def merger():
            while not stop.is_set():
                acc.merge(buffer)

        thread = threading.Thread(target=merger)
        thread.start()
        try:
            for _ in range(50):
                snapshot = acc.snapshot()
                np.testing.assert_array_equal(snapshot.sums[..., 0], snapshot.counts)
        finally:
            stop.set()
            thread.join()

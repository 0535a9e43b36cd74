"""Tests for the progressive renderer.

This module tests the RenderSettings and ProgressiveRenderer classes including:
- Settings validation
- Sample budgets and time budgets
- Progress callbacks and generators
- Cancellation and reset
- Worker failures and thread start failures
- Early cancellation of a stratified session
- Reproducibility with a fixed seed, for any number of workers

Note: Imports are done inside test methods to avoid Taichi initialization issues.
The conftest.py fixture initializes Taichi before tests run.
"""

import threading
import time

import numpy as np
import pytest


def _renderer(width=8, height=8, **settings_kwargs):
    from prismtrace.core.progressive import ProgressiveRenderer, RenderSettings
    from prismtrace.scene import create_cornell_box_scene

    scene, camera = create_cornell_box_scene(aspect_ratio=width / height)
    settings_kwargs.setdefault("threads", 2)
    settings = RenderSettings(width=width, height=height, **settings_kwargs)
    return ProgressiveRenderer(scene, camera, settings)


class BrokenGeometry:
    """Geometry whose hit test always fails.

    Defined at module level so worker processes can unpickle it.
    """

    def hit(self, ray, t_min, t_max):
        raise ArithmeticError("broken geometry")


def _camera():
    from prismtrace.camera import ThinLensCamera

    return ThinLensCamera(
        position=(0.0, 0.0, 0.0),
        look_at=(0.0, 0.0, -1.0),
        up=(0.0, 1.0, 0.0),
        vfov=60.0,
        aspect_ratio=1.0,
    )


def _white_wall_renderer(width, height, **settings_kwargs):
    """A renderer whose view is filled by an equal-energy white emitter."""
    from prismtrace.core.progressive import ProgressiveRenderer, RenderSettings
    from prismtrace.core.spectrum import Spectrum
    from prismtrace.geometry import Plane
    from prismtrace.materials import EmissiveMaterial
    from prismtrace.scene import Primitive, Scene

    wall = Plane((0.0, 0.0, -1.0), (0.0, 0.0, 1.0))
    scene = Scene([Primitive(wall, EmissiveMaterial(Spectrum.constant(1.0)))])
    settings = RenderSettings(width=width, height=height, **settings_kwargs)
    return ProgressiveRenderer(scene, _camera(), settings)


class TestRenderSettings:
    """Test RenderSettings validation."""

    def test_threads_default_to_cpu_count(self):
        """Test that threads=None means one worker per core."""
        import os

        from prismtrace.core.progressive import RenderSettings

        settings = RenderSettings(width=4, height=4, samples_per_pixel=1)
        assert settings.threads == (os.cpu_count() or 1)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"width": 0, "height": 4, "samples_per_pixel": 1},
            {"width": 4, "height": -1, "samples_per_pixel": 1},
            {"width": 4, "height": 4},
            {"width": 4, "height": 4, "samples_per_pixel": 0},
            {"width": 4, "height": 4, "time_budget": 0.0},
            {"width": 4, "height": 4, "time_budget": float("inf")},
            {"width": 4, "height": 4, "samples_per_pixel": 1, "threads": 0},
            {"width": 4, "height": 4, "samples_per_pixel": 1, "batch_size": 0},
        ],
    )
    def test_invalid(self, kwargs):
        """Test that invalid settings raise ConfigurationError."""
        from prismtrace.core.progressive import RenderSettings
        from prismtrace.errors import ConfigurationError

        with pytest.raises(ConfigurationError):
            RenderSettings(**kwargs)


class TestProgressiveRendering:
    """Test complete render sessions."""

    def test_render_reaches_sample_budget(self):
        """Test that render() stops at exactly samples_per_pixel."""
        renderer = _renderer(samples_per_pixel=5, batch_size=2)
        image = renderer.render(interval=0.05)

        assert image.shape == (8, 8, 3)
        assert image.dtype == np.float32
        assert np.all(np.isfinite(image))
        assert image.min() >= 0.0 and image.max() <= 1.0
        assert renderer.sample_count == 5
        np.testing.assert_array_equal(renderer.snapshot().counts, 5)
        assert not renderer.running

    def test_image_is_lit(self):
        """Test that the Cornell box renders with visible light."""
        renderer = _renderer(width=12, height=12, samples_per_pixel=8)
        image = renderer.render()
        assert image.mean() > 0.0

    def test_callback_receives_final_progress(self):
        """Test progress callbacks end with (target, target)."""
        calls = []
        renderer = _renderer(samples_per_pixel=3)
        renderer.render(callback=lambda current, target: calls.append((current, target)))

        assert calls
        assert calls[-1] == (3, 3)
        assert all(target == 3 for _, target in calls)
        assert [c for c, _ in calls] == sorted(c for c, _ in calls)

    def test_render_progressive_generator(self):
        """Test the progress generator."""
        renderer = _renderer(samples_per_pixel=4)
        progress = list(renderer.render_progressive(interval=0.01))

        assert progress[-1] == (4, 4)

    def test_time_budget_only(self):
        """Test a session limited only by wall-clock time."""
        renderer = _renderer(time_budget=0.3)
        start = time.monotonic()
        renderer.render(interval=0.05)
        elapsed = time.monotonic() - start

        counts = renderer.snapshot().counts
        assert renderer.target_samples == 0
        assert counts.min() == counts.max()
        # Workers stop at the first pass boundary after the deadline
        assert elapsed < 10.0

    def test_sample_budget_and_time_budget(self):
        """Test that the sample budget wins when it is reached first."""
        renderer = _renderer(samples_per_pixel=2, time_budget=60.0)
        renderer.render()
        assert renderer.sample_count == 2

    def test_start_twice_raises(self):
        """Test that a running session cannot be started again."""
        renderer = _renderer(time_budget=5.0)
        renderer.start()
        try:
            with pytest.raises(RuntimeError, match="already running"):
                renderer.start()
        finally:
            renderer.cancel()
            renderer.wait()

    def test_passes_render_in_worker_processes(self, monkeypatch):
        """Test that tracing happens in the pool, not in the calling process."""
        from prismtrace.core.integrator import PathTracer

        def fail(*args, **kwargs):
            raise AssertionError("render_pass ran in the parent process")

        # Spawned workers import a fresh copy of the module, so only the parent is patched
        monkeypatch.setattr(PathTracer, "render_pass", fail)
        renderer = _renderer(samples_per_pixel=4, threads=2, batch_size=1)
        renderer.render()

        assert renderer.sample_count == 4

    def test_repr(self):
        """Test the session summary string."""
        renderer = _renderer(width=6, height=4, samples_per_pixel=1)
        assert repr(renderer) == "ProgressiveRenderer(width=6, height=4, samples=0)"


class TestCancellation:
    """Test cooperative cancellation."""

    def test_cancel_mid_session(self):
        """Test that cancelling keeps whole passes and a valid image."""
        renderer = _renderer(width=16, height=16, time_budget=60.0)
        renderer.start()
        deadline = time.monotonic() + 30.0
        while renderer.sample_count < 1 and time.monotonic() < deadline:
            time.sleep(0.01)
        renderer.cancel()
        assert renderer.wait(timeout=30.0)

        assert renderer.cancelled
        assert not renderer.running
        counts = renderer.snapshot().counts
        assert counts.min() == counts.max() >= 1
        image = renderer.get_image()
        assert np.all(np.isfinite(image))
        assert image.min() >= 0.0 and image.max() <= 1.0

    def test_cancel_stops_adding_samples(self):
        """Test that nothing is merged after wait() returns."""
        renderer = _renderer(time_budget=60.0)
        renderer.start()
        renderer.cancel()
        renderer.wait()
        before = renderer.accumulator.total_samples
        time.sleep(0.05)
        assert renderer.accumulator.total_samples == before

    def test_early_cancel_is_not_tinted(self):
        """Test that a sample-budgeted render stopped early is still white."""
        renderer = _white_wall_renderer(24, 24, samples_per_pixel=200, threads=1, batch_size=5)
        renderer.start()
        deadline = time.monotonic() + 60.0
        while renderer.sample_count < 10 and time.monotonic() < deadline:
            time.sleep(0.005)
        renderer.cancel()
        assert renderer.wait(timeout=60.0)

        snapshot = renderer.snapshot()
        assert 10 <= snapshot.sample_count < 200
        luminance = snapshot.mean()[..., 1]
        assert luminance.min() > 0.6
        assert luminance.max() < 1.4
        assert np.sqrt(np.mean((luminance - 1.0) ** 2)) < 0.25

    def test_empty_frame_is_background(self):
        """Test that an unrendered frame shows the tonemapper background."""
        from prismtrace.core.progressive import ProgressiveRenderer, RenderSettings
        from prismtrace.preview.tonemap import Tonemapper
        from prismtrace.scene import create_cornell_box_scene

        scene, camera = create_cornell_box_scene()
        renderer = ProgressiveRenderer(
            scene,
            camera,
            RenderSettings(width=4, height=3, samples_per_pixel=1),
            tonemapper=Tonemapper(background=(0.2, 0.4, 0.6)),
        )
        image = renderer.get_image()

        assert image.shape == (3, 4, 3)
        np.testing.assert_allclose(image, np.broadcast_to([0.2, 0.4, 0.6], (3, 4, 3)), atol=1e-6)

    def test_keyboard_interrupt_cancels(self):
        """Test that an exception in the consumer cancels the workers."""
        renderer = _renderer(time_budget=60.0)

        def interrupt(current, target):
            raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            renderer.render(callback=interrupt, interval=0.01)
        assert renderer.cancelled
        assert not renderer.running


class TestResetAndReproducibility:
    """Test reset and seeded sessions."""

    def test_reset_after_render(self):
        """Test that reset clears samples so the session can run again."""
        renderer = _renderer(samples_per_pixel=2)
        renderer.render()
        renderer.reset()

        assert renderer.sample_count == 0
        renderer.render()
        assert renderer.sample_count == 2

    def test_reset_while_running_raises(self):
        """Test that a running session cannot be reset."""
        renderer = _renderer(time_budget=5.0)
        renderer.start()
        try:
            with pytest.raises(RuntimeError):
                renderer.reset()
        finally:
            renderer.cancel()
            renderer.wait()

    def test_same_seed_same_image(self):
        """Test that a session is reproducible from its seed."""
        a = _renderer(samples_per_pixel=3, threads=1, seed=1234)
        b = _renderer(samples_per_pixel=3, threads=1, seed=1234)
        a.render()
        b.render()

        np.testing.assert_array_equal(a.snapshot().sums, b.snapshot().sums)

    def test_seeded_image_independent_of_worker_count(self):
        """Test that the same seed gives the same frame for any split of passes."""
        a = _renderer(samples_per_pixel=4, threads=1, batch_size=1, seed=99)
        b = _renderer(samples_per_pixel=4, threads=3, batch_size=2, seed=99)
        a.render()
        b.render()

        np.testing.assert_array_equal(a.snapshot().counts, b.snapshot().counts)
        np.testing.assert_allclose(a.snapshot().sums, b.snapshot().sums, rtol=1e-12, atol=1e-12)

    def test_different_seeds_differ(self):
        """Test that the seed changes the random streams."""
        a = _renderer(samples_per_pixel=2, threads=1, seed=1)
        b = _renderer(samples_per_pixel=2, threads=1, seed=2)
        a.render()
        b.render()

        assert not np.array_equal(a.snapshot().sums, b.snapshot().sums)


class TestWorkerFailures:
    """Test error propagation from the worker pool."""

    def test_worker_exception_is_reraised(self):
        """Test that an exception inside a worker surfaces from render()."""
        from prismtrace.core.progressive import ProgressiveRenderer, RenderSettings
        from prismtrace.core.spectrum import Spectrum
        from prismtrace.materials import DiffuseMaterial
        from prismtrace.scene import Primitive, Scene

        scene = Scene([Primitive(BrokenGeometry(), DiffuseMaterial(Spectrum.constant(0.5)))])
        renderer = ProgressiveRenderer(
            scene, _camera(), RenderSettings(width=4, height=4, samples_per_pixel=4, threads=2)
        )

        with pytest.raises(ArithmeticError, match="broken geometry"):
            renderer.render()
        assert not renderer.running

    def test_thread_start_failure(self, monkeypatch):
        """Test that a failed thread start raises WorkerStartError and cleans up."""
        from prismtrace.errors import WorkerStartError

        original_start = threading.Thread.start
        started = []

        def flaky_start(thread):
            # Only the session's driver threads fail; the pool's own threads start
            if thread.name.startswith("prismtrace-worker") and started:
                raise RuntimeError("can't start new thread")
            if thread.name.startswith("prismtrace-worker"):
                started.append(thread)
            original_start(thread)

        renderer = _renderer(time_budget=60.0, threads=3)
        monkeypatch.setattr(threading.Thread, "start", flaky_start)

        with pytest.raises(WorkerStartError):
            renderer.start()
        monkeypatch.undo()

        assert renderer.cancelled
        assert not renderer.running
        assert len(started) == 1
        assert not started[0].is_alive()

import sys, os
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))
import pytest

from bridge.pipeline import PipelineController
from camera.backend import StreamConfig
from camera.catalog import COLOR
from fakes import D400_MODES, FakeBackend
from utils.error_tracker import PipelineError


def _config(fps=30):
    cfg = StreamConfig()
    cfg.enable_stream(COLOR, 640, 480, "rgb8", fps)
    return cfg


def _controller(backend, resolved=None):
    return PipelineController(
        backend,
        lambda frames: None,
        on_resolved=resolved.append if resolved is not None else None,
        restart_delay=0,
    )


def test_empty_config_is_not_started():
    backend = FakeBackend(D400_MODES)
    ctrl = _controller(backend)
    assert ctrl.start(StreamConfig()) is False
    assert backend.starts == [] and not ctrl.running


def test_profiles_resolved_before_start():
    backend = FakeBackend(D400_MODES)
    resolved = []
    ctrl = _controller(backend, resolved)
    assert ctrl.start(_config())
    assert ctrl.running and backend.running
    [profiles] = resolved
    assert profiles[0].stream == COLOR
    assert profiles[0].intrinsics.width == 640


def test_stop_is_safe_when_idle():
    backend = FakeBackend(D400_MODES)
    ctrl = _controller(backend)
    ctrl.stop()
    assert backend.stops == 0


def test_restart_stops_then_starts():
    backend = FakeBackend(D400_MODES)
    ctrl = _controller(backend)
    ctrl.start(_config(30))
    ctrl.restart(_config(15))
    assert backend.stops == 1
    assert [s[COLOR].fps for s in backend.starts] == [30, 15]


def test_start_failure_raises_pipeline_error():
    backend = FakeBackend(D400_MODES)
    backend.fail_starts = 1
    ctrl = _controller(backend)
    with pytest.raises(PipelineError):
        ctrl.start(_config())
    assert not ctrl.running


def test_unresolvable_config():
    backend = FakeBackend(D400_MODES)
    ctrl = _controller(backend)
    cfg = _config()
    cfg.enable_stream(COLOR, 99999, 99999, "rgb8", 30)
    assert not ctrl.can_resolve(cfg)
    with pytest.raises(PipelineError):
        ctrl.start(cfg)

# tests/test_processor.py
import cv2
import numpy as np
import pytest

from rune_vision.core.config import settings
from rune_vision.core.errors import ContractViolationError, UnsupportedPixelFormatError
from rune_vision.core.interfaces import IKeypointDetector
from rune_vision.core.processor import Processor
from rune_vision.data.models import DetectorOutput, RawFrameBuffer
from rune_vision.data.schemas import BayerEncoding, PixelType
from rune_vision.hardware.mock_camera import MockKeypointDetector, MockRuneCamera


class StaticDetector(IKeypointDetector):
    def __init__(self, outputs):
        self.outputs = outputs
        self.calls = 0

    def detect(self, bgr_img):
        self.calls += 1
        return list(self.outputs)


@pytest.fixture
def mock_camera():
    cam = MockRuneCamera(width=640, height=512, fps=30, depth=5000.0)
    cam.connect()
    yield cam
    cam.release()


def mono_frame():
    return RawFrameBuffer(width=16, height=16, pixel_type=PixelType.MONO8, data=b"\x00" * 256)


def test_pipeline_stage_order():
    proc = Processor()
    assert [s.name for s in proc.stages] == ["decoder", "detector", "solver"]


@pytest.mark.parametrize("encoding", list(BayerEncoding))
def test_full_pipeline_on_mock_camera(encoding):
    cam = MockRuneCamera(width=640, height=512, fps=30, depth=5000.0, encoding=encoding)
    cam.connect()
    proc = Processor(detector=MockKeypointDetector(cam), camera=cam.camera)

    for frame_id in range(5):
        result = proc.process_frame(cam.read_raw(), frame_id)

        assert result.errors == []
        assert result.image.shape == (512, 640, 3)
        assert len(result.solutions) == 1

        sol = result.solutions[0]
        assert sol.valid

        rvec, tvec = cam.last_pose
        truth, _ = cv2.projectPoints(
            np.array([[0.0, 0.0, 0.0], [0.0, -700.0, 0.0]]), rvec, tvec,
            cam.camera.camera_matrix, cam.camera.dist_coeffs,
        )
        truth = truth.reshape(-1, 2)
        assert sol.fan_center.as_tuple() == pytest.approx(tuple(truth[0]), abs=1e-3)
        assert sol.rotation_center.as_tuple() == pytest.approx(tuple(truth[1]), abs=1e-3)

    assert set(result.timings_ms) == {"decoder", "detector", "solver"}


def test_empty_frame_is_not_an_error():
    proc = Processor(detector=StaticDetector([]))
    for raw in (None, RawFrameBuffer(width=0, height=0, pixel_type=BayerEncoding.BAYER_RG8)):
        result = proc.process_frame(raw, 0)
        assert not result.has_frame
        assert result.errors == []
        assert result.solutions == []


def test_unsupported_format_is_recorded_and_skipped():
    detector = StaticDetector([])
    proc = Processor(detector=detector, abort_on_contract_error=False)

    result = proc.process_frame(mono_frame(), 7)

    assert not result.has_frame
    assert len(result.errors) == 1
    assert result.errors[0].source == "decoder"
    assert detector.calls == 0
    # стадия не отключается из-за ошибок контракта
    assert proc.health()["decoder"]["active"]


def test_unsupported_format_aborts_when_configured():
    proc = Processor(detector=StaticDetector([]), abort_on_contract_error=True)
    with pytest.raises(UnsupportedPixelFormatError):
        proc.process_frame(mono_frame(), 0)


def test_invalid_solution_still_returns_image(mock_camera):
    few = DetectorOutput(keypoints=[(1.0, 2.0), (3.0, 4.0), (5.0, 6.0)])
    proc = Processor(detector=StaticDetector([few]), camera=mock_camera.camera)

    result = proc.process_frame(mock_camera.read_raw(), 0)

    assert result.has_frame
    assert len(result.solutions) == 1
    assert result.solutions[0].valid is False
    assert result.errors == []


def test_partial_detection_with_default_center(mock_camera):
    mock_camera.read_raw()
    four = DetectorOutput(keypoints=mock_camera.last_keypoints[:4])
    proc = Processor(detector=StaticDetector([four]), camera=mock_camera.camera)

    result = proc.process_frame(mock_camera.read_raw(), 0)

    assert result.errors == []
    assert len(result.fanblades) == 1
    assert len(result.solutions) == 1
    assert result.solutions[0].valid is False


def test_no_detector_still_decodes(mock_camera):
    result = Processor().process_frame(mock_camera.read_raw(), 0)
    assert result.has_frame
    assert result.fanblades == []
    assert result.solutions == []


def test_policy_command_switches_to_all(mock_camera):
    mock_camera.read_raw()
    pts = mock_camera.last_keypoints
    detector = StaticDetector([DetectorOutput(keypoints=pts), DetectorOutput(keypoints=pts)])
    proc = Processor(detector=detector, camera=mock_camera.camera)

    assert len(proc.process_frame(mock_camera.read_raw(), 0).solutions) == 1

    proc.handle_command("detector", "set_policy", {"value": "all"})
    assert len(proc.process_frame(mock_camera.read_raw(), 1).solutions) == 2


def test_stage_crash_disables_after_repeated_failures(mock_camera):
    class BrokenDetector(IKeypointDetector):
        def detect(self, bgr_img):
            raise RuntimeError("model exploded")

    proc = Processor(detector=BrokenDetector(), camera=mock_camera.camera)
    raw = mock_camera.read_raw()
    for i in range(20):
        result = proc.process_frame(raw, i)
        assert result.errors[0].source == "detector"
        assert result.has_frame

    assert proc.health()["detector"]["active"] is False
    assert proc.process_frame(raw, 99).errors == []


def test_unknown_stage_path_is_skipped():
    proc = Processor(stage_paths=["rune_vision.stages.decode.DecodeStage", "rune_vision.nowhere.Stage"])
    assert [s.name for s in proc.stages] == ["decoder"]


def test_bad_distortion_fails_at_startup(monkeypatch):
    monkeypatch.setattr(settings, "DIST_COEFFS", [0.0] * 4)
    with pytest.raises(ContractViolationError):
        Processor()


def test_bad_rune_geometry_fails_at_startup(monkeypatch):
    monkeypatch.setattr(settings, "FAN_RADIUS", 0.0)
    with pytest.raises(ContractViolationError):
        Processor(stage_paths=["rune_vision.stages.solver.PoseSolverStage"])

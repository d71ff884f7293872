# tests/test_config.py
import json

import numpy as np
import pytest

from rune_vision.core.config import CORE_PIPELINE, SystemSettings, apply_calibration, settings
from rune_vision.vision.geometry import CameraModel, TargetGeometry


def test_defaults_match_bench_camera():
    s = SystemSettings()
    cam = CameraModel.from_settings(s)
    assert cam.fx == pytest.approx(1286.307063384126)
    assert cam.cy == pytest.approx(483.6163720308021)
    assert cam.dist_coeffs.shape == (5,)
    assert not cam.camera_matrix.flags.writeable

    g = TargetGeometry.from_settings(s)
    assert (g.fan_radius, g.r_mark_distance) == (150.0, 700.0)
    assert s.DETECTION_POLICY == "first"


def test_env_override(monkeypatch):
    monkeypatch.setenv("RUNE_DETECTION_POLICY", "all")
    monkeypatch.setenv("RUNE_R_MARK_DISTANCE", "650")
    s = SystemSettings()
    assert s.DETECTION_POLICY == "all"
    assert s.R_MARK_DISTANCE == 650.0


def test_load_calibration_opencv_layout(tmp_path):
    path = tmp_path / "result.json"
    path.write_text(json.dumps({
        "mtx": [[1000.0, 0.0, 320.0], [0.0, 1001.0, 240.0], [0.0, 0.0, 1.0]],
        "dist": [[0.1, -0.2, 0.0, 0.0, 0.05]],
        "rms": 0.31,
    }))
    s = SystemSettings(CALIBRATION_FILE=path)
    assert s.load_calibration()

    cam = CameraModel.from_settings(s)
    assert cam.fy == 1001.0
    np.testing.assert_allclose(cam.dist_coeffs, [0.1, -0.2, 0.0, 0.0, 0.05])


def test_load_calibration_long_keys(tmp_path):
    path = tmp_path / "calib.json"
    path.write_text(json.dumps({
        "camera_matrix": [[900.0, 0.0, 300.0], [0.0, 900.0, 200.0], [0.0, 0.0, 1.0]],
        "dist_coeffs": [0.0, 0.0, 0.0, 0.0, 0.0],
    }))
    s = SystemSettings(CALIBRATION_FILE=path)
    assert s.load_calibration()
    assert s.CAMERA_MATRIX[0][0] == 900.0


def test_load_calibration_missing_keys(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text(json.dumps({"foo": 1}))
    with pytest.raises(ValueError):
        SystemSettings(CALIBRATION_FILE=path).load_calibration()


def test_load_calibration_without_file(tmp_path):
    assert SystemSettings().load_calibration() is False
    assert SystemSettings(CALIBRATION_FILE=tmp_path / "nope.json").load_calibration() is False


def test_bad_calibration_shape_is_rejected():
    s = SystemSettings(DIST_COEFFS=[0.0, 0.0, 0.0, 0.0])
    with pytest.raises(ValueError):
        CameraModel.from_settings(s)


def test_core_pipeline_paths():
    assert CORE_PIPELINE[0].endswith("DecodeStage")
    assert CORE_PIPELINE[-1].endswith("PoseSolverStage")
    assert settings.ABORT_ON_CONTRACT_ERROR is False


@pytest.mark.parametrize("content", [
    "{not json",
    json.dumps({"foo": 1}),
    json.dumps({"mtx": [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]], "dist": [["x", 0, 0, 0, 0]]}),
])
def test_broken_calibration_keeps_builtin_intrinsics(tmp_path, content):
    path = tmp_path / "broken.json"
    path.write_text(content)
    s = SystemSettings(CALIBRATION_FILE=path)
    builtin_mtx, builtin_dist = s.CAMERA_MATRIX, s.DIST_COEFFS

    assert apply_calibration(s) is False
    assert s.CAMERA_MATRIX == builtin_mtx
    assert s.DIST_COEFFS == builtin_dist


def test_apply_calibration_loads_valid_file(tmp_path):
    path = tmp_path / "calib.json"
    path.write_text(json.dumps({
        "camera_matrix": [[900.0, 0.0, 300.0], [0.0, 900.0, 200.0], [0.0, 0.0, 1.0]],
        "dist_coeffs": [0.0, 0.0, 0.0, 0.0, 0.0],
    }))
    s = SystemSettings(CALIBRATION_FILE=path)
    assert apply_calibration(s) is True
    assert s.CAMERA_MATRIX[2][2] == 1.0

# tests/conftest.py
import cv2
import numpy as np
import pytest

from rune_vision.vision.geometry import CameraModel, TargetGeometry
from rune_vision.vision.solver import BuffSolver

FX, FY, CX, CY = 1286.3, 1288.1, 645.3, 483.6


@pytest.fixture
def camera_matrix():
    return np.array([[FX, 0.0, CX], [0.0, FY, CY], [0.0, 0.0, 1.0]], dtype=np.float64)


@pytest.fixture
def zero_dist():
    return np.zeros(5, dtype=np.float64)


@pytest.fixture
def camera(camera_matrix, zero_dist):
    return CameraModel(camera_matrix, zero_dist)


@pytest.fixture
def geometry():
    return TargetGeometry(fan_radius=150.0, r_mark_distance=700.0)


@pytest.fixture
def solver(geometry):
    return BuffSolver(geometry)


@pytest.fixture
def project(camera_matrix, zero_dist):
    """Проекция 3D точек для известной позы (rvec, tvec)."""
    def _project(points3d, rvec, tvec, dist=None):
        pts, _ = cv2.projectPoints(
            np.asarray(points3d, dtype=np.float64).reshape(-1, 3),
            np.asarray(rvec, dtype=np.float64),
            np.asarray(tvec, dtype=np.float64),
            camera_matrix,
            zero_dist if dist is None else dist,
        )
        return pts.reshape(-1, 2)
    return _project

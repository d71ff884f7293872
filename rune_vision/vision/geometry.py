# rune_vision/vision/geometry.py
import numpy as np
from typing import Optional, Sequence
from loguru import logger

from rune_vision.core.errors import ContractViolationError
from rune_vision.data.schemas import KeypointIndex


def _frozen(arr: np.ndarray) -> np.ndarray:
    arr.setflags(write=False)
    return arr


class TargetGeometry:
    """
    Физическая модель руны в ее собственной системе координат (мм).
    4 точки на окружности радиуса R в плоскости z=0 + центр.
    Порядок строк = KeypointIndex, это контракт с детектором.
    """

    def __init__(self, fan_radius: float = 150.0, r_mark_distance: float = 700.0):
        if fan_radius <= 0 or r_mark_distance <= 0:
            raise ContractViolationError("Rune dimensions must be positive")

        self.fan_radius = float(fan_radius)
        self.r_mark_distance = float(r_mark_distance)

        r = self.fan_radius
        layout = {
            KeypointIndex.TOP: (0.0, r, 0.0),
            KeypointIndex.RIGHT: (r, 0.0, 0.0),
            KeypointIndex.BOTTOM: (0.0, -r, 0.0),
            KeypointIndex.LEFT: (-r, 0.0, 0.0),
            KeypointIndex.CENTER: (0.0, 0.0, 0.0),
        }
        self.object_points = _frozen(
            np.array([layout[idx] for idx in KeypointIndex], dtype=np.float64)
        )

        # Точки, которые репроецируем после PnP
        self.fan_center = _frozen(np.zeros(3, dtype=np.float64))
        self.rotation_center = _frozen(np.array([0.0, -self.r_mark_distance, 0.0], dtype=np.float64))

    def __len__(self):
        return len(self.object_points)

    def point(self, index: KeypointIndex) -> np.ndarray:
        return self.object_points[index]

    def reference_points(self) -> np.ndarray:
        """[центр руны, центр вращения (R-метка)] -> (2, 3)"""
        return np.stack([self.fan_center, self.rotation_center])

    @classmethod
    def from_settings(cls, settings) -> "TargetGeometry":
        return cls(settings.FAN_RADIUS, settings.R_MARK_DISTANCE)


class CameraModel:
    """
    Intrinsics + дисторсия. Создается один раз на процесс и только читается,
    поэтому массивы помечены как read-only.
    """

    def __init__(self, camera_matrix, dist_coeffs: Optional[Sequence[float]] = None):
        mtx = np.array(camera_matrix, dtype=np.float64)
        if mtx.shape != (3, 3):
            raise ContractViolationError(f"camera_matrix must be 3x3, got {mtx.shape}")

        if dist_coeffs is None:
            dist = np.zeros(5, dtype=np.float64)
        else:
            dist = np.array(dist_coeffs, dtype=np.float64).reshape(-1)
        if dist.size != 5:
            raise ContractViolationError(f"dist_coeffs must have 5 elements, got {dist.size}")

        self.camera_matrix = _frozen(mtx)
        self.dist_coeffs = _frozen(dist)

    @property
    def fx(self) -> float:
        return float(self.camera_matrix[0, 0])

    @property
    def fy(self) -> float:
        return float(self.camera_matrix[1, 1])

    @property
    def cx(self) -> float:
        return float(self.camera_matrix[0, 2])

    @property
    def cy(self) -> float:
        return float(self.camera_matrix[1, 2])

    @classmethod
    def from_settings(cls, settings) -> "CameraModel":
        model = cls(settings.CAMERA_MATRIX, settings.DIST_COEFFS)
        logger.debug(f"📷 Camera model: fx={model.fx:.1f} fy={model.fy:.1f} cx={model.cx:.1f} cy={model.cy:.1f}")
        return model

    def __repr__(self):
        return f"CameraModel(fx={self.fx:.3f}, fy={self.fy:.3f}, cx={self.cx:.3f}, cy={self.cy:.3f})"

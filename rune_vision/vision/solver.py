# rune_vision/vision/solver.py
import cv2
import numpy as np
from typing import Optional, Sequence, Union
from loguru import logger

from rune_vision.core.errors import ContractViolationError
from rune_vision.data.models import FanBlade, Point2D, Solution
from rune_vision.vision.geometry import CameraModel, TargetGeometry

# Сколько соответствий нужно 5-точечной модели
MIN_POINTS = 5

PointsLike = Union[np.ndarray, Sequence[Point2D], Sequence[Sequence[float]]]


def as_image_points(points: PointsLike) -> np.ndarray:
    """Любой набор 2D точек -> (N, 2) float64. Неверная форма - ошибка контракта."""
    if isinstance(points, np.ndarray):
        arr = points.astype(np.float64)
    else:
        arr = np.array(
            [p.as_tuple() if isinstance(p, Point2D) else tuple(p) for p in points],
            dtype=np.float64,
        )

    if arr.size == 0:
        return arr.reshape(0, 2)
    if arr.shape[-1] != 2 or arr.size % 2 != 0:
        raise ContractViolationError(f"Image points must be Nx2, got shape {arr.shape}")
    return arr.reshape(-1, 2)


def _check_camera(camera_matrix, dist_coeffs):
    mtx = np.asarray(camera_matrix, dtype=np.float64)
    if mtx.shape != (3, 3):
        raise ContractViolationError(f"camera_matrix must be 3x3, got {mtx.shape}")

    if dist_coeffs is None:
        return mtx, np.zeros(5, dtype=np.float64)

    dist = np.asarray(dist_coeffs, dtype=np.float64).reshape(-1)
    if dist.size != 5:
        raise ContractViolationError(f"dist_coeffs must have 5 elements, got {dist.size}")
    return mtx, dist


class BuffSolver:
    """
    PnP по 5 точкам руны.
    Ожидаемые сбои (мало точек, PnP не сошелся) -> Solution(valid=False).
    Ошибки формы входных массивов пробрасываются наружу.
    """

    def __init__(self, geometry: Optional[TargetGeometry] = None):
        self.geometry = geometry or TargetGeometry()

    def solve_pnp(self, image_points: PointsLike, camera_matrix, dist_coeffs) -> Solution:
        mtx, dist = _check_camera(camera_matrix, dist_coeffs)
        img_pts = as_image_points(image_points)

        # 1. Проверка количества точек
        if len(img_pts) < MIN_POINTS:
            logger.debug(f"Not enough points for PnP: {len(img_pts)}")
            return Solution(valid=False)
        if not np.all(np.isfinite(img_pts)):
            logger.warning("Non-finite keypoints, skipping PnP")
            return Solution(valid=False)

        # 2-3. Соответствия 2D <-> 3D, выравниваем по минимальной длине
        obj_pts = self.geometry.object_points
        n = min(len(img_pts), len(obj_pts))
        img_pts = np.ascontiguousarray(img_pts[:n])
        obj_pts = np.ascontiguousarray(obj_pts[:n])

        # 4. PnP
        try:
            success, rvec, tvec = cv2.solvePnP(obj_pts, img_pts, mtx, dist, flags=cv2.SOLVEPNP_ITERATIVE)
        except cv2.error as e:
            logger.warning(f"PnP solve failed: {e}")
            return Solution(valid=False)

        if not success or rvec is None or tvec is None:
            logger.warning("PnP solve failed")
            return Solution(valid=False)
        if not (np.all(np.isfinite(rvec)) and np.all(np.isfinite(tvec))):
            logger.warning("PnP solve returned non-finite pose")
            return Solution(valid=False)
        # Руна обязана быть перед камерой
        if tvec.reshape(-1)[2] <= 0:
            logger.warning(f"PnP solve put target behind camera: z={float(tvec.reshape(-1)[2]):.1f}")
            return Solution(valid=False)

        # 5. Вектор поворота -> матрица 3x3
        rotation_matrix, _ = cv2.Rodrigues(rvec)

        # 6. Репроекция центра руны и центра вращения
        projected, _ = cv2.projectPoints(self.geometry.reference_points(), rvec, tvec, mtx, dist)
        projected = projected.reshape(-1, 2)

        fan_center = Point2D(x=float(projected[0, 0]), y=float(projected[0, 1]))
        rotation_center = Point2D(x=float(projected[1, 0]), y=float(projected[1, 1]))

        r = rvec.reshape(-1)
        t = tvec.reshape(-1)
        logger.debug(
            f"PnP OK - fan center: ({fan_center.x:.1f}, {fan_center.y:.1f}), "
            f"rotation center: ({rotation_center.x:.1f}, {rotation_center.y:.1f}) | "
            f"tvec: [{t[0]:.1f}, {t[1]:.1f}, {t[2]:.1f}] rvec: [{r[0]:.3f}, {r[1]:.3f}, {r[2]:.3f}]"
        )

        # 7.
        return Solution(
            fan_center=fan_center,
            rotation_center=rotation_center,
            valid=True,
            rvec=tuple(float(v) for v in r),
            tvec=tuple(float(v) for v in t),
            rotation_matrix=tuple(tuple(float(v) for v in row) for row in rotation_matrix),
        )

    def solve_fanblade(self, blade: FanBlade, camera: CameraModel) -> Solution:
        return self.solve_pnp(blade.points_array(), camera.camera_matrix, camera.dist_coeffs)

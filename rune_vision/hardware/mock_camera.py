# rune_vision/hardware/mock_camera.py
import time
import math
import cv2
import numpy as np
from typing import List, Optional, Tuple
from loguru import logger

from rune_vision.core.interfaces import ICamera, IKeypointDetector
from rune_vision.data.models import DetectorOutput, RawFrameBuffer
from rune_vision.data.schemas import BayerEncoding, FanBladeType
from rune_vision.vision.geometry import CameraModel, TargetGeometry

# Какой канал BGR сидит в каждой клетке 2x2 мозаики
_BAYER_LAYOUT = {
    BayerEncoding.BAYER_RG8: ((2, 1), (1, 0)),
    BayerEncoding.BAYER_GR8: ((1, 2), (0, 1)),
    BayerEncoding.BAYER_GB8: ((1, 0), (2, 1)),
    BayerEncoding.BAYER_BG8: ((0, 1), (1, 2)),
}


def bgr_to_bayer(bgr: np.ndarray, encoding: BayerEncoding) -> np.ndarray:
    """BGR (h, w, 3) -> одноканальная мозаика (h, w), как ее читает сенсор."""
    layout = _BAYER_LAYOUT[BayerEncoding(encoding)]
    mosaic = np.empty(bgr.shape[:2], dtype=np.uint8)
    for dy in range(2):
        for dx in range(2):
            mosaic[dy::2, dx::2] = bgr[dy::2, dx::2, layout[dy][dx]]
    return mosaic


class MockRuneCamera(ICamera):
    """
    Виртуальная камера с вращающейся руной.
    Лопасть вращается в своей плоскости вокруг R-метки, R-метка - по оси камеры.
    Отдает Bayer-кадры и запоминает истинные ключевые точки последнего кадра.
    """

    def __init__(self,
                 width: int = 1280,
                 height: int = 1024,
                 fps: int = 60,
                 encoding: BayerEncoding = BayerEncoding.BAYER_RG8,
                 camera: Optional[CameraModel] = None,
                 geometry: Optional[TargetGeometry] = None,
                 depth: float = 4000.0,
                 angular_speed: float = math.pi / 3,
                 realtime: bool = False):
        self._width = width
        self._height = height
        self._fps = fps
        self._encoding = BayerEncoding(encoding)
        self._camera = camera or CameraModel(
            [[1286.3, 0.0, width / 2], [0.0, 1288.1, height / 2], [0.0, 0.0, 1.0]]
        )
        self._geometry = geometry or TargetGeometry()
        self._depth = depth
        self._angular_speed = angular_speed  # рад/с
        self._realtime = realtime

        self._is_connected = False
        self._frame_idx = 0

        self.last_keypoints: Optional[np.ndarray] = None
        self.last_pose: Optional[Tuple[np.ndarray, np.ndarray]] = None

    @property
    def camera(self) -> CameraModel:
        return self._camera

    def connect(self) -> None:
        logger.info(f"Connecting MockRuneCam ({self._width}x{self._height}, {self._encoding.name})...")
        self._is_connected = True
        self._frame_idx = 0

    def release(self) -> None:
        self._is_connected = False

    def get_resolution(self) -> Tuple[int, int]:
        return self._width, self._height

    def pose_at(self, t: float) -> Tuple[np.ndarray, np.ndarray]:
        """(rvec, tvec) руны в момент t"""
        theta = self._angular_speed * t
        d = self._geometry.r_mark_distance
        rvec = np.array([0.0, 0.0, theta], dtype=np.float64)
        # R-метка (0, -D, 0) после поворота должна оказаться в (0, 0, depth)
        tvec = np.array([-d * math.sin(theta), d * math.cos(theta), self._depth], dtype=np.float64)
        return rvec, tvec

    def read_raw(self) -> Optional[RawFrameBuffer]:
        if not self._is_connected:
            return None

        if self._realtime:
            time.sleep(1.0 / self._fps)

        t = self._frame_idx / self._fps
        self._frame_idx += 1

        rvec, tvec = self.pose_at(t)
        pts, _ = cv2.projectPoints(
            self._geometry.object_points, rvec, tvec,
            self._camera.camera_matrix, self._camera.dist_coeffs
        )
        pts = pts.reshape(-1, 2)
        self.last_keypoints = pts
        self.last_pose = (rvec, tvec)

        # Рисуем светящиеся точки (красная руна)
        bgr = np.zeros((self._height, self._width, 3), dtype=np.uint8)
        for x, y in pts:
            if 0 <= x < self._width and 0 <= y < self._height:
                cv2.circle(bgr, (int(round(x)), int(round(y))), 6, (40, 40, 255), -1)

        mosaic = bgr_to_bayer(bgr, self._encoding)
        return RawFrameBuffer(
            width=self._width,
            height=self._height,
            pixel_type=int(self._encoding),
            data=mosaic.tobytes(),
        )


class MockKeypointDetector(IKeypointDetector):
    """
    "Детектор", который подсматривает истинные точки у MockRuneCamera.
    noise_px - гауссов шум на координатах (имитация сети).
    """

    def __init__(self, camera: MockRuneCamera, noise_px: float = 0.0,
                 blade_type: Optional[FanBladeType] = FanBladeType.TARGET, seed: int = 0):
        self._camera = camera
        self._noise_px = noise_px
        self._blade_type = blade_type
        self._rng = np.random.default_rng(seed)

    def detect(self, bgr_img: np.ndarray) -> List[DetectorOutput]:
        pts = self._camera.last_keypoints
        if pts is None:
            return []

        if self._noise_px > 0:
            pts = pts + self._rng.normal(0.0, self._noise_px, size=pts.shape)

        return [DetectorOutput(keypoints=pts, blade_type=self._blade_type)]

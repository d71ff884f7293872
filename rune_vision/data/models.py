# rune_vision/data/models.py
from typing import List, Dict, Tuple, Optional, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator
import numpy as np

from rune_vision.data.schemas import FanBladeType, KeypointIndex, ModuleError


# === 1. Базовые примитивы ===

class Point2D(BaseModel):
    """
    Точка в пикселях изображения.
    Округление до целых - забота отрисовки, здесь всегда float.
    """
    model_config = ConfigDict(frozen=True)

    x: float
    y: float

    def as_tuple(self) -> Tuple[float, float]:
        return self.x, self.y


def _coerce_points(value: Any) -> Any:
    """(x, y) / ndarray (N, 2) -> список Point2D-совместимых dict"""
    if isinstance(value, np.ndarray):
        value = value.reshape(-1, 2).tolist()
    if isinstance(value, (list, tuple)):
        out = []
        for p in value:
            if isinstance(p, (list, tuple, np.ndarray)):
                out.append({"x": float(p[0]), "y": float(p[1])})
            else:
                out.append(p)
        return out
    return value


# === 2. Сырой кадр ===

class RawFrameBuffer(BaseModel):
    """
    Кадр в формате сенсора, как его отдает SDK.
    Живет ровно один вызов decode(), после чего производитель его освобождает.
    """
    model_config = ConfigDict(frozen=True)

    width: int = Field(..., ge=0)
    height: int = Field(..., ge=0)
    pixel_type: int = Field(..., description="MvGvspPixelType тег")
    data: bytes = b""

    @property
    def length(self) -> int:
        return len(self.data)

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0 or self.length == 0


# === 3. Детекции ===

class DetectorOutput(BaseModel):
    """
    Сырой выход детектора ключевых точек (YOLO и т.п.).
    blade_type=None -> детектор не прислал класс.
    center_index=None -> центр берется из KeypointIndex.CENTER, если точка есть.
    """
    keypoints: List[Point2D]
    center_index: Optional[int] = None
    blade_type: Optional[FanBladeType] = None
    angle: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @field_validator("keypoints", mode="before")
    @classmethod
    def normalize_keypoints(cls, value):
        return _coerce_points(value)


class FanBlade(BaseModel):
    """
    Лопасть руны. Порядок keypoints совпадает с KeypointIndex.
    angle/width/height - только описание, солвер их не читает.
    """
    model_config = ConfigDict(frozen=True)

    center: Point2D
    keypoints: Tuple[Point2D, ...]
    angle: float = 0.0
    width: float = 0.0
    height: float = 0.0
    type: FanBladeType = FanBladeType.LIT

    @field_validator("keypoints", mode="before")
    @classmethod
    def normalize_keypoints(cls, value):
        return tuple(_coerce_points(value))

    def keypoint(self, index: KeypointIndex) -> Point2D:
        return self.keypoints[index]

    def points_array(self) -> np.ndarray:
        """(N, 2) float64 для OpenCV"""
        return np.array([p.as_tuple() for p in self.keypoints], dtype=np.float64).reshape(-1, 2)


# === 4. Результат PnP ===

class Solution(BaseModel):
    fan_center: Point2D = Field(default_factory=lambda: Point2D(x=0.0, y=0.0))
    rotation_center: Point2D = Field(default_factory=lambda: Point2D(x=0.0, y=0.0))
    valid: bool = False

    # Поза руны в системе камеры (заполняется только при valid=True)
    rvec: Optional[Tuple[float, float, float]] = None
    tvec: Optional[Tuple[float, float, float]] = None
    rotation_matrix: Optional[Tuple[Tuple[float, float, float], ...]] = None


# === 5. Пакет данных кадра ===

class FrameResult(BaseModel):
    """Все, что ядро отдает наружу за один кадр."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    frame_id: int
    image: Optional[np.ndarray] = None
    fanblades: List[FanBlade] = Field(default_factory=list)
    solutions: List[Solution] = Field(default_factory=list)
    errors: List[ModuleError] = Field(default_factory=list)
    timings_ms: Dict[str, float] = Field(default_factory=dict)

    @property
    def has_frame(self) -> bool:
        return self.image is not None

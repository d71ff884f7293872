# rune_vision/data/schemas.py
import time
from enum import Enum, IntEnum
from pydantic import BaseModel, Field


# --- 0. Форматы пикселей (Hikrobot MvGvspPixelType) ---

class PixelType(IntEnum):
    """
    Теги формата, которые отдает SDK камеры в stFrameInfo.enPixelType.
    Декодер поддерживает только Bayer-варианты, остальные здесь для полноты.
    """
    MONO8 = 0x01080001
    BAYER_GR8 = 0x01080008
    BAYER_RG8 = 0x01080009
    BAYER_GB8 = 0x0108000A
    BAYER_BG8 = 0x0108000B
    RGB8_PACKED = 0x02180014
    BGR8_PACKED = 0x02180015
    YUV422_PACKED = 0x0210001F


class BayerEncoding(IntEnum):
    """Закрытое множество мозаик, которые умеет декодер."""
    BAYER_GR8 = 0x01080008
    BAYER_RG8 = 0x01080009
    BAYER_GB8 = 0x0108000A
    BAYER_BG8 = 0x0108000B


# --- 1. Руна ---

class FanBladeType(str, Enum):
    TARGET = "target"  # лопасть, по которой надо стрелять
    UNLIT = "unlit"
    LIT = "lit"


class KeypointIndex(IntEnum):
    """
    Контракт порядка: keypoints[i] детектора <-> точка модели i.
    Направления заданы в локальной системе руны.
    """
    TOP = 0  # (0, +R, 0)
    RIGHT = 1  # (+R, 0, 0)
    BOTTOM = 2  # (0, -R, 0)
    LEFT = 3  # (-R, 0, 0)
    CENTER = 4  # (0, 0, 0)


class DetectionPolicy(str, Enum):
    FIRST = "first"  # одна цель в кадре: берем только первую детекцию
    ALL = "all"


# --- 2. Ошибки ---

class ModuleError(BaseModel):
    source: str = Field(..., description="Имя стадии, где упало")
    message: str = Field(..., description="Текст ошибки")
    timestamp: float = Field(default_factory=time.perf_counter, description="Время возникновения")
    severity: str = Field("error", description="info, warning, error, critical")

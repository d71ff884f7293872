# rune_vision/vision/decoder.py
import cv2
import numpy as np
from typing import Dict

from rune_vision.core.errors import FrameContractError, UnsupportedPixelFormatError
from rune_vision.data.models import RawFrameBuffer
from rune_vision.data.schemas import BayerEncoding

# Мозаика -> код демозаики OpenCV.
# В OpenCV имена Bayer-кодов "сдвинуты": BayerXY2RGB == BayerYX2BGR,
# поэтому для сенсора, у которого первая строка начинается с XY, на выходе BGR.
BAYER_TO_BGR: Dict[BayerEncoding, int] = {
    BayerEncoding.BAYER_GR8: cv2.COLOR_BayerGR2RGB,
    BayerEncoding.BAYER_RG8: cv2.COLOR_BayerRG2RGB,
    BayerEncoding.BAYER_GB8: cv2.COLOR_BayerGB2RGB,
    BayerEncoding.BAYER_BG8: cv2.COLOR_BayerBG2RGB,
}

_missing = set(BayerEncoding) - set(BAYER_TO_BGR)
if _missing:
    raise RuntimeError(f"No demosaic code for: {sorted(e.name for e in _missing)}")


def resolve_encoding(pixel_type: int) -> BayerEncoding:
    """Тег SDK -> BayerEncoding. Все, что не Bayer, - ошибка, а не warning."""
    try:
        return BayerEncoding(int(pixel_type))
    except ValueError:
        raise UnsupportedPixelFormatError(int(pixel_type)) from None


def decode(raw: RawFrameBuffer) -> np.ndarray:
    """
    Сырой Bayer-кадр -> BGR (height, width, 3) uint8.

    Буфер не копируется и не меняется: строим одноканальный view поверх
    raw.data и отдаем его в cvtColor, который аллоцирует выходное изображение.
    """
    code = BAYER_TO_BGR[resolve_encoding(raw.pixel_type)]

    expected = raw.width * raw.height
    if expected == 0:
        raise FrameContractError(f"Empty frame geometry {raw.width}x{raw.height}")
    if raw.length < expected:
        raise FrameContractError(
            f"Raw buffer too short: {raw.length} bytes < {raw.width}x{raw.height}"
        )

    mosaic = np.frombuffer(raw.data, dtype=np.uint8, count=expected).reshape(raw.height, raw.width)
    return cv2.cvtColor(mosaic, code)

# rune_vision/core/interfaces.py
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

import numpy as np

from rune_vision.data.models import DetectorOutput, RawFrameBuffer


class ICamera(ABC):
    """
    Абстрактный интерфейс камеры.
    Любая реализация (Hikrobot, Mock) должна наследовать этот класс.
    """

    @abstractmethod
    def connect(self) -> None:
        """Инициализация соединения с устройством."""
        pass

    @abstractmethod
    def release(self) -> None:
        """Освобождение ресурсов."""
        pass

    @abstractmethod
    def get_resolution(self) -> Tuple[int, int]:
        """Возвращает (width, height)."""
        pass

    @abstractmethod
    def read_raw(self) -> Optional[RawFrameBuffer]:
        """
        Возвращает сырой кадр в формате сенсора.
        None или пустой буфер = кадра в этом цикле нет (не ошибка).
        """
        pass


class IKeypointDetector(ABC):
    """
    Интерфейс детектора лопастей (YOLO и т.п.).
    Порядок keypoints в каждом DetectorOutput обязан совпадать с KeypointIndex.
    """

    @abstractmethod
    def detect(self, bgr_img: np.ndarray) -> List[DetectorOutput]:
        """Пустой список = цели в кадре нет."""
        pass

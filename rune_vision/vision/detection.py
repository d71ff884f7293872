# rune_vision/vision/detection.py
from typing import List, Sequence, Union
from loguru import logger

from rune_vision.core.errors import ContractViolationError
from rune_vision.data.models import DetectorOutput, FanBlade, Point2D
from rune_vision.data.schemas import DetectionPolicy, FanBladeType, KeypointIndex


def _blade_center(output: DetectorOutput) -> Point2D:
    n = len(output.keypoints)

    # Явный индекс от детектора обязан быть валидным
    if output.center_index is not None:
        if not 0 <= output.center_index < n:
            raise ContractViolationError(f"center_index {output.center_index} out of range for {n} keypoints")
        return output.keypoints[output.center_index]

    if n > KeypointIndex.CENTER:
        return output.keypoints[KeypointIndex.CENTER]

    # Неполная детекция: центр масс доступных точек
    if n == 0:
        return Point2D(x=0.0, y=0.0)
    logger.debug(f"Partial detection ({n} keypoints), center = mean of keypoints")
    return Point2D(
        x=sum(p.x for p in output.keypoints) / n,
        y=sum(p.y for p in output.keypoints) / n,
    )


def build_fanblade(output: DetectorOutput, fallback_type: FanBladeType = FanBladeType.LIT) -> FanBlade:
    """
    Выход детектора -> FanBlade.
    Ключевые точки копируются как есть (порядок важен), центр = keypoints[center_index]
    или keypoints[CENTER], если индекс не задан.
    Никакой фильтрации/NMS здесь нет - это работа детектора.
    """
    center = _blade_center(output)

    blade_type = output.blade_type
    if blade_type is None:
        logger.debug(f"Detector sent no class, using fallback '{fallback_type.value}'")
        blade_type = fallback_type

    return FanBlade(
        center=center,
        keypoints=tuple(output.keypoints),
        angle=output.angle,
        width=output.width,
        height=output.height,
        type=blade_type,
    )


class FanBladeAdapter:
    """
    Граница с детектором: решает, сколько детекций из кадра пойдут в солвер.
    FIRST - одна руна в кадре (остальные детекции отбрасываются осознанно).
    """

    def __init__(self,
                 policy: Union[DetectionPolicy, str] = DetectionPolicy.FIRST,
                 fallback_type: Union[FanBladeType, str] = FanBladeType.LIT):
        self.policy = DetectionPolicy(policy)
        self.fallback_type = FanBladeType(fallback_type)

    def adapt(self, outputs: Sequence[DetectorOutput]) -> List[FanBlade]:
        if not outputs:
            return []

        selected = list(outputs)
        if self.policy == DetectionPolicy.FIRST:
            if len(selected) > 1:
                logger.debug(f"Policy 'first': dropping {len(selected) - 1} extra detections")
            selected = selected[:1]

        return [build_fanblade(o, self.fallback_type) for o in selected]

    @classmethod
    def from_settings(cls, settings) -> "FanBladeAdapter":
        return cls(settings.DETECTION_POLICY, settings.FALLBACK_BLADE_TYPE)

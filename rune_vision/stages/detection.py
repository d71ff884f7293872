# rune_vision/stages/detection.py
from typing import Any, Dict, List, Optional
from loguru import logger

from rune_vision.core.config import settings
from rune_vision.core.interfaces import IKeypointDetector
from rune_vision.core.pipeline import PipelineStage, FrameContext
from rune_vision.data.models import FanBlade
from rune_vision.data.schemas import DetectionPolicy
from rune_vision.vision.detection import FanBladeAdapter


class KeypointDetectionStage(PipelineStage):
    """
    Граница с внешним детектором.
    Вход: ctx.frame (BGR)
    Выход: ctx["vision"]["fanblades"] -> List[FanBlade]
    """

    def __init__(self):
        super().__init__(name="detector")
        # Детектор подставляет Processor (внешний коллаборатор)
        self.detector: Optional[IKeypointDetector] = None
        self.adapter = FanBladeAdapter.from_settings(settings)
        self._warned_no_detector = False

        logger.debug(f"👁️ {self.name} ready. Policy={self.adapter.policy.value}")

    def process(self, ctx: FrameContext):
        if ctx.frame is None:
            return

        if self.detector is None:
            if not self._warned_no_detector:
                logger.warning(f"⚠️ [{self.name}] No detector attached, skipping detection")
                self._warned_no_detector = True
            return

        outputs = self.detector.detect(ctx.frame)
        fanblades: List[FanBlade] = self.adapter.adapt(outputs)
        ctx.set_data("vision", "fanblades", fanblades)

        if not fanblades:
            logger.debug(f"[{self.name}] No target in frame #{ctx.frame_id}")

    def handle_command(self, cmd: str, args: Dict[str, Any]):
        if cmd == "set_policy":
            val = args.get("value")
            try:
                self.adapter.policy = DetectionPolicy(val)
                logger.info(f"🔧 [{self.name}] Policy -> {self.adapter.policy.value}")
            except ValueError:
                logger.warning(f"⚠️ [{self.name}] Unknown policy: {val}")

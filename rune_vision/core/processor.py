# rune_vision/core/processor.py
import time
from typing import List, Dict, Optional

from loguru import logger

from rune_vision.core.config import CORE_PIPELINE, settings
from rune_vision.core.errors import RuneVisionError
from rune_vision.core.interfaces import IKeypointDetector
from rune_vision.core.loader import load_pipeline
from rune_vision.core.pipeline import PipelineStage, FrameContext
from rune_vision.data.models import FrameResult, RawFrameBuffer
from rune_vision.vision.geometry import CameraModel

# После стольких сбоев подряд (не ошибок контракта) стадия отключается
MAX_STAGE_ERRORS = 20


class Processor:
    """
    Движок обработки кадров.
    Запускает стадии последовательно (decode -> detect -> solve), собирает метрики.
    Один кадр целиком проходит пайплайн до того, как принят следующий.
    """

    def __init__(self,
                 detector: Optional[IKeypointDetector] = None,
                 camera: Optional[CameraModel] = None,
                 stage_paths: Optional[List[str]] = None,
                 abort_on_contract_error: Optional[bool] = None):
        self.detector = detector
        self.camera = camera
        self.abort_on_contract_error = (
            settings.ABORT_ON_CONTRACT_ERROR if abort_on_contract_error is None else abort_on_contract_error
        )

        self.stages: List[PipelineStage] = []
        self._stage_map: Dict[str, PipelineStage] = {}

        # { "stage_name": {"errors": 0, "active": True, "perf_ms": 0.0} }
        self._health_map: Dict[str, Dict] = {}

        for stage in load_pipeline(stage_paths or CORE_PIPELINE):
            self._register_stage(stage)

        logger.info(f"🧩 Processor initialized with {len(self.stages)} stages.")

    def _register_stage(self, stage: PipelineStage):
        """Регистрация стадии + инъекция внешних коллабораторов"""
        if hasattr(stage, "detector"):
            stage.detector = self.detector
        if hasattr(stage, "camera") and self.camera is not None:
            stage.camera = self.camera

        self.stages.append(stage)
        self._stage_map[stage.name] = stage
        self._health_map[stage.name] = {
            "active": True,
            "errors": 0,
            "perf_ms": 0.0
        }

    def get_stage(self, name: str) -> Optional[PipelineStage]:
        return self._stage_map.get(name)

    def health(self) -> Dict[str, Dict]:
        return {k: dict(v) for k, v in self._health_map.items()}

    def handle_command(self, target: str, cmd: str, args: Optional[Dict] = None):
        args = args or {}
        if target in ("broadcast", "all"):
            for stage in self.stages:
                stage.handle_command(cmd, args)
            return

        stage = self._stage_map.get(target)
        if stage is None:
            logger.warning(f"🚫 Target '{target}' NOT FOUND in pipeline. Available: {list(self._stage_map)}")
            return
        stage.handle_command(cmd, args)

    # === PROCESSING LOOP ===

    def process_frame(self, raw: Optional[RawFrameBuffer], frame_id: int) -> FrameResult:
        """
        Запуск пайплайна для одного кадра.
        Ошибки контракта (формат, размеры) попадают в result.errors,
        либо пробрасываются, если abort_on_contract_error=True.
        """
        ctx = FrameContext(raw=raw, frame_id=frame_id)
        timings: Dict[str, float] = {}

        for stage in self.stages:
            meta = self._health_map[stage.name]
            if not meta["active"]:
                continue

            t0 = time.perf_counter()
            try:
                stage.run(ctx)
                if meta["errors"] > 0: meta["errors"] = 0

            except RuneVisionError as e:
                ctx.add_error(stage.name, str(e))
                logger.error(f"Stage '{stage.name}' contract error on frame #{frame_id}: {e}")
                if self.abort_on_contract_error:
                    raise

            except Exception as e:
                meta["errors"] += 1
                ctx.add_error(stage.name, str(e))
                logger.error(f"Stage '{stage.name}' failed: {e}")

                if meta["errors"] >= MAX_STAGE_ERRORS:
                    meta["active"] = False
                    logger.critical(f"🔌 Stage '{stage.name}' DISABLED.")

            dt = (time.perf_counter() - t0) * 1000
            meta["perf_ms"] = dt
            timings[stage.name] = dt

        return FrameResult(
            frame_id=frame_id,
            image=ctx.frame,
            fanblades=ctx.get_data("vision", "fanblades", []),
            solutions=ctx.get_data("vision", "solutions", []),
            errors=ctx.errors,
            timings_ms=timings,
        )

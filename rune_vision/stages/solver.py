# rune_vision/stages/solver.py
from typing import List
from loguru import logger

from rune_vision.core.config import settings
from rune_vision.core.pipeline import PipelineStage, FrameContext
from rune_vision.data.models import FanBlade, Solution
from rune_vision.vision.geometry import CameraModel, TargetGeometry
from rune_vision.vision.solver import BuffSolver


class PoseSolverStage(PipelineStage):
    """
    CORE STAGE.
    PnP для каждой лопасти, прошедшей политику детекций.
    Вход: ctx["vision"]["fanblades"]
    Выход: ctx["vision"]["solutions"] (тот же порядок, что и fanblades)
    """

    def __init__(self):
        super().__init__(name="solver")
        self.solver = BuffSolver(TargetGeometry.from_settings(settings))
        # Processor может подменить модель камеры
        self.camera: CameraModel = CameraModel.from_settings(settings)

    def process(self, ctx: FrameContext):
        fanblades: List[FanBlade] = ctx.get_data("vision", "fanblades", [])
        if not fanblades:
            return

        solutions: List[Solution] = [self.solver.solve_fanblade(b, self.camera) for b in fanblades]
        ctx.set_data("vision", "solutions", solutions)

        invalid = sum(1 for s in solutions if not s.valid)
        if invalid:
            logger.debug(f"[{self.name}] {invalid}/{len(solutions)} solutions invalid in frame #{ctx.frame_id}")

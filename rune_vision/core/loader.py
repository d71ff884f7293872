# rune_vision/core/loader.py
import importlib
from typing import List, Optional

from loguru import logger

from rune_vision.core.errors import RuneVisionError
from rune_vision.core.pipeline import PipelineStage


def load_stage_by_path(path: str) -> Optional[PipelineStage]:
    """
    Загружает класс по строке "rune_vision.stages.decode.DecodeStage"
    """
    try:
        module_path, class_name = path.rsplit('.', 1)
        module = importlib.import_module(module_path)
        cls = getattr(module, class_name)

        if not issubclass(cls, PipelineStage):
            raise TypeError(f"{class_name} is not a PipelineStage")

        logger.debug(f"🧩 Loaded Core Stage: {class_name}")
        return cls()  # Создаем экземпляр
    except RuneVisionError:
        # Битые интринсики или геометрия руны - ошибка запуска, а не пропуск стадии
        raise
    except (ImportError, AttributeError, TypeError, ValueError) as e:
        logger.error(f"❌ Failed to load stage '{path}': {e}")
        return None


def load_pipeline(paths: List[str]) -> List[PipelineStage]:
    stages = []
    for path in paths:
        stage = load_stage_by_path(path)
        if stage:
            stages.append(stage)
    return stages

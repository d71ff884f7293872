# rune_vision/core/pipeline.py

from typing import Any, Dict, List, Optional
import time

from rune_vision.data.models import RawFrameBuffer
from rune_vision.data.schemas import ModuleError


class FrameContext:
    """
    Все данные одного кадра. Живет один проход по пайплайну.
    Стадии обмениваются результатами через namespace/key хранилище.
    """

    def __init__(self, raw: Optional[RawFrameBuffer], frame_id: int):
        self.raw = raw
        self.frame_id = frame_id
        self.timestamp = time.perf_counter()
        self.frame = None  # BGR после DecodeStage
        self.errors: List[ModuleError] = []
        self._store: Dict[str, Any] = {}

    def set_data(self, namespace: str, key: str, value: Any):
        if namespace not in self._store:
            self._store[namespace] = {}
        self._store[namespace][key] = value

    def get_data(self, namespace: str, key: str, default: Any = None) -> Any:
        return self._store.get(namespace, {}).get(key, default)

    def add_error(self, source: str, message: str, severity: str = "error"):
        self.errors.append(ModuleError(
            source=source, message=message, severity=severity, timestamp=time.perf_counter()
        ))


class PipelineStage:
    """
    Базовый класс для всех стадий.
    Сделан устойчивым к разным вариантам инициализации (с именем или без).
    """

    def __init__(self, name: Optional[str] = None, **kwargs):
        # Если имя передали — берем его, иначе берем имя класса
        self.name = name or self.__class__.__name__

    def process(self, ctx: FrameContext):
        pass

    def run(self, ctx: FrameContext):
        self.process(ctx)

    def handle_command(self, cmd: str, args: Dict[str, Any]):
        pass

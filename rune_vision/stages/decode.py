# rune_vision/stages/decode.py
from loguru import logger

from rune_vision.core.pipeline import PipelineStage, FrameContext
from rune_vision.vision.decoder import decode


class DecodeStage(PipelineStage):
    """
    CORE STAGE.
    Сырой Bayer-буфер камеры -> BGR изображение.
    Вход: ctx.raw
    Выход: ctx.frame
    """

    def __init__(self):
        super().__init__(name="decoder")

    def process(self, ctx: FrameContext):
        raw = ctx.raw
        # Пустой буфер = кадра в этом цикле нет, это не ошибка
        if raw is None or raw.is_empty:
            logger.debug(f"[{self.name}] No frame #{ctx.frame_id}")
            return

        # UnsupportedPixelFormatError / FrameContractError летят в Processor
        ctx.frame = decode(raw)

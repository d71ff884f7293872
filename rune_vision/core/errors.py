# rune_vision/core/errors.py


class RuneVisionError(Exception):
    """Базовое исключение ядра."""


class ContractViolationError(RuneVisionError, ValueError):
    """Ошибка программиста: размеры/формы данных не совпадают с ожидаемыми."""


class FrameContractError(ContractViolationError):
    """Сырой буфер короче, чем width * height."""


class UnsupportedPixelFormatError(RuneVisionError, KeyError):
    """Формат пикселей камеры отсутствует в таблице преобразований."""

    def __init__(self, pixel_type: int):
        self.pixel_type = pixel_type
        super().__init__(f"Unsupported pixel type: 0x{pixel_type:08X}")

    def __str__(self):
        # KeyError по умолчанию оборачивает сообщение в кавычки
        return self.args[0]

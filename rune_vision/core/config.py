# rune_vision/core/config.py
import sys
import json
from pathlib import Path
from typing import List, Optional, Literal
from loguru import logger
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

# === 1. ГЛОБАЛЬНЫЕ ПУТИ ===
ROOT_DIR = Path(__file__).resolve().parent.parent.parent
LOG_DIR = ROOT_DIR / "logs"
DATA_DIR = ROOT_DIR / "data"


# === 2. КЛАСС КОНФИГУРАЦИИ (Runtime Settings) ===
class SystemSettings(BaseSettings):
    """
    Конфигурация процесса:
    - Камера (разрешение, внутренние параметры, дисторсия) -> из .env или дефолты
    - Геометрия руны (радиус, плечо до R-метки)
    - Политики пайплайна (сколько детекций решать, как вести себя при ошибках)
    """

    # --- Debug & Logs ---
    DEBUG_MODE: bool = Field(default=True, description="Включить подробный вывод логов")
    LOG_TO_FILE: bool = Field(default=False, description="Дублировать логи в logs/")

    # --- Camera ---
    CAMERA_WIDTH: int = 1280
    CAMERA_HEIGHT: int = 1024
    CAMERA_FPS: int = 60

    # Внутренние параметры Hikrobot (калибровка стенда)
    CAMERA_MATRIX: List[List[float]] = [
        [1286.307063384126, 0.0, 645.34450819155256],
        [0.0, 1288.1400736562441, 483.6163720308021],
        [0.0, 0.0, 1.0],
    ]
    DIST_COEFFS: List[float] = [
        -0.47562935060124745, 0.21831745829617311,
        0.0004957613589406044, -0.00034617769548693592, 0.0,
    ]
    # Если задан, перекрывает CAMERA_MATRIX / DIST_COEFFS
    CALIBRATION_FILE: Optional[Path] = None

    # --- Rune geometry (мм) ---
    FAN_RADIUS: float = 150.0
    R_MARK_DISTANCE: float = 700.0

    # --- Policies ---
    # "first" - решаем только первую детекцию (одна цель в кадре), "all" - все
    DETECTION_POLICY: Literal["first", "all"] = "first"
    # Тип лопасти, если детектор не прислал классификацию
    FALLBACK_BLADE_TYPE: Literal["target", "unlit", "lit"] = "lit"
    # True -> ошибки контракта (формат, размеры) пробрасываются наружу из Processor
    ABORT_ON_CONTRACT_ERROR: bool = False

    model_config = SettingsConfigDict(
        env_prefix="RUNE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    def load_calibration(self) -> bool:
        """Загрузка intrinsics из JSON (форматы mtx/dist и camera_matrix/dist_coeffs)"""
        if self.CALIBRATION_FILE is None:
            return False

        path = Path(self.CALIBRATION_FILE)
        if not path.is_absolute():
            path = DATA_DIR / path

        if not path.exists():
            logger.warning(f"⚠️ {path} not found. Using built-in intrinsics.")
            return False

        with open(path, "r", encoding="utf-8") as f:
            d = json.load(f)

        mtx_data = d.get("mtx", d.get("camera_matrix"))
        dist_data = d.get("dist", d.get("dist_coeffs"))
        if mtx_data is None or dist_data is None:
            raise ValueError(f"{path.name} missing 'mtx' or 'camera_matrix' keys")

        mtx = [[float(v) for v in row] for row in mtx_data]
        # OpenCV сохраняет dist как [[k1, k2, p1, p2, k3]]
        flat = dist_data[0] if dist_data and isinstance(dist_data[0], list) else dist_data
        dist = [float(v) for v in flat]

        self.CAMERA_MATRIX = mtx
        self.DIST_COEFFS = dist
        logger.info(f"✅ Calibration loaded from {path.name} (RMS: {d.get('rms', 'N/A')})")
        return True


# === 3. ПАЙПЛАЙН ===
CORE_PIPELINE = [
    "rune_vision.stages.decode.DecodeStage",
    "rune_vision.stages.detection.KeypointDetectionStage",
    "rune_vision.stages.solver.PoseSolverStage",
]

# === 4. ИНИЦИАЛИЗАЦИЯ ===
settings = SystemSettings()

# === 5. НАСТРОЙКА ЛОГГЕРА ===
logger.remove()
_log_fmt = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
_console_level = "DEBUG" if settings.DEBUG_MODE else "INFO"
logger.add(sys.stderr, format=_log_fmt, level=_console_level)
if settings.LOG_TO_FILE:
    LOG_DIR.mkdir(exist_ok=True)
    logger.add(LOG_DIR / "rune_{time}.log", rotation="10 MB", retention="5 days", level="DEBUG", format=_log_fmt)

log = logger


def apply_calibration(s: SystemSettings) -> bool:
    """Калибровка при старте. Сбой не роняет процесс, но остаются встроенные intrinsics."""
    try:
        return s.load_calibration()
    except (OSError, ValueError, TypeError) as e:
        logger.error(f"❌ Failed to load calibration: {e}. Using built-in intrinsics.")
        return False


apply_calibration(settings)

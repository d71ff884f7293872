# rune_vision/main.py
import argparse
import sys
from loguru import logger

try:
    from rune_vision.core.config import settings
    from rune_vision.core.processor import Processor
    from rune_vision.data.schemas import BayerEncoding
    from rune_vision.hardware.mock_camera import MockRuneCamera, MockKeypointDetector
except ImportError as e:
    logger.critical(f"Import Error: {e}. Check PYTHONPATH.")
    sys.exit(1)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Energy rune pipeline on a simulated Bayer camera")
    parser.add_argument("--frames", type=int, default=120, help="Сколько кадров обработать")
    parser.add_argument("--encoding", choices=[e.name for e in BayerEncoding], default="BAYER_RG8")
    parser.add_argument("--noise", type=float, default=0.0, help="Шум детектора, px")
    parser.add_argument("--realtime", action="store_true", help="Ждать 1/fps между кадрами")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logger.info("🚀 Starting Rune Vision (headless)...")

    camera = MockRuneCamera(
        width=settings.CAMERA_WIDTH,
        height=settings.CAMERA_HEIGHT,
        fps=settings.CAMERA_FPS,
        encoding=BayerEncoding[args.encoding],
        realtime=args.realtime,
    )
    detector = MockKeypointDetector(camera, noise_px=args.noise)
    processor = Processor(detector=detector, camera=camera.camera)

    camera.connect()
    valid = 0
    try:
        for frame_id in range(args.frames):
            raw = camera.read_raw()
            result = processor.process_frame(raw, frame_id)

            if not result.has_frame:
                continue

            for sol in result.solutions:
                if sol.valid:
                    valid += 1
                    logger.info(
                        f"#{frame_id} fan=({sol.fan_center.x:.1f}, {sol.fan_center.y:.1f}) "
                        f"R=({sol.rotation_center.x:.1f}, {sol.rotation_center.y:.1f})"
                    )
    except KeyboardInterrupt:
        logger.warning("🛑 Interrupted by user")
    finally:
        camera.release()

    logger.success(f"👋 Done: {valid}/{args.frames} frames solved.")
    return 0


if __name__ == "__main__":
    sys.exit(main())

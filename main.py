"""
RelicScan - relic reward screen reader
Main entry point: analyse a screenshot and print what is on offer
"""
import argparse
import json
import logging
import sys
import os
from dataclasses import replace

# Add current directory to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))


def check_dependencies():
    """Check if required dependencies are installed"""
    missing = []

    try:
        import cv2
    except ImportError:
        missing.append("opencv-python")

    try:
        import numpy
    except ImportError:
        missing.append("numpy")

    try:
        import PIL
    except ImportError:
        missing.append("Pillow")

    try:
        import rapidfuzz
    except ImportError:
        missing.append("rapidfuzz")

    return missing


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="relicscan",
        description="Read the relic reward screen from a screenshot",
    )
    parser.add_argument("screenshot", help="Capture of the reward screen")
    parser.add_argument("--options", help="Capture of the options screen to sample the UI theme from")
    parser.add_argument("--icons", help="Directory holding common.png, uncommon.png and rare.png")
    parser.add_argument("--items", help="JSON item database for value lookup")
    parser.add_argument("--ui-scale", type=float, help="In-game UI scale (1.0 = 100%%)")
    parser.add_argument("--engine", choices=["paddle", "tesseract"], help="Preferred OCR engine")
    parser.add_argument("--selected", action="store_true", help="Also report the highlighted card")
    parser.add_argument("--config", help="Config file (default: per-user config.json)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug output on the console")
    return parser


def main(argv=None):
    """Main entry point"""
    # Check dependencies first
    missing = check_dependencies()
    if missing:
        print("Missing dependencies: " + ", ".join(missing), file=sys.stderr)
        print(f"pip install {' '.join(missing)}", file=sys.stderr)
        return 1

    args = build_parser().parse_args(argv)

    from config import Config
    from logger import setup_logger
    from relicscan import ItemDatabase, OCREngine, PixelBuffer, RewardScreenDetector, Theme

    config = Config.load(args.config)
    logger = setup_logger(config.log_path or None, verbose=args.verbose)

    valid, errors = config.validate()
    if not valid:
        for error in errors:
            logger.error("Config: %s", error)
        return 2

    settings = config.settings
    if args.ui_scale:
        settings = replace(settings, ui_scale=args.ui_scale)

    try:
        capture = PixelBuffer.from_file(args.screenshot)
        theme = config.get_theme()
        if args.options:
            theme = Theme.from_options(PixelBuffer.from_file(args.options).as_view())
            logger.info("Sampled theme: %s", theme.to_dict())

        lookup = None
        items_path = args.items or config.items_path
        if items_path:
            lookup = ItemDatabase.load(items_path)
            logger.info("Loaded %d items", len(lookup))

        detector = RewardScreenDetector.create(
            OCREngine(config.ocr_lang, args.engine or config.ocr_engine or None),
            args.icons or config.icons_dir or None,
            settings,
            lookup,
        )
    except (OSError, ValueError) as e:
        logger.error("Setup failed: %s", e)
        return 1

    if config.max_capture_height and capture.height > config.max_capture_height:
        capture = capture.resize_to_height(config.max_capture_height)

    rewards = detector.detect_rewards(capture, theme)
    output = rewards.to_dict()
    if args.selected:
        output["selected"] = detector.detect_selected(capture, theme, rewards.layout)

    print(json.dumps(output, indent=2, ensure_ascii=False))
    logging.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""
gazetile demo entry point.

Shows the tile grid and drives it from a synthetic gaze sensor: the
tile under the smoothed, calibrated gaze point is highlighted.

Usage:
    python -m gazetile.main [--duration SECONDS] [--data-dir DIR]
"""

import argparse
import asyncio
import sys
from pathlib import Path

from PyQt6.QtWidgets import QApplication

from gazetile.core.config import StorageConfig, get_default_config
from gazetile.core.session import GazeUpdate, TrackingSession
from gazetile.gui.tile_grid import TileGridWidget
from gazetile.scene.qt_scene import QtWidgetScene
from gazetile.storage.calibration_store import CalibrationStore
from gazetile.storage.settings_store import JsonFileStore
from gazetile.tracking.sensor import SyntheticSensor
from gazetile.utils.logger import setup_logger, get_logger

# Qt event pump interval (seconds)
EVENT_PUMP_INTERVAL = 1 / 60


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Gaze-to-tile tracking demo")
    parser.add_argument(
        "--duration",
        type=float,
        default=30.0,
        help="Seconds to run before exiting (default: 30)",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory holding settings.json (default: ~/.gazetile)",
    )
    return parser.parse_args(argv)


async def run(app: QApplication, session: TrackingSession, duration: float):
    """Run tracking while pumping Qt events, until timeout or window close."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + duration

    await session.start()
    try:
        while loop.time() < deadline and app.topLevelWidgets() and any(
            w.isVisible() for w in app.topLevelWidgets()
        ):
            app.processEvents()
            await asyncio.sleep(EVENT_PUMP_INTERVAL)
    finally:
        await session.stop()


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    config = get_default_config()
    if args.data_dir is not None:
        config.storage = StorageConfig(data_dir=args.data_dir)

    setup_logger(
        level=config.log_level,
        log_file=config.storage.log_path,
        enable_file_logging=config.storage.enable_file_logging,
    )
    logger = get_logger(__name__)
    logger.info(f"gazetile v{config.version} starting")

    app = QApplication(sys.argv[:1])

    grid = TileGridWidget()
    grid.setWindowTitle("gazetile")
    grid.resize(960, 600)
    grid.show()

    store = CalibrationStore(
        JsonFileStore(config.storage.data_dir, config.storage.settings_filename),
        key=config.storage.calibration_key,
    )
    sensor = SyntheticSensor(config.sensor, grid.width(), grid.height())

    def on_update(update: GazeUpdate):
        if update.tile_changed:
            grid.set_active(update.hit.element_id)
            logger.info(f"Looking at: {update.hit.element_id}")

    session = TrackingSession(
        sensor,
        store,
        scene=QtWidgetScene(grid),
        config=config,
        on_update=on_update,
    )

    try:
        asyncio.run(run(app, session, args.duration))
    except KeyboardInterrupt:
        logger.info("Interrupted")

    logger.info("Application exited")
    return 0


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""PoseCast launcher - runs the pose broadcaster with simulated sensors.

Usage:
    python launcher.py                       # default config, 1 simulated sensor
    python launcher.py --config my.yaml      # custom config
    python launcher.py --devices 2 --port 0  # two sensors, any free port
"""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from app.lifecycle import get_cleanup_manager
from app.pose_service import PoseService
from capture.simulated_sensor import SimulatedSensor
from configs.settings import DEFAULT_CONFIG_PATH, AppConfig, load_config
from estimate.simulated_estimator import SimulatedEstimatorFactory
from exceptions import ConfigError, PoseCastError
from log_config.logger import add_file_sinks, get_logger, set_console_level

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Broadcast tracked head poses to TCP subscribers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with the bundled configuration
  python launcher.py

  # Watch the stream
  python scripts/pose_client.py --port 61420
        """,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Path to YAML configuration (default: configs/default.yaml)",
    )
    parser.add_argument("--port", type=int, help="Override server.port")
    parser.add_argument("--devices", type=int, help="Override devices.simulated_count")
    parser.add_argument("--log-dir", help="Override logging.log_dir")
    parser.add_argument("--debug", action="store_true", help="Log at DEBUG level")
    return parser


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    if args.port is not None:
        config = replace(config, server=replace(config.server, port=args.port))
    if args.devices is not None:
        config = replace(config, devices=replace(config.devices, simulated_count=args.devices))
    if args.log_dir is not None:
        config = replace(config, logging=replace(config.logging, log_dir=args.log_dir))
    if args.debug:
        config = replace(config, logging=replace(config.logging, level="DEBUG"))
    return config


def build_devices(config: AppConfig) -> List[SimulatedSensor]:
    return [
        SimulatedSensor(
            unique_id=f"sim-{i}",
            subject_count=config.devices.subjects_per_device,
            seed=i,
        )
        for i in range(config.devices.simulated_count)
    ]


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = apply_overrides(load_config(args.config), args)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    set_console_level(config.logging.level)
    add_file_sinks(config.logging.log_dir)

    service = PoseService(config, build_devices(config), SimulatedEstimatorFactory())
    cleanup = get_cleanup_manager()
    service.register_cleanup(cleanup)

    try:
        service.start()
    except PoseCastError as exc:
        # start() already released whatever it had opened
        service.unregister_cleanup(cleanup)
        logger.error(f"Could not start pose service: {exc}")
        return 1

    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())
    logger.info("PoseCast running, press Ctrl+C to stop")
    stop.wait()

    return 0 if cleanup.cleanup() else 1


if __name__ == "__main__":
    sys.exit(main())

"""
Occupancy monitor: counts people seen by a camera and reports the count over MQTT.

Usage:
    python src/main.py [camera_index] [width] [height] [broker_address] [broker_port]
                       [--config config/config.yaml] [--display] [--log-level DEBUG]

All positional arguments are optional; missing or malformed values fall back
to camera 2, 1280x720, broker 192.168.1.55:1883.

Exit codes:
    0: clean stop (quit key or Ctrl-C)
    1: camera, broker or explicit config file unavailable at startup
"""

import argparse
import logging
import sys
from typing import List, Optional

from detection.hog import HogPeopleDetector
from models.config import ConfigError, load_settings, resolve_config
from observation.base import CameraUnavailable
from observation.opencv_source import OpenCVSource, OpenCVSourceConfig
from ops.logging import setup_logging
from pipeline.engine import PipelineEngine, EngineConfig
from telemetry.publisher import MqttPublisher, TelemetryUnavailable


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Occupancy Monitor - HOG people counter with MQTT telemetry')
    parser.add_argument('params', nargs='*', metavar='PARAM',
                        help='camera_index width height broker_address broker_port (all optional)')
    parser.add_argument('--config', type=str, default=None,
                        help='Path to a YAML settings file (overrides config/default.yaml)')
    parser.add_argument('--config-dir', type=str, default='config',
                        help='Directory holding default.yaml and config.yaml')
    parser.add_argument('--display', action='store_true',
                        help='Show the annotated preview window (press q to quit)')
    parser.add_argument('--log-level', type=str, default=None,
                        help='Override log_level from the settings file')
    # Unrecognised tokens ("-abc", values after an option) are positional
    # params too; resolve_config falls back to defaults for any it can't use.
    args, extras = parser.parse_known_args(argv)
    args.params = list(args.params) + extras
    return args


def _release(source: OpenCVSource, publisher: MqttPublisher) -> None:
    source.close()
    publisher.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Main application function."""
    args = parse_args(argv)

    try:
        settings = load_settings(args.config, config_dir=args.config_dir)
    except ConfigError as e:
        logging.error(str(e))
        return 1

    log_level = (args.log_level or settings.log_level).upper()
    setup_logging(log_level, settings.log_path)

    config = resolve_config(args.params)
    logging.info(
        f"Starting Occupancy Monitor: camera={config.camera_index}, "
        f"resolution={config.width}x{config.height}, broker={config.sink}"
    )

    source = OpenCVSource(OpenCVSourceConfig.from_pipeline_config(config))
    publisher = MqttPublisher(
        config.sink_address,
        config.sink_port,
        client_id=settings.client_id,
        dispatch_workers=settings.dispatch_workers,
    )
    try:
        source.open()
        publisher.connect()
    except (CameraUnavailable, TelemetryUnavailable) as e:
        logging.error(f"{e}; exiting")
        _release(source, publisher)
        return 1
    except KeyboardInterrupt:
        logging.info("Interrupted during startup")
        _release(source, publisher)
        return 0

    engine = PipelineEngine(
        source,
        HogPeopleDetector(),
        publisher,
        EngineConfig(
            display=args.display or settings.display,
            empty_read_delay=settings.empty_read_delay,
        ),
    )

    try:
        engine.run()
    except CameraUnavailable as e:
        logging.error(f"{e}; exiting")
        return 1
    except Exception:
        logging.exception("Pipeline failed")
        return 1

    logging.info("Occupancy Monitor stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""
Runtime configuration.

Two layers:
- PipelineConfig: the five positional startup parameters (camera, resolution,
  broker). Resolution never fails; anything unparsable takes its default.
- Settings: ambient options (logging, display, dispatch pool) loaded from
  layered YAML files.
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence, TypeVar

import yaml

T = TypeVar("T")

DEFAULT_CAMERA_INDEX = 2
DEFAULT_WIDTH = 1280
DEFAULT_HEIGHT = 720
DEFAULT_SINK_ADDRESS = "192.168.1.55"
DEFAULT_SINK_PORT = 1883

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(RuntimeError):
    """Raised when an explicitly requested settings file cannot be loaded."""


def parse_or_default(
    text: Optional[str],
    default: T,
    parser: Optional[Callable[[str], T]] = None,
) -> T:
    """
    Parse text, or return default if it is missing or does not parse.

    When no parser is given, the type of the default is used (int, float, str).
    Never raises.
    """
    if text is None:
        return default
    text = text.strip()
    if not text:
        return default
    if parser is None:
        parser = type(default)
    try:
        return parser(text)
    except (TypeError, ValueError, OverflowError):
        return default


def _parse_dimension(text: str) -> int:
    value = float(text)
    if not math.isfinite(value) or value < 1:
        raise ValueError(f"not a positive dimension: {text!r}")
    return int(value)


def _parse_port(text: str) -> int:
    port = int(text)
    if not 1 <= port <= 65535:
        raise ValueError(f"port out of range: {port}")
    return port


@dataclass(frozen=True)
class PipelineConfig:
    """Resolved startup parameters."""
    camera_index: int = DEFAULT_CAMERA_INDEX
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    sink_address: str = DEFAULT_SINK_ADDRESS
    sink_port: int = DEFAULT_SINK_PORT

    @property
    def resolution(self) -> tuple[int, int]:
        return (self.width, self.height)

    @property
    def sink(self) -> str:
        return f"{self.sink_address}:{self.sink_port}"


def resolve_config(args: Sequence[Optional[str]]) -> PipelineConfig:
    """
    Resolve positional arguments into a PipelineConfig.

    Positions: camera index, frame width, frame height, sink address, sink port.
    Missing, blank or malformed positions take their defaults; extra positions
    are ignored.
    """
    padded = list(args[:5]) + [None] * (5 - min(len(args), 5))
    camera, width, height, address, port = padded

    return PipelineConfig(
        camera_index=parse_or_default(camera, DEFAULT_CAMERA_INDEX),
        width=parse_or_default(width, DEFAULT_WIDTH, _parse_dimension),
        height=parse_or_default(height, DEFAULT_HEIGHT, _parse_dimension),
        sink_address=parse_or_default(address, DEFAULT_SINK_ADDRESS),
        sink_port=parse_or_default(port, DEFAULT_SINK_PORT, _parse_port),
    )


@dataclass
class Settings:
    """Ambient settings from the YAML files."""
    log_level: str = "INFO"
    log_path: Optional[str] = None
    display: bool = False
    client_id: str = ""
    dispatch_workers: int = 4
    empty_read_delay: float = 0.001

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Settings":
        """Adapter: Create from a merged config dictionary."""
        telemetry = d.get("telemetry") or {}
        camera = d.get("camera") or {}

        log_level = str(d.get("log_level", "INFO")).upper()
        if log_level not in VALID_LOG_LEVELS:
            logging.warning(f"Unknown log_level {log_level!r}, using INFO")
            log_level = "INFO"

        return cls(
            log_level=log_level,
            log_path=d.get("log_path") or None,
            display=bool(d.get("display", False)),
            client_id=str(telemetry.get("client_id") or ""),
            dispatch_workers=max(1, int(telemetry.get("dispatch_workers", 4))),
            empty_read_delay=float(camera.get("empty_read_delay", 0.001)),
        )


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def _read_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def load_settings(config_path: Optional[str] = None, config_dir: str = "config") -> Settings:
    """
    Load settings with layering:
    - `<config_dir>/default.yaml` (checked in)
    - `<config_dir>/config.yaml` (local overrides)
    - plus an explicitly provided `--config` path

    Missing layered files are skipped. A missing or unreadable explicit
    path raises ConfigError.
    """
    merged: Dict[str, Any] = {}
    for name in ("default.yaml", "config.yaml"):
        path = os.path.join(config_dir, name)
        if not os.path.exists(path):
            continue
        try:
            merged = _deep_merge(merged, _read_yaml(path))
        except (OSError, yaml.YAMLError) as e:
            logging.warning(f"Ignoring unreadable config {path}: {e}")

    if config_path:
        try:
            merged = _deep_merge(merged, _read_yaml(config_path))
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load configuration {config_path}: {e}") from e

    try:
        return Settings.from_dict(merged)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

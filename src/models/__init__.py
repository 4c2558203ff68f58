"""
Typed models for the occupancy monitor.
"""

from .frame import FrameData
from .detection import BoundingBox, DetectionResult
from .telemetry import TelemetryMessage, TOPIC
from .config import (
    PipelineConfig,
    Settings,
    ConfigError,
    parse_or_default,
    resolve_config,
    load_settings,
)

__all__ = [
    # Frame
    "FrameData",
    # Detection
    "BoundingBox",
    "DetectionResult",
    # Telemetry
    "TelemetryMessage",
    "TOPIC",
    # Config
    "PipelineConfig",
    "Settings",
    "ConfigError",
    "parse_or_default",
    "resolve_config",
    "load_settings",
]

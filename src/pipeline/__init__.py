"""
Pipeline module for the occupancy monitor.

The pipeline orchestrates the processing flow:
- Frame acquisition from an observation source
- People detection
- Status logging and telemetry dispatch
- Optional annotated preview
"""

from .engine import PipelineEngine, EngineConfig, PipelineState, PipelineStats

__all__ = [
    "PipelineEngine",
    "EngineConfig",
    "PipelineState",
    "PipelineStats",
]

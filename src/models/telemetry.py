"""
Telemetry message published to the broker.
"""

from __future__ import annotations

from dataclasses import dataclass

TOPIC = "person_detector"


@dataclass(frozen=True)
class TelemetryMessage:
    """A single people-count report."""
    count: int
    topic: str = TOPIC

    @property
    def payload(self) -> str:
        """UTF-8 decimal representation of the count."""
        return str(int(self.count))

"""
Telemetry layer: reports counts to the MQTT broker.
"""

from .publisher import (
    MqttPublisher,
    TelemetryUnavailable,
    KEEPALIVE_SECONDS,
    MAX_QUEUED_MESSAGES,
    QOS_AT_LEAST_ONCE,
)

__all__ = [
    "MqttPublisher",
    "TelemetryUnavailable",
    "KEEPALIVE_SECONDS",
    "MAX_QUEUED_MESSAGES",
    "QOS_AT_LEAST_ONCE",
]

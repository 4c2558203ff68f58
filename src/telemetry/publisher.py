"""
MQTT telemetry publisher.

Counts are handed off to a small worker pool so that a slow or unreachable
broker never stalls frame capture. The paho client is shared by every
dispatch task; paho serializes concurrent publish calls internally.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Optional

import paho.mqtt.client as mqtt

from models.telemetry import TelemetryMessage, TOPIC

logger = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 60
QOS_AT_LEAST_ONCE = 1
MAX_INFLIGHT_MESSAGES = 20
# Counts buffered by paho while the broker is away; newer ones are dropped
# once this fills.
MAX_QUEUED_MESSAGES = 100

_BACKLOG_CODES = (mqtt.MQTT_ERR_NO_CONN, mqtt.MQTT_ERR_QUEUE_SIZE)


class TelemetryUnavailable(RuntimeError):
    """Raised when the broker connection cannot be established at startup."""


class MqttPublisher:
    """
    Fire-and-forget publisher of people counts.

    Example:
        publisher = MqttPublisher("192.168.1.55", 1883)
        publisher.connect()
        publisher.publish(3)
        publisher.close()
    """

    def __init__(
        self,
        address: str,
        port: int,
        client_id: str = "",
        dispatch_workers: int = 4,
        topic: str = TOPIC,
        client: Optional[Any] = None,
    ) -> None:
        self.address = address
        self.port = port
        self.client_id = client_id
        self.topic = topic
        self._client = client
        self._executor = ThreadPoolExecutor(
            max_workers=dispatch_workers, thread_name_prefix="telemetry"
        )
        self._connected = False
        self._closed = False
        self._backlog_rc: Optional[int] = None
        self._backlog_lock = threading.Lock()

    @property
    def is_connected(self) -> bool:
        return self._connected

    def _create_client(self) -> mqtt.Client:
        client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=self.client_id)
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.max_inflight_messages_set(MAX_INFLIGHT_MESSAGES)
        client.max_queued_messages_set(MAX_QUEUED_MESSAGES)
        return client

    def connect(self) -> None:
        """
        Connect to the broker and start paho's network loop thread.

        The loop thread handles keep-alives and reconnects from here on.

        Raises:
            TelemetryUnavailable: If the broker cannot be reached.
        """
        if self._client is None:
            self._client = self._create_client()

        try:
            self._client.connect(self.address, self.port, keepalive=KEEPALIVE_SECONDS)
        except OSError as e:
            raise TelemetryUnavailable(
                f"Unable to connect to MQTT broker {self.address}:{self.port}: {e}"
            ) from e

        self._client.loop_start()
        logger.info(f"MQTT publisher started: broker={self.address}:{self.port}, topic={self.topic}")

    def publish(self, count: int) -> Optional[Future]:
        """
        Queue a count for delivery and return immediately.

        Returns the dispatch Future, or None if the publisher is closed.
        The loop never waits on it; failures are only logged.
        """
        if self._closed:
            logger.warning(f"Publisher closed, dropping count {count}")
            return None

        message = TelemetryMessage(count=count, topic=self.topic)
        try:
            return self._executor.submit(self._send, message)
        except RuntimeError as e:
            # executor shut down between the check and the submit
            logger.warning(f"Dropping count {count}: {e}")
            return None

    def _send(self, message: TelemetryMessage) -> None:
        if self._client is None:
            logger.error(f"Publish of {message.payload} skipped: publisher not connected")
            return
        try:
            info = self._client.publish(
                message.topic,
                message.payload,
                qos=QOS_AT_LEAST_ONCE,
                retain=False,
            )
        except Exception as e:
            logger.error(f"Publish of {message.payload} to {message.topic} failed: {e}")
            return

        if info.rc in _BACKLOG_CODES:
            self._note_backlog(info.rc)
        elif info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.error(
                f"Publish of {message.payload} to {message.topic} failed: "
                f"{mqtt.error_string(info.rc)}"
            )
        else:
            self._note_backlog(None)

    def _note_backlog(self, rc: Optional[int]) -> None:
        """
        Log outage transitions once instead of once per count.

        NO_CONN means paho kept the message for delivery on reconnect;
        QUEUE_SIZE means the buffer is full and the message was dropped.
        """
        with self._backlog_lock:
            if rc == self._backlog_rc:
                return
            self._backlog_rc = rc

        if rc == mqtt.MQTT_ERR_NO_CONN:
            logger.warning("MQTT broker not connected; buffering counts until reconnect")
        elif rc == mqtt.MQTT_ERR_QUEUE_SIZE:
            logger.warning(
                f"MQTT buffer full ({MAX_QUEUED_MESSAGES} counts); dropping new counts"
            )
        else:
            logger.info("MQTT publishing resumed")

    def close(self) -> None:
        """
        Stop accepting counts and disconnect.

        In-flight dispatches are not awaited.
        """
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=False)

        if self._client is not None:
            try:
                self._client.loop_stop()
                self._client.disconnect()
            except Exception as e:
                logger.warning(f"Error closing MQTT client: {e}")
        logger.info("MQTT publisher stopped")

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        if reason_code.is_failure:
            self._connected = False
            logger.error(f"MQTT connection refused: {reason_code}")
            return
        self._connected = True
        logger.info(f"Connected to MQTT broker {self.address}:{self.port}")

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties) -> None:
        self._connected = False
        if reason_code.is_failure:
            logger.error(f"Disconnected from MQTT broker: {reason_code}")
        else:
            logger.info("Disconnected from MQTT broker")

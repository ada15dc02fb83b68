"""MQTT publisher for the UHF RFID capture service.

Publishes every persisted scan as JSON so downstream consumers can follow
what the reader sees.
"""

import logging
import ssl
from typing import Any, Optional

import paho.mqtt.client as mqtt

from config import DeviceConfig, MqttConfig
from models import ScanEvent

logger = logging.getLogger(__name__)


class ScanPublisher:
    """MQTT client that publishes decoded scans."""

    def __init__(self, config: MqttConfig, device: DeviceConfig) -> None:
        """Initialize MQTT publisher."""
        self._config = config
        self._device = device
        self._client: Optional[mqtt.Client] = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        """Check if client is connected to broker."""
        return self._connected

    @property
    def topic(self) -> str:
        """Scan topic resolved for this device."""
        return self._config.topic_scans.replace("{unique_id}", self._device.unique_id)

    def _on_connect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: mqtt.ConnectFlags,
        reason_code: mqtt.ReasonCode,
        properties: Optional[mqtt.Properties] = None,
    ) -> None:
        """Handle MQTT connection established."""
        if reason_code.value == 0:
            self._connected = True
            logger.info(f"MQTT connected to broker, publishing scans to {self.topic}")
        else:
            logger.error(f"MQTT connection failed: {reason_code}")

    def _on_disconnect(
        self,
        client: mqtt.Client,
        userdata: Any,
        disconnect_flags: mqtt.DisconnectFlags,
        reason_code: mqtt.ReasonCode,
        properties: Optional[mqtt.Properties] = None,
    ) -> None:
        """Handle MQTT disconnection."""
        self._connected = False
        logger.warning(f"MQTT disconnected: {reason_code}")

    def publish_scan(self, event: ScanEvent) -> bool:
        """Publish a persisted scan.

        Returns:
            True if the message was handed to the client, False otherwise.
        """
        if not self._client or not self._connected:
            logger.warning(f"Cannot publish scan {event.scan_id}: MQTT not connected")
            return False

        payload = event.model_dump_json()
        logger.debug(f"[PUB] Publishing scan: topic={self.topic}, qos=1, payload={payload}")
        info = self._client.publish(self.topic, payload, qos=1)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.error(f"[PUB] Scan {event.scan_id} not published: {mqtt.error_string(info.rc)}")
            return False
        return True

    def connect(self) -> None:
        """Connect to MQTT broker in the background."""
        config = self._config

        self._client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            protocol=mqtt.MQTTv5,
        )
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect

        if config.username:
            self._client.username_pw_set(config.username, config.password)

        if config.use_tls:
            import certifi
            self._client.tls_set(ca_certs=certifi.where(), tls_version=ssl.PROTOCOL_TLS_CLIENT)
            logger.info("TLS enabled for MQTT connection")

        logger.info(f"Connecting to MQTT broker at {config.host}:{config.port}")

        try:
            self._client.connect_async(config.host, config.port)
            self._client.loop_start()
        except Exception as e:
            logger.error(f"Failed to connect to MQTT broker: {e}")

    def disconnect(self) -> None:
        """Disconnect from MQTT broker."""
        if self._client:
            self._client.loop_stop()
            self._client.disconnect()
            self._connected = False
            logger.info("MQTT client disconnected")

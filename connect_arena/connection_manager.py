"""WebSocket connection manager for Connect Four sessions."""

import asyncio
import logging
import uuid
from typing import Any, Dict

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    Tracks active WebSocket connections and delivers messages to them.

    Connection ids are the connection handles the lifecycle controller works with.
    """

    def __init__(self) -> None:
        """Initialize the connection manager."""
        self.active_connections: Dict[str, WebSocket] = {}
        self.connection_metadata: Dict[str, Dict[str, Any]] = {}

    async def connect(self, websocket: WebSocket) -> str:
        """
        Accept and register a new WebSocket connection.

        :param websocket: WebSocket instance to register
        :type websocket: WebSocket
        :return: Unique connection ID
        :rtype: str
        """
        await websocket.accept()
        connection_id = str(uuid.uuid4())

        self.active_connections[connection_id] = websocket
        self.connection_metadata[connection_id] = {
            "connected_at": asyncio.get_running_loop().time(),
        }
        logger.debug(f"[WS:{connection_id}] Connection registered")
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        """
        Unregister a WebSocket connection.

        :param connection_id: Connection identifier to remove
        :type connection_id: str
        """
        self.active_connections.pop(connection_id, None)
        self.connection_metadata.pop(connection_id, None)

    async def send_message(self, connection_id: str, message: Dict[str, Any]) -> bool:
        """
        Send a message to a specific connection.

        :param connection_id: Target connection ID
        :type connection_id: str
        :param message: Message dictionary to send
        :type message: Dict[str, Any]
        :return: True if sent successfully, False if connection not found or broken
        :rtype: bool
        """
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            return False

        try:
            await websocket.send_json(message)
            return True
        except Exception as e:
            # Connection is broken, remove it
            logger.debug(f"[WS:{connection_id}] Send failed: {e}")
            self.disconnect(connection_id)
            return False

    def is_connected(self, connection_id: str) -> bool:
        """
        Check if a connection is still active.

        :param connection_id: Connection identifier
        :type connection_id: str
        :return: True if connection is active
        :rtype: bool
        """
        return connection_id in self.active_connections

    def count(self) -> int:
        return len(self.active_connections)

#!/usr/bin/env python3
"""
Broadcast Channel
Fan-out of stream events to every live client connection

Delivery is best-effort: a connection that is closed or fails while sending
simply misses the message. There is no queue and no replay, so a client that
connects late never sees earlier events.
"""

import json
import logging
import threading
import uuid
from typing import Any, Dict, Optional, Union

from websockets.exceptions import ConnectionClosed

logger = logging.getLogger(__name__)


class BroadcastChannel:
    """Registry of open live connections keyed by client id"""

    def __init__(self):
        self._clients: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._stats = {
            'messages_sent': 0,
            'messages_dropped': 0
        }

    def add(self, connection) -> str:
        """Register a connection and return its client id"""
        client_id = uuid.uuid4().hex[:12]
        with self._lock:
            self._clients[client_id] = connection
        logger.info(f"Client connected: {client_id} ({self.client_count()} live)")
        return client_id

    def remove(self, client_id: str):
        with self._lock:
            removed = self._clients.pop(client_id, None)
        if removed is not None:
            logger.info(f"Client disconnected: {client_id} ({self.client_count()} live)")

    def get(self, client_id: str):
        with self._lock:
            return self._clients.get(client_id)

    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    def _send(self, connection, payload: str) -> bool:
        try:
            connection.send(payload)
        except (ConnectionClosed, OSError) as e:
            logger.debug(f"Dropping message for closed connection: {e}")
            with self._lock:
                self._stats['messages_dropped'] += 1
            return False
        with self._lock:
            self._stats['messages_sent'] += 1
        return True

    def broadcast(self, message: Dict[str, Any]) -> int:
        """Send a message to all open connections; returns deliveries made"""
        with self._lock:
            connections = list(self._clients.values())
        if not connections:
            return 0

        payload = json.dumps(message)
        return sum(1 for connection in connections if self._send(connection, payload))

    def send_to(self, target: Union[str, Any], message: Dict[str, Any]) -> bool:
        """Send a message to one connection, given either its id or the connection"""
        connection = self.get(target) if isinstance(target, str) else target
        if connection is None:
            return False
        return self._send(connection, json.dumps(message))

    def resolve(self, client_id: Optional[str]):
        """Connection for a client id, or None to mean 'everyone'"""
        if not client_id:
            return None
        connection = self.get(client_id)
        if connection is None:
            logger.debug(f"Unknown client id {client_id}, falling back to broadcast")
        return connection

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            stats = dict(self._stats)
            stats['live_clients'] = len(self._clients)
        return stats

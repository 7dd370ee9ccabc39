#!/usr/bin/env python3
"""
Live stream server
WebSocket endpoint that browser clients hold open to receive script output
"""

import json
import logging
import threading
from typing import Optional

from websockets.exceptions import ConnectionClosed
from websockets.sync.server import ServerConnection, serve

from nftcharm import config
from .broadcast import BroadcastChannel

logger = logging.getLogger(__name__)


class LiveServer:
    """Accepts live connections and registers them with a BroadcastChannel"""

    def __init__(self, channel: BroadcastChannel, host: str = None, port: int = None):
        self.channel = channel
        self.host = host or config.WS_HOST
        self.port = port if port is not None else config.WS_PORT
        self._server = None
        self._thread: Optional[threading.Thread] = None

    def handle(self, connection: ServerConnection):
        """Per-connection loop: greet, then ignore whatever the client sends"""
        client_id = self.channel.add(connection)
        try:
            connection.send(json.dumps({'type': 'connected', 'clientId': client_id}))
            for message in connection:
                logger.debug(f"Received from {client_id}: {message}")
        except ConnectionClosed:
            pass
        finally:
            self.channel.remove(client_id)

    def start(self) -> threading.Thread:
        """Start serving in a background daemon thread"""
        if self._thread and self._thread.is_alive():
            return self._thread

        self._server = serve(self.handle, self.host, self.port)
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            daemon=True,
            name=f"LiveServer-{self.port}"
        )
        self._thread.start()
        logger.info(f"🔌 Live stream server running on ws://{self.host}:{self.port}")
        return self._thread

    def stop(self):
        if self._server is not None:
            self._server.shutdown()
            self._server = None
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None
        logger.info("Live stream server stopped")

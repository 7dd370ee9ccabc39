"""
Unit tests for the broadcast channel and the live server connection handler.
"""
import json
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from conftest import FakeConnection
from nftcharm.networking import BroadcastChannel, LiveServer


class TestBroadcastChannel:
    """Fan-out semantics"""

    def test_broadcast_to_no_clients_is_noop(self, channel):
        assert channel.broadcast({'type': 'stdout', 'data': 'x'}) == 0

    def test_broadcast_reaches_every_client(self, channel):
        connections = [FakeConnection() for _ in range(3)]
        for connection in connections:
            channel.add(connection)

        delivered = channel.broadcast({'type': 'stdout', 'scriptId': '1', 'script': 'a.sh', 'data': 'hi'})

        assert delivered == 3
        for connection in connections:
            assert connection.messages == [{'type': 'stdout', 'scriptId': '1', 'script': 'a.sh', 'data': 'hi'}]

    def test_closed_connection_is_skipped_silently(self, channel):
        open_connection = FakeConnection()
        closed_connection = FakeConnection(closed=True)
        channel.add(open_connection)
        channel.add(closed_connection)

        delivered = channel.broadcast({'type': 'exit'})

        assert delivered == 1
        assert len(open_connection.sent) == 1
        assert closed_connection.sent == []
        assert channel.get_stats()['messages_dropped'] == 1

    def test_late_client_gets_no_replay(self, channel):
        channel.add(FakeConnection())
        channel.broadcast({'type': 'stdout', 'data': 'early'})

        late = FakeConnection()
        channel.add(late)

        assert late.sent == []

    def test_send_to_client_id(self, channel, live_client):
        client_id, connection = live_client
        other = FakeConnection()
        channel.add(other)

        assert channel.send_to(client_id, {'type': 'stdout', 'data': 'mine'}) is True

        assert connection.messages == [{'type': 'stdout', 'data': 'mine'}]
        assert other.sent == []

    def test_send_to_connection_object(self, channel):
        connection = FakeConnection()
        assert channel.send_to(connection, {'type': 'exit'}) is True
        assert connection.messages == [{'type': 'exit'}]

    def test_send_to_unknown_id(self, channel):
        assert channel.send_to('nope', {'type': 'exit'}) is False

    def test_remove(self, channel, live_client):
        client_id, connection = live_client
        channel.remove(client_id)
        channel.broadcast({'type': 'exit'})
        assert connection.sent == []
        assert channel.client_count() == 0

    def test_resolve(self, channel, live_client):
        client_id, connection = live_client
        assert channel.resolve(client_id) is connection
        assert channel.resolve('missing') is None
        assert channel.resolve(None) is None


class IterableConnection(FakeConnection):
    """Connection that yields a fixed set of incoming messages, then closes"""

    def __init__(self, incoming):
        super().__init__()
        self.incoming = incoming

    def __iter__(self):
        return iter(self.incoming)


class TestLiveServerHandler:

    def test_handler_greets_and_cleans_up(self):
        channel = BroadcastChannel()
        server = LiveServer(channel, host='127.0.0.1', port=0)
        connection = IterableConnection(['ping', 'ignored'])

        server.handle(connection)

        greeting = json.loads(connection.sent[0])
        assert greeting['type'] == 'connected'
        assert greeting['clientId']
        assert len(connection.sent) == 1
        assert channel.client_count() == 0

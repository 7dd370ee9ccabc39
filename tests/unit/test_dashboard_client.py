"""
Unit tests for the terminal dashboard client.
HTTP calls are intercepted by patching the client's requests session.
"""
import io
import os
import sys
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from nftcharm.clients import DashboardClient, DashboardClientError, print_event


def make_response(status_code, payload):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = str(payload)
    return response


@pytest.fixture
def client():
    client = DashboardClient('http://dashboard.local:3000/')
    client.session = MagicMock()
    return client


class TestRestCalls:

    def test_get_balance(self, client):
        client.session.get.return_value = make_response(200, {'balance': 0.25})
        assert client.get_balance() == 0.25
        url = client.session.get.call_args[0][0]
        assert url == 'http://dashboard.local:3000/balance'

    def test_send_btc_payload(self, client):
        client.session.post.return_value = make_response(200, {'code': 0, 'stdout': 'ok', 'stderr': '', 'success': True})

        result = client.send_btc('tb1qdest', 0.001, fee_rate=2)

        assert result['success'] is True
        args, kwargs = client.session.post.call_args
        assert args[0] == 'http://dashboard.local:3000/scripts/send-btc'
        assert kwargs['json'] == {'address': 'tb1qdest', 'amount': '0.001', 'feeRate': '2'}

    def test_view_spell_payload(self, client):
        client.session.post.return_value = make_response(200, {'code': 0, 'stdout': '', 'stderr': '', 'success': True})
        client.view_spell('abc', detailed=True)
        assert client.session.post.call_args[1]['json'] == {'txid': 'abc', 'detailed': True, 'raw': False}

    def test_error_response_raises_with_payload(self, client):
        payload = {'error': 'boom', 'code': 1, 'stdout': '', 'stderr': 'boom', 'success': False}
        client.session.post.return_value = make_response(500, payload)

        with pytest.raises(DashboardClientError) as exc_info:
            client.run_script('create-nft')

        assert str(exc_info.value) == 'boom'
        assert exc_info.value.payload == payload

    def test_live_url_uses_server_host(self, client):
        assert client.live_url(3001) == 'ws://dashboard.local:3001'


class TestPrintEvent:

    def test_stdout_written_verbatim(self):
        out = io.StringIO()
        print_event({'type': 'stdout', 'data': 'line\n'}, out)
        assert out.getvalue() == 'line\n'

    def test_exit_summary(self):
        out = io.StringIO()
        print_event({'type': 'exit', 'script': 'spell.sh', 'code': 2, 'success': False}, out)
        assert 'spell.sh exited with code 2' in out.getvalue()


class TestTransactionCount:

    def test_explicit_zero_count_is_sent(self, client):
        client.session.get.return_value = make_response(200, [])
        client.get_transactions(0)
        assert client.session.get.call_args[1]['params'] == {'count': 0}

    def test_default_count(self, client):
        client.session.get.return_value = make_response(200, [])
        client.get_transactions()
        assert client.session.get.call_args[1]['params'] == {'count': 10}

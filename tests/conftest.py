"""
Pytest fixtures and test configuration for the NFTCharm dashboard test suite.
"""
import json
import os
import subprocess
import sys
import textwrap

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from websockets.exceptions import ConnectionClosedOK

from nftcharm.networking import BroadcastChannel
from nftcharm.rpc import BitcoinCli
from nftcharm.scripts import ProcessStreamer


# ============================================================================
# bitcoin-cli Fakes
# ============================================================================

class FakeRunner:
    """Stands in for subprocess.run; answers bitcoin-cli calls from a table"""

    def __init__(self, responses=None):
        # method name or (method, *params) -> (returncode, stdout, stderr) or an exception
        self.responses = dict(responses or {})
        self.calls = []

    @staticmethod
    def rpc_of(cmd):
        for i, part in enumerate(cmd):
            if part.startswith('-rpcwallet='):
                return cmd[i + 1], tuple(cmd[i + 2:])
        raise AssertionError(f"no -rpcwallet in {cmd}")

    def __call__(self, cmd, capture_output=False, text=False):
        self.calls.append(cmd)
        method, params = self.rpc_of(cmd)
        response = self.responses.get((method,) + params, self.responses.get(method))
        if response is None:
            return subprocess.CompletedProcess(cmd, 1, '', f"error code: -32601\nMethod not found: {method}\n")
        if isinstance(response, Exception):
            raise response
        returncode, stdout, stderr = response
        return subprocess.CompletedProcess(cmd, returncode, stdout, stderr)


def rpc_ok(value):
    """Successful bitcoin-cli output for a JSON value"""
    return (0, json.dumps(value, indent=2) + '\n', '')


def rpc_text(text):
    """Successful bitcoin-cli output for a bare string result"""
    return (0, text + '\n', '')


SAMPLE_TXID = 'ab' * 32
SAMPLE_ADDRESS = 'tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx'


@pytest.fixture
def blockchain_info():
    return {
        'chain': 'testnet4',
        'blocks': 52345,
        'headers': 52345,
        'verificationprogress': 0.9999,
        'initialblockdownload': False
    }


@pytest.fixture
def sample_utxos():
    return [
        {'txid': SAMPLE_TXID, 'vout': 0, 'address': SAMPLE_ADDRESS, 'amount': 0.015,
         'confirmations': 12, 'desc': 'wpkh([d34db33f/84h/1h/0h/0/0]02abc)#xyz'},
        {'txid': 'cd' * 32, 'vout': 1, 'address': 'tb1pdust', 'amount': 0.00001,
         'confirmations': 3, 'desc': 'tr([d34db33f/86h/1h/0h/0/1]03def)#abc'},
    ]


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def cli(fake_runner):
    return BitcoinCli(cli_path='bitcoin-cli', network='testnet4', wallet='nftcharm_wallet', runner=fake_runner)


# ============================================================================
# Live Connection Fakes
# ============================================================================

class FakeConnection:
    """Records what the broadcast channel sends; can pretend to be closed"""

    def __init__(self, closed=False):
        self.closed = closed
        self.sent = []

    def send(self, payload):
        if self.closed:
            raise ConnectionClosedOK(None, None)
        self.sent.append(payload)

    @property
    def messages(self):
        return [json.loads(p) for p in self.sent]


@pytest.fixture
def channel():
    return BroadcastChannel()


@pytest.fixture
def live_client(channel):
    """A connected client: (client_id, connection)"""
    connection = FakeConnection()
    return channel.add(connection), connection


# ============================================================================
# Script Fixtures
# ============================================================================

@pytest.fixture
def scripts_dir(tmp_path):
    path = tmp_path / 'scripts'
    path.mkdir()
    return path


@pytest.fixture
def write_script(scripts_dir):
    """Create a bash script in the scripts directory"""
    def _write(name, body):
        script = scripts_dir / name
        script.write_text('#!/usr/bin/env bash\n' + textwrap.dedent(body).lstrip('\n'))
        return script
    return _write


@pytest.fixture
def streamer(scripts_dir, channel):
    return ProcessStreamer(scripts_dir=scripts_dir, channel=channel, shell='bash')


# ============================================================================
# Test Markers
# ============================================================================

def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "subprocess: marks tests that spawn real shell scripts")

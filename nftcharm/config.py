#!/usr/bin/env python3
"""
NFTCharm Dashboard Configuration Module
Centralized settings for the dashboard server, wallet gateway and script runner

Every value can be overridden from the environment (NFTCHARM_*); the server
entry point additionally accepts command-line flags for the common ones.
"""

import os
from pathlib import Path

# Browser client (index.html, app.js)
STATIC_DIR = Path(__file__).resolve().parent / 'static'

# ==========================================
# SERVER CONFIGURATION
# ==========================================

API_HOST = os.getenv('NFTCHARM_API_HOST', '0.0.0.0')
API_PORT = int(os.getenv('NFTCHARM_API_PORT', 3000))

# Live stream (WebSocket) server
WS_HOST = os.getenv('NFTCHARM_WS_HOST', '0.0.0.0')
WS_PORT = int(os.getenv('NFTCHARM_WS_PORT', 3001))

# ==========================================
# BITCOIN CORE CONFIGURATION
# ==========================================

BITCOIN_CLI = os.getenv('NFTCHARM_BITCOIN_CLI', 'bitcoin-cli')
WALLET_NAME = os.getenv('NFTCHARM_WALLET', 'nftcharm_wallet')
NETWORK = os.getenv('NFTCHARM_NETWORK', 'testnet4')

# bitcoin-cli flag per network; mainnet takes none
NETWORK_FLAGS = {
    'testnet4': '-testnet4',
    'testnet': '-testnet',
    'signet': '-signet',
    'regtest': '-regtest',
    'mainnet': None,
}

# ==========================================
# SCRIPT RUNNER CONFIGURATION
# ==========================================

# Scripts are run from the directory the server was launched in (the checkout)
SCRIPTS_DIR = Path(os.getenv('NFTCHARM_SCRIPTS_DIR', os.getcwd()))
SCRIPT_SHELL = os.getenv('NFTCHARM_SCRIPT_SHELL', 'bash')

# send-btc.sh asks for confirmation on stdin; the answer is sent as one line
SEND_BTC_CONFIRMATION = os.getenv('NFTCHARM_SEND_BTC_CONFIRMATION', 'yes').rstrip('\n') + '\n'
DEFAULT_FEE_RATE = os.getenv('NFTCHARM_DEFAULT_FEE_RATE', '1')

# ==========================================
# DASHBOARD BEHAVIOUR
# ==========================================

DEFAULT_TRANSACTION_COUNT = int(os.getenv('NFTCHARM_DEFAULT_TRANSACTION_COUNT', 10))
# BTC; smaller UTXOs are likely charm carriers
TOKEN_DUST_THRESHOLD = float(os.getenv('NFTCHARM_TOKEN_DUST_THRESHOLD', 0.0001))

# Browser client timings (seconds)
STATUS_POLL_INTERVAL = int(os.getenv('NFTCHARM_STATUS_POLL_INTERVAL', 10))
TRANSACTION_POLL_INTERVAL = int(os.getenv('NFTCHARM_TRANSACTION_POLL_INTERVAL', 30))
RECONNECT_DELAY = int(os.getenv('NFTCHARM_RECONNECT_DELAY', 5))


def get_network_flag(network: str = None):
    """Get the bitcoin-cli flag for a network name (None for mainnet)"""
    if network is None:
        network = NETWORK
    if not validate_network(network):
        raise ValueError(f"Unknown network: {network}")
    return NETWORK_FLAGS[network]

def validate_network(network: str) -> bool:
    """Validate network setting"""
    return network in NETWORK_FLAGS

def get_all_config() -> dict:
    """Get all configuration as dictionary"""
    return {
        'api_host': API_HOST,
        'api_port': API_PORT,
        'ws_host': WS_HOST,
        'ws_port': WS_PORT,
        'bitcoin_cli': BITCOIN_CLI,
        'wallet_name': WALLET_NAME,
        'network': NETWORK,
        'scripts_dir': str(SCRIPTS_DIR),
        'script_shell': SCRIPT_SHELL,
        'default_fee_rate': DEFAULT_FEE_RATE,
        'default_transaction_count': DEFAULT_TRANSACTION_COUNT,
        'token_dust_threshold': TOKEN_DUST_THRESHOLD,
        'status_poll_interval': STATUS_POLL_INTERVAL,
        'transaction_poll_interval': TRANSACTION_POLL_INTERVAL,
        'reconnect_delay': RECONNECT_DELAY,
    }

#!/usr/bin/env python3
"""
NFTCharm RPC Module
bitcoin-cli gateway and the typed results it produces
"""

from .bitcoin_cli import BitcoinCli
from .models import BlockchainInfo, ReceivedAddress, Utxo

__all__ = [
    'BitcoinCli',
    'BlockchainInfo',
    'ReceivedAddress',
    'Utxo'
]

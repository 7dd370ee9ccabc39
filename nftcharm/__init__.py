#!/usr/bin/env python3
"""
NFTCharm Dashboard
Web dashboard for a bitcoin-cli wallet and its charm (NFT/token) scripts

Usage:
    from nftcharm.rpc import BitcoinCli
    from nftcharm.scripts import ProcessStreamer
    from nftcharm.networking import BroadcastChannel, LiveServer
"""

__version__ = '1.0.0'

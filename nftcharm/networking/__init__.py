#!/usr/bin/env python3
"""
NFTCharm Networking Module
Live delivery of script output to connected dashboard clients
"""

from .broadcast import BroadcastChannel
from .live_server import LiveServer

__all__ = [
    'BroadcastChannel',
    'LiveServer'
]

#!/usr/bin/env python3
"""
NFTCharm Scripts Module
Execution and live relay of the wallet-management shell scripts
"""

from .process_streamer import (
    ProcessStreamer,
    RunRegistry,
    ScriptRun,
    ScriptResult,
    StreamEvent,
    STDOUT,
    STDERR,
    EXIT
)
from .catalog import SCRIPT_CATALOG, spell_args, send_btc_args

__all__ = [
    'ProcessStreamer',
    'RunRegistry',
    'ScriptRun',
    'ScriptResult',
    'StreamEvent',
    'STDOUT',
    'STDERR',
    'EXIT',
    'SCRIPT_CATALOG',
    'spell_args',
    'send_btc_args'
]

#!/usr/bin/env python3
"""
Typed views over the bitcoin-cli results the dashboard relies on.
Each model narrows one RPC's JSON output at the gateway boundary.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class BlockchainInfo:
    """getblockchaininfo"""
    chain: str
    blocks: int
    headers: int
    verification_progress: float
    initial_block_download: bool = False

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> 'BlockchainInfo':
        return cls(
            chain=data['chain'],
            blocks=data['blocks'],
            headers=data['headers'],
            verification_progress=data.get('verificationprogress', 0.0),
            initial_block_download=data.get('initialblockdownload', False)
        )

    def to_status(self) -> Dict[str, Any]:
        """Shape used by the /status endpoint"""
        return {
            'connected': True,
            'network': self.chain,
            'blocks': self.blocks,
            'headers': self.headers,
            'verificationProgress': self.verification_progress
        }


@dataclass
class ReceivedAddress:
    """One entry of listreceivedbyaddress"""
    address: str
    amount: float = 0.0
    confirmations: int = 0
    label: str = ""

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> 'ReceivedAddress':
        return cls(
            address=data['address'],
            amount=data.get('amount', 0.0),
            confirmations=data.get('confirmations', 0),
            label=data.get('label', "")
        )


@dataclass
class Utxo:
    """One entry of listunspent; `raw` keeps the untouched RPC record"""
    txid: str
    vout: int
    address: Optional[str] = None
    amount: float = 0.0
    confirmations: int = 0
    desc: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> 'Utxo':
        return cls(
            txid=data['txid'],
            vout=data['vout'],
            address=data.get('address'),
            amount=data.get('amount', 0.0),
            confirmations=data.get('confirmations', 0),
            desc=data.get('desc', ""),
            raw=dict(data)
        )

    @property
    def utxo_id(self) -> str:
        return f"{self.txid}:{self.vout}"

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.raw) if self.raw else {
            'txid': self.txid,
            'vout': self.vout,
            'address': self.address,
            'amount': self.amount,
            'confirmations': self.confirmations,
            'desc': self.desc
        }

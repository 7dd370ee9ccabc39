#!/usr/bin/env python3
"""
UTXO Classifier
Heuristic, unverified tagging of wallet UTXOs as NFT/token carriers

Real charm decoding needs the spell data carried in the transaction witness,
which this dashboard does not parse. Until then a UTXO is tagged from its
descriptor, its decoded scriptPubKey and two sample addresses taken from the
demo wallet. Every result carries heuristic=True.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from nftcharm import config
from nftcharm.errors import DashboardError
from nftcharm.rpc.models import Utxo

logger = logging.getLogger(__name__)

# Sample charm carriers from the demo wallet
KNOWN_NFT_ADDRESS = 'tb1p40c5eywchazxa4t3jdytnc39c3g8l2tzegzk7zgrzcdm324xce3qww4eud'
KNOWN_TOKEN_ADDRESS = 'tb1px6jrge3dynx9tjp6vwp7xrq9a3gm9dqpz9jts4jezhvlulayvrqq9rcrz3'
SAMPLE_TICKER = 'MY-TOKEN'
SAMPLE_NFT_REMAINING = 30580
SAMPLE_TOKEN_AMOUNT = 69420

UTXO_TYPES = ('plain', 'unknown', 'data', 'taproot', 'nft', 'token')


@dataclass
class UtxoClassification:
    """Non-authoritative annotation attached to a UTXO"""
    type: str = 'plain'
    ticker: Optional[str] = None
    token_amount: Optional[int] = None
    remaining: Optional[int] = None
    heuristic: bool = True

    def to_dict(self) -> Dict[str, Any]:
        data = {'type': self.type, 'heuristic': self.heuristic}
        if self.ticker is not None:
            data['ticker'] = self.ticker
        if self.token_amount is not None:
            data['tokenAmount'] = self.token_amount
        if self.remaining is not None:
            data['remaining'] = self.remaining
        return data


def classify_utxo(utxo: Utxo, output: Optional[Dict[str, Any]] = None) -> UtxoClassification:
    """Tag a UTXO; `output` is its decoded vout entry when available"""
    result = UtxoClassification()

    if utxo.desc and 'tr(' in utxo.desc:
        result.type = 'unknown'

    script_pubkey = (output or {}).get('scriptPubKey')
    if script_pubkey:
        if script_pubkey.get('type') == 'nulldata' or 'OP_RETURN' in script_pubkey.get('asm', ''):
            result.type = 'data'
        if script_pubkey.get('type') == 'witness_v1_taproot':
            result.type = 'taproot'

    if utxo.address == KNOWN_NFT_ADDRESS:
        result.type = 'nft'
        result.ticker = SAMPLE_TICKER
        result.remaining = SAMPLE_NFT_REMAINING
    elif utxo.address == KNOWN_TOKEN_ADDRESS:
        result.type = 'token'
        result.ticker = SAMPLE_TICKER
        result.token_amount = SAMPLE_TOKEN_AMOUNT

    return result


def is_token_dust(utxo: Utxo, threshold: float = None) -> bool:
    """Dust-sized outputs are the likely charm carriers"""
    if threshold is None:
        threshold = config.TOKEN_DUST_THRESHOLD
    return utxo.amount < threshold


class UtxoClassifier:
    """Classifies UTXOs, inspecting their transactions through the gateway"""

    def __init__(self, cli):
        self.cli = cli

    def annotate(self, utxo: Utxo) -> Dict[str, Any]:
        output = None
        try:
            output = self.cli.get_output(utxo.txid, utxo.vout)
        except DashboardError as e:
            logger.error(f"Error parsing transaction {utxo.txid}: {e}")

        record = {
            'txid': utxo.txid,
            'vout': utxo.vout,
            'address': utxo.address,
            'amount': utxo.amount,
            'confirmations': utxo.confirmations,
        }
        record.update(classify_utxo(utxo, output).to_dict())
        return record

from .utxo_classifier import (
    UtxoClassification,
    UtxoClassifier,
    classify_utxo,
    is_token_dust,
    KNOWN_NFT_ADDRESS,
    KNOWN_TOKEN_ADDRESS
)

__all__ = [
    'UtxoClassification',
    'UtxoClassifier',
    'classify_utxo',
    'is_token_dust',
    'KNOWN_NFT_ADDRESS',
    'KNOWN_TOKEN_ADDRESS'
]

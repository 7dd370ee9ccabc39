"""
Catalog of the wallet-management scripts the dashboard can run
"""

from decimal import Decimal

CHECK_BALANCE = 'check-balance.sh'
SEND_BTC = 'send-btc.sh'
CREATE_NFT = 'create-nft.sh'
MINT_TOKENS = 'mint-tokens.sh'
TRANSFER_TOKENS = 'transfer-tokens.sh'
SPELL = 'spell.sh'

SCRIPT_CATALOG = [
    {
        'name': CHECK_BALANCE,
        'description': 'Check token balances in wallet',
        'endpoint': '/scripts/check-balance',
        'method': 'POST',
        'params': []
    },
    {
        'name': SEND_BTC,
        'description': 'Send Bitcoin to an address',
        'endpoint': '/scripts/send-btc',
        'method': 'POST',
        'params': ['address', 'amount', 'feeRate (optional)']
    },
    {
        'name': CREATE_NFT,
        'description': 'Create a new NFT',
        'endpoint': '/scripts/create-nft',
        'method': 'POST',
        'params': []
    },
    {
        'name': MINT_TOKENS,
        'description': 'Mint tokens from an NFT',
        'endpoint': '/scripts/mint-tokens',
        'method': 'POST',
        'params': []
    },
    {
        'name': TRANSFER_TOKENS,
        'description': 'Transfer tokens to another address',
        'endpoint': '/scripts/transfer-tokens',
        'method': 'POST',
        'params': []
    },
    {
        'name': SPELL,
        'description': 'View spell content from a transaction',
        'endpoint': '/scripts/spell',
        'method': 'POST',
        'params': ['txid', 'detailed (optional)', 'raw (optional)']
    }
]


def spell_args(txid: str, detailed: bool = False, raw: bool = False) -> list:
    """Positional arguments for spell.sh"""
    args = [txid]
    if detailed:
        args.append('--detailed')
    if raw:
        args.append('--raw')
    return args


def cli_number(value) -> str:
    """Render a JSON number the way it was written, never in exponent form"""
    if isinstance(value, str):
        return value
    if isinstance(value, float):
        return format(Decimal(repr(value)), 'f')
    return str(value)


def send_btc_args(address: str, amount, fee_rate=None, default_fee_rate: str = '1') -> list:
    """Positional arguments for send-btc.sh"""
    if fee_rate in (None, ''):
        fee_rate = default_fee_rate
    return [str(address), cli_number(amount), cli_number(fee_rate)]

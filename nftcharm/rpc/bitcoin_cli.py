#!/usr/bin/env python3
"""
Bitcoin Core Gateway
Runs bitcoin-cli against the dashboard wallet and decodes its output

bitcoin-cli prints JSON for structured results and bare text for string
results (addresses, raw transaction hex), so callers pick call() or
call_text() according to the RPC they invoke.
"""

import json
import logging
import subprocess
from typing import Any, Callable, Dict, List, Optional

from nftcharm import config
from nftcharm.errors import CliInvocationError
from nftcharm.rpc.models import BlockchainInfo, ReceivedAddress, Utxo

logger = logging.getLogger(__name__)


class BitcoinCli:
    """Executes wallet RPCs through the bitcoin-cli binary"""

    def __init__(self, cli_path: str = None, network: str = None, wallet: str = None,
                 runner: Callable[..., subprocess.CompletedProcess] = subprocess.run):
        self.cli_path = cli_path or config.BITCOIN_CLI
        self.network = network or config.NETWORK
        self.wallet = wallet or config.WALLET_NAME
        self._network_flag = config.get_network_flag(self.network)
        self._runner = runner

    def build_command(self, method: str, *params) -> List[str]:
        """Build the argument list for one RPC call"""
        cmd = [self.cli_path]
        if self._network_flag:
            cmd.append(self._network_flag)
        cmd.append(f"-rpcwallet={self.wallet}")
        cmd.append(method)
        cmd.extend(str(p) for p in params)
        return cmd

    def _execute(self, method: str, *params) -> str:
        cmd = self.build_command(method, *params)
        logger.debug(f"bitcoin-cli {method} {' '.join(str(p) for p in params)}")

        try:
            completed = self._runner(cmd, capture_output=True, text=True)
        except OSError as e:
            logger.error(f"Bitcoin CLI error: {e}")
            raise CliInvocationError(str(e), command=cmd) from e

        stderr = completed.stderr or ''
        if stderr and 'warning' not in stderr:
            logger.warning(f"Bitcoin CLI stderr: {stderr.strip()}")

        if completed.returncode != 0:
            message = stderr.strip() or (completed.stdout or '').strip() or \
                f"bitcoin-cli {method} exited with code {completed.returncode}"
            logger.error(f"Bitcoin CLI error: {message}")
            raise CliInvocationError(message, command=cmd,
                                     returncode=completed.returncode, stderr=stderr)

        return completed.stdout or ''

    def call(self, method: str, *params) -> Any:
        """Run an RPC and decode its stdout as JSON"""
        stdout = self._execute(method, *params)
        try:
            return json.loads(stdout)
        except json.JSONDecodeError as e:
            logger.error(f"Bitcoin CLI returned non-JSON output for {method}: {e}")
            raise CliInvocationError(
                f"Invalid JSON from bitcoin-cli {method}: {e}",
                command=self.build_command(method, *params)
            ) from e

    def call_text(self, method: str, *params) -> str:
        """Run an RPC whose result is a bare string"""
        return self._execute(method, *params).strip()

    def _expect(self, value: Any, kind: type, method: str):
        if not isinstance(value, kind):
            raise CliInvocationError(
                f"Unexpected result from bitcoin-cli {method}: "
                f"expected {kind.__name__}, got {type(value).__name__}"
            )
        return value

    # ------------------------------------------------------------------
    # Typed wrappers
    # ------------------------------------------------------------------

    def get_blockchain_info(self) -> BlockchainInfo:
        info = self._expect(self.call('getblockchaininfo'), dict, 'getblockchaininfo')
        try:
            return BlockchainInfo.from_rpc(info)
        except KeyError as e:
            raise CliInvocationError(f"getblockchaininfo missing field {e}") from e

    def get_wallet_info(self) -> Dict[str, Any]:
        return self._expect(self.call('getwalletinfo'), dict, 'getwalletinfo')

    def get_balance(self) -> float:
        balance = self.call('getbalance')
        if isinstance(balance, bool) or not isinstance(balance, (int, float)):
            raise CliInvocationError(f"Unexpected result from bitcoin-cli getbalance: {balance!r}")
        return float(balance)

    def list_received_by_address(self, minconf: int = 0, include_empty: bool = True) -> List[ReceivedAddress]:
        entries = self._expect(
            self.call('listreceivedbyaddress', minconf, 'true' if include_empty else 'false'),
            list, 'listreceivedbyaddress'
        )
        return [ReceivedAddress.from_rpc(entry) for entry in entries]

    def get_new_address(self) -> str:
        return self.call_text('getnewaddress')

    def current_address(self) -> str:
        """Address that has received the most, or a fresh one for an empty wallet"""
        addresses = self.list_received_by_address(0, True)
        if addresses:
            addresses.sort(key=lambda a: a.amount, reverse=True)
            return addresses[0].address
        return self.get_new_address()

    def list_unspent(self) -> List[Utxo]:
        entries = self._expect(self.call('listunspent'), list, 'listunspent')
        return [Utxo.from_rpc(entry) for entry in entries]

    def list_transactions(self, count: int = None) -> List[Dict[str, Any]]:
        if count is None:
            count = config.DEFAULT_TRANSACTION_COUNT
        return self._expect(self.call('listtransactions', '*', count), list, 'listtransactions')

    def get_raw_transaction(self, txid: str) -> str:
        return self.call_text('getrawtransaction', txid)

    def decode_raw_transaction(self, tx_hex: str) -> Dict[str, Any]:
        return self._expect(self.call('decoderawtransaction', tx_hex), dict, 'decoderawtransaction')

    def get_decoded_transaction(self, txid: str) -> Dict[str, Any]:
        """Fetch a transaction by id and decode it"""
        return self.decode_raw_transaction(self.get_raw_transaction(txid))

    def get_output(self, txid: str, vout: int) -> Optional[Dict[str, Any]]:
        """Decoded output `vout` of a transaction, None when out of range"""
        outputs = self.get_decoded_transaction(txid).get('vout', [])
        if 0 <= vout < len(outputs):
            return outputs[vout]
        return None

#!/usr/bin/env python3
"""
NFTCharm Dashboard Client - terminal front end for the dashboard server
Calls the REST API and follows the live script output stream
"""

import argparse
import json
import sys
from typing import Dict, List, Optional

import requests
from websockets.exceptions import ConnectionClosed
from websockets.sync.client import connect

from nftcharm import config


class DashboardClientError(Exception):
    """Raised when the dashboard server answers with an error"""
    pass


class DashboardClient:
    def __init__(self, server_url: str = None, timeout: float = 10.0, script_timeout: float = None):
        self.server_url = (server_url or f"http://localhost:{config.API_PORT}").rstrip('/')
        self.timeout = timeout
        # scripts run until they exit; by default wait for them indefinitely
        self.script_timeout = script_timeout
        self.session = requests.Session()

    def _get(self, path: str, **params):
        response = self.session.get(f"{self.server_url}{path}", params=params or None, timeout=self.timeout)
        return self._decode(response)

    def _post(self, path: str, payload: Dict = None):
        response = self.session.post(
            f"{self.server_url}{path}",
            json=payload or {},
            headers={'Content-Type': 'application/json'},
            timeout=self.script_timeout
        )
        return self._decode(response)

    @staticmethod
    def _decode(response: requests.Response):
        try:
            data = response.json()
        except ValueError:
            raise DashboardClientError(f"HTTP {response.status_code}: {response.text}")
        if response.status_code >= 400:
            message = data.get('error') if isinstance(data, dict) else response.text
            error = DashboardClientError(message or f"HTTP {response.status_code}")
            error.payload = data
            raise error
        return data

    # --- Wallet ---

    def get_status(self) -> Dict:
        return self._get('/status')

    def get_balance(self) -> float:
        return self._get('/balance')['balance']

    def get_address(self) -> str:
        return self._get('/address')['address']

    def get_utxos(self, classify: bool = False) -> List[Dict]:
        return self._get('/utxos', classify='true' if classify else None)['utxos']

    def get_transactions(self, count: int = None) -> List[Dict]:
        if count is None:
            count = config.DEFAULT_TRANSACTION_COUNT
        return self._get('/transactions', count=count)

    # --- Scripts ---

    def list_scripts(self) -> List[Dict]:
        return self._get('/scripts')['scripts']

    def run_script(self, endpoint: str, payload: Dict = None) -> Dict:
        return self._post(f"/scripts/{endpoint}", payload)

    def send_btc(self, address: str, amount, fee_rate=None) -> Dict:
        payload = {'address': address, 'amount': str(amount)}
        if fee_rate is not None:
            payload['feeRate'] = str(fee_rate)
        return self.run_script('send-btc', payload)

    def view_spell(self, txid: str, detailed: bool = False, raw: bool = False) -> Dict:
        return self.run_script('spell', {'txid': txid, 'detailed': detailed, 'raw': raw})

    # --- Live stream ---

    def live_url(self, ws_port: int = None) -> str:
        host = self.server_url.split('://', 1)[-1].split('/', 1)[0].split(':', 1)[0]
        return f"ws://{host}:{ws_port or config.WS_PORT}"

    def watch(self, ws_port: int = None, out=sys.stdout, max_messages: Optional[int] = None):
        """Print stream events until the connection closes"""
        received = 0
        with connect(self.live_url(ws_port)) as websocket:
            try:
                for raw in websocket:
                    print_event(json.loads(raw), out)
                    received += 1
                    if max_messages is not None and received >= max_messages:
                        break
            except ConnectionClosed:
                pass
        return received


def print_event(event: Dict, out=sys.stdout):
    """Render one stream event the way the browser terminal pane does"""
    kind = event.get('type')
    if kind in ('stdout', 'stderr'):
        out.write(event.get('data') or '')
    elif kind == 'exit':
        marker = '✅' if event.get('success') else '❌'
        out.write(f"\n{marker} [Script {event.get('script')} exited with code {event.get('code')}]\n")
    elif kind == 'connected':
        out.write(f"📡 Connected as {event.get('clientId')}\n")
    out.flush()


def print_result(result: Dict):
    print(result.get('stdout', ''), end='')
    if result.get('stderr'):
        print(result['stderr'], end='', file=sys.stderr)
    print(f"{'✅' if result.get('success') else '❌'} exit code {result.get('code')}")


def main():
    parser = argparse.ArgumentParser(description='NFTCharm Dashboard Client')
    parser.add_argument('command', choices=['status', 'balance', 'address', 'utxos', 'transactions',
                                            'scripts', 'check-balance', 'create-nft', 'mint-tokens',
                                            'transfer-tokens', 'send', 'spell', 'watch'],
                        help='Command to execute')
    parser.add_argument('--server', '-s', default=f"http://localhost:{config.API_PORT}", help='Dashboard server URL')
    parser.add_argument('--ws-port', type=int, default=config.WS_PORT, help='Live stream port (watch)')
    parser.add_argument('--to', help='Recipient address (for send command)')
    parser.add_argument('--amount', help='Amount in BTC (for send command)')
    parser.add_argument('--fee-rate', help='Fee rate in sat/vB (for send command)')
    parser.add_argument('--txid', help='Transaction id (for spell command)')
    parser.add_argument('--detailed', action='store_true', help='Detailed spell output')
    parser.add_argument('--raw', action='store_true', help='Raw spell output')
    parser.add_argument('--classify', action='store_true', help='Classify UTXOs (heuristic)')
    parser.add_argument('--count', type=int, default=config.DEFAULT_TRANSACTION_COUNT, help='Transactions to list')

    args = parser.parse_args()
    client = DashboardClient(args.server)

    try:
        if args.command == 'status':
            status = client.get_status()
            if status.get('connected'):
                print(f"🟢 {status['network']} | blocks {status['blocks']} / headers {status['headers']} "
                      f"| sync {status['verificationProgress'] * 100:.2f}%")
            else:
                print(f"🔴 Bitcoin Core offline: {status.get('error')}")

        elif args.command == 'balance':
            print(f"💰 Balance: {client.get_balance():.8f} BTC")

        elif args.command == 'address':
            print(f"📍 Address: {client.get_address()}")

        elif args.command == 'utxos':
            utxos = client.get_utxos(classify=args.classify)
            print(f"📦 UTXOs ({len(utxos)}):")
            for utxo in utxos:
                tag = f" [{utxo['type']}]" if 'type' in utxo else ''
                print(f"   {utxo['txid'][:16]}...:{utxo['vout']} | {utxo.get('amount')} BTC{tag}")

        elif args.command == 'transactions':
            history = client.get_transactions(args.count)
            print(f"📋 Recent Transactions ({len(history)}):")
            for tx in history:
                print(f"   {tx.get('txid', '?')[:16]}... | {tx.get('amount')} BTC | "
                      f"{tx.get('category')} | {tx.get('confirmations', 0)} conf")

        elif args.command == 'scripts':
            for script in client.list_scripts():
                params = ', '.join(script['params']) or '-'
                print(f"   {script['name']:<20} {script['method']} {script['endpoint']:<26} {params}")

        elif args.command in ('check-balance', 'create-nft', 'mint-tokens', 'transfer-tokens'):
            print_result(client.run_script(args.command))

        elif args.command == 'send':
            if not args.to or not args.amount:
                print("❌ --to and --amount required for send command")
                return 1
            print(f"📤 Sending {args.amount} BTC to {args.to}")
            print_result(client.send_btc(args.to, args.amount, args.fee_rate))

        elif args.command == 'spell':
            if not args.txid:
                print("❌ --txid required for spell command")
                return 1
            print_result(client.view_spell(args.txid, args.detailed, args.raw))

        elif args.command == 'watch':
            print(f"👀 Watching {client.live_url(args.ws_port)} (Ctrl+C to stop)")
            try:
                client.watch(args.ws_port)
            except KeyboardInterrupt:
                pass

    except DashboardClientError as e:
        payload = getattr(e, 'payload', None)
        if isinstance(payload, dict) and 'code' in payload:
            print_result(payload)
        print(f"❌ {e}")
        return 1
    except requests.RequestException as e:
        print(f"❌ Cannot reach dashboard server: {e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())

#!/usr/bin/env python3
"""
NFTCharm Dashboard Server
REST + live-stream backend for the NFTCharm browser dashboard

The server drives a Bitcoin Core wallet through bitcoin-cli and runs the
wallet-management shell scripts (create-nft.sh, mint-tokens.sh, ...) on
behalf of the browser, relaying their output live over a WebSocket.

Components:
- BitcoinCli: runs bitcoin-cli and decodes its output
- ProcessStreamer: spawns scripts and yields their output as events
- BroadcastChannel / LiveServer: fan-out of those events to live clients
- This module: the Flask REST facade wiring the three together
"""

import argparse
import logging
import sys
import threading
import time
from datetime import datetime, timezone
from typing import Dict

from flask import Flask, jsonify, request, send_from_directory
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from nftcharm import config
from nftcharm.charms import UtxoClassifier, is_token_dust
from nftcharm.errors import (
    CliInvocationError, DashboardError, ScriptExecutionError, SpawnError, ValidationError
)
from nftcharm.networking import BroadcastChannel, LiveServer
from nftcharm.rpc import BitcoinCli
from nftcharm.scripts import ProcessStreamer, SCRIPT_CATALOG, send_btc_args, spell_args
from nftcharm.scripts import catalog

STATIC_DIR = config.STATIC_DIR

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _truthy(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


class DashboardServer:
    """
    REST facade over the wallet gateway and the script runner
    """

    def __init__(self, api_port: int = None, ws_port: int = None,
                 cli: BitcoinCli = None, streamer: ProcessStreamer = None,
                 channel: BroadcastChannel = None, network: str = None):
        self.api_port = api_port if api_port is not None else config.API_PORT
        self.ws_port = ws_port if ws_port is not None else config.WS_PORT

        self.cli = cli or BitcoinCli(network=network)
        self.network = network or getattr(self.cli, 'network', config.NETWORK)
        if channel is None:
            channel = getattr(streamer, 'channel', None) or BroadcastChannel()
        self.channel = channel
        self.streamer = streamer or ProcessStreamer(channel=self.channel)
        self.classifier = UtxoClassifier(self.cli)
        self.live_server = LiveServer(self.channel, port=self.ws_port)

        # Flask app
        self.app = Flask(__name__, static_folder=str(STATIC_DIR), static_url_path='/static')
        self.app.json.compact = False
        CORS(self.app)

        # Statistics
        self._stats = {
            'api_calls': 0,
            'api_errors': 0,
            'uptime_start': time.time()
        }
        self._stats_lock = threading.Lock()

        self._setup_error_handlers()
        self._setup_api_routes()

        logger.info("[INIT] NFTCharm Dashboard Server Initialized")
        logger.info(f"   [API] REST API: http://localhost:{self.api_port}")
        logger.info(f"   [WS] Live stream: ws://localhost:{self.ws_port}")
        logger.info(f"   [BTC] Network: {self.network}  Wallet: {getattr(self.cli, 'wallet', '?')}")
        logger.info(f"   [SH] Scripts: {self.streamer.scripts_dir}")
        logger.debug(f"Configuration: {config.get_all_config()}")

    def _increment(self, key: str):
        with self._stats_lock:
            self._stats[key] += 1

    # ------------------------------------------------------------------
    # Request helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _body() -> Dict:
        body = request.get_json(silent=True)
        return body if isinstance(body, dict) else {}

    @staticmethod
    def _require(body: Dict, *fields: str, message: str = None):
        for field in fields:
            if body.get(field) in (None, ''):
                raise ValidationError(message or f"'{field}' is required", field=field)

    def _recipient(self, body: Dict):
        """Connection named by the request, or None to broadcast"""
        client_id = body.get('clientId') or request.headers.get('X-Client-Id')
        return self.channel.resolve(client_id)

    def _run_script(self, script: str, args=(), stdin_data: str = None):
        body = self._body()
        result = self.streamer.run(script, args, recipient=self._recipient(body), stdin_data=stdin_data)
        return jsonify(result.to_dict())

    # ------------------------------------------------------------------
    # Error translation
    # ------------------------------------------------------------------

    def _setup_error_handlers(self):

        @self.app.errorhandler(ValidationError)
        def handle_validation_error(e):
            self._increment('api_errors')
            logger.warning(f"Rejected {request.method} {request.path}: {e}")
            return jsonify({'error': str(e)}), 400

        @self.app.errorhandler(ScriptExecutionError)
        def handle_script_error(e):
            self._increment('api_errors')
            logger.error(f"Error running script for {request.path}: {e}")
            payload = {'error': e.result.stderr or str(e)}
            payload.update(e.result.to_dict())
            return jsonify(payload), 500

        @self.app.errorhandler(SpawnError)
        @self.app.errorhandler(CliInvocationError)
        def handle_dashboard_error(e):
            self._increment('api_errors')
            logger.error(f"Error handling {request.path}: {e}")
            return jsonify({'error': str(e)}), 500

        @self.app.errorhandler(Exception)
        def handle_unexpected_error(e):
            if isinstance(e, HTTPException):
                return jsonify({'error': e.description}), e.code
            self._increment('api_errors')
            logger.exception(f"Unhandled error on {request.path}: {e}")
            return jsonify({'error': str(e)}), 500

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    def _setup_api_routes(self):
        """Setup all API routes"""

        @self.app.before_request
        def count_api_call():
            self._increment('api_calls')

        @self.app.route('/', methods=['GET'])
        def index():
            return send_from_directory(str(STATIC_DIR), 'index.html')

        @self.app.route('/health', methods=['GET'])
        def health():
            return jsonify({'status': 'ok', 'timestamp': datetime.now(timezone.utc).isoformat()})

        @self.app.route('/config', methods=['GET'])
        def get_client_config():
            return jsonify({
                'network': self.network,
                'wallet': getattr(self.cli, 'wallet', config.WALLET_NAME),
                'apiPort': self.api_port,
                'wsPort': self.ws_port,
                'statusPollInterval': config.STATUS_POLL_INTERVAL,
                'transactionPollInterval': config.TRANSACTION_POLL_INTERVAL,
                'reconnectDelay': config.RECONNECT_DELAY,
                'defaultFeeRate': config.DEFAULT_FEE_RATE
            })

        @self.app.route('/stats', methods=['GET'])
        def get_stats():
            with self._stats_lock:
                stats = dict(self._stats)
            stats['uptime'] = time.time() - stats.pop('uptime_start')
            stats['scripts'] = self.streamer.get_stats()
            stats['live'] = self.channel.get_stats()
            return jsonify(stats)

        # --- Wallet (bitcoin-cli pass-through) ---

        @self.app.route('/status', methods=['GET'])
        def get_status():
            try:
                return jsonify(self.cli.get_blockchain_info().to_status())
            except DashboardError as e:
                return jsonify({'connected': False, 'error': str(e)})

        @self.app.route('/wallet', methods=['GET'])
        def get_wallet():
            return jsonify(self.cli.get_wallet_info())

        @self.app.route('/balance', methods=['GET'])
        def get_balance():
            return jsonify({'balance': self.cli.get_balance()})

        @self.app.route('/address', methods=['GET'])
        def get_address():
            return jsonify({'address': self.cli.current_address()})

        @self.app.route('/addresses', methods=['GET'])
        def get_addresses():
            addresses = self.cli.list_received_by_address(0, True)
            return jsonify([
                {'address': a.address, 'amount': a.amount,
                 'confirmations': a.confirmations, 'label': a.label}
                for a in addresses
            ])

        @self.app.route('/utxos', methods=['GET'])
        def get_utxos():
            utxos = self.cli.list_unspent()
            if _truthy(request.args.get('classify', '')):
                records = [self.classifier.annotate(u) for u in utxos]
            else:
                records = [u.to_dict() for u in utxos]
            return jsonify({'count': len(records), 'utxos': records})

        @self.app.route('/utxos/<address>', methods=['GET'])
        def get_address_utxos(address: str):
            utxos = [u for u in self.cli.list_unspent() if u.address == address]
            records = [self.classifier.annotate(u) for u in utxos]
            return jsonify({'count': len(records), 'utxos': records})

        @self.app.route('/tokens/utxos', methods=['GET'])
        def get_token_utxos():
            token_utxos = [u for u in self.cli.list_unspent() if is_token_dust(u)]
            return jsonify({
                'count': len(token_utxos),
                'utxos': [{
                    'txid': u.txid,
                    'vout': u.vout,
                    'amount': u.amount,
                    'address': u.address,
                    'utxo_id': u.utxo_id
                } for u in token_utxos]
            })

        @self.app.route('/transactions', methods=['GET'])
        def get_transactions():
            raw_count = request.args.get('count')
            if raw_count is None:
                count = config.DEFAULT_TRANSACTION_COUNT
            else:
                try:
                    count = int(raw_count)
                except ValueError:
                    raise ValidationError("'count' must be an integer", field='count')
            return jsonify(self.cli.list_transactions(count))

        @self.app.route('/transaction/<txid>', methods=['GET'])
        def get_transaction(txid: str):
            return jsonify(self.cli.get_decoded_transaction(txid))

        @self.app.route('/charm/<txid>/<int:vout>', methods=['GET'])
        def get_charm(txid: str, vout: int):
            output = self.cli.get_output(txid, vout)
            if output is None:
                return jsonify({'error': f"Output {vout} not found in {txid}"}), 404
            return jsonify({
                'utxo': f"{txid}:{vout}",
                'output': output,
                'note': 'Full charm parsing requires integration with Charms SDK'
            })

        # --- Scripts ---

        @self.app.route('/scripts', methods=['GET'])
        def list_scripts():
            return jsonify({'scripts': SCRIPT_CATALOG})

        @self.app.route('/scripts/active', methods=['GET'])
        def list_active_scripts():
            runs = self.streamer.active_runs()
            return jsonify({'count': len(runs), 'runs': runs})

        @self.app.route('/scripts/check-balance', methods=['POST'])
        def run_check_balance():
            return self._run_script(catalog.CHECK_BALANCE)

        @self.app.route('/scripts/create-nft', methods=['POST'])
        def run_create_nft():
            return self._run_script(catalog.CREATE_NFT)

        @self.app.route('/scripts/mint-tokens', methods=['POST'])
        def run_mint_tokens():
            return self._run_script(catalog.MINT_TOKENS)

        @self.app.route('/scripts/transfer-tokens', methods=['POST'])
        def run_transfer_tokens():
            return self._run_script(catalog.TRANSFER_TOKENS)

        @self.app.route('/scripts/send-btc', methods=['POST'])
        def run_send_btc():
            body = self._body()
            self._require(body, 'address', 'amount', message='Address and amount are required')
            args = send_btc_args(body['address'], body['amount'], body.get('feeRate'),
                                 default_fee_rate=config.DEFAULT_FEE_RATE)
            result = self.streamer.run_with_input(
                catalog.SEND_BTC, args, config.SEND_BTC_CONFIRMATION,
                recipient=self._recipient(body)
            )
            return jsonify(result.to_dict())

        @self.app.route('/scripts/spell', methods=['POST'])
        def run_spell():
            body = self._body()
            self._require(body, 'txid', message='Transaction ID is required')
            args = spell_args(body['txid'], _truthy(body.get('detailed')), _truthy(body.get('raw')))
            return self._run_script(catalog.SPELL, args)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def check_bitcoin_core(self) -> bool:
        """Log whether Bitcoin Core answers; never raises"""
        try:
            info = self.cli.get_blockchain_info()
            logger.info(f"✓ Connected to Bitcoin Core ({info.chain}, {info.blocks} blocks)")
            return True
        except DashboardError as e:
            logger.error(f"✗ Cannot connect to Bitcoin Core. Make sure it's running. ({e})")
            return False

    def start(self, debug: bool = False):
        """Start the live stream server, then serve the REST API (blocking)"""
        self.live_server.start()
        self.check_bitcoin_core()
        try:
            logger.info(f"🌐 Starting Flask API server on port {self.api_port}...")
            self.app.run(
                host=config.API_HOST,
                port=self.api_port,
                debug=debug,
                threaded=True,
                use_reloader=False
            )
        except OSError as e:
            if "Address already in use" in str(e):
                logger.error(f"❌ Port {self.api_port} is already in use!")
                logger.error(f"   Use a different port: --api-port {self.api_port + 1}")
            else:
                logger.error(f"❌ Network error starting server: {e}")
            raise
        finally:
            self._cleanup_on_shutdown()

    def _cleanup_on_shutdown(self):
        """Clean up resources on server shutdown"""
        logger.info("🧹 Shutting down NFTCharm Dashboard Server")
        with self._stats_lock:
            logger.info(f"   API Calls: {self._stats['api_calls']}")
        active = self.streamer.active_runs()
        if active:
            logger.warning(f"   Scripts still running: {', '.join(active)}")
        self.live_server.stop()


def _log_uncaught_thread_exception(args):
    logger.error(f"Uncaught exception in thread {args.thread.name if args.thread else '?'}",
                 exc_info=(args.exc_type, args.exc_value, args.exc_traceback))


def main():
    """Main entry point with argument parsing"""
    parser = argparse.ArgumentParser(description='NFTCharm Dashboard Server')
    parser.add_argument('--api-port', type=int, default=config.API_PORT, help='REST API port')
    parser.add_argument('--ws-port', type=int, default=config.WS_PORT, help='Live stream (WebSocket) port')
    parser.add_argument('--network', default=config.NETWORK, choices=sorted(config.NETWORK_FLAGS),
                        help='Bitcoin network passed to bitcoin-cli')
    parser.add_argument('--wallet', default=config.WALLET_NAME, help='Wallet name for -rpcwallet')
    parser.add_argument('--bitcoin-cli', default=config.BITCOIN_CLI, help='Path to bitcoin-cli')
    parser.add_argument('--scripts-dir', default=str(config.SCRIPTS_DIR), help='Directory holding the wallet scripts')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    parser.add_argument('--quiet', action='store_true', help='Skip startup banner')

    args = parser.parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    threading.excepthook = _log_uncaught_thread_exception

    if not args.quiet:
        print("🌟 NFTCharm Dashboard Starting...")
        print(f"   🌐 Open GUI: http://localhost:{args.api_port}")
        print(f"   📡 Live stream: ws://localhost:{args.ws_port}")
        print(f"   ₿  Network: {args.network}  Wallet: {args.wallet}")

    channel = BroadcastChannel()
    server = DashboardServer(
        api_port=args.api_port,
        ws_port=args.ws_port,
        cli=BitcoinCli(cli_path=args.bitcoin_cli, network=args.network, wallet=args.wallet),
        streamer=ProcessStreamer(scripts_dir=args.scripts_dir, channel=channel),
        channel=channel,
        network=args.network
    )

    try:
        server.start(debug=args.debug)
    except KeyboardInterrupt:
        logger.info("🛑 Shutdown requested by user")
    except OSError as e:
        logger.error(f"🚨 Startup failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

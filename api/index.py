# api/index.py - Main Vercel serverless function
from flask import Flask, request, jsonify
from flask_cors import CORS
import asyncio
import logging
from datetime import datetime

from token_pnl.config import configure_logging, get_settings
from token_pnl.errors import InvalidAddressError, PnLTimeoutError
from token_pnl.pnl import compute_pnl_with_timeout

configure_logging()
logger = logging.getLogger("token-pnl-api")

app = Flask(__name__)
CORS(app)


def _read_params():
    if request.method == 'POST':
        data = request.get_json(silent=True) or {}
    else:
        data = request.args
    return (data.get('wallet') or '').strip(), (data.get('contract') or data.get('mint') or '').strip()


@app.route('/api/pnl', methods=['GET', 'POST'])
def get_pnl():
    """
    API endpoint to compute a wallet's PnL for one token
    """
    wallet, contract = _read_params()
    if not wallet or not contract:
        return jsonify({'error': 'wallet and contract are required'}), 400

    include_legs = request.args.get('legs', '').lower() in ('1', 'true', 'yes')

    try:
        report = asyncio.run(compute_pnl_with_timeout(wallet, contract))
    except InvalidAddressError as e:
        return jsonify({'error': str(e)}), 400
    except PnLTimeoutError as e:
        logger.error(f"PnL timed out for {wallet}/{contract}: {e}")
        return jsonify({'error': 'Could not compute PnL: timed out'}), 504
    except Exception:
        logger.exception(f"PnL failed for {wallet}/{contract}")
        return jsonify({'error': 'Could not compute PnL for this wallet/token'}), 502

    return jsonify(report.to_dict(include_legs=include_legs))


@app.route('/api/health', methods=['GET'])
def health_check():
    """
    Health check endpoint
    """
    return jsonify({
        'status': 'healthy',
        'timestamp': datetime.now().isoformat(),
        'helius_api_configured': bool(get_settings().helius_api_key),
    })


# For Vercel deployment
def handler(request):
    return app(request.environ, request.start_response)

if __name__ == '__main__':
    app.run(debug=True)

# Trade Journal statistics service
# JSON in, JSON out. Storage and auth live elsewhere; callers post their ledger.

from flask import Flask, request, jsonify, send_file
from flask_limiter.util import get_remote_address
from flask_limiter import Limiter
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge
import math
import os
from datetime import datetime
import configparser

import logging
from logging.handlers import RotatingFileHandler

from tradejournal.records import ValidationError, load_records, parse_date
from tradejournal.stats import compute_statistics, best_performing
from tradejournal.analytics import (
    TIME_RANGES, filter_by_range, trade_performance, performance_by_instrument, mood_performance,
)
from tradejournal.spreadsheet import SpreadsheetError, read_records, export_statistics

CONFIG_PATH = os.environ.get('TRADEJOURNAL_CONFIG', os.path.join(os.path.dirname(os.path.abspath(__file__)), 'config.ini'))

config = configparser.ConfigParser()
config.read(CONFIG_PATH)

app = Flask(__name__)

handler = RotatingFileHandler(
    config.get('logging', 'file', fallback='app.log'),
    maxBytes=config.getint('logging', 'max_bytes', fallback=10000000),
    backupCount=config.getint('logging', 'backup_count', fallback=5),
)
handler.setLevel(config.get('logging', 'level', fallback='INFO').upper())
handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'))
app.logger.addHandler(handler)
app.logger.setLevel(config.get('logging', 'level', fallback='INFO').upper())

# library modules log under "tradejournal"
logging.getLogger('tradejournal').addHandler(handler)
logging.getLogger('tradejournal').setLevel(config.get('logging', 'level', fallback='INFO').upper())

app.config['MAX_CONTENT_LENGTH'] = config.getint('flask', 'max_upload_mb', fallback=16) * 1024 * 1024
app.config['RATELIMIT_ENABLED'] = config.getboolean('limits', 'enabled', fallback=True)

DEFAULT_INITIAL_BALANCE = config.getfloat('account', 'initial_balance', fallback=0.0)

limiter = Limiter(
    get_remote_address,
    app=app,
    storage_uri=config.get('limits', 'storage_uri', fallback='memory://'),
    default_limits=[lim.strip() for lim in config.get('limits', 'default', fallback='200 per day, 50 per hour').split(',') if lim.strip()],
)


@app.errorhandler(ValidationError)
@app.errorhandler(SpreadsheetError)
def handle_bad_input(e):
    app.logger.warning(f"Rejected request to {request.path}: {e}")
    return jsonify({'success': False, 'message': str(e)}), 400


@app.errorhandler(RequestEntityTooLarge)
def handle_too_large(e):
    return jsonify({'success': False, 'message': 'Upload too large.'}), 413


@app.errorhandler(429)
def handle_rate_limited(e):
    return jsonify({'success': False, 'message': f'Rate limit exceeded: {e.description}'}), 429


@app.errorhandler(Exception)
def handle_unexpected(e):
    if isinstance(e, HTTPException):
        return jsonify({'success': False, 'message': e.description}), e.code
    app.logger.exception(f"Unhandled error on {request.path}")
    return jsonify({'success': False, 'message': 'Internal error.'}), 500


def parse_balance(value):
    if value is None or value == '':
        return DEFAULT_INITIAL_BALANCE
    try:
        balance = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"initial_balance must be numeric, got {value!r}", field='initial_balance') from None
    if not math.isfinite(balance) or balance < 0:
        raise ValidationError("initial_balance must be a finite, non-negative number", field='initial_balance')
    return balance


def parse_now(value):
    if not value:
        return datetime.now()
    now = parse_date(value)
    if now is None:
        raise ValidationError(f"now is not a valid date: {value!r}", field='now')
    return now


def ledger_from_json():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Expected a JSON object body.")
    rows = payload.get('records', [])
    if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
        raise ValidationError("records must be a list of objects", field='records')
    records = load_records(rows)
    return payload, records, parse_balance(payload.get('initial_balance')), parse_now(payload.get('now'))


@app.route('/health')
def health():
    return jsonify({'status': 'ok'})


@app.route('/statistics', methods=['POST'])
def statistics():
    _, records, balance, now = ledger_from_json()
    stats = compute_statistics(records, balance, now=now)
    app.logger.info(f"Statistics for {len(records)} records, equity {stats.total_equity:.2f}")
    return jsonify({'success': True, 'stats': stats.to_dict()})


@app.route('/analytics', methods=['POST'])
def analytics():
    payload, records, balance, now = ledger_from_json()
    period = payload.get('range', 'all')
    if period not in TIME_RANGES:
        raise ValidationError(f"range must be one of {', '.join(TIME_RANGES)}", field='range')

    selected = filter_by_range(records, period, now=now)
    stats = compute_statistics(selected, balance, now=now)
    best = best_performing(stats, limit=5)

    analytics_data = {
        'range': period,
        'stats': stats.to_dict(),
        'performance': trade_performance(selected).to_dict(),
        'by_instrument': performance_by_instrument(selected),
        'mood': mood_performance(selected),
        'best_symbols': [p.symbol for p in best],
    }
    return jsonify({'success': True, 'analytics': analytics_data})


@app.route('/import', methods=['POST'])
def import_trades():
    if 'import_file' not in request.files:
        raise SpreadsheetError('No file part')
    file = request.files['import_file']
    if file.filename == '':
        raise SpreadsheetError('No selected file')

    records = read_records(file, file.filename)
    balance = parse_balance(request.form.get('initial_balance'))
    stats = compute_statistics(records, balance, now=parse_now(request.form.get('now')))
    app.logger.info(f"Imported {len(records)} records from {file.filename}")
    return jsonify({'success': True, 'imported': len(records), 'stats': stats.to_dict()})


@app.route('/export', methods=['POST'])
def export_trades():
    _, records, balance, now = ledger_from_json()
    stats = compute_statistics(records, balance, now=now)
    output = export_statistics(stats, records)
    return send_file(output, download_name="trading_statistics.xlsx", as_attachment=True, mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')


if __name__ == '__main__':
    app.run(host='0.0.0.0', debug=config.getboolean('flask', 'debug', fallback=False))

import os
import tempfile

import pytest

# app.py reads its config at import time
_tmp = tempfile.mkdtemp(prefix="tradejournal-tests-")
_cfg = os.path.join(_tmp, "config.ini")
with open(_cfg, "w") as fh:
    fh.write(
        "[flask]\nmax_upload_mb = 1\n\n"
        "[account]\ninitial_balance = 1000\n\n"
        f"[logging]\nfile = {os.path.join(_tmp, 'app.log')}\nlevel = DEBUG\n\n"
        "[limits]\nenabled = false\n"
    )
os.environ["TRADEJOURNAL_CONFIG"] = _cfg


@pytest.fixture
def client():
    from app import app

    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c


@pytest.fixture
def ledger_rows():
    return [
        {"type": "trade", "date": "2024-01-05", "symbol": "AAPL", "pl": 100, "instrument": "Stocks", "mood": "HAPPY"},
        {"type": "trade", "date": "2024-01-20", "symbol": "EURUSD", "pl": -40, "instrument": "Forex", "mood": "ANXIOUS"},
        {"type": "trade", "date": "2024-01-21", "symbol": "GONE", "pl": 9999, "deleted": True},
        {"type": "withdrawal", "date": "2024-02-01", "price": 30, "pl": -30},
    ]

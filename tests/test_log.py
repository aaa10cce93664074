import io
import json
import logging

import pytest

from ledgerflow import log as lflog
from ledgerflow.types.core import TransactionId


@pytest.fixture
def restore_root():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        root.removeHandler(h)
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)


def _lines(stream):
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


def test_json_records_carry_scope_fields(restore_root):
    out = io.StringIO()
    lflog.configure(level="DEBUG", json=True, stream=out)
    txid = TransactionId.parse("0.0.1001@1700000000.000000001")

    with lflog.trace_scope("abc123"):
        with lflog.tx_scope(txid):
            logging.getLogger("ledgerflow.test").info("submitting", extra={"attempt": 2, "raw": b"\x01\x02"})
        logging.getLogger("ledgerflow.test").info("after")

    first, second = _lines(out)
    assert first["msg"] == "submitting"
    assert first["trace_id"] == "abc123"
    assert first["tx_id"] == str(txid)
    assert first["attempt"] == 2
    assert first["raw"] == "0102"
    assert second["trace_id"] == "abc123"
    assert "tx_id" not in second
    assert lflog.context() == {}


def test_text_format_lists_context(restore_root):
    out = io.StringIO()
    lflog.configure(level="INFO", json=False, stream=out)
    with lflog.tx_scope("0.0.2@1.000000001"):
        logging.getLogger("ledgerflow.test").warning("receipt pending")
    line = out.getvalue().strip()
    assert "| WARNING | ledgerflow.test |" in line
    assert "tx_id=0.0.2@1.000000001" in line
    assert line.endswith("| receipt pending")


def test_level_filters(restore_root):
    out = io.StringIO()
    lflog.configure(level="warning", json=True, stream=out)
    logging.getLogger("ledgerflow.test").info("hidden")
    logging.getLogger("ledgerflow.test").error("shown")
    assert [r["msg"] for r in _lines(out)] == ["shown"]


def test_bind_and_unbind():
    lflog.bind(network="memory", account="0.0.5")
    try:
        assert lflog.context() == {"network": "memory", "account": "0.0.5"}
        lflog.unbind("account")
        assert lflog.context() == {"network": "memory"}
    finally:
        lflog.clear_context()
    assert lflog.context() == {}


def test_exceptions_are_serialized(restore_root):
    out = io.StringIO()
    lflog.configure(level="INFO", json=True, stream=out)
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        logging.getLogger("ledgerflow.test").exception("failed")
    (rec,) = _lines(out)
    assert "RuntimeError: boom" in rec["err"]

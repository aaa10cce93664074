import json
import logging

import pytest
from typer.testing import CliRunner

from ledgerflow.cli.main import app
from ledgerflow.cli.main import main as cli_main
from ledgerflow.version import __version__

runner = CliRunner()

MEMORY = ["--network", "memory", "--log-level", "ERROR", "--text-logs"]


@pytest.fixture(autouse=True)
def isolated(clean_env, tmp_path):
    """Fresh environment per invocation; root logging restored afterwards."""
    clean_env.chdir(tmp_path)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        root.removeHandler(h)
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)


def invoke(*args):
    return runner.invoke(app, [*MEMORY, *args])


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.stdout.startswith(f"ledgerflow {__version__}")


def test_env_redacts_and_reports_network():
    result = invoke("env")
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["network"] == "memory"
    assert data["version"] == __version__
    assert data["operator_key"] is None


def test_unknown_network_is_a_usage_error():
    result = runner.invoke(app, ["--network", "nowhere", "env"])
    assert result.exit_code == 2


def test_create_accounts():
    result = invoke("create-accounts", "--count", "2", "--initial-balance", "5")
    assert result.exit_code == 0
    created = json.loads(result.stdout)
    assert len(created) == 2
    assert len({a["id"] for a in created}) == 2
    assert all(len(a["publicKey"]) == 64 for a in created)


def test_fund_unknown_account_exits_nonzero():
    result = invoke("fund", "0.0.999", "--amount", "5")
    assert result.exit_code == 1
    (receipt,) = json.loads(result.stdout)
    assert receipt["status"] == "INVALID_ACCOUNT_ID"


def test_balance_of_unknown_account_reports_error():
    result = invoke("balance", "0.0.999")
    assert result.exit_code == 1


def test_token_demo():
    result = invoke("token-demo")
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["whilePaused"]["status"] == "TOKEN_IS_PAUSED"
    assert data["afterUnpause"]["status"] == "SUCCESS"
    assert sorted(data["balances"].values()) == [2_425, 2_625, 30_000]


def test_allowance_demo():
    result = invoke("allowance-demo", "--limit", "50")
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["spend"]["status"] == "SUCCESS"
    assert data["overspend"] == "AMOUNT_EXCEEDS_ALLOWANCE"
    assert sorted(data["balances"].values()) == [951, 1_049]


def test_schedule_demo():
    result = invoke("schedule-demo")
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["states"] == ["CREATED", "CREATED", "EXECUTED"]
    assert data["carol"] == 120
    assert data["scheduledTransactionId"].endswith("?scheduled")


def test_topic_demo():
    result = invoke("topic-demo", "one", "two", "--wait", "1")
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["messages"] == [{"sequence": 1, "text": "one"}, {"sequence": 2, "text": "two"}]


def test_main_returns_exit_codes(capsys):
    assert cli_main(["version"]) == 0
    assert cli_main([*MEMORY, "balance", "0.0.999"]) == 1
    assert "error:" in capsys.readouterr().err

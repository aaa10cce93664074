import pytest

from ledgerflow.config import NETWORKS, LedgerFlowConfig
from ledgerflow.context import NetworkContext
from ledgerflow.errors import ConfigError
from ledgerflow.network import InMemoryLedger
from ledgerflow.types.core import AccountId
from ledgerflow.wallet.keys import PrivateKey


def test_defaults(clean_env):
    cfg = LedgerFlowConfig.from_env()
    assert cfg.network == "testnet"
    assert cfg.node_account_ids == NETWORKS["testnet"].node_account_ids
    assert cfg.operator_id is None and cfg.operator_key is None
    assert cfg.accounts_file == "accounts.json"


def test_from_env(clean_env):
    clean_env.setenv("LEDGERFLOW_NETWORK", "local")
    clean_env.setenv("LEDGERFLOW_NODE_ACCOUNT_IDS", "0.0.3, 0.0.4,")
    clean_env.setenv("LEDGERFLOW_RECEIPT_TIMEOUT", "12.5")
    clean_env.setenv("LEDGERFLOW_MAX_RETRIES", "7")
    clean_env.setenv("LEDGERFLOW_ACCOUNTS_FILE", "/tmp/x.json")
    cfg = LedgerFlowConfig.from_env()
    assert cfg.rpc_url == NETWORKS["local"].rpc_url
    assert cfg.node_account_ids == ("0.0.3", "0.0.4")
    assert cfg.receipt_timeout == 12.5
    assert cfg.max_retries == 7
    assert cfg.accounts_file == "/tmp/x.json"


def test_operator_falls_back_to_script_variables(clean_env, seed_key):
    key = seed_key(1).to_string_raw()
    clean_env.setenv("MY_ACCOUNT_ID", "0.0.1234")
    clean_env.setenv("MY_PRIVATE_KEY", key)
    cfg = LedgerFlowConfig.from_env()
    assert cfg.operator_id == "0.0.1234"
    assert cfg.operator_key == key

    clean_env.setenv("LEDGERFLOW_OPERATOR_ID", "0.0.99")
    clean_env.setenv("LEDGERFLOW_OPERATOR_KEY", key)
    assert LedgerFlowConfig.from_env().operator_id == "0.0.99"


@pytest.mark.parametrize("name, value", [
    ("LEDGERFLOW_MAX_FEE", "lots"),
    ("LEDGERFLOW_RPC_URL", "ftp://node"),
    ("LEDGERFLOW_WS_URL", "http://node/ws"),
    ("LEDGERFLOW_VALID_DURATION", "0"),
    ("LEDGERFLOW_NETWORK", "nowhere"),
])
def test_invalid_environment(clean_env, name, value):
    clean_env.setenv(name, value)
    with pytest.raises(ConfigError):
        LedgerFlowConfig.from_env()


def test_operator_id_without_key_is_rejected():
    with pytest.raises(ConfigError):
        LedgerFlowConfig(operator_id="0.0.2")


def test_unknown_network_with_explicit_url():
    cfg = LedgerFlowConfig(network="private", rpc_url="https://node.example/rpc")
    assert cfg.network == "private"


def test_with_overrides_switches_preset(clean_env):
    cfg = LedgerFlowConfig.with_overrides(None, network="local", log_level=None)
    assert cfg.rpc_url == NETWORKS["local"].rpc_url
    assert cfg.ws_url == NETWORKS["local"].ws_url
    assert cfg.log_level == "INFO"

    custom = LedgerFlowConfig.with_overrides(cfg, rpc_url="http://10.0.0.1/rpc")
    assert custom.rpc_url == "http://10.0.0.1/rpc"
    assert custom.network == "local"


def test_with_overrides_rejects_unknown_keys():
    with pytest.raises(ConfigError):
        LedgerFlowConfig.with_overrides(LedgerFlowConfig(), colour="blue")


def test_to_dict_redacts_operator_key(seed_key):
    cfg = LedgerFlowConfig(operator_id="0.0.2", operator_key=seed_key(2).to_string_raw())
    assert cfg.to_dict()["operator_key"] == "***"
    assert cfg.to_dict(redact=False)["operator_key"] == cfg.operator_key
    assert "operator_key" not in repr(cfg)


def test_context_from_memory_config_mints_operator(tmp_path):
    cfg = LedgerFlowConfig.for_network("memory", accounts_file=str(tmp_path / "accounts.json"))
    ctx = NetworkContext.from_config(cfg)
    assert isinstance(ctx.network, InMemoryLedger)
    assert ctx.operator_id is not None and ctx.operator_key is not None
    assert ctx.network.balance(ctx.operator_id) > 0
    # simulated accounts are never written to disk
    assert ctx.registry.path is None


def test_context_from_config_uses_configured_operator(tmp_path, seed_key):
    key = seed_key(3)
    cfg = LedgerFlowConfig.for_network(
        "local",
        operator_id="0.0.1500",
        operator_key=key.to_string_raw(),
        accounts_file=str(tmp_path / "accounts.json"),
        node_account_ids=("0.0.3", "0.0.4"),
        max_retries=1,
    )
    ctx = NetworkContext.from_config(cfg, network=InMemoryLedger())
    assert ctx.operator_id == AccountId.parse("0.0.1500")
    assert ctx.operator_key == key
    assert ctx.node_account_ids == (AccountId.parse("0.0.3"), AccountId.parse("0.0.4"))
    assert ctx.max_retries == 1


def test_context_from_config_opens_file_registry(tmp_path):
    path = tmp_path / "accounts.json"
    cfg = LedgerFlowConfig.for_network("local", accounts_file=str(path))

    class Remote:
        def close(self):
            pass

    ctx = NetworkContext.from_config(cfg, network=Remote())
    assert ctx.registry.path == path
    assert ctx.operator_id is None


def test_operator_key_accepts_der_encoding(seed_key):
    key = seed_key(4)
    cfg = LedgerFlowConfig(operator_id="0.0.2", operator_key=key.to_string_der())
    assert PrivateKey.from_string(cfg.operator_key) == key

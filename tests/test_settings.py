import pytest

from solflow.config import load_settings
from solflow.domain.errors import ConfigurationError

PREFIX = "SOLFLOWTEST__"


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


def load(**kwargs):
    return load_settings(env_prefix=PREFIX, load_env_file=False, **kwargs)


def test_defaults(workdir):
    settings = load()

    assert settings.rpc.url == "http://127.0.0.1:8899"
    assert settings.rpc.commitment == "confirmed"
    assert settings.offline.airdrop_lamports == 1_000_000_000
    assert settings.offline.transfer_lamports == 10_000_000
    assert settings.offline.wait_seconds == 120
    assert settings.offline.confirm_timeout == 30
    assert settings.offline.confirm_interval == 1
    assert settings.bundle.transaction_count == 5
    assert settings.bundle.tip_lamports == 1_000
    assert (settings.bundle.poll_timeout, settings.bundle.poll_interval, settings.bundle.initial_delay) == (30, 3, 5)
    assert settings.bundle.simulate_only is True
    assert settings.bundle_endpoint == settings.rpc.url
    assert settings.payer_keypair_path.name == "sender.json"
    assert settings.loaded_files == ()


def test_toml_file_then_env_override(workdir, monkeypatch):
    (workdir / "solflow.toml").write_text(
        '[rpc]\nurl = "http://file:8899"\n\n[bundle]\nendpoint = "https://relay.example/api"\n'
    )
    monkeypatch.setenv(f"{PREFIX}RPC__URL", "http://env:8899")
    monkeypatch.setenv(f"{PREFIX}BUNDLE__TRANSACTION_COUNT", "3")
    monkeypatch.setenv(f"{PREFIX}BUNDLE__SIMULATE_ONLY", "false")

    settings = load()

    assert settings.loaded_files == ("solflow.toml",)
    assert settings.rpc.url == "http://env:8899"
    assert settings.bundle.transaction_count == 3
    assert settings.bundle.simulate_only is False
    assert settings.bundle_endpoint == "https://relay.example/api"
    (override,) = [o for o in settings.overrides if o.key == "rpc.url"]
    assert (override.source, override.old, override.new) == ("env", "http://file:8899", "http://env:8899")


def test_explicit_config_path(workdir):
    path = workdir / "other.toml"
    path.write_text('[offline]\nwait_seconds = 0\nkeys_dir = "k"\n')

    settings = load(config_path=path)

    assert settings.offline.wait_seconds == 0
    assert settings.offline.keys_dir == "k"


def test_missing_explicit_config_path(workdir):
    with pytest.raises(ConfigurationError):
        load(config_path=workdir / "nope.toml")


def test_unparseable_config(workdir):
    (workdir / "solflow.toml").write_text("[rpc\nurl=")

    with pytest.raises(ConfigurationError):
        load()


@pytest.mark.parametrize(
    "key, value",
    [
        ("BUNDLE__TRANSACTION_COUNT", "0"),
        ("BUNDLE__POLL_INTERVAL", "0"),
        ("OFFLINE__CONFIRM_TIMEOUT", "-1"),
        ("OFFLINE__WAIT_SECONDS", "-5"),
        ("RPC__COMMITMENT", "fastest"),
        ("RPC__URL", " "),
        ("LOGGING__LEVEL", "LOUD"),
        ("OFFLINE__TRANSFER_LAMPORTS", "lots"),
        ("BUNDLE__SIMULATE_ONLY", "no"),
        ("RPC__SKIP_PREFLIGHT", "1"),
    ],
)
def test_invalid_values_are_configuration_errors(workdir, monkeypatch, key, value):
    monkeypatch.setenv(f"{PREFIX}{key}", value)

    with pytest.raises(ConfigurationError):
        load()


def test_quoted_boolean_in_toml_is_rejected(workdir):
    (workdir / "solflow.toml").write_text('[bundle]\nsimulate_only = "false"\n')

    with pytest.raises(ConfigurationError, match="bundle.simulate_only"):
        load()

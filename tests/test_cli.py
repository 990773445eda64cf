import pytest

from solflow.cli import build_parser, main


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SOLFLOW__OFFLINE__KEYS_DIR", str(tmp_path / "keys"))
    return tmp_path


def test_parser_offline_run():
    args = build_parser().parse_args(["offline", "run", "--nonce", "--wait", "5"])

    assert args.command == "offline"
    assert args.stage == "run"
    assert args.nonce is True
    assert args.wait == 5.0


def test_parser_bundle():
    args = build_parser().parse_args(["bundle", "--count", "3", "--send"])

    assert (args.count, args.send) == (3, True)


def test_keys_init_writes_identities(workdir, capsys):
    assert main(["keys", "init"]) == 0

    assert (workdir / "keys" / "nonce_account.json").exists()
    assert "nonce_authority" in capsys.readouterr().out


def test_keys_init_refuses_to_overwrite(workdir, capsys):
    assert main(["keys", "init"]) == 0
    assert main(["keys", "init"]) == 1
    assert "FATAL" in capsys.readouterr().err
    assert main(["keys", "init", "--force"]) == 0


def test_offline_without_keys_fails_cleanly(workdir, capsys):
    assert main(["offline", "build"]) == 1
    assert "Keypair not found" in capsys.readouterr().err

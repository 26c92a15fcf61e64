# Copyright (c) 2024-2025 The CCTL developers
# Distributed under the MIT software license, see the accompanying
# file COPYING or https://www.opensource.org/licenses/mit-license.php .

import signal
import socket

import pytest

from cctl import cli


@pytest.fixture
def quiet_main(monkeypatch):
    monkeypatch.setattr(signal, "signal", lambda signum, handler: None)
    monkeypatch.setattr(cli, "configure_logging", lambda level_name=None: None)
    monkeypatch.delenv("NOTIFY_SOCKET", raising=False)


def test_parse_args():
    args = cli.parse_args(["-w", "/tmp/net", "-d", "a_hash:a.wasm",
                           "--deploy-contract", '{"hash_name": "b_hash", "path": "b.wasm"}',
                           "-c", "chainspec.toml", "--config-path", "config.toml"])
    assert args.working_dir == "/tmp/net"
    assert [(c.hash_name, c.path) for c in args.contracts] == [
        ("a_hash", "a.wasm"), ("b_hash", "b.wasm")]
    assert args.chainspec_path == "chainspec.toml"
    assert args.config_path == "config.toml"


def test_parse_args_defaults():
    args = cli.parse_args([])
    assert args.working_dir is None
    assert args.contracts == []


def test_parse_args_rejects_bad_contract(capsys):
    with pytest.raises(SystemExit):
        cli.parse_args(["-d", "missing-separator"])


def test_notify_ready(tmp_path, monkeypatch):
    address = str(tmp_path / "notify.sock")
    with socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM) as listener:
        listener.bind(address)
        monkeypatch.setenv("NOTIFY_SOCKET", address)
        assert cli.notify_ready()
        assert listener.recv(64) == b"READY=1"


def test_notify_ready_without_socket(monkeypatch, tmp_path):
    monkeypatch.delenv("NOTIFY_SOCKET", raising=False)
    assert not cli.notify_ready()
    monkeypatch.setenv("NOTIFY_SOCKET", str(tmp_path / "nobody-listens.sock"))
    assert not cli.notify_ready()


def test_main_runs_until_interrupted(fake_cctl, tmp_path, monkeypatch, quiet_main):
    fake_cctl.install_network()

    def interrupt():
        raise KeyboardInterrupt

    monkeypatch.setattr(signal, "pause", interrupt)
    assert cli.main(["-w", str(tmp_path)]) == 0
    assert fake_cctl.calls()[-1] == "cctl-infra-net-stop"


def test_main_reports_startup_failure(fake_cctl, tmp_path, quiet_main):
    fake_cctl.install_network()
    fake_cctl.script("cctl-infra-net-setup", "exit 1")
    assert cli.main(["-w", str(tmp_path)]) == 1

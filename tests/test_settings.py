"""
Tests for environment driven configuration.
"""

import os
import subprocess
import sys
from pathlib import Path

import pytest

from config.settings import DEFAULT_NODE_URLS, Settings, parse_node_urls, settings as loaded_settings
from utils.logger import logger_manager

PROJECT_ROOT = Path(__file__).resolve().parents[1]

# Imports the CLI with load_dotenv pointed at a given .env file
DOTENV_IMPORT = """
import functools, sys
import dotenv
dotenv.load_dotenv = functools.partial(dotenv.load_dotenv, dotenv_path=sys.argv[1])
import main
from config.settings import settings
from utils.logger import logger_manager
print(settings.log_dir)
print(logger_manager.log_dir)
"""

ENV_VARS = [
    "NODE_URLS", "PEER_HOST_TEMPLATE", "RPC_TIMEOUT_SECONDS", "PEER_SETTLE_SECONDS",
    "METRICS_HOST", "METRICS_PORT", "SCRAPE_TIMEOUT_SECONDS", "WATCH_INTERVAL_SECONDS",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_parse_node_urls_keeps_order():
    assert parse_node_urls(" http://b:8545, http://a:8545 ,,") == ["http://b:8545", "http://a:8545"]


def test_parse_node_urls_empty():
    assert parse_node_urls("") == []
    assert parse_node_urls(None) == []


def test_defaults(clean_env):
    settings = Settings()
    assert settings.network.node_urls == DEFAULT_NODE_URLS
    assert settings.network.peer_host_template == "geth-node{index}"
    assert settings.exporter.port == 9545
    assert settings.exporter.scrape_timeout_seconds == 10.0
    assert settings.exporter.watch_interval_seconds == 5.0
    assert settings.validate_configuration() == []


def test_environment_overrides(clean_env):
    clean_env.setenv("NODE_URLS", "http://geth-node1:8545,http://geth-node2:8545")
    clean_env.setenv("PEER_HOST_TEMPLATE", "peer-node-{index}")
    clean_env.setenv("RPC_TIMEOUT_SECONDS", "2.5")
    clean_env.setenv("METRICS_PORT", "9100")
    clean_env.setenv("WATCH_INTERVAL_SECONDS", "1")

    settings = Settings()

    assert settings.network.node_urls == ["http://geth-node1:8545", "http://geth-node2:8545"]
    assert settings.network.peer_host_template == "peer-node-{index}"
    assert settings.network.rpc_timeout_seconds == 2.5
    assert settings.exporter.port == 9100
    assert settings.exporter.watch_interval_seconds == 1.0


def test_blank_node_urls_fall_back_to_defaults(clean_env):
    clean_env.setenv("NODE_URLS", " , ")
    assert Settings().network.node_urls == DEFAULT_NODE_URLS


def test_invalid_number_names_the_variable(clean_env):
    clean_env.setenv("METRICS_PORT", "ninety")
    with pytest.raises(ValueError, match="METRICS_PORT"):
        Settings()


def test_validation_errors(clean_env):
    settings = Settings()
    settings.network.peer_host_template = "geth-node"
    settings.exporter.port = 70000
    settings.network.rpc_timeout_seconds = 0

    errors = settings.validate_configuration()

    assert len(errors) == 3
    assert any("{index}" in error for error in errors)


def test_logger_writes_to_configured_log_dir():
    assert logger_manager.log_dir == loaded_settings.log_dir == os.environ["LOG_DIR"]


def test_log_dir_from_dotenv_file(tmp_path):
    log_dir = tmp_path / "dotenv_logs"
    env_file = tmp_path / ".env"
    env_file.write_text(f"LOG_DIR={log_dir}\n")

    env = dict(os.environ)
    env.pop("LOG_DIR", None)
    env["PYTHONPATH"] = str(PROJECT_ROOT)

    result = subprocess.run(
        [sys.executable, "-c", DOTENV_IMPORT, str(env_file)],
        cwd=tmp_path,
        env=env,
        capture_output=True,
        text=True,
        timeout=60
    )

    assert result.returncode == 0, result.stderr
    assert result.stdout.splitlines() == [str(log_dir), str(log_dir)]
    assert (log_dir / "eth_peer_mesh.log").exists()

# tests/test_config.py
"""Tests for environment-driven configuration."""
import os
from pathlib import Path

import pytest

from dnsagent.utils.config import ConfigValidationError, load_config, load_dotenv


BASE_ENV = {"NODE_ID": "12", "CLICKHOUSE_HOST": "ch.local"}


def test_defaults():
	cfg = load_config(dict(BASE_ENV))

	assert cfg.node_id == 12
	assert cfg.node_name == "node-12"
	assert cfg.log_file == Path("/var/log/smartdns/audit.log")
	assert cfg.batch_size == 1000
	assert cfg.flush_interval == 2.0
	assert cfg.clickhouse.host == "ch.local"
	assert cfg.clickhouse.port == 8123
	assert cfg.clickhouse.database == "smartdns_logs"
	assert cfg.clickhouse.username == "default"
	assert cfg.clickhouse.password == ""
	assert cfg.state_dir == Path("/var/lib/smartdns-agent")
	assert cfg.log_max_days == 7
	assert cfg.log_enable_file is True
	assert cfg.api_port == 8888
	assert cfg.autostart is True
	assert cfg.log_level == "INFO"


def test_overrides():
	env = dict(
		BASE_ENV,
		NODE_NAME="edge-1",
		BATCH_SIZE="50",
		FLUSH_INTERVAL_SEC="5",
		CLICKHOUSE_PORT="9123",
		CLICKHOUSE_PASSWORD="pw",
		AGENT_AUTOSTART="false",
		AGENT_LOG_ENABLE_FILE="0",
		LOG_LEVEL="debug",
	)
	cfg = load_config(env)

	assert cfg.node_name == "edge-1"
	assert cfg.batch_size == 50
	assert cfg.flush_interval == 5.0
	assert cfg.clickhouse.url == "http://ch.local:9123"
	assert cfg.clickhouse.password == "pw"
	assert cfg.autostart is False
	assert cfg.log_enable_file is False
	assert cfg.log_level == "DEBUG"


def test_invalid_integers_fall_back(caplog):
	cfg = load_config(dict(BASE_ENV, BATCH_SIZE="lots", FLUSH_INTERVAL_SEC="0"))

	assert cfg.batch_size == 1000
	assert cfg.flush_interval == 2.0
	assert "BATCH_SIZE" in caplog.text


@pytest.mark.parametrize("node_id", ["", "abc", "-1", str(2**32)])
def test_invalid_node_id_is_fatal(node_id):
	with pytest.raises(ConfigValidationError):
		load_config({"NODE_ID": node_id, "CLICKHOUSE_HOST": "ch.local"})


def test_missing_clickhouse_host_is_fatal():
	with pytest.raises(ConfigValidationError):
		load_config({"NODE_ID": "1"})


def test_password_not_in_public_view_or_repr():
	cfg = load_config(dict(BASE_ENV, CLICKHOUSE_PASSWORD="hunter2"))

	assert "hunter2" not in repr(cfg)
	assert "hunter2" not in str(cfg.public_view())


def test_dotenv_does_not_override_environment(tmp_path, monkeypatch):
	env_file = tmp_path / "agent.env"
	env_file.write_text(
		"# agent settings\n"
		"export NODE_ID=5\n"
		"CLICKHOUSE_HOST='from-file'  \n"
		"NODE_NAME=edge # inline comment\n"
	)
	fake_environ = {"CLICKHOUSE_HOST": "from-env"}
	monkeypatch.setattr(os, "environ", fake_environ)

	load_dotenv(env_file)
	cfg = load_config(fake_environ)

	assert cfg.node_id == 5
	assert cfg.clickhouse.host == "from-env"
	assert cfg.node_name == "edge"

#!/usr/bin/env python3
#
# dnsagent/utils/config.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Configuration loading and agent-level defaults."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

_log = logging.getLogger(__name__)

__all__ = [
	"AgentConfig",
	"ClickHouseConfig",
	"ConfigValidationError",
	"load_config",
	"load_dotenv",
]


class ConfigValidationError(Exception):
	"""Raised when critical configuration is missing or invalid."""


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------
DEFAULT_LOG_FILE = "/var/log/smartdns/audit.log"
DEFAULT_STATE_DIR = "/var/lib/smartdns-agent"
DEFAULT_AGENT_LOG_DIR = "/var/log/smartdns-agent"
DEFAULT_BATCH_SIZE = 1000
DEFAULT_FLUSH_INTERVAL = 2.0  # Seconds
DEFAULT_CLICKHOUSE_PORT = 8123  # HTTP interface
DEFAULT_CLICKHOUSE_DB = "smartdns_logs"
DEFAULT_API_PORT = 8888
_MAX_NODE_ID = 2**32 - 1


@dataclass(frozen=True)
class ClickHouseConfig:
	"""Connection settings for the ClickHouse HTTP interface."""
	host: str
	port: int = DEFAULT_CLICKHOUSE_PORT
	database: str = DEFAULT_CLICKHOUSE_DB
	username: str = "default"
	password: str = field(default="", repr=False)
	timeout: float = 10.0

	@property
	def url(self) -> str:
		return f"http://{self.host}:{self.port}"


@dataclass(frozen=True)
class AgentConfig:
	"""Resolved runtime configuration derived from env and defaults."""
	node_id: int
	clickhouse: ClickHouseConfig
	node_name: str = ""
	log_file: Path = Path(DEFAULT_LOG_FILE)
	batch_size: int = DEFAULT_BATCH_SIZE
	flush_interval: float = DEFAULT_FLUSH_INTERVAL
	state_dir: Path = Path(DEFAULT_STATE_DIR)
	log_dir: Path = Path(DEFAULT_AGENT_LOG_DIR)
	log_max_days: int = 7
	log_enable_file: bool = True
	api_port: int = DEFAULT_API_PORT
	autostart: bool = True
	log_level: str = "INFO"

	def public_view(self) -> dict:
		"""Config as exposed over the control API (no credentials)."""
		return {
			"node_id": self.node_id,
			"node_name": self.node_name,
			"log_file": str(self.log_file),
			"batch_size": self.batch_size,
			"flush_interval": self.flush_interval,
			"state_dir": str(self.state_dir),
			"clickhouse": {
				"host": self.clickhouse.host,
				"port": self.clickhouse.port,
				"database": self.clickhouse.database,
				"user": self.clickhouse.username,
			},
			"log_config": {
				"log_dir": str(self.log_dir),
				"max_days": self.log_max_days,
				"enable_file": self.log_enable_file,
			},
		}


def _parse_value(raw: str) -> str:
	"""Extract value, respecting quotes and stripping inline comments."""
	raw = raw.strip()
	if raw and raw[0] in ('"', "'"):
		quote = raw[0]
		end = raw.find(quote, 1)
		if end != -1:
			return raw[1:end]
	if " #" in raw:
		raw = raw.split(" #", 1)[0]
	return raw.strip()


def load_dotenv(dotenv_path: Path | None = None) -> None:
	"""Load simple KEY=VALUE pairs from agent.env.

	Behavior:
	- Ignores blank lines and comments (# ...)
	- Handles `export KEY=VALUE` syntax
	- Does not override already-set environment variables
	"""
	if dotenv_path is None:
		dotenv_path = Path(os.getenv("AGENT_ENV_FILE", str(Path(__file__).resolve().parents[2] / "agent.env")))
	if not dotenv_path.exists():
		return
	for raw_line in dotenv_path.read_text(encoding="utf-8").splitlines():
		line = raw_line.strip()
		if not line or line.startswith("#"):
			continue
		if "=" not in line:
			continue
		key, value = line.split("=", 1)
		key = key.strip()
		if key.startswith("export "):
			key = key[7:].strip()
		if not key:
			continue
		os.environ.setdefault(key, _parse_value(value))


def _get_str(env: Mapping[str, str], key: str, default: str) -> str:
	value = env.get(key, "").strip()
	return value or default


def _get_int(env: Mapping[str, str], key: str, default: int, *, minimum: int = 0) -> int:
	raw = env.get(key, "").strip()
	if not raw:
		return default
	try:
		value = int(raw)
	except ValueError:
		_log.warning("CONFIG invalid integer for %s: %r, using default %d", key, raw, default)
		return default
	if value < minimum:
		_log.warning("CONFIG %s=%d below minimum %d, using default %d", key, value, minimum, default)
		return default
	return value


def _get_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
	raw = env.get(key, "").strip().lower()
	if not raw:
		return default
	if raw in ("1", "true", "yes", "on"):
		return True
	if raw in ("0", "false", "no", "off"):
		return False
	_log.warning("CONFIG invalid boolean for %s: %r, using default %s", key, raw, default)
	return default


def load_config(env: Mapping[str, str] | None = None) -> AgentConfig:
	"""Load configuration from environment variables (optionally via agent.env).

	Raises:
		ConfigValidationError: NODE_ID or CLICKHOUSE_HOST missing/invalid.
	"""
	if env is None:
		load_dotenv()
		env = os.environ

	node_id_raw = env.get("NODE_ID", "").strip()
	if not node_id_raw:
		raise ConfigValidationError("NODE_ID is not set. Refusing to start without a node identity.")
	try:
		node_id = int(node_id_raw)
	except ValueError as exc:
		raise ConfigValidationError(f"NODE_ID must be numeric, got {node_id_raw!r}") from exc
	if not 0 <= node_id <= _MAX_NODE_ID:
		raise ConfigValidationError(f"NODE_ID out of range: {node_id}")

	ch_host = env.get("CLICKHOUSE_HOST", "").strip()
	if not ch_host:
		raise ConfigValidationError("CLICKHOUSE_HOST is not set. Refusing to start without a sink.")

	# Validate log level
	allowed_levels = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
	log_level = _get_str(env, "LOG_LEVEL", "INFO").upper()
	if log_level not in allowed_levels:
		log_level = "INFO"

	clickhouse = ClickHouseConfig(
		host=ch_host,
		port=_get_int(env, "CLICKHOUSE_PORT", DEFAULT_CLICKHOUSE_PORT, minimum=1),
		database=_get_str(env, "CLICKHOUSE_DB", DEFAULT_CLICKHOUSE_DB),
		username=_get_str(env, "CLICKHOUSE_USER", "default"),
		password=env.get("CLICKHOUSE_PASSWORD", ""),
	)

	return AgentConfig(
		node_id=node_id,
		node_name=_get_str(env, "NODE_NAME", f"node-{node_id}"),
		log_file=Path(_get_str(env, "LOG_FILE", DEFAULT_LOG_FILE)),
		batch_size=_get_int(env, "BATCH_SIZE", DEFAULT_BATCH_SIZE, minimum=1),
		flush_interval=float(_get_int(env, "FLUSH_INTERVAL_SEC", int(DEFAULT_FLUSH_INTERVAL), minimum=1)),
		clickhouse=clickhouse,
		state_dir=Path(_get_str(env, "AGENT_STATE_DIR", DEFAULT_STATE_DIR)),
		log_dir=Path(_get_str(env, "AGENT_LOG_DIR", DEFAULT_AGENT_LOG_DIR)),
		log_max_days=_get_int(env, "AGENT_LOG_MAX_DAYS", 7, minimum=1),
		log_enable_file=_get_bool(env, "AGENT_LOG_ENABLE_FILE", True),
		api_port=_get_int(env, "AGENT_API_PORT", DEFAULT_API_PORT, minimum=1),
		autostart=_get_bool(env, "AGENT_AUTOSTART", True),
		log_level=log_level,
	)

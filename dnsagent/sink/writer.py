#!/usr/bin/env python3
#
# dnsagent/sink/writer.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""ClickHouse batch writer for parsed DNS query records."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx

from ..ingest.parser import INSERT_COLUMNS, QueryLogRecord
from ..utils.config import ClickHouseConfig
from .client import ClickHouseClient, ClickHouseError
from .migration import MIGRATIONS, Migration, run_pending_migrations
from .schema import INDEXES, QUERY_LOG_TABLE, VIEWS, add_index_sql

_log = logging.getLogger(__name__)

__all__ = ["ClickHouseWriter"]


class ClickHouseWriter:
	"""Owns the sink connection for one agent.

	Lifecycle::

		writer = ClickHouseWriter(cfg.clickhouse)
		writer.open()          # bootstrap + migrations (raises on failure)
		writer.insert_batch(records)
		writer.close()

	insert_batch() never retries: errors go straight back to the caller.
	"""

	def __init__(
		self,
		cfg: ClickHouseConfig,
		*,
		migrations: Sequence[Migration] = MIGRATIONS,
		transport: httpx.BaseTransport | None = None,
	):
		self.cfg = cfg
		self.migrations = migrations
		self._transport = transport
		self._client: ClickHouseClient | None = None

	@property
	def is_open(self) -> bool:
		return self._client is not None

	def open(self) -> None:
		"""Bootstrap the database and bring the schema up to date.

		Raises:
			ClickHouseError / httpx.HTTPError: Server unreachable or bootstrap failed
			MigrationError: A migration failed (fatal)
		"""
		if self._client is not None:
			return
		_log.info("CLICKHOUSE connecting to %s", self.cfg.url)

		# Step 1: server-level connection (target database may not exist yet)
		with ClickHouseClient(self.cfg, transport=self._transport) as bootstrap:
			bootstrap.ping()
			bootstrap.execute("SELECT 1")
			bootstrap.execute(f"CREATE DATABASE IF NOT EXISTS `{self.cfg.database}`")
		_log.info("CLICKHOUSE connection ok, database %s ready", self.cfg.database)

		# Step 2: reconnect bound to the target database
		client = ClickHouseClient(self.cfg, database=self.cfg.database, transport=self._transport)
		try:
			run_pending_migrations(client, self.migrations)
		except Exception:
			client.close()
			raise
		self._client = client

		self._ensure_indexes()
		self._ensure_views()
		_log.info("CLICKHOUSE initialised (database=%s)", self.cfg.database)

	def _require_client(self) -> ClickHouseClient:
		if self._client is None:
			raise RuntimeError("ClickHouseWriter is not open")
		return self._client

	def _ensure_indexes(self) -> int:
		"""Create data-skipping indexes (best-effort). Returns the number created."""
		client = self._require_client()
		created = 0
		for name, expression, index_type in INDEXES:
			try:
				client.execute(add_index_sql(name, expression, index_type))
				created += 1
			except (ClickHouseError, httpx.HTTPError) as exc:
				_log.warning("CLICKHOUSE index %s not created (ignored): %s", name, exc)
		return created

	def _ensure_views(self) -> int:
		"""Create aggregation views (best-effort). Returns the number created."""
		client = self._require_client()
		created = 0
		for name, ddl in VIEWS.items():
			try:
				client.execute(ddl)
				created += 1
				_log.debug("CLICKHOUSE view %s ready", name)
			except (ClickHouseError, httpx.HTTPError) as exc:
				_log.warning("CLICKHOUSE view %s not created (ignored): %s", name, exc)
		return created

	def insert_batch(self, records: Sequence[QueryLogRecord]) -> int:
		"""Insert *records* as a single batch. Returns the number of rows sent."""
		if not records:
			return 0
		client = self._require_client()
		client.insert_rows(QUERY_LOG_TABLE, INSERT_COLUMNS, (r.to_row() for r in records))
		return len(records)

	def ping(self) -> bool:
		"""Health probe: True if the server answers."""
		client = self._client
		if client is None:
			return False
		try:
			client.ping()
			return True
		except (ClickHouseError, httpx.HTTPError) as exc:
			_log.debug("CLICKHOUSE ping failed: %s", exc)
			return False

	def close(self) -> None:
		if self._client is not None:
			self._client.close()
			self._client = None
			_log.info("CLICKHOUSE connection closed")

#!/usr/bin/env python3
#
# dnsagent/sink/client.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Minimal synchronous client for the ClickHouse HTTP interface."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from typing import Any

import httpx

from ..utils.config import ClickHouseConfig

_log = logging.getLogger(__name__)

__all__ = ["ClickHouseClient", "ClickHouseError"]


class ClickHouseError(Exception):
	"""ClickHouse answered a statement with a non-success status."""

	def __init__(self, status_code: int, message: str, statement: str = ""):
		self.status_code = status_code
		self.message = message.strip()
		self.statement = statement
		super().__init__(f"ClickHouse HTTP {status_code}: {self.message}")


def _jsonl_blob(rows: Iterable[dict[str, Any]]) -> bytes:
	return "".join(json.dumps(row, ensure_ascii=False) + "\n" for row in rows).encode("utf-8")


class ClickHouseClient:
	"""One long-lived HTTP session against a ClickHouse server.

	When *database* is None statements run against the server default
	database (used for bootstrap before the target database exists).
	"""

	def __init__(
		self,
		cfg: ClickHouseConfig,
		*,
		database: str | None = None,
		transport: httpx.BaseTransport | None = None,
	):
		self.cfg = cfg
		self.database = database
		headers = {"X-ClickHouse-User": cfg.username}
		if cfg.password:
			headers["X-ClickHouse-Key"] = cfg.password
		if database:
			headers["X-ClickHouse-Database"] = database
		self._client = httpx.Client(
			base_url=cfg.url,
			headers=headers,
			timeout=cfg.timeout,
			transport=transport,
		)

	def ping(self) -> None:
		"""Check the server answers /ping.

		Raises:
			ClickHouseError: Unexpected status
			httpx.HTTPError: Transport failure
		"""
		resp = self._client.get("/ping")
		if resp.status_code != 200:
			raise ClickHouseError(resp.status_code, resp.text, "/ping")

	def execute(self, sql: str) -> str:
		"""Run one statement and return the raw response body."""
		resp = self._client.post("/", content=sql.encode("utf-8"))
		if resp.status_code != 200:
			raise ClickHouseError(resp.status_code, resp.text, sql)
		return resp.text

	def query_rows(self, sql: str) -> list[dict[str, Any]]:
		"""Run a SELECT and decode its JSONEachRow output."""
		body = self.execute(f"{sql.rstrip().rstrip(';')} FORMAT JSONEachRow")
		return [json.loads(line) for line in body.splitlines() if line.strip()]

	def insert_rows(self, table: str, columns: Sequence[str], rows: Iterable[dict[str, Any]]) -> None:
		"""Insert *rows* in one request (a single ClickHouse insert block)."""
		column_list = ", ".join(f"`{c}`" for c in columns)
		statement = f"INSERT INTO {table} ({column_list}) FORMAT JSONEachRow"
		resp = self._client.post(
			"/",
			params={"query": statement},
			content=_jsonl_blob(rows),
			headers={"Content-Type": "application/x-ndjson"},
		)
		if resp.status_code != 200:
			raise ClickHouseError(resp.status_code, resp.text, statement)

	def close(self) -> None:
		self._client.close()

	def __enter__(self) -> "ClickHouseClient":
		return self

	def __exit__(self, *exc_info) -> None:
		self.close()

# tests/conftest.py
"""Shared fixtures: a fake ClickHouse HTTP server and a fake sink writer."""
import json
import threading
from pathlib import Path

import httpx
import pytest

from dnsagent.utils.config import AgentConfig, ClickHouseConfig


SAMPLE_LINE = (
	"[2025-11-21 05:33:18,910] 10.1.102.201 query v2ray.com, type 1, "
	"time 63ms, speed: 29.4ms, result 172.67.149.148"
)


def make_line(n: int, domain: str = "example.com") -> str:
	"""A valid audit line; *n* varies the client address and timing."""
	return (
		f"[2025-11-21 05:33:{n % 60:02d},{n % 1000:03d}] 10.0.0.{n % 250 + 1} query {domain}, "
		f"type 1, time {n}ms, speed: 1.5ms, result 1.2.3.4"
	)


class FakeClickHouse:
	"""Minimal stand-in for the ClickHouse HTTP interface.

	Remembers every statement and insert; statements containing any string in
	``fail_on`` answer HTTP 500.
	"""

	def __init__(self):
		self.statements: list[str] = []
		self.inserts: list[tuple[str, list[dict]]] = []
		self.fail_on: list[str] = []
		self.ping_status = 200
		self._lock = threading.Lock()

	def _fails(self, text: str) -> bool:
		return any(marker in text for marker in self.fail_on)

	def executed_versions(self) -> list[int]:
		return [
			row["version"]
			for query, rows in self.inserts
			if "schema_migrations" in query
			for row in rows
		]

	def handler(self, request: httpx.Request) -> httpx.Response:
		if request.url.path == "/ping":
			return httpx.Response(self.ping_status, text="Ok.\n")

		query = request.url.params.get("query")
		body = request.content.decode("utf-8")
		with self._lock:
			if query is not None:
				if self._fails(query):
					return httpx.Response(500, text="Code: 60. DB::Exception: insert refused")
				rows = [json.loads(line) for line in body.splitlines() if line.strip()]
				self.inserts.append((query, rows))
				return httpx.Response(200, text="")

			self.statements.append(body)
			if self._fails(body):
				return httpx.Response(500, text="Code: 62. DB::Exception: Syntax error")
			if body.startswith("SELECT version FROM schema_migrations"):
				lines = "".join(json.dumps({"version": v}) + "\n" for v in self.executed_versions())
				return httpx.Response(200, text=lines)
			if body.startswith("SELECT 1"):
				return httpx.Response(200, text="1\n")
			return httpx.Response(200, text="")

	def transport(self) -> httpx.MockTransport:
		return httpx.MockTransport(self.handler)


class FakeWriter:
	"""In-memory sink writer recording every batch."""

	def __init__(self, cfg=None, *, fail_open: Exception | None = None):
		self.cfg = cfg
		self.fail_open = fail_open
		self.batches: list[list] = []
		self.fail_inserts = False
		self.opened = False
		self.closed = False

	def open(self) -> None:
		if self.fail_open is not None:
			raise self.fail_open
		self.opened = True

	def insert_batch(self, records) -> int:
		if self.fail_inserts:
			raise RuntimeError("sink unavailable")
		self.batches.append(list(records))
		return len(records)

	def ping(self) -> bool:
		return self.opened and not self.closed

	def close(self) -> None:
		self.closed = True

	@property
	def records(self) -> list:
		return [r for batch in self.batches for r in batch]


@pytest.fixture
def fake_clickhouse():
	return FakeClickHouse()


@pytest.fixture
def ch_config():
	return ClickHouseConfig(host="clickhouse.test", password="s3cret")


@pytest.fixture
def agent_config(tmp_path: Path, ch_config):
	log_file = tmp_path / "audit.log"
	log_file.write_text("")
	return AgentConfig(
		node_id=7,
		clickhouse=ch_config,
		node_name="node-7",
		log_file=log_file,
		batch_size=10,
		flush_interval=1.0,
		state_dir=tmp_path / "state",
		log_dir=tmp_path / "logs",
		log_enable_file=False,
		autostart=False,
	)

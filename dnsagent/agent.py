#!/usr/bin/env python3
#
# dnsagent/agent.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Agent runtime: owns one sink writer and one collector task."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, Protocol

from .ingest.checkpoint import CheckpointStore
from .ingest.collector import LogCollector
from .ingest.parser import QueryLogRecord
from .sink.writer import ClickHouseWriter
from .utils.config import AgentConfig, ClickHouseConfig
from .utils.time import utcnow

_log = logging.getLogger(__name__)

__all__ = ["AgentRuntime", "SinkWriter"]


class SinkWriter(Protocol):
	def open(self) -> None: ...
	def insert_batch(self, records: list[QueryLogRecord]) -> int: ...
	def ping(self) -> bool: ...
	def close(self) -> None: ...


class AgentRuntime:
	"""Start/stop/restart the ingestion pipeline.

	start() opens the writer first (bootstrap + migrations); if that raises,
	nothing is read and the error propagates to the caller.
	"""

	def __init__(
		self,
		cfg: AgentConfig,
		*,
		writer_factory: Callable[[ClickHouseConfig], SinkWriter] = ClickHouseWriter,
	):
		self.cfg = cfg
		self.started_at: datetime = utcnow()
		self.collector_started_at: datetime | None = None
		self._writer_factory = writer_factory
		self._lock = asyncio.Lock()
		self.writer: SinkWriter | None = None
		self.collector: LogCollector | None = None
		self._task: asyncio.Task | None = None
		self._stop_event: asyncio.Event | None = None
		self.last_error: str | None = None

	@property
	def is_running(self) -> bool:
		return self._task is not None and not self._task.done()

	async def start(self) -> bool:
		"""Open the sink and launch the collector. False if already running.

		Raises:
			Exception: Sink bootstrap or migration failure
		"""
		async with self._lock:
			if self.is_running:
				return False

			writer = self._writer_factory(self.cfg.clickhouse)
			try:
				await asyncio.to_thread(writer.open)
			except Exception as exc:
				self.last_error = str(exc)
				_log.error("AGENT failed to open sink: %s", exc)
				await asyncio.to_thread(writer.close)
				raise

			store = await asyncio.to_thread(CheckpointStore.for_node, self.cfg.state_dir, self.cfg.node_id)
			collector = LogCollector(
				self.cfg.log_file,
				self.cfg.node_id,
				writer,
				store,
				batch_size=self.cfg.batch_size,
				flush_interval=self.cfg.flush_interval,
			)
			self._stop_event = asyncio.Event()
			self.writer = writer
			self.collector = collector
			self.collector_started_at = utcnow()
			self.last_error = None
			self._task = asyncio.create_task(self._run(collector, self._stop_event), name="dns-log-collector")
			_log.info("AGENT log collection started (node=%d, file=%s)", self.cfg.node_id, self.cfg.log_file)
			return True

	async def _run(self, collector: LogCollector, stop_event: asyncio.Event) -> None:
		try:
			await collector.run(stop_event)
		except asyncio.CancelledError:
			_log.info("AGENT collector cancelled")
			raise
		except Exception as exc:
			self.last_error = str(exc)
			_log.exception("AGENT collector crashed")

	async def stop(self) -> bool:
		"""Stop collection: final flush, checkpoint, close sink. False if idle."""
		async with self._lock:
			task = self._task
			if task is None:
				return False

			if self._stop_event is not None:
				self._stop_event.set()
			await asyncio.gather(task, return_exceptions=True)

			if self.writer is not None:
				await asyncio.to_thread(self.writer.close)
			self.writer = None
			self.collector = None
			self._task = None
			self._stop_event = None
			self.collector_started_at = None
			_log.info("AGENT log collection stopped")
			return True

	async def restart(self) -> bool:
		await self.stop()
		return await self.start()

	def stats(self) -> dict:
		"""Counters of the running collector (zeros when stopped)."""
		collector = self.collector if self.is_running else None
		if collector is None:
			return {
				"processed_lines": 0,
				"sent_records": 0,
				"error_count": 0,
				"last_sent_time": None,
				"send_rate": 0.0,
				"buffer_size": 0,
			}
		s = collector.stats()
		# Counters reset on every start
		started = self.collector_started_at or self.started_at
		uptime = (utcnow() - started).total_seconds()
		return {
			"processed_lines": s.processed_lines,
			"sent_records": s.sent_records,
			"error_count": s.error_count,
			"last_sent_time": s.last_sent_time,
			"send_rate": s.sent_records / uptime if uptime > 0 else 0.0,
			"buffer_size": collector.buffer_size(),
		}

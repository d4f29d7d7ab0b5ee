#!/usr/bin/env python3
#
# dnsagent/ingest/collector.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""SmartDNS log collector: tail, parse, batch, ship, checkpoint.

Architecture:
- Poll loop tails the audit log (blocking reads run via asyncio.to_thread)
- Parsed records accumulate in a BatchBuffer; a full buffer is flushed inline
- A flush timer ships whatever is buffered every flush_interval seconds
- A checkpoint timer persists the read offset when it changed
- Shutdown: stop timers -> final flush -> persist checkpoint

The read offset advances as soon as bytes are scanned, not when their records
are confirmed sent. A crash between scan and flush loses the buffered records
(at-most-once for that window); a failed insert drops its batch.
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Protocol

from ..utils.scheduler import Scheduler
from ..utils.time import utcnow
from .buffer import BatchBuffer
from .checkpoint import CheckpointStore, resolve_start_offset
from .parser import QueryLogRecord, parse_query_line

_log = logging.getLogger(__name__)

__all__ = ["BatchSink", "CollectorStats", "LogCollector"]

POLL_INTERVAL = 0.1  # Seconds between polls after a clean pass
ERROR_BACKOFF = 2.0  # Seconds to wait after a read error
CHECKPOINT_INTERVAL = 30.0  # Seconds between periodic checkpoint saves
CHUNK_LINE_LIMIT = 50_000  # Max lines per poll pass


class BatchSink(Protocol):
	"""What the collector needs from a sink writer."""

	def insert_batch(self, records: Sequence[QueryLogRecord]) -> int: ...


@dataclass(frozen=True)
class CollectorStats:
	processed_lines: int
	sent_records: int
	error_count: int
	last_sent_time: datetime | None


class LogCollector:
	"""Single authority over what has been read and what must still be sent."""

	def __init__(
		self,
		log_path: Path,
		node_id: int,
		sink: BatchSink,
		store: CheckpointStore,
		*,
		batch_size: int = 1000,
		flush_interval: float = 2.0,
		checkpoint_interval: float = CHECKPOINT_INTERVAL,
		poll_interval: float = POLL_INTERVAL,
		error_backoff: float = ERROR_BACKOFF,
	):
		self.log_path = Path(log_path)
		self.node_id = node_id
		self.sink = sink
		self.store = store
		self.buffer: BatchBuffer[QueryLogRecord] = BatchBuffer(batch_size)
		self.flush_interval = flush_interval
		self.checkpoint_interval = checkpoint_interval
		self.poll_interval = poll_interval
		self.error_backoff = error_backoff

		# Guards offset bookkeeping and counters
		self._lock = threading.Lock()
		# Serializes snapshot + write + bookkeeping across reader and timer threads
		self._save_lock = threading.Lock()
		self._offset = 0
		self._last_saved_offset: int | None = None
		self._inode: int | None = None
		self._processed_lines = 0
		self._sent_records = 0
		self._error_count = 0
		self._last_sent_time: datetime | None = None

		self._stop_requested = threading.Event()
		self._stop_event: asyncio.Event | None = None
		self.timers = Scheduler()
		self.timers.add("flush", flush_interval, self._flush_tick)
		self.timers.add("checkpoint", checkpoint_interval, self._checkpoint_tick)

	# ------------------------------------------------------------------
	# Offset bookkeeping
	# ------------------------------------------------------------------

	@property
	def offset(self) -> int:
		with self._lock:
			return self._offset

	def restore(self) -> int:
		"""Load the checkpoint and reconcile it with the current file."""
		checkpoint = self.store.load()
		start = resolve_start_offset(checkpoint, self.log_path)
		with self._lock:
			self._offset = start
			if checkpoint is not None and checkpoint.last_position == start:
				self._last_saved_offset = start
		return start

	# ------------------------------------------------------------------
	# Tail
	# ------------------------------------------------------------------

	def read_new_lines(self) -> int:
		"""Read lines appended since the last pass (blocking, run in thread).

		Returns:
			Number of non-blank lines processed

		Raises:
			OSError: The log file could not be opened, stat'ed or read
		"""
		with self.log_path.open("rb") as f:
			st = os.fstat(f.fileno())
			current_size = st.st_size
			offset = self.offset

			if self._inode is not None and st.st_ino != self._inode:
				_log.info("DNS_TAIL detected logrotate (inode %d -> %d)", self._inode, st.st_ino)
				offset = 0
			elif current_size < offset:
				_log.warning("DNS_TAIL detected rotation/truncation (offset %d > size %d)", offset, current_size)
				offset = 0
			self._inode = st.st_ino

			if current_size == offset:
				self._set_offset(offset)
				return 0

			f.seek(offset)
			lines = 0
			parsed = 0
			for _ in range(CHUNK_LINE_LIMIT):
				if self._stopping():
					# Offset still covers every line already buffered
					break

				raw = f.readline()
				if not raw:
					break
				if not raw.endswith(b"\n"):
					# Partial line still being written
					break
				offset += len(raw)

				line = raw.decode("utf-8", errors="replace").strip()
				if not line:
					continue
				lines += 1
				record = parse_query_line(line, self.node_id)
				with self._lock:
					self._processed_lines += 1
				if record is None:
					continue
				parsed += 1
				if self.buffer.append(record) >= self.buffer.capacity:
					# Checkpoint written by flush() must cover this batch
					self._set_offset(offset)
					self.flush()
			else:
				_log.debug("DNS_TAIL chunk limit reached, will continue next cycle")

		self._set_offset(offset)
		if lines:
			_log.debug("DNS_TAIL processed %d lines, parsed %d, position %d", lines, parsed, offset)
		return lines

	def _stopping(self) -> bool:
		if self._stop_requested.is_set():
			return True
		return self._stop_event is not None and self._stop_event.is_set()

	def _set_offset(self, offset: int) -> None:
		with self._lock:
			self._offset = offset

	# ------------------------------------------------------------------
	# Flush / checkpoint
	# ------------------------------------------------------------------

	def flush(self) -> int:
		"""Send everything buffered as one batch. Returns records sent."""
		records = self.buffer.drain_all()
		if not records:
			return 0

		start = time.monotonic()
		try:
			self.sink.insert_batch(records)
		except Exception as exc:
			with self._lock:
				self._error_count += 1
			_log.error("DNS_FLUSH failed, dropping %d records: %s", len(records), exc)
			return 0

		with self._lock:
			self._sent_records += len(records)
			self._last_sent_time = utcnow()
		_log.info("DNS_FLUSH sent %d records in %.3fs", len(records), time.monotonic() - start)

		self.save_checkpoint()
		return len(records)

	def save_checkpoint(self) -> bool:
		"""Persist the current offset. Returns False if nothing was written.

		The offset is read under the save lock, so a later save never writes
		an older position than an earlier one.
		"""
		with self._save_lock:
			return self._save_locked()

	def _save_locked(self) -> bool:
		offset = self.offset
		checkpoint = self.store.snapshot(self.log_path, offset)
		if checkpoint is None:
			return False
		try:
			self.store.save(checkpoint)
		except OSError as e:
			_log.warning("CHECKPOINT failed to save %s: %s", self.store.path, e)
			return False
		with self._lock:
			self._last_saved_offset = offset
		return True

	def save_checkpoint_if_needed(self) -> bool:
		"""Persist only when the offset moved since the last save."""
		with self._save_lock:
			with self._lock:
				if self._offset == self._last_saved_offset:
					return False
			return self._save_locked()

	async def _flush_tick(self) -> None:
		await asyncio.to_thread(self.flush)

	async def _checkpoint_tick(self) -> None:
		await asyncio.to_thread(self.save_checkpoint_if_needed)

	# ------------------------------------------------------------------
	# Main loop
	# ------------------------------------------------------------------

	async def run(self, stop_event: asyncio.Event) -> None:
		"""Tail until *stop_event* is set (or the task is cancelled)."""
		start = await asyncio.to_thread(self.restore)
		_log.info("DNS_TAIL starting: %s (position %d)", self.log_path, start)
		self._stop_requested.clear()
		self._stop_event = stop_event
		await self.timers.start()

		try:
			while not stop_event.is_set():
				delay = self.poll_interval
				try:
					await asyncio.to_thread(self.read_new_lines)
				except OSError as e:
					with self._lock:
						self._error_count += 1
					_log.error("DNS_TAIL read failed: %s, retrying in %.0fs", e, self.error_backoff)
					delay = self.error_backoff

				try:
					await asyncio.wait_for(stop_event.wait(), timeout=delay)
				except asyncio.TimeoutError:
					pass
		finally:
			self._stop_requested.set()
			await self.timers.stop_graceful()
			await asyncio.to_thread(self.flush)
			await asyncio.to_thread(self.save_checkpoint)
			_log.info("DNS_TAIL stopped at position %d", self.offset)

	# ------------------------------------------------------------------
	# Introspection
	# ------------------------------------------------------------------

	def stats(self) -> CollectorStats:
		with self._lock:
			return CollectorStats(
				processed_lines=self._processed_lines,
				sent_records=self._sent_records,
				error_count=self._error_count,
				last_sent_time=self._last_sent_time,
			)

	def buffer_size(self) -> int:
		return self.buffer.size()

	def position_info(self) -> dict:
		with self._lock:
			return {
				"position_file": str(self.store.path),
				"log_file": str(self.log_path),
				"position": self._offset,
				"last_saved_position": self._last_saved_offset,
			}

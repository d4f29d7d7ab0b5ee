#!/usr/bin/env python3
#
# dnsagent/utils/scheduler.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Lightweight async scheduler for the collector's fixed-interval timers."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, TypedDict

from .time import utcnow

_log = logging.getLogger(__name__)

__all__ = ["Scheduler", "JobStatus"]

# Minimum allowed interval to prevent CPU-pinning tight loops
_MIN_INTERVAL = 0.05


class JobStatus(TypedDict):
	"""Status information for a scheduled job."""
	name: str
	interval_seconds: float
	last_success: str | None
	is_running: bool
	run_count: int
	fail_count: int


@dataclass
class _Job:
	name: str
	interval_seconds: float
	func: Callable[[], Awaitable[None]]
	last_success: datetime | None = None
	run_count: int = 0
	fail_count: int = 0


class Scheduler:
	"""Runs async jobs at fixed intervals until stopped.

	Usage::

		scheduler = Scheduler()
		scheduler.add("flush", 2.0, flush_buffer)
		await scheduler.start()
		...
		await scheduler.stop_graceful()

	A job that raises is logged and counted; the timer keeps its rhythm. Ticks
	missed while a slow job was running are skipped, not replayed.
	"""

	def __init__(self) -> None:
		self._jobs: dict[str, _Job] = {}
		self._tasks: dict[str, asyncio.Task] = {}
		self._stop_event: asyncio.Event | None = None
		self._started = False

	def add(self, name: str, interval_seconds: float, func: Callable[[], Awaitable[None]]) -> None:
		"""Register a periodic job.

		Raises:
			RuntimeError: If the scheduler is already running
			ValueError: Duplicate name or interval below the minimum
		"""
		if self._started:
			raise RuntimeError(f"Cannot add job {name!r} while scheduler is running")
		if name in self._jobs:
			raise ValueError(f"Job {name!r} is already registered")
		if interval_seconds < _MIN_INTERVAL:
			raise ValueError(f"interval_seconds must be >= {_MIN_INTERVAL}, got {interval_seconds}")
		self._jobs[name] = _Job(name=name, interval_seconds=interval_seconds, func=func)

	@property
	def running(self) -> bool:
		return self._started

	async def start(self) -> None:
		"""Start all registered jobs as background tasks."""
		if self._started:
			return
		self._started = True
		self._stop_event = asyncio.Event()
		for job in self._jobs.values():
			self._tasks[job.name] = asyncio.create_task(self._run_loop(job), name=f"timer-{job.name}")
			_log.debug("SCHEDULER job=%s interval=%.1fs started", job.name, job.interval_seconds)

	async def stop_graceful(self, timeout: float = 5.0) -> None:
		"""Signal all jobs to stop and wait for the current run to finish.

		Jobs still running after *timeout* seconds are cancelled.
		"""
		if not self._started:
			return
		self._started = False
		if self._stop_event is not None:
			self._stop_event.set()

		pending = [t for t in self._tasks.values() if not t.done()]
		if pending:
			_, not_done = await asyncio.wait(pending, timeout=timeout)
			if not_done:
				_log.warning("SCHEDULER %d jobs did not stop in time, cancelling", len(not_done))
				for task in not_done:
					task.cancel()
				await asyncio.gather(*not_done, return_exceptions=True)
		self._tasks.clear()
		_log.debug("SCHEDULER stopped")

	async def _run_loop(self, job: _Job) -> None:
		assert self._stop_event is not None, "Bug: _run_loop called without start()"
		stop_event = self._stop_event
		loop = asyncio.get_running_loop()
		next_run = loop.time() + job.interval_seconds

		try:
			while self._started and not stop_event.is_set():
				delay = max(0.0, next_run - loop.time())
				try:
					await asyncio.wait_for(stop_event.wait(), timeout=delay)
					break
				except asyncio.TimeoutError:
					pass

				await self._execute(job)

				now = loop.time()
				if next_run <= now:
					skipped = int((now - next_run) / job.interval_seconds)
					next_run += (skipped + 1) * job.interval_seconds
				else:
					next_run += job.interval_seconds
		except asyncio.CancelledError:
			_log.debug("SCHEDULER job=%s cancelled", job.name)

	async def _execute(self, job: _Job) -> bool:
		try:
			await job.func()
		except Exception:
			job.fail_count += 1
			_log.exception("SCHEDULER job=%s failed (fail #%d)", job.name, job.fail_count)
			return False
		job.last_success = utcnow()
		job.run_count += 1
		return True

	def get_status(self) -> list[JobStatus]:
		"""Return status of all jobs (for the control API)."""
		return [
			{
				"name": job.name,
				"interval_seconds": job.interval_seconds,
				"last_success": job.last_success.isoformat() if job.last_success else None,
				"is_running": job.name in self._tasks and not self._tasks[job.name].done(),
				"run_count": job.run_count,
				"fail_count": job.fail_count,
			}
			for job in self._jobs.values()
		]

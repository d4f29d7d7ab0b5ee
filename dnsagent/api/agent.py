#!/usr/bin/env python3
#
# dnsagent/api/agent.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Agent control API routes (mounted under /api/v1)."""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..agent import AgentRuntime
from ..utils.config import AgentConfig
from ..utils.logfiles import read_recent_logs
from ..utils.time import format_local, utcnow
from .deps import get_cfg, get_log_path, get_runtime
from .response import ok_response

_log = logging.getLogger(__name__)

router = APIRouter()

_DEFAULT_LOG_LINES = 100
_MAX_LOG_LINES = 1000


class AgentStats(BaseModel):
	processed_lines: int = 0
	sent_records: int = 0
	error_count: int = 0
	last_sent_time: str = ""
	send_rate: float = 0.0
	buffer_size: int = 0


class AgentStatus(BaseModel):
	status: str
	version: str
	node_id: int
	node_name: str
	start_time: str
	uptime: str
	is_running: bool
	log_file: str
	clickhouse: dict[str, Any]
	system: dict[str, Any]
	last_error: str | None = None


def _format_uptime(seconds: float) -> str:
	seconds = int(seconds)
	days, seconds = divmod(seconds, 86400)
	hours, seconds = divmod(seconds, 3600)
	minutes, seconds = divmod(seconds, 60)
	if days:
		return f"{days}d {hours}h {minutes}m {seconds}s"
	return f"{hours}h {minutes}m {seconds}s"


# ---------------------------------------------------------------------------
# Status & Stats
# ---------------------------------------------------------------------------

@router.get("/status")
async def agent_status(
	runtime: AgentRuntime = Depends(get_runtime),
	cfg: AgentConfig = Depends(get_cfg),
):
	"""Agent identity, lifecycle state and process info."""
	from .. import VERSION

	system: dict[str, Any] = {
		"pid": os.getpid(),
		"threads": threading.active_count(),
		"cpu_count": os.cpu_count() or 0,
	}
	collector = runtime.collector
	if collector is not None:
		system["position_info"] = collector.position_info()
		system["timers"] = collector.timers.get_status()

	status = AgentStatus(
		status="running",
		version=VERSION,
		node_id=cfg.node_id,
		node_name=cfg.node_name,
		start_time=format_local(runtime.started_at),
		uptime=_format_uptime((utcnow() - runtime.started_at).total_seconds()),
		is_running=runtime.is_running,
		log_file=str(cfg.log_file),
		clickhouse=cfg.public_view()["clickhouse"],
		system=system,
		last_error=runtime.last_error,
	)
	return ok_response(data=status.model_dump())


@router.get("/stats")
async def agent_stats(runtime: AgentRuntime = Depends(get_runtime)):
	"""Collector counters; all zero while collection is stopped."""
	raw = runtime.stats()
	stats = AgentStats(
		processed_lines=raw["processed_lines"],
		sent_records=raw["sent_records"],
		error_count=raw["error_count"],
		last_sent_time=format_local(raw["last_sent_time"]),
		send_rate=raw["send_rate"],
		buffer_size=raw["buffer_size"],
	)
	return ok_response(data=stats.model_dump())


# ---------------------------------------------------------------------------
# Collection Control
# ---------------------------------------------------------------------------

@router.post("/start")
async def agent_start(runtime: AgentRuntime = Depends(get_runtime)):
	"""Start log collection (opens the sink and applies migrations)."""
	try:
		started = await runtime.start()
	except Exception as exc:
		raise HTTPException(status_code=500, detail=f"Start failed: {exc}")
	if not started:
		return ok_response(message="Log collection already running")
	return ok_response(message="Log collection started")


@router.post("/stop")
async def agent_stop(runtime: AgentRuntime = Depends(get_runtime)):
	"""Stop log collection after a final flush and checkpoint."""
	stopped = await runtime.stop()
	if not stopped:
		return ok_response(message="Log collection not running")
	return ok_response(message="Log collection stopped")


@router.post("/restart")
async def agent_restart(runtime: AgentRuntime = Depends(get_runtime)):
	"""Stop (if running) and start log collection."""
	try:
		await runtime.restart()
	except Exception as exc:
		raise HTTPException(status_code=500, detail=f"Restart failed: {exc}")
	return ok_response(message="Log collection restarted")


# ---------------------------------------------------------------------------
# Logs & Config
# ---------------------------------------------------------------------------

@router.get("/logs")
async def agent_logs(
	lines: int = _DEFAULT_LOG_LINES,
	log_path: Path | None = Depends(get_log_path),
):
	"""Tail of the agent's own log file.

	Out-of-range ``lines`` values fall back to the default of 100.
	"""
	if lines <= 0 or lines > _MAX_LOG_LINES:
		lines = _DEFAULT_LOG_LINES
	try:
		logs = await asyncio.to_thread(read_recent_logs, log_path, lines)
	except OSError as exc:
		_log.warning("AGENT cannot read log file %s: %s", log_path, exc)
		raise HTTPException(status_code=500, detail=f"Failed to read logs: {exc}")
	return ok_response(data={"logs": logs, "total": len(logs)})


@router.get("/config")
async def agent_config(cfg: AgentConfig = Depends(get_cfg)):
	"""Effective configuration without credentials."""
	return ok_response(data=cfg.public_view())


@router.get("/health")
async def agent_health(runtime: AgentRuntime = Depends(get_runtime)):
	"""Liveness plus sink reachability."""
	writer = runtime.writer
	clickhouse_ok = False
	if writer is not None:
		clickhouse_ok = await asyncio.to_thread(writer.ping)

	now = utcnow()
	data = {
		"status": "ok",
		"timestamp": int(now.timestamp()),
		"uptime": (now - runtime.started_at).total_seconds(),
		"collector": runtime.is_running,
		"clickhouse": clickhouse_ok,
	}
	return ok_response(data=data)

#!/usr/bin/env python3
#
# dnsagent/main.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""FastAPI application factory and startup lifecycle wiring."""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .agent import AgentRuntime
from .api import agent as agent_api
from .utils.config import AgentConfig, load_config
from .utils.logfiles import attach_file_handler
from .utils.request_id import RequestIDMiddleware

_log = logging.getLogger(__name__)

__all__ = ["LOG_FORMAT", "LOG_DATE_FORMAT", "create_app"]

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# ANSI color codes for log levels (if TTY)
_LOG_COLORS = {
	"DEBUG": "\033[36m",    # Cyan
	"INFO": "\033[32m",     # Green
	"WARNING": "\033[33m",  # Yellow
	"ERROR": "\033[31m",    # Red
	"CRITICAL": "\033[35m", # Magenta
}
_RESET = "\033[0m"


class _ColoredFormatter(logging.Formatter):
	"""Custom formatter that adds color to log levels in TTY."""

	def format(self, record):
		orig_levelname = record.levelname
		if orig_levelname in _LOG_COLORS:
			record.levelname = f"{_LOG_COLORS[orig_levelname]}{orig_levelname:<8}{_RESET}"
		else:
			record.levelname = f"{orig_levelname:<8}"
		try:
			return super().format(record)
		finally:
			record.levelname = orig_levelname


def _setup_logging(cfg: AgentConfig):
	"""Configure console (and optional rotating file) logging.

	Returns the agent log file path, or None when only console logging is active.
	"""
	level = getattr(logging, cfg.log_level, logging.INFO)

	if sys.stdout.isatty():
		console_formatter: logging.Formatter = _ColoredFormatter(
			fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
			datefmt=LOG_DATE_FORMAT,
		)
	else:
		console_formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

	# force=True removes any pre-existing handlers (e.g. from uvicorn)
	logging.basicConfig(
		level=level,
		handlers=[logging.StreamHandler(sys.stdout)],
		force=True,
	)
	for handler in logging.root.handlers:
		handler.setFormatter(console_formatter)

	log_path = None
	if cfg.log_enable_file:
		# Files never get ANSI codes
		file_formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
		log_path = attach_file_handler(cfg.log_dir, cfg.log_max_days, file_formatter, level)

	# Make sure uvicorn loggers use the root handler & level
	for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
		logger = logging.getLogger(name)
		logger.handlers.clear()
		logger.setLevel(level)
		logger.propagate = True

	# Quiet down noisy third-party libraries
	for name in ("httpcore", "httpx"):
		logging.getLogger(name).setLevel(logging.WARNING)

	return log_path


@asynccontextmanager
async def _lifespan(app: FastAPI):
	"""Application lifespan manager."""
	cfg: AgentConfig = app.state.cfg
	runtime: AgentRuntime = app.state.runtime

	# ─── STARTUP ─────────────────────────────────────────────
	_log.info("AGENT node %d (%s) starting, log file %s", cfg.node_id, cfg.node_name, cfg.log_file)
	if cfg.autostart:
		try:
			await runtime.start()
		except Exception as exc:
			_log.critical("AGENT autostart failed: %s", exc)
			raise
	else:
		_log.info("AGENT autostart disabled, waiting for POST /api/v1/start")

	yield

	# ─── SHUTDOWN ────────────────────────────────────────────
	await runtime.stop()
	_log.info("AGENT shutdown complete")


def create_app(cfg: AgentConfig | None = None, runtime: AgentRuntime | None = None) -> FastAPI:
	"""Application factory for the SmartDNS log agent."""
	from . import VERSION

	if cfg is None:
		cfg = load_config()
	log_path = _setup_logging(cfg)

	app = FastAPI(
		title="SmartDNS Log Agent",
		description="Ships SmartDNS query logs to ClickHouse",
		version=VERSION,
		lifespan=_lifespan,
		docs_url="/api/docs",
		redoc_url=None,
	)

	app.state.cfg = cfg
	app.state.runtime = runtime if runtime is not None else AgentRuntime(cfg)
	app.state.log_path = log_path

	# ─── MIDDLEWARE ──────────────────────────────────────────
	app.add_middleware(RequestIDMiddleware, node_id=cfg.node_id)

	# ─── API ROUTES ──────────────────────────────────────────
	app.include_router(agent_api.router, prefix="/api/v1")

	return app

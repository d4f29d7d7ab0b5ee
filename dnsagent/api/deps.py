#!/usr/bin/env python3
#
# dnsagent/api/deps.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""FastAPI dependencies shared by the control routes."""

from __future__ import annotations

from pathlib import Path

from fastapi import Request

from ..agent import AgentRuntime
from ..utils.config import AgentConfig


def get_runtime(request: Request) -> AgentRuntime:
	return request.app.state.runtime


def get_cfg(request: Request) -> AgentConfig:
	return request.app.state.cfg


def get_log_path(request: Request) -> Path | None:
	"""Active agent log file (None when file logging is off)."""
	return getattr(request.app.state, "log_path", None)

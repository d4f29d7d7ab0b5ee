#!/usr/bin/env python3
#
# dnsagent/utils/logfiles.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Agent's own log files: daily rotation, retention and tail reads."""

from __future__ import annotations

import logging
import os
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

_log = logging.getLogger(__name__)

__all__ = ["AGENT_LOG_NAME", "attach_file_handler", "read_recent_logs"]

AGENT_LOG_NAME = "smartdns-agent.log"


def attach_file_handler(
	log_dir: Path,
	max_days: int,
	formatter: logging.Formatter,
	level: int = logging.INFO,
) -> Path | None:
	"""Add a midnight-rotating file handler to the root logger.

	Rotated files older than *max_days* are removed by the handler itself.
	Returns the active log path, or None if the directory is unusable
	(console logging continues).
	"""
	try:
		log_dir.mkdir(parents=True, exist_ok=True)
		log_path = log_dir / AGENT_LOG_NAME
		handler = TimedRotatingFileHandler(
			log_path,
			when="midnight",
			backupCount=max(1, max_days),
			encoding="utf-8",
		)
	except OSError as exc:
		_log.warning("File logging disabled, cannot use %s: %s", log_dir, exc)
		return None

	handler.setFormatter(formatter)
	handler.setLevel(level)
	logging.getLogger().addHandler(handler)
	_log.info("File logging enabled: %s (keeping %d days)", log_path, max_days)
	return log_path


def _read_tail_lines(path: Path, max_lines: int) -> list[str]:
	"""Read up to *max_lines* from end of file without loading entire file."""
	if max_lines <= 0:
		return []

	lines: list[bytes] = []
	buffer = b""

	with path.open("rb") as f:
		f.seek(0, os.SEEK_END)
		position = f.tell()
		if position <= 0:
			return []

		chunk_size = 8192
		while position > 0 and len(lines) < max_lines:
			read_size = min(chunk_size, position)
			position -= read_size
			f.seek(position)
			chunk = f.read(read_size)
			if not chunk:
				break

			parts = (chunk + buffer).split(b"\n")
			buffer = parts[0]
			if parts[1:]:
				lines = parts[1:] + lines

		if position == 0 and buffer:
			lines = [buffer] + lines

	decoded = [raw.decode("utf-8", errors="replace") for raw in lines if raw.strip()]
	return decoded[-max_lines:]


def read_recent_logs(log_path: Path | None, max_lines: int = 100) -> list[str]:
	"""Return the last *max_lines* non-blank lines of the agent log."""
	if log_path is None or not log_path.exists():
		return []
	return _read_tail_lines(log_path, max_lines)

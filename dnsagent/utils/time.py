#!/usr/bin/env python3
#
# dnsagent/utils/time.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Timezone-aware time utilities."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
	"""Return the current UTC time as a timezone-aware datetime."""
	return datetime.now(timezone.utc)


def from_mtime(st_mtime: float) -> datetime:
	"""Convert a stat() mtime to an aware UTC datetime."""
	return datetime.fromtimestamp(st_mtime, tz=timezone.utc)


def parse_utc(s: str) -> Optional[datetime]:
	"""Parse an ISO-8601 timestamp string to a UTC datetime.
	
	Handles both 'Z' suffix and '+00:00' offset notation. Naive timestamps
	are assumed to be UTC. Returns None for invalid input.
	"""
	if not s or not isinstance(s, str):
		return None
	try:
		if s.endswith("Z"):
			s = s[:-1] + "+00:00"
		dt = datetime.fromisoformat(s)
		if dt.tzinfo is None:
			return dt.replace(tzinfo=timezone.utc)
		return dt.astimezone(timezone.utc)
	except (ValueError, TypeError):
		return None


def format_local(dt: Optional[datetime]) -> str:
	"""Format a datetime for display (empty string for None)."""
	if dt is None:
		return ""
	if dt.tzinfo is not None:
		dt = dt.astimezone()
	return dt.strftime("%Y-%m-%d %H:%M:%S")

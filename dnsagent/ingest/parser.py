#!/usr/bin/env python3
#
# dnsagent/ingest/parser.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""SmartDNS audit log parser."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime

__all__ = ["QueryLogRecord", "INSERT_COLUMNS", "parse_query_line"]

MAX_RESULT_IPS = 255  # result_count is a UInt8

_UINT16_MAX = 2**16 - 1
_UINT32_MAX = 2**32 - 1

# Extended format (with group) is tried first, legacy format second.
_LINE_WITH_GROUP_RE = re.compile(
	r"\[([^\]]+)\]\s+(\S+)\s+query\s+(\S+),\s+type\s+(\d+),\s+time\s+(\d+)ms,"
	r"\s+speed:\s+([-\d.]+)ms,\s+group\s+(\S+),\s+result\s*(.*)"
)
_LINE_RE = re.compile(
	r"\[([^\]]+)\]\s+(\S+)\s+query\s+(\S+),\s+type\s+(\d+),\s+time\s+(\d+)ms,"
	r"\s+speed:\s+([-\d.]+)ms,\s+result\s*(.*)"
)

_TS_FORMAT_MS = "%Y-%m-%d %H:%M:%S,%f"
_TS_FORMAT_S = "%Y-%m-%d %H:%M:%S"

# Column order used for batch inserts (must match QueryLogRecord.to_row()).
INSERT_COLUMNS: tuple[str, ...] = (
	"timestamp",
	"date",
	"node_id",
	"client_ip",
	"domain",
	"query_type",
	"group",
	"time_ms",
	"speed_ms",
	"result_count",
	"result_ips",
	"raw_log",
)


@dataclass(frozen=True)
class QueryLogRecord:
	"""One parsed SmartDNS query line."""
	timestamp: datetime  # Local time, millisecond precision
	node_id: int
	client_ip: str
	domain: str
	query_type: int  # 1=A, 28=AAAA, 65=HTTPS, ...
	time_ms: int  # Total resolution time
	speed_ms: float  # Speed-check latency, negative = not measured
	result_ips: tuple[str, ...] = field(default_factory=tuple)
	group: str = ""
	raw_log: str = ""

	@property
	def date(self) -> date:
		"""Partition day derived from the timestamp."""
		return self.timestamp.date()

	@property
	def result_count(self) -> int:
		return len(self.result_ips)

	def to_row(self) -> dict:
		"""Column mapping for a JSONEachRow insert."""
		ts = self.timestamp
		return {
			"timestamp": ts.strftime("%Y-%m-%d %H:%M:%S.") + f"{ts.microsecond // 1000:03d}",
			"date": self.date.isoformat(),
			"node_id": self.node_id,
			"client_ip": self.client_ip,
			"domain": self.domain,
			"query_type": self.query_type,
			"group": self.group,
			"time_ms": self.time_ms,
			"speed_ms": self.speed_ms,
			"result_count": self.result_count,
			"result_ips": list(self.result_ips),
			"raw_log": self.raw_log,
		}


def parse_query_line(line: str, node_id: int) -> QueryLogRecord | None:
	"""Parse a SmartDNS audit line into a record.

	Formats:
	  [2025-11-21 05:33:18,910] 10.0.0.5 query example.com, type 1, time 63ms, speed: 29.4ms, result 1.2.3.4
	  [2025-11-21 05:33:18,910] 10.0.0.5 query example.com, type 1, time 63ms, speed: 29.4ms, group cn, result 1.2.3.4

	Returns None for lines matching neither format (server noise) or whose
	timestamp cannot be read. Malformed numeric fields default to 0 so the
	rest of the line is kept.
	"""
	if not line:
		return None

	group = ""
	m = _LINE_WITH_GROUP_RE.search(line)
	if m is not None:
		ts_raw, client, domain, qtype, time_ms, speed, group, result = m.groups()
		group = group.strip()
	else:
		m = _LINE_RE.search(line)
		if m is None:
			return None
		ts_raw, client, domain, qtype, time_ms, speed, result = m.groups()

	timestamp = _parse_timestamp(ts_raw)
	if timestamp is None:
		return None

	return QueryLogRecord(
		timestamp=timestamp,
		node_id=node_id,
		client_ip=client,
		domain=domain,
		query_type=_parse_uint(qtype, _UINT16_MAX),
		time_ms=_parse_uint(time_ms, _UINT32_MAX),
		speed_ms=_parse_float(speed),
		result_ips=_split_result(result),
		group=group,
		raw_log=line,
	)


def _parse_timestamp(raw: str) -> datetime | None:
	"""Millisecond format first, whole seconds as fallback."""
	raw = raw.strip()
	try:
		ts = datetime.strptime(raw, _TS_FORMAT_MS)
	except ValueError:
		try:
			ts = datetime.strptime(raw[:19], _TS_FORMAT_S)
		except ValueError:
			return None
	# Clamp to millisecond precision (DateTime64(3))
	return ts.replace(microsecond=(ts.microsecond // 1000) * 1000)


def _parse_uint(raw: str, upper: int) -> int:
	try:
		value = int(raw)
	except (TypeError, ValueError):
		return 0
	if not 0 <= value <= upper:
		return 0
	return value


def _parse_float(raw: str) -> float:
	try:
		return float(raw)
	except (TypeError, ValueError):
		return 0.0


def _split_result(raw: str) -> tuple[str, ...]:
	"""Split the comma-separated result list; empty means no answers."""
	raw = raw.strip()
	if not raw:
		return ()
	ips = [part.strip() for part in raw.split(",")]
	return tuple(ip for ip in ips if ip)[:MAX_RESULT_IPS]

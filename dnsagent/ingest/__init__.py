#!/usr/bin/env python3
#
# dnsagent/ingest/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Log ingestion: parse, buffer, checkpoint and tail the SmartDNS audit log."""

from .buffer import BatchBuffer
from .checkpoint import Checkpoint, CheckpointStore, resolve_start_offset
from .collector import BatchSink, CollectorStats, LogCollector
from .parser import INSERT_COLUMNS, QueryLogRecord, parse_query_line

__all__ = [
	"BatchBuffer",
	"BatchSink",
	"Checkpoint",
	"CheckpointStore",
	"CollectorStats",
	"INSERT_COLUMNS",
	"LogCollector",
	"QueryLogRecord",
	"parse_query_line",
	"resolve_start_offset",
]

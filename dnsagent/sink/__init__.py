#!/usr/bin/env python3
#
# dnsagent/sink/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""ClickHouse sink: HTTP client, schema, migrations and batch writer."""

from .client import ClickHouseClient, ClickHouseError
from .migration import MIGRATIONS, Migration, MigrationError, migration_status, run_pending_migrations
from .writer import ClickHouseWriter

__all__ = [
	"ClickHouseClient",
	"ClickHouseError",
	"ClickHouseWriter",
	"MIGRATIONS",
	"Migration",
	"MigrationError",
	"migration_status",
	"run_pending_migrations",
]

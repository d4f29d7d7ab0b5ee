#!/usr/bin/env python3
#
# dnsagent/sink/migration.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""
ClickHouse schema migrations for the query log sink.

Migration Framework
-------------------
1. `schema_migrations` records (version, description, executed_at) for every
   migration that has run
2. Each migration has a unique version number (monotonically increasing)
3. On startup, `run_pending_migrations()` applies every version missing from
   the history table, in ascending order, recording each one right after it
   succeeds
4. Migrations must be idempotent (IF NOT EXISTS) so re-declaring them is safe

Adding a new migration:
1. Write either a SQL string or a `_migrate_NNNN_description(client)` function
2. Append a `Migration(NNNN, "...", ...)` entry to MIGRATIONS

A failing migration aborts startup: the agent must never write into a schema
it could not bring up to date.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Callable

from .client import ClickHouseClient
from .schema import (
	ADD_GROUP_COLUMN,
	CREATE_MIGRATIONS_TABLE,
	CREATE_QUERY_LOG_TABLE,
	MIGRATIONS_TABLE,
)

_log = logging.getLogger(__name__)

__all__ = [
	"MIGRATIONS",
	"Migration",
	"MigrationError",
	"migration_status",
	"run_pending_migrations",
]


class MigrationError(RuntimeError):
	"""A schema migration failed; the sink is not safe to write to."""

	def __init__(self, version: int, cause: BaseException):
		self.version = version
		self.cause = cause
		super().__init__(f"Migration v{version} failed: {cause}")


@dataclass(frozen=True)
class Migration:
	"""One versioned schema change: a SQL statement or a procedural step."""
	version: int
	description: str
	sql: str | None = None
	execute: Callable[[ClickHouseClient], None] | None = None

	def apply(self, client: ClickHouseClient) -> None:
		if self.execute is not None:
			self.execute(client)
		elif self.sql:
			client.execute(self.sql)
		else:
			raise ValueError(f"Migration v{self.version} defines neither sql nor execute")


# ---------------------------------------------------------------------------
# Migration functions
# ---------------------------------------------------------------------------


def _migrate_0001_create_query_log(client: ClickHouseClient) -> None:
	"""Create the base query log table."""
	client.execute(CREATE_QUERY_LOG_TABLE)


# ---------------------------------------------------------------------------
# Migration registry
# ---------------------------------------------------------------------------

MIGRATIONS: tuple[Migration, ...] = (
	Migration(1, "create initial dns_query_log table", execute=_migrate_0001_create_query_log),
	Migration(2, "add group column", sql=ADD_GROUP_COLUMN),
)


def _ensure_migrations_table(client: ClickHouseClient) -> None:
	client.execute(CREATE_MIGRATIONS_TABLE)


def get_executed_versions(client: ClickHouseClient) -> set[int]:
	"""Return the versions recorded in the history table."""
	_ensure_migrations_table(client)
	rows = client.query_rows(f"SELECT version FROM {MIGRATIONS_TABLE}")
	return {int(row["version"]) for row in rows}


def _pending(migrations: Sequence[Migration], executed: set[int]) -> list[Migration]:
	seen: set[int] = set()
	for m in migrations:
		if m.version in seen:
			raise ValueError(f"Duplicate migration version: {m.version}")
		seen.add(m.version)
	return sorted((m for m in migrations if m.version not in executed), key=lambda m: m.version)


def run_pending_migrations(
	client: ClickHouseClient,
	migrations: Sequence[Migration] = MIGRATIONS,
) -> int:
	"""Execute all pending migrations.

	Returns:
		Number of migrations applied

	Raises:
		MigrationError: If any migration (or its history record) fails
	"""
	try:
		executed = get_executed_versions(client)
	except Exception as exc:
		_log.error("MIGRATION cannot read migration history: %s", exc)
		raise MigrationError(0, exc) from exc

	pending = _pending(migrations, executed)
	if not pending:
		_log.debug("MIGRATION no pending migrations (%d executed)", len(executed))
		return 0

	_log.info(
		"MIGRATION %d pending migration(s) to apply (target: v%d)",
		len(pending),
		pending[-1].version,
	)

	applied = 0
	for migration in pending:
		try:
			_log.info("MIGRATION applying v%d: %s", migration.version, migration.description)
			migration.apply(client)
			client.insert_rows(
				MIGRATIONS_TABLE,
				("version", "description"),
				[{"version": migration.version, "description": migration.description}],
			)
			applied += 1
			_log.info("MIGRATION v%d applied successfully", migration.version)
		except Exception as exc:
			_log.error("MIGRATION v%d failed: %s", migration.version, exc)
			raise MigrationError(migration.version, exc) from exc

	_log.info("MIGRATION completed: %d migration(s) applied", applied)
	return applied


def migration_status(
	client: ClickHouseClient,
	migrations: Sequence[Migration] = MIGRATIONS,
) -> dict:
	"""Check migration status without applying changes."""
	executed = get_executed_versions(client)
	pending = _pending(migrations, executed)
	return {
		"current_version": max(executed, default=0),
		"target_version": max((m.version for m in migrations), default=0),
		"pending_count": len(pending),
		"pending_migrations": [{"version": m.version, "description": m.description} for m in pending],
		"up_to_date": not pending,
	}

# tests/test_migration.py
"""Tests for the ClickHouse migration runner."""
import pytest

from dnsagent.sink.client import ClickHouseClient
from dnsagent.sink.migration import (
	MIGRATIONS,
	Migration,
	MigrationError,
	migration_status,
	run_pending_migrations,
)


@pytest.fixture
def client(fake_clickhouse, ch_config):
	with ClickHouseClient(ch_config, database="smartdns_logs", transport=fake_clickhouse.transport()) as c:
		yield c


def test_applies_all_then_nothing(client, fake_clickhouse):
	assert run_pending_migrations(client) == len(MIGRATIONS)
	assert fake_clickhouse.executed_versions() == [1, 2]

	before = len(fake_clickhouse.statements)
	assert run_pending_migrations(client) == 0
	assert fake_clickhouse.executed_versions() == [1, 2]
	# Second run only touches the history table
	new = fake_clickhouse.statements[before:]
	assert all("schema_migrations" in sql for sql in new)


def test_applies_in_version_order(client, fake_clickhouse):
	applied: list[int] = []
	migrations = (
		Migration(3, "third", execute=lambda c: applied.append(3)),
		Migration(1, "first", execute=lambda c: applied.append(1)),
		Migration(2, "second", execute=lambda c: applied.append(2)),
	)

	assert run_pending_migrations(client, migrations) == 3
	assert applied == [1, 2, 3]


def test_failure_raises_and_is_not_recorded(client, fake_clickhouse):
	fake_clickhouse.fail_on.append("ADD COLUMN IF NOT EXISTS `group`")

	with pytest.raises(MigrationError) as exc_info:
		run_pending_migrations(client)

	assert exc_info.value.version == 2
	assert fake_clickhouse.executed_versions() == [1]


def test_unreadable_history_is_fatal(client, fake_clickhouse):
	fake_clickhouse.fail_on.append("CREATE TABLE IF NOT EXISTS schema_migrations")

	with pytest.raises(MigrationError) as exc_info:
		run_pending_migrations(client)
	assert exc_info.value.version == 0


def test_duplicate_versions_rejected(client):
	migrations = (Migration(1, "a", sql="SELECT 1"), Migration(1, "b", sql="SELECT 2"))
	with pytest.raises(ValueError):
		run_pending_migrations(client, migrations)


def test_migration_without_body():
	with pytest.raises(ValueError):
		Migration(9, "empty").apply(None)


def test_status(client):
	status = migration_status(client)
	assert status["current_version"] == 0
	assert status["pending_count"] == len(MIGRATIONS)
	assert not status["up_to_date"]

	run_pending_migrations(client)
	status = migration_status(client)
	assert status["current_version"] == 2
	assert status["up_to_date"]

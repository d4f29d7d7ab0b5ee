#!/usr/bin/env python3
#
# dnsagent/sink/schema.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""ClickHouse DDL for the DNS query log table and its helpers."""

from __future__ import annotations

QUERY_LOG_TABLE = "dns_query_log"
MIGRATIONS_TABLE = "schema_migrations"
TTL_DAYS = 90

CREATE_MIGRATIONS_TABLE = f"""
CREATE TABLE IF NOT EXISTS {MIGRATIONS_TABLE} (
	version UInt32,
	description String,
	executed_at DateTime DEFAULT now()
) ENGINE = MergeTree()
ORDER BY version
"""

CREATE_QUERY_LOG_TABLE = f"""
CREATE TABLE IF NOT EXISTS {QUERY_LOG_TABLE} (
	timestamp DateTime64(3) COMMENT 'Query time (millisecond precision)',
	date Date DEFAULT toDate(timestamp) COMMENT 'Partition day',
	node_id UInt32 COMMENT 'Source DNS node',
	client_ip String COMMENT 'Client IP',
	domain String COMMENT 'Queried domain',
	query_type UInt16 COMMENT 'Query type (1=A, 28=AAAA, 65=HTTPS)',
	time_ms UInt32 COMMENT 'Resolution time in ms',
	speed_ms Float32 COMMENT 'Speed check latency in ms, negative = not measured',
	result_count UInt8 COMMENT 'Number of result IPs',
	result_ips Array(String) COMMENT 'Result IPs',
	raw_log String COMMENT 'Original log line'
) ENGINE = MergeTree()
PARTITION BY toYYYYMM(date)
ORDER BY (date, node_id, timestamp)
TTL date + INTERVAL {TTL_DAYS} DAY
SETTINGS index_granularity = 8192
COMMENT 'DNS query log'
"""

ADD_GROUP_COLUMN = (
	f"ALTER TABLE {QUERY_LOG_TABLE} "
	"ADD COLUMN IF NOT EXISTS `group` String DEFAULT '' COMMENT 'SmartDNS server group'"
)

# Secondary data-skipping indexes: (name, expression, type)
INDEXES: tuple[tuple[str, str, str], ...] = (
	("idx_timestamp_minmax", "timestamp", "minmax"),
	("idx_domain_bloom", "domain", "bloom_filter(0.01)"),
	("idx_client_ip_bloom", "client_ip", "bloom_filter(0.01)"),
	("idx_domain_ngram", "domain", "ngrambf_v1(3, 256, 2, 0)"),
)


def add_index_sql(name: str, expression: str, index_type: str, granularity: int = 4) -> str:
	return (
		f"ALTER TABLE {QUERY_LOG_TABLE} ADD INDEX IF NOT EXISTS {name} "
		f"{expression} TYPE {index_type} GRANULARITY {granularity}"
	)


# Pre-aggregated views. SummingMergeTree sums every non-key numeric column on
# merge, so only additive measures are stored (averages = total / count).
VIEWS: dict[str, str] = {
	"dns_stats_hourly": f"""
CREATE MATERIALIZED VIEW IF NOT EXISTS dns_stats_hourly
ENGINE = SummingMergeTree()
PARTITION BY toYYYYMM(date)
ORDER BY (date, hour, node_id, domain)
AS SELECT
	toDate(timestamp) AS date,
	toHour(timestamp) AS hour,
	node_id,
	domain,
	count() AS query_count,
	sum(time_ms) AS total_time_ms
FROM {QUERY_LOG_TABLE}
GROUP BY date, hour, node_id, domain
""",
	"dns_top_domains": f"""
CREATE MATERIALIZED VIEW IF NOT EXISTS dns_top_domains
ENGINE = SummingMergeTree()
PARTITION BY toYYYYMM(date)
ORDER BY (date, node_id, domain)
AS SELECT
	toDate(timestamp) AS date,
	node_id,
	domain,
	count() AS query_count
FROM {QUERY_LOG_TABLE}
GROUP BY date, node_id, domain
""",
	"dns_client_stats": f"""
CREATE MATERIALIZED VIEW IF NOT EXISTS dns_client_stats
ENGINE = SummingMergeTree()
PARTITION BY toYYYYMM(date)
ORDER BY (date, node_id, client_ip)
AS SELECT
	toDate(timestamp) AS date,
	node_id,
	client_ip,
	count() AS query_count,
	sum(time_ms) AS total_time_ms
FROM {QUERY_LOG_TABLE}
GROUP BY date, node_id, client_ip
""",
	"dns_daily_summary": f"""
CREATE MATERIALIZED VIEW IF NOT EXISTS dns_daily_summary
ENGINE = SummingMergeTree()
PARTITION BY toYYYYMM(date)
ORDER BY (date, node_id)
AS SELECT
	toDate(timestamp) AS date,
	node_id,
	count() AS query_count,
	sum(time_ms) AS total_time_ms,
	countIf(result_count = 0) AS empty_results
FROM {QUERY_LOG_TABLE}
GROUP BY date, node_id
""",
}

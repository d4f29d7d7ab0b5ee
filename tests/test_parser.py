# tests/test_parser.py
"""Tests for the SmartDNS audit line parser."""
from datetime import date, datetime

from dnsagent.ingest.parser import INSERT_COLUMNS, MAX_RESULT_IPS, parse_query_line

from conftest import SAMPLE_LINE


def test_parses_documented_example():
	rec = parse_query_line(SAMPLE_LINE, node_id=3)

	assert rec is not None
	assert rec.timestamp == datetime(2025, 11, 21, 5, 33, 18, 910000)
	assert rec.date == date(2025, 11, 21)
	assert rec.node_id == 3
	assert rec.client_ip == "10.1.102.201"
	assert rec.domain == "v2ray.com"
	assert rec.query_type == 1
	assert rec.time_ms == 63
	assert rec.speed_ms == 29.4
	assert rec.result_ips == ("172.67.149.148",)
	assert rec.result_count == 1
	assert rec.group == ""
	assert rec.raw_log == SAMPLE_LINE


def test_empty_result_is_not_an_error():
	line = "[2025-11-21 05:33:18,910] 10.0.0.1 query nx.example, type 28, time 5ms, speed: -1ms, result "
	rec = parse_query_line(line.strip(), node_id=1)

	assert rec is not None
	assert rec.result_ips == ()
	assert rec.result_count == 0
	assert rec.speed_ms == -1.0


def test_group_variant():
	line = (
		"[2025-11-21 05:33:18,910] 10.0.0.1 query example.cn, type 1, time 12ms, "
		"speed: 3.2ms, group cn, result 1.1.1.1, 2.2.2.2"
	)
	rec = parse_query_line(line, node_id=1)

	assert rec is not None
	assert rec.group == "cn"
	assert rec.domain == "example.cn"
	assert rec.result_ips == ("1.1.1.1", "2.2.2.2")
	assert rec.result_count == 2


def test_non_matching_lines_return_none():
	assert parse_query_line("", 1) is None
	assert parse_query_line("smartdns server started", 1) is None
	assert parse_query_line("[2025-11-21 05:33:18,910] server reload", 1) is None


def test_bad_timestamp_drops_line():
	line = "[yesterday] 10.0.0.1 query a.com, type 1, time 1ms, speed: 1ms, result 1.2.3.4"
	assert parse_query_line(line, 1) is None


def test_timestamp_without_milliseconds():
	line = "[2025-11-21 05:33:18] 10.0.0.1 query a.com, type 1, time 1ms, speed: 1ms, result 1.2.3.4"
	rec = parse_query_line(line, 1)

	assert rec is not None
	assert rec.timestamp == datetime(2025, 11, 21, 5, 33, 18)


def test_out_of_range_numbers_default_to_zero():
	line = "[2025-11-21 05:33:18,910] 10.0.0.1 query a.com, type 70000, time 99999999999ms, speed: 1.-2ms, result "
	rec = parse_query_line(line, 1)

	assert rec is not None
	assert rec.query_type == 0
	assert rec.time_ms == 0
	assert rec.speed_ms == 0.0


def test_result_ips_capped_and_blank_entries_dropped():
	ips = ", ".join(f"10.0.{i // 256}.{i % 256}" for i in range(300))
	line = f"[2025-11-21 05:33:18,910] 10.0.0.1 query big.com, type 1, time 1ms, speed: 1ms, result {ips},,"
	rec = parse_query_line(line, 1)

	assert rec is not None
	assert rec.result_count == MAX_RESULT_IPS
	assert rec.result_count == len(rec.result_ips)
	assert "" not in rec.result_ips


def test_to_row_matches_insert_columns():
	rec = parse_query_line(SAMPLE_LINE, node_id=3)
	row = rec.to_row()

	assert tuple(row) == INSERT_COLUMNS
	assert row["timestamp"] == "2025-11-21 05:33:18.910"
	assert row["date"] == "2025-11-21"
	assert row["result_ips"] == ["172.67.149.148"]
	assert row["result_count"] == 1

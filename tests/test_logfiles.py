# tests/test_logfiles.py
"""Tests for the agent's own log file helpers."""
import logging

from dnsagent.utils.logfiles import AGENT_LOG_NAME, attach_file_handler, read_recent_logs


def test_read_recent_logs_returns_tail(tmp_path):
	path = tmp_path / AGENT_LOG_NAME
	path.write_text("".join(f"entry {i}\n" for i in range(5000)) + "\n\n")

	lines = read_recent_logs(path, 3)

	assert lines == ["entry 4997", "entry 4998", "entry 4999"]


def test_read_recent_logs_small_and_missing(tmp_path):
	path = tmp_path / AGENT_LOG_NAME
	path.write_text("only\n")

	assert read_recent_logs(path, 100) == ["only"]
	assert read_recent_logs(tmp_path / "missing.log", 10) == []
	assert read_recent_logs(None, 10) == []


def test_attach_file_handler(tmp_path):
	root = logging.getLogger()
	log_path = attach_file_handler(tmp_path / "logs", 3, logging.Formatter("%(message)s"))
	try:
		assert log_path == tmp_path / "logs" / AGENT_LOG_NAME
		handler = root.handlers[-1]
		assert handler.backupCount == 3
	finally:
		for h in list(root.handlers):
			if getattr(h, "baseFilename", None) == str(log_path):
				root.removeHandler(h)
				h.close()


def test_attach_file_handler_unusable_dir(tmp_path):
	blocker = tmp_path / "file"
	blocker.write_text("")

	assert attach_file_handler(blocker / "logs", 7, logging.Formatter()) is None

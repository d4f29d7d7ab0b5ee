# tests/test_checkpoint.py
"""Tests for checkpoint persistence and cold-start offset resolution."""
import json
import os
from datetime import timedelta

from dnsagent.ingest.checkpoint import Checkpoint, CheckpointStore, resolve_start_offset
from dnsagent.utils.time import from_mtime


def _log_file(tmp_path, size: int):
	path = tmp_path / "audit.log"
	path.write_bytes(b"x" * size)
	return path


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

def test_save_load_roundtrip_keeps_position(tmp_path):
	log = _log_file(tmp_path, 100)
	store = CheckpointStore.for_node(tmp_path / "state", 42)

	store.save(store.snapshot(log, 64))
	loaded = store.load()

	assert store.path.name == "position-node-42.json"
	assert loaded is not None
	assert loaded.file_path == str(log)
	assert loaded.last_position == 64
	assert loaded.file_size == 100
	assert loaded.last_mod_time is not None
	assert not store.path.with_suffix(".tmp").exists()


def test_load_missing_returns_none(tmp_path):
	assert CheckpointStore(tmp_path / "none.json").load() is None


def test_load_corrupt_returns_none(tmp_path):
	path = tmp_path / "cp.json"
	path.write_text("{not json")
	assert CheckpointStore(path).load() is None

	path.write_text(json.dumps({"file_path": "/x", "last_position": -5}))
	assert CheckpointStore(path).load() is None

	path.write_text(json.dumps(["list"]))
	assert CheckpointStore(path).load() is None


def test_for_node_falls_back_to_temp_dir(tmp_path, monkeypatch):
	blocker = tmp_path / "file"
	blocker.write_text("")
	monkeypatch.setattr("tempfile.gettempdir", lambda: str(tmp_path))

	store = CheckpointStore.for_node(blocker / "state", 1)

	assert store.path == tmp_path / "position-node-1.json"


def test_snapshot_missing_file(tmp_path):
	store = CheckpointStore(tmp_path / "cp.json")
	assert store.snapshot(tmp_path / "gone.log", 10) is None


# ---------------------------------------------------------------------------
# resolve_start_offset
# ---------------------------------------------------------------------------

def test_no_checkpoint_starts_at_end(tmp_path):
	log = _log_file(tmp_path, 300)
	assert resolve_start_offset(None, log) == 300


def test_missing_file_starts_at_zero(tmp_path):
	cp = Checkpoint(file_path=str(tmp_path / "audit.log"), last_position=50)
	assert resolve_start_offset(cp, tmp_path / "audit.log") == 0


def test_resume_at_checkpoint_when_file_grew(tmp_path):
	log = _log_file(tmp_path, 800)
	cp = Checkpoint(file_path=str(log), last_position=500)
	assert resolve_start_offset(cp, log) == 500


def test_truncated_file_starts_at_zero(tmp_path):
	log = _log_file(tmp_path, 100)
	cp = Checkpoint(file_path=str(log), last_position=500)
	assert resolve_start_offset(cp, log) == 0


def test_recreated_file_starts_at_zero(tmp_path):
	log = _log_file(tmp_path, 10)
	old_mtime = from_mtime(os.stat(log).st_mtime) - timedelta(hours=1)
	cp = Checkpoint(file_path=str(log), last_position=20, last_mod_time=old_mtime)
	assert resolve_start_offset(cp, log) == 0


def test_different_path_starts_at_end(tmp_path):
	log = _log_file(tmp_path, 250)
	cp = Checkpoint(file_path="/var/log/other.log", last_position=10)
	assert resolve_start_offset(cp, log) == 250


def test_load_wrong_timestamp_type_returns_none(tmp_path):
	path = tmp_path / "cp.json"
	path.write_text(json.dumps({"file_path": "/x", "last_position": 5, "last_mod_time": 12345}))
	assert CheckpointStore(path).load() is None

	path.write_text(json.dumps({"file_path": "/x", "last_position": 5, "updated_at": ["2025"]}))
	assert CheckpointStore(path).load() is None


def test_null_timestamps_are_accepted(tmp_path):
	path = tmp_path / "cp.json"
	path.write_text(json.dumps({"file_path": "/x", "last_position": 5, "last_mod_time": None}))

	loaded = CheckpointStore(path).load()

	assert loaded is not None
	assert loaded.last_position == 5
	assert loaded.last_mod_time is None


def test_save_leaves_no_temp_files(tmp_path):
	log = _log_file(tmp_path, 10)
	store = CheckpointStore(tmp_path / "state" / "cp.json")

	for position in range(5):
		store.save(store.snapshot(log, position))

	assert [p.name for p in (tmp_path / "state").iterdir()] == ["cp.json"]
	assert store.load().last_position == 4

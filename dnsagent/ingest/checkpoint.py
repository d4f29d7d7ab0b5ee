#!/usr/bin/env python3
#
# dnsagent/ingest/checkpoint.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Durable read position for the SmartDNS log tailer."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from ..utils.time import from_mtime, parse_utc, utcnow

_log = logging.getLogger(__name__)

__all__ = ["Checkpoint", "CheckpointStore", "resolve_start_offset"]


@dataclass
class Checkpoint:
	"""Persistent state for one (agent, log file) pair."""
	file_path: str
	last_position: int
	last_mod_time: datetime | None = None
	file_size: int = 0
	updated_at: datetime | None = None

	def to_dict(self) -> dict:
		return {
			"file_path": self.file_path,
			"last_position": self.last_position,
			"last_mod_time": self.last_mod_time.isoformat() if self.last_mod_time else None,
			"file_size": self.file_size,
			"updated_at": self.updated_at.isoformat() if self.updated_at else None,
		}

	@classmethod
	def from_dict(cls, data: dict) -> "Checkpoint":
		"""Build from decoded JSON.

		Raises:
			ValueError: Required fields are missing or of the wrong type.
		"""
		file_path = data.get("file_path")
		position = data.get("last_position")
		if not isinstance(file_path, str) or not isinstance(position, int) or isinstance(position, bool):
			raise ValueError("checkpoint requires file_path (str) and last_position (int)")
		if position < 0:
			raise ValueError(f"negative last_position: {position}")
		size = data.get("file_size", 0)
		return cls(
			file_path=file_path,
			last_position=position,
			last_mod_time=_optional_timestamp(data, "last_mod_time"),
			file_size=size if isinstance(size, int) else 0,
			updated_at=_optional_timestamp(data, "updated_at"),
		)


def _optional_timestamp(data: dict, key: str) -> datetime | None:
	"""ISO timestamp field that may be absent or null.

	Raises:
		ValueError: The field holds something other than a string.
	"""
	value = data.get(key)
	if value is None or value == "":
		return None
	if not isinstance(value, str):
		raise ValueError(f"{key} must be an ISO timestamp string, got {type(value).__name__}")
	return parse_utc(value)


class CheckpointStore:
	"""JSON file holding the checkpoint, written atomically (tmp + replace)."""

	def __init__(self, path: Path):
		self.path = path

	@classmethod
	def for_node(cls, state_dir: Path, node_id: int) -> "CheckpointStore":
		"""Store under *state_dir*, falling back to the temp dir if unusable."""
		try:
			state_dir.mkdir(parents=True, exist_ok=True)
		except OSError as e:
			fallback = Path(tempfile.gettempdir())
			_log.warning("CHECKPOINT cannot create %s (%s), using %s", state_dir, e, fallback)
			state_dir = fallback
		return cls(state_dir / f"position-node-{node_id}.json")

	def load(self) -> Checkpoint | None:
		"""Return the stored checkpoint, or None if absent or unreadable."""
		try:
			raw = self.path.read_text(encoding="utf-8")
		except FileNotFoundError:
			_log.info("CHECKPOINT no checkpoint at %s", self.path)
			return None
		except OSError as e:
			_log.warning("CHECKPOINT failed to read %s: %s", self.path, e)
			return None

		try:
			data = json.loads(raw)
			if not isinstance(data, dict):
				raise ValueError("checkpoint is not a JSON object")
			return Checkpoint.from_dict(data)
		except ValueError as e:
			_log.warning("CHECKPOINT ignoring corrupt checkpoint %s: %s", self.path, e)
			return None

	def save(self, checkpoint: Checkpoint) -> None:
		"""Persist *checkpoint*.

		Raises:
			OSError: The file could not be written.
		"""
		self.path.parent.mkdir(parents=True, exist_ok=True)
		# Unique temp name per writer; concurrent saves never share a file
		with tempfile.NamedTemporaryFile(
			"w",
			encoding="utf-8",
			dir=self.path.parent,
			prefix=f".{self.path.name}.",
			suffix=".tmp",
			delete=False,
		) as tmp:
			json.dump(checkpoint.to_dict(), tmp)
		try:
			os.replace(tmp.name, self.path)
		except OSError:
			Path(tmp.name).unlink(missing_ok=True)
			raise
		_log.debug("CHECKPOINT saved position=%d file=%s", checkpoint.last_position, checkpoint.file_path)

	def snapshot(self, log_path: Path, position: int) -> Checkpoint | None:
		"""Build a checkpoint for *log_path* at *position* (None if unstat-able)."""
		try:
			st = log_path.stat()
		except OSError:
			return None
		return Checkpoint(
			file_path=str(log_path),
			last_position=position,
			last_mod_time=from_mtime(st.st_mtime),
			file_size=st.st_size,
			updated_at=utcnow(),
		)


def resolve_start_offset(checkpoint: Checkpoint | None, log_path: Path) -> int:
	"""Decide where a freshly started tailer begins reading.

	- No checkpoint: current end of file (backlog is skipped)
	- Checkpoint for a different path: end of file
	- File recreated (newer mtime, smaller than position) or truncated: 0
	- Otherwise: the stored position
	"""
	try:
		st = log_path.stat()
	except OSError as e:
		_log.warning("CHECKPOINT cannot stat %s (%s), starting at 0", log_path, e)
		return 0

	if checkpoint is None:
		_log.info("CHECKPOINT starting at end of file: %d", st.st_size)
		return st.st_size

	if checkpoint.file_path != str(log_path):
		_log.info(
			"CHECKPOINT log path changed (%s -> %s), starting at end of file",
			checkpoint.file_path, log_path,
		)
		return st.st_size

	mtime = from_mtime(st.st_mtime)
	if (
		checkpoint.last_mod_time is not None
		and mtime > checkpoint.last_mod_time
		and st.st_size < checkpoint.last_position
	):
		_log.info("CHECKPOINT log file was recreated, starting at 0")
		return 0

	if st.st_size < checkpoint.last_position:
		_log.info(
			"CHECKPOINT log file truncated (size=%d < position=%d), starting at 0",
			st.st_size, checkpoint.last_position,
		)
		return 0

	_log.info("CHECKPOINT resuming at position %d (%s)", checkpoint.last_position, log_path)
	return checkpoint.last_position

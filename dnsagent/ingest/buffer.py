#!/usr/bin/env python3
#
# dnsagent/ingest/buffer.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Thread-safe batch buffer shared by the tail loop and the flush timer."""

from __future__ import annotations

import threading
from typing import Generic, TypeVar

__all__ = ["BatchBuffer"]

T = TypeVar("T")


class BatchBuffer(Generic[T]):
	"""Append-only holding area with an atomic drain.

	There is no backpressure: callers check the size returned by append()
	against ``capacity`` and flush inline when it is reached.
	"""

	def __init__(self, capacity: int):
		if capacity < 1:
			raise ValueError(f"capacity must be >= 1, got {capacity}")
		self.capacity = capacity
		self._items: list[T] = []
		self._lock = threading.Lock()

	def append(self, item: T) -> int:
		"""Add one item and return the new buffer size."""
		with self._lock:
			self._items.append(item)
			return len(self._items)

	def drain_all(self) -> list[T]:
		"""Swap in an empty buffer and return the previous contents."""
		with self._lock:
			items, self._items = self._items, []
		return items

	def size(self) -> int:
		with self._lock:
			return len(self._items)

	def is_full(self) -> bool:
		return self.size() >= self.capacity

	def __len__(self) -> int:
		return self.size()

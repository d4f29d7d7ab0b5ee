#!/usr/bin/env python3
#
# dnsagent/api/response.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Common API response helpers."""

from __future__ import annotations

from typing import Any


def ok_response(
	*,
	message: str | None = None,
	data: Any = None,
) -> dict[str, Any]:
	"""Build the agent's success envelope: ``{"status": "ok", ...}``.

	``message`` carries human-readable outcomes of control actions, ``data``
	carries query results. Either may be omitted.
	"""
	payload: dict[str, Any] = {"status": "ok"}
	if message is not None:
		payload["message"] = message
	if data is not None:
		payload["data"] = data
	return payload

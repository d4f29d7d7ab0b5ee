#!/usr/bin/env python3
#
# dnsagent/utils/request_id.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Request tracing middleware for the control API."""

from __future__ import annotations

import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp


class RequestIDMiddleware(BaseHTTPMiddleware):
	"""Echo (or mint) X-Request-ID and tag every response with the node id.

	The central manager talks to many agents; X-Node-ID lets it match a
	response to the agent that produced it.
	"""

	def __init__(self, app: ASGIApp, node_id: int):
		super().__init__(app)
		self.node_id = str(node_id)

	async def dispatch(self, request: Request, call_next: Callable) -> Response:
		request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
		request.state.request_id = request_id

		response = await call_next(request)

		response.headers["X-Request-ID"] = request_id
		response.headers["X-Node-ID"] = self.node_id
		return response

#!/usr/bin/env python3
#
# dnsagent/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""SmartDNS Log Agent: ships SmartDNS query logs to ClickHouse."""

VERSION = "0.0.3"

from .main import create_app  # noqa: E402

__all__ = ["VERSION", "create_app"]

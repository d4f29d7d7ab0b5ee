#!/usr/bin/env python3
#
# main.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

# SmartDNS Log Agent
# Process entry point: python main.py [--version]
#

import argparse
import sys

import uvicorn
from dnsagent import VERSION
from dnsagent.main import LOG_DATE_FORMAT, LOG_FORMAT
from dnsagent.utils.config import ConfigValidationError, load_config

# Uvicorn logging dict-config that reuses the same format as the app
_UVICORN_LOG_CONFIG: dict = {
	"version": 1,
	"disable_existing_loggers": False,
	"formatters": {
		"default": {
			"format": LOG_FORMAT,
			"datefmt": LOG_DATE_FORMAT,
		},
	},
	"handlers": {
		"default": {
			"formatter": "default",
			"class": "logging.StreamHandler",
			"stream": "ext://sys.stdout",
		},
	},
	"loggers": {
		"uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
		"uvicorn.error": {"level": "INFO"},
		"uvicorn.access": {"handlers": ["default"], "level": "INFO", "propagate": False},
	},
}


def _parse_args(argv=None) -> argparse.Namespace:
	parser = argparse.ArgumentParser(description="SmartDNS query log agent")
	parser.add_argument("--version", action="version", version=f"smartdns-log-agent {VERSION}")
	return parser.parse_args(argv)


if __name__ == "__main__":
	_parse_args()

	try:
		cfg = load_config()
	except ConfigValidationError as exc:
		sys.stderr.write(f"Configuration error: {exc}\n")
		sys.exit(1)

	# Set levels in the uvicorn log-config to match the app
	for _logger in _UVICORN_LOG_CONFIG["loggers"].values():
		_logger["level"] = cfg.log_level

	uvicorn.run(
		"dnsagent:create_app",
		host="0.0.0.0",
		port=cfg.api_port,
		factory=True,
		log_config=_UVICORN_LOG_CONFIG,
	)

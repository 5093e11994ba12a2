"""Structured logging initialisation utilities."""
from __future__ import annotations

import logging
import logging.config
import sys
from pathlib import Path
from typing import Any, Dict

import structlog
import yaml


def configure_logging(config_path: Path, *, level: int = logging.INFO) -> None:
    """Configure stdlib and structlog logging using the YAML definition.

    structlog renders JSON and hands it to stdlib logging, whose handlers come
    from the YAML file or default to stderr so command output on stdout stays
    machine readable.
    """
    if config_path.exists():
        with config_path.open("r", encoding="utf-8") as handle:
            config: Dict[str, Any] = yaml.safe_load(handle)
        logging.config.dictConfig(config)
    else:
        logging.basicConfig(level=level, stream=sys.stderr, format="%(message)s")
    logging.getLogger().setLevel(level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

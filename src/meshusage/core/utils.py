"""Utility functions."""

import logging.config
import structlog
import yaml
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Union

from kubernetes.utils import parse_quantity

from meshusage.core.constants import GIB, UNKNOWN

logger = structlog.get_logger(__name__)


def setup_logging(config_path: Optional[Union[str, Path]] = None, log_level: str = "INFO") -> None:
    """Setup structured logging configuration."""
    if config_path and Path(config_path).exists():
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f)
        logging.config.dictConfig(config)
    else:
        # Default configuration
        logging.basicConfig(
            level=getattr(logging, log_level.upper()),
            format='%(message)s'
        )
        logging.getLogger().setLevel(getattr(logging, log_level.upper()))

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if config_path else structlog.dev.ConsoleRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def cpu_to_cores(quantity: Any) -> float:
    """Convert a Kubernetes CPU quantity ('250m', '2', '123456n') to cores."""
    if quantity is None or quantity == "":
        return 0.0
    try:
        return float(parse_quantity(quantity))
    except ValueError:
        logger.debug("Unparseable CPU quantity", quantity=quantity)
        return 0.0


def memory_to_gib(quantity: Any) -> float:
    """Convert a Kubernetes memory quantity ('256Mi', '1G', '1024Ki') to GiB."""
    if quantity is None or quantity == "":
        return 0.0
    try:
        return float(parse_quantity(quantity)) / GIB
    except ValueError:
        logger.debug("Unparseable memory quantity", quantity=quantity)
        return 0.0


def first_label(labels: Optional[Mapping[str, str]], keys: Sequence[str], default: str = UNKNOWN) -> str:
    """Return the first non-empty value among ``keys`` in ``labels``."""
    labels = labels or {}
    for key in keys:
        value = labels.get(key)
        if value:
            return value
    return default

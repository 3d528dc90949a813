"""
Structured logging for the wallet session service.

Every record, whether it comes from structlog or from a module's
``logging.getLogger(__name__)``, is stamped with the service name and the
Stellar network and scrubbed of secret material before it is rendered: JSON
normally, console output at DEBUG.
"""

import logging
import re
import sys
from typing import Any, MutableMapping, Optional, TextIO

import structlog

from .config import settings


SERVICE_NAME = "galerie-wallet"
HANDLER_NAME = "galerie"
REDACTED = "[redacted]"

# Fields that may carry key material or signatures.
SECRET_FIELDS = frozenset({"secret", "secret_seed", "transientSecret", "private_key", "signature"})

# Stellar secret seeds (StrKey "S...", 56 chars). Transaction hashes are hex and stay visible.
_SECRET_SEED = re.compile(r"\bS[A-Z2-7]{55}\b")

# Per-call HTTP lines from balance polling and provider clients.
NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def add_service_context(_: Any, __: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("network", settings.stellar_network)
    return event_dict


def redact_secrets(_: Any, __: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    for key, value in list(event_dict.items()):
        if key in SECRET_FIELDS and value:
            event_dict[key] = REDACTED
        elif isinstance(value, str):
            event_dict[key] = _SECRET_SEED.sub(REDACTED, value)
    return event_dict


def setup_logging(log_level: Optional[str] = None, *, stream: Optional[TextIO] = None) -> None:
    """Configure structlog and route stdlib logging through it.

    Safe to call more than once: only the handler installed here is replaced,
    other root handlers are left alone.

    Args:
        log_level: Override log level (default: from settings.log_level)
        stream: Output stream (default: stdout; the CLI passes stderr)
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    is_dev = level == logging.DEBUG

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service_context,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        redact_secrets,
    ]

    if is_dev:
        renderer = structlog.dev.ConsoleRenderer()
    else:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

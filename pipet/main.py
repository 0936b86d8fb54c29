"""
Pipet — entry point.

Configures logging once (structlog on top of stdlib logging, with secrets
masked before anything is rendered) and hands off to the Click CLI.
"""

from __future__ import annotations

import logging
import re

import structlog

# Provider API keys (Anthropic, Google) that must never reach a log line
_SECRET_RE = re.compile(r"(sk-ant-[A-Za-z0-9_\-]{8,}|AIza[0-9A-Za-z_\-]{20,})")
_TRUNCATED_KEYS = {"command", "output", "content"}
_MAX_DISPLAY_LEN = 120


def _redact_sensitive_fields(logger, method_name, event_dict):
    """
    Structlog processor that masks API keys and shortens bulky fields.

    Shell commands and their output can be long; only their head is logged.
    """
    for key, val in list(event_dict.items()):
        if not isinstance(val, str):
            continue
        val = _SECRET_RE.sub("[REDACTED]", val)
        if key in _TRUNCATED_KEYS and len(val) > _MAX_DISPLAY_LEN:
            val = val[:_MAX_DISPLAY_LEN] + "... [truncated]"
        event_dict[key] = val
    return event_dict


_logging_configured = False


def configure_logging(verbose: bool = False) -> None:
    """Configure structlog and standard-library logging for Pipet entry points.

    Safe to call more than once; subsequent calls are no-ops.
    """
    global _logging_configured  # noqa: PLW0603
    if _logging_configured:
        return
    _logging_configured = True

    logging.basicConfig(
        format="%(message)s",
        level=logging.DEBUG if verbose else logging.WARNING,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            _redact_sensitive_fields,
            structlog.dev.ConsoleRenderer(colors=True),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


def main() -> None:
    from pipet.cli import cli

    cli()


if __name__ == "__main__":
    main()

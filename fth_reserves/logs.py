"""
Structured JSON logging.

``configure_logging`` installs a single stdout handler with a JSON
formatter on the root logger. Modules log through
``logging.getLogger(__name__)`` as usual; ``log_ledger_event`` emits the
one structured event each runner writes per outcome.

Every record passes ``RedactSecretsFilter`` before it is formatted:
extra fields named like credentials are replaced, and anything shaped
like an XRPL family seed is masked in messages and string fields.
"""

from __future__ import annotations

import logging
import re
import sys
from typing import Any

from pythonjsonlogger import jsonlogger

from fth_reserves.config import Settings

ledger_logger = logging.getLogger("fth_reserves.ledger")

REDACTED = "***"

# Substrings of field names that always hold credentials.
_SECRET_KEY_PARTS = ("seed", "secret", "private_key", "privatekey", "password", "mnemonic")

# XRPL family seeds: "s" + 28 base58 characters.
_SEED_RE = re.compile(r"\bs[1-9A-HJ-NP-Za-km-z]{28}\b")

_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


def _is_secret_key(key: str) -> bool:
    lowered = key.lower()
    return any(part in lowered for part in _SECRET_KEY_PARTS)


def redact(value: Any) -> Any:
    """Mask seed-shaped substrings and credential-named keys, recursively."""
    if isinstance(value, str):
        return _SEED_RE.sub(REDACTED, value)
    if isinstance(value, dict):
        return {
            k: REDACTED if isinstance(k, str) and _is_secret_key(k) else redact(v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [redact(v) for v in value]
    if type(value) is tuple:
        return tuple(redact(v) for v in value)
    return value


class RedactSecretsFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact(record.getMessage())
        record.args = None
        for key in list(record.__dict__):
            if key in _STANDARD_ATTRS or key.startswith("_"):
                continue
            if _is_secret_key(key):
                record.__dict__[key] = REDACTED
            else:
                record.__dict__[key] = redact(record.__dict__[key])
        return True


class RedactingJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that also masks seeds inside formatted tracebacks."""

    def formatException(self, ei: Any) -> str:
        return redact(super().formatException(ei))


def configure_logging(settings: Settings) -> None:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    # clear handlers if reloaded
    root.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    fmt = RedactingJsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        rename_fields={"levelname": "level", "name": "logger"},
    )
    handler.setFormatter(fmt)
    handler.addFilter(RedactSecretsFilter())
    root.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


def log_ledger_event(
    *,
    flow: str,
    ledger: str,
    status: str,
    correlation_id: str | None = None,
    member_id: str | None = None,
    wallet: str | None = None,
    tx_hash: str | None = None,
    error_code: str | None = None,
    error_message: str | None = None,
    payload_summary: str | None = None,
) -> None:
    """Emit one structured ledger event. None-valued fields are omitted."""
    fields = {
        "flow": flow,
        "ledger": ledger,
        "status": status,
        "correlation_id": correlation_id,
        "member_id": member_id,
        "wallet": wallet,
        "tx_hash": tx_hash,
        "error_code": error_code,
        "error_message": error_message,
        "payload_summary": payload_summary,
    }
    extra = {k: v for k, v in fields.items() if v is not None}
    if status == "failed":
        ledger_logger.error("ledger_event", extra=extra)
    else:
        ledger_logger.info("ledger_event", extra=extra)

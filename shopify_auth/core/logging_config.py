"""Structured JSON logging with request ids and credential redaction."""

import contextvars
import logging
import re
import uuid
from collections.abc import Iterable

from pythonjsonlogger.json import JsonFormatter

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="")

# Shopify access tokens: shpat_, shpca_, shpua_, shppa_ ...
ACCESS_TOKEN_RE = re.compile(r"\bshp[a-z]{2}_[0-9A-Za-z]+")
REDACTED = "[REDACTED]"


class RequestIdFilter(logging.Filter):
    """Inject request_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("")  # type: ignore[attr-defined]
        return True


class RedactionFilter(logging.Filter):
    """Scrub the app secret and anything shaped like an access token.

    The message is rendered once with its args and stored back on the record,
    so formatters downstream only ever see the scrubbed text.
    """

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        super().__init__()
        self.secrets = [s for s in secrets if s]

    def redact(self, text: str) -> str:
        for secret in self.secrets:
            text = text.replace(secret, REDACTED)
        return ACCESS_TOKEN_RE.sub(REDACTED, text)

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        scrubbed = self.redact(message)
        if scrubbed != message:
            record.msg = scrubbed
            record.args = None
        return True


def setup_logging(*, debug: bool = False, redact: Iterable[str] = ()) -> None:
    """Configure root logger with JSON formatter, request-id and redaction filters."""
    handler = logging.StreamHandler()
    formatter = JsonFormatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s",
        rename_fields={"asctime": "timestamp", "levelname": "level"},
    )
    handler.setFormatter(formatter)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(RedactionFilter(redact))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug else logging.INFO)


def generate_request_id() -> str:
    """Generate a new request ID."""
    return uuid.uuid4().hex[:16]

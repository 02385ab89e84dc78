import hashlib
import json
import logging
import re
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytz
import requests

from core.config import settings

LOCAL_TZ = pytz.timezone(settings.LOG_TIMEZONE)

TEXT_LAYOUT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_TEXT_LAYOUT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
DATE_LAYOUT = "%Y-%m-%d %H:%M:%S"

# Keyword arguments the adapter lifts into ``extra``
TIMING_KEYS = ("duration", "duration_ms")


class SensitiveDataFilter(logging.Filter):
    """Masks bot tokens, webhook secrets and Supabase credentials."""

    PATTERNS = [
        (re.compile(r"(TELEGRAM_TOKEN=|bot)[0-9]{8,}:[A-Za-z0-9_-]{35}"), r"\1***MASKED***"),
        (re.compile(r"(SUPABASE_KEY=|eyJ)[A-Za-z0-9_.-]{100,}"), r"\1***MASKED***"),
        (
            re.compile(
                r"(DISCORD_WEBHOOK_URL=|ERROR_WEBHOOK_URL=|https://discord(?:app)?\.com/api/webhooks/)"
                r"[0-9]+/[A-Za-z0-9_-]+"
            ),
            r"\1***MASKED***",
        ),
        (re.compile(r"https://[a-z0-9-]+\.supabase\.co"), r"***SUPABASE_URL***"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self._mask_sensitive(record.msg)
        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                self._mask_sensitive(a) if isinstance(a, str) else a for a in record.args
            )
        return True

    def _mask_sensitive(self, text: str) -> str:
        for pattern, replacement in self.PATTERNS:
            text = pattern.sub(replacement, text)
        return text


def _timing_suffix(record: logging.LogRecord) -> str:
    if getattr(record, "duration_ms", None) is not None:
        return f" | ⏱️ {record.duration_ms:.2f}ms"
    if getattr(record, "duration", None) is not None:
        return f" | ⏱️ {record.duration:.2f}s"
    return ""


class CourseBotFormatter(logging.Formatter):
    """
    Human-readable formatter.

    Timestamps are rendered in the configured timezone, structured context
    is appended as ``key=value`` pairs and timings as a trailing stopwatch.
    """

    def formatTime(self, record, datefmt=None):
        stamp = datetime.fromtimestamp(record.created, LOCAL_TZ)
        return stamp.strftime(datefmt) if datefmt else stamp.isoformat(timespec="milliseconds")

    def format(self, record):
        line = super().format(record)
        context = getattr(record, "context", None)
        if context:
            line += " | " + " | ".join(f"{k}={v}" for k, v in context.items())
        return line + _timing_suffix(record)


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record):
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, LOCAL_TZ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
        }
        context = getattr(record, "context", None)
        if context:
            payload["context"] = context
        if getattr(record, "duration", None) is not None:
            payload["duration_seconds"] = record.duration
        if getattr(record, "duration_ms", None) is not None:
            payload["duration_ms"] = record.duration_ms
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class StructuredLoggerAdapter(logging.LoggerAdapter):
    """
    Accepts ``context={...}``, ``duration=`` and ``duration_ms=`` on any log
    call and forwards them to the formatters through ``extra``.
    """

    def process(self, msg, kwargs):
        extra = kwargs.setdefault("extra", {})
        extra["context"] = {**self.extra, **kwargs.pop("context", {})}
        for key in TIMING_KEYS:
            if key in kwargs:
                extra[key] = kwargs.pop(key)
        return msg, kwargs


class ErrorWebhookHandler(logging.Handler):
    """
    Posts WARNING+ records to a Discord-compatible webhook from a worker
    thread. Repeats from the same call site are dropped for a minute.
    """

    THROTTLE_SECONDS = 60
    DESCRIPTION_LIMIT = 4000
    TRACEBACK_LIMIT = 1000

    def __init__(self, webhook_url: str):
        super().__init__()
        self.webhook_url = webhook_url
        self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="error-webhook")
        self.last_seen: Dict[str, float] = {}

    def _embed(self, record: logging.LogRecord) -> Dict[str, Any]:
        embed = {
            "title": f"[{record.levelname}] {record.name}",
            "description": record.getMessage()[: self.DESCRIPTION_LIMIT],
            "color": 0xFF0000 if record.levelno >= logging.ERROR else 0xFFA500,
            "timestamp": datetime.fromtimestamp(record.created, pytz.utc).isoformat(),
            "footer": {"text": f"{record.module}:{record.lineno}"},
        }
        if record.exc_info:
            trace = logging.Formatter().formatException(record.exc_info)
            if len(trace) > self.TRACEBACK_LIMIT:
                trace = trace[: self.TRACEBACK_LIMIT] + "..."
            embed["fields"] = [{"name": "Traceback", "value": f"```python\n{trace}\n```"}]
        return embed

    def _post(self, record: logging.LogRecord):
        try:
            requests.post(self.webhook_url, json={"embeds": [self._embed(record)]}, timeout=2.0)
        except Exception as e:
            sys.stderr.write(f"Failed to send log to error webhook: {e}\n")

    def _throttled(self, record: logging.LogRecord) -> bool:
        # Keyed on the message template so formatted variants share a slot
        key = hashlib.md5(f"{record.pathname}:{record.lineno}:{record.msg}".encode()).hexdigest()
        now = time.time()
        if now - self.last_seen.get(key, 0) < self.THROTTLE_SECONDS:
            return True
        self.last_seen[key] = now
        return False

    def emit(self, record: logging.LogRecord):
        try:
            if not self._throttled(record):
                self.executor.submit(self._post, record)
        except Exception:
            self.handleError(record)

    def close(self):
        self.executor.shutdown(wait=False)
        super().close()


_webhook_handler: Optional[ErrorWebhookHandler] = None


def _shared_webhook_handler() -> Optional[ErrorWebhookHandler]:
    """
    One webhook handler for every module logger, so a single worker thread
    and a single throttle table cover the whole process.
    """
    global _webhook_handler
    if not settings.ERROR_WEBHOOK_URL:
        return None
    if _webhook_handler is None:
        _webhook_handler = ErrorWebhookHandler(settings.ERROR_WEBHOOK_URL)
        _webhook_handler.setLevel(logging.WARNING)
        _webhook_handler.addFilter(SensitiveDataFilter())
    return _webhook_handler


def _handlers(log_file: Optional[str]) -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.INFO)
    console.setFormatter(CourseBotFormatter(TEXT_LAYOUT, datefmt=DATE_LAYOUT))
    handlers: List[logging.Handler] = [console]

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        rotating = RotatingFileHandler(
            path,
            maxBytes=settings.LOG_MAX_BYTES,
            backupCount=settings.LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        rotating.setLevel(logging.DEBUG)
        if settings.LOG_FORMAT.lower() == "json":
            rotating.setFormatter(JSONFormatter())
        else:
            rotating.setFormatter(CourseBotFormatter(FILE_TEXT_LAYOUT, datefmt=DATE_LAYOUT))
        handlers.append(rotating)

    webhook = _shared_webhook_handler()
    if webhook is not None:
        handlers.append(webhook)

    return handlers


def get_logger(
    name: str,
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
) -> StructuredLoggerAdapter:
    """
    Return a structured logger for ``name``.

    Handlers (console, rotating file, error webhook) are attached once per
    logger name; every handler masks secrets before writing.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return StructuredLoggerAdapter(logger, {})

    level = (log_level or settings.LOG_LEVEL).upper()
    logger.setLevel(getattr(logging, level, logging.INFO))

    for handler in _handlers(settings.LOG_FILE if log_file is None else log_file):
        if not handler.filters:
            handler.addFilter(SensitiveDataFilter())
        logger.addHandler(handler)

    # Handlers live here, the root logger would print twice
    logger.propagate = False
    return StructuredLoggerAdapter(logger, {})

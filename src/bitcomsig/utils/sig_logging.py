# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of BitcomSig - see LICENSE
# Refs: Python logging; RotatingFileHandler
'''
HOW TO USE logging in your code:

log = get_ctx_logger("bitcomsig.protocols.sigma")

log.trace("very technical details, like : every recovery candidate tried. usually unnecessary")
log.info("normal event / milestone")
log.debug("technical details for diagnosis, e.g. why a signature did not verify")
log.warning("a non-fatal condition that needs attention")
log.error("handled error")
log.exception("context message when an exception occurs") >automatically include traceback

Context fields (protocol / vin / segment) can be attached per call:
log.debug("[verify] bad signature", extra={"protocol": "SIGMA", "vin": 0})
'''

from __future__ import annotations

import os, logging, re, json, time
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional

from bitcomsig.utils import config as CFG

# ===== TRACE level (below DEBUG) =====
TRACE = 9
logging.addLevelName(TRACE, "TRACE")
def _trace(self, msg, *a, **k):
    if self.isEnabledFor(TRACE):
        self._log(TRACE, msg, a, **k)
logging.Logger.trace = _trace

CONTEXT_FIELDS = ("protocol", "vin", "segment")

# =========================
# 1) Filters and formatters
# =========================

_DEFAULT_FMT = "%(asctime)s [%(levelname)s] %(name)s {%(protocol)s vin=%(vin)s seg=%(segment)s}: %(message)s"
_DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"


class RedactFilter(logging.Filter):
    """Masks WIF keys and hex secrets before a record reaches any handler."""
    RE_WIF    = re.compile(r"\b[5KLc9][1-9A-HJ-NP-Za-km-z]{50,51}\b")
    RE_SECRET = re.compile(r"\b(priv(?:ate)?(?:_?key)?|secret)(\s*[=:]\s*)[0-9a-fA-F]{64}\b", re.I)
    def filter(self, record):
        msg = record.getMessage()
        msg = self.RE_WIF.sub("[REDACTED_WIF]", msg)
        msg = self.RE_SECRET.sub(r"\1\2[REDACTED_HEX]", msg)
        record.msg, record.args = msg, None
        return True

class RateLimitFilter(logging.Filter):
    """Drops a repeat of the same logger/level/template inside ``min_interval`` seconds."""
    def __init__(self, min_interval: float):
        super().__init__()
        self.min_interval = float(min_interval)
        self._last: dict[tuple, float] = {}
    def filter(self, record):
        key = (record.name, record.levelno, str(record.msg))
        now = time.monotonic()
        if now - self._last.get(key, float("-inf")) < self.min_interval:
            return False
        self._last[key] = now
        return True

class JsonFormatter(logging.Formatter):
    def format(self, record):
        d = {
            "ts": self.formatTime(record, _DEFAULT_DATEFMT),
            "lvl": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        d.update({k: getattr(record, k) for k in CONTEXT_FIELDS if getattr(record, k, "-") not in (None, "-")})
        if record.exc_info:
            d["exc"] = self.formatException(record.exc_info)
        return json.dumps(d, ensure_ascii=False)

class SafeFormatter(logging.Formatter):
    def format(self, record):
        for k in CONTEXT_FIELDS:
            if not hasattr(record, k):
                setattr(record, k, "-")
        return super().format(record)

class ContextAdapter(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        extra = kwargs.setdefault("extra", {})
        for k in CONTEXT_FIELDS:
            extra.setdefault(k, self.extra.get(k, "-") if self.extra else "-")
        return msg, kwargs

    def isEnabledFor(self, level: int) -> bool:
        return self.logger.isEnabledFor(level)

    def trace(self, msg, *args, **kwargs):
        if self.logger.isEnabledFor(TRACE):
            self.log(TRACE, msg, *args, **kwargs)


# =========================
# 2) Setup
# =========================

def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name or "bitcomsig")

def get_ctx_logger(name: str = "bitcomsig", **ctx) -> ContextAdapter:
    return ContextAdapter(get_logger(name), ctx)

def _handler(h: logging.Handler, as_json: bool, rate_seconds: float) -> logging.Handler:
    h.setFormatter(JsonFormatter() if as_json else SafeFormatter(_DEFAULT_FMT, _DEFAULT_DATEFMT))
    h.addFilter(RedactFilter())
    if rate_seconds > 0.0:
        h.addFilter(RateLimitFilter(rate_seconds))
    return h

def setup_logging(
    log_file: str | os.PathLike | None = None,
    level: int | str | None = None,
    to_console: bool | None = None,
    as_json: bool | None = None,
    force: bool = False,) -> logging.Logger:
    """Configure the root logger with a rotating file and an optional stderr mirror.

    Every argument left as None falls back to the ``LOG_*`` values in config.
    """
    log_path = Path(log_file if log_file is not None else CFG.LOG_PATH)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    if to_console is None:
        to_console = CFG.LOG_TO_CONSOLE
    if as_json is None:
        as_json = str(CFG.LOG_FORMAT).lower() == "json"

    lvl = level if level is not None else CFG.LOG_LEVEL
    if isinstance(lvl, str):
        lvl = logging.getLevelName(lvl.upper())
        if not isinstance(lvl, int):
            lvl = logging.INFO

    rate = float(CFG.LOG_RATE_LIMIT_SECONDS)
    handlers = [_handler(RotatingFileHandler(log_path, maxBytes=CFG.LOG_ROTATE_MAX_BYTES,
                                             backupCount=CFG.LOG_BACKUP_COUNT, encoding="utf-8", delay=True),
                         as_json, rate)]
    if to_console:
        handlers.append(_handler(logging.StreamHandler(), as_json, rate))

    logging.basicConfig(level=lvl, handlers=handlers, force=force)
    root = get_logger()
    root.trace("[setup_logging] level=%s file=%s json=%s console=%s",
               logging.getLevelName(lvl), log_path, as_json, to_console)
    return root


__all__ = [
    "TRACE",
    "RedactFilter",
    "RateLimitFilter",
    "JsonFormatter",
    "SafeFormatter",
    "ContextAdapter",
    "setup_logging",
    "get_logger",
    "get_ctx_logger",
]

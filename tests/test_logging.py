# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
# Part of BitcomSig - see LICENSE

import json
import logging
import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC_ROOT = os.path.join(PROJECT_ROOT, "src")
for path in (PROJECT_ROOT, SRC_ROOT):
    if path not in sys.path:
        sys.path.append(path)

from bitcomsig.utils.sig_logging import (  # noqa: E402
    JsonFormatter,
    RateLimitFilter,
    RedactFilter,
    get_ctx_logger,
)


def _record(msg, *args):
    return logging.LogRecord("bitcomsig.test", logging.INFO, __file__, 1, msg, args, None)


def test_redacts_wif_and_hex_secrets():
    rec = _record("wif %s secret=%s", "KwDiBf89QgGbjEhKnhXJuH7LrciVrZi3qYjgd9M7rFU73sVHnoWn", "ab" * 32)
    assert RedactFilter().filter(rec)
    out = rec.getMessage()
    assert "KwDiBf89" not in out
    assert "[REDACTED_WIF]" in out
    assert "secret=[REDACTED_HEX]" in out


def test_rate_limit_drops_repeats():
    f = RateLimitFilter(min_interval=60)
    assert f.filter(_record("same"))
    assert not f.filter(_record("same"))
    assert f.filter(_record("different"))


def test_context_adapter_fills_fields():
    log = get_ctx_logger("bitcomsig.test", protocol="SIGMA")
    _, kwargs = log.process("m", {"extra": {"vin": 3}})
    assert kwargs["extra"] == {"protocol": "SIGMA", "vin": 3, "segment": "-"}


def test_json_formatter_keeps_context():
    rec = _record("hello")
    rec.protocol, rec.vin, rec.segment = "AIP", "-", 2
    d = json.loads(JsonFormatter().format(rec))
    assert d["msg"] == "hello"
    assert d["protocol"] == "AIP" and d["segment"] == 2
    assert "vin" not in d


def test_setup_logging_writes_redacted_file(tmp_path):
    from bitcomsig.utils.sig_logging import setup_logging

    log_file = tmp_path / "bitcomsig.log"
    root = setup_logging(log_file=log_file, level="DEBUG", to_console=False, force=True)
    try:
        get_ctx_logger("bitcomsig.test", protocol="SIGMA").info(
            "[test] key %s", "KwDiBf89QgGbjEhKnhXJuH7LrciVrZi3qYjgd9M7rFU73sVHnoWn")
        for h in logging.getLogger().handlers:
            h.flush()
        text = log_file.read_text(encoding="utf-8")
    finally:
        for h in list(logging.getLogger().handlers):
            logging.getLogger().removeHandler(h)
            h.close()
    assert root.name == "bitcomsig"
    assert "[test] key [REDACTED_WIF]" in text
    assert "bitcomsig.test {SIGMA vin=- seg=-}" in text

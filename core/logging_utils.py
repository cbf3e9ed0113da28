from __future__ import annotations

import json
import logging
import os
import re
from contextvars import ContextVar
from typing import Any, Optional

# 주민등록번호(######-#######) / 휴대폰 번호(010-1234-5678, 01012345678)
_RRN = re.compile(r"\b\d{6}-\d{7}\b")
_MOBILE = re.compile(r"\b(01[016789])-?(\d{3,4})-?(\d{4})\b")


def scrub_pii(text: str) -> str:
    t = text or ""
    t = _RRN.sub("******-*******", t)
    t = _MOBILE.sub(lambda m: f"{m.group(1)}-****-{m.group(3)}", t)
    return t


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        data: dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "msg": scrub_pii(record.getMessage()),
        }
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)  # type: ignore[arg-type]
        rid = get_request_id()
        if rid and not hasattr(record, "request_id"):
            data["request_id"] = rid
        for key in ("request_id", "handler", "method", "status", "shop_id", "actor", "action"):
            if hasattr(record, key):
                data[key] = getattr(record, key)
        return json.dumps(data, ensure_ascii=False, default=str)


def configure_json_logging(level: int = logging.INFO) -> None:
    root = logging.getLogger()
    root.setLevel(level)
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    # Remove other handlers to avoid duplicate logs
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)


def maybe_enable_json_logging() -> None:
    if (os.environ.get("JSON_LOGS") or "").strip().lower() in {"1", "true", "yes", "on"}:
        configure_json_logging()


# Request-scoped context helpers
_REQUEST_ID: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def set_request_id(request_id: Optional[str]) -> None:
    _REQUEST_ID.set(request_id)


def get_request_id() -> Optional[str]:
    return _REQUEST_ID.get()

from __future__ import annotations

import logging
import sys
from typing import Any, MutableMapping, Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """
    Configure standard logging once for the whole service (stdout).

    Lambda and uvicorn may have installed a root handler already; in that case
    only the level is adjusted.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(numeric_level)
        return

    logging.basicConfig(level=numeric_level, format=LOG_FORMAT, stream=sys.stdout)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name or "products_api")


class RequestLogger(logging.LoggerAdapter):
    """Prefixes every record with the invocation's request id."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        request_id = (self.extra or {}).get("requestId")
        extra = kwargs.setdefault("extra", {})
        extra.setdefault("requestId", request_id)
        return f"[{request_id}] {msg}", kwargs


def request_logger(logger: logging.Logger, request_id: Optional[str]) -> RequestLogger:
    return RequestLogger(logger, {"requestId": request_id or "-"})

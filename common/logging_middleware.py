"""HTTP audit logging middleware shared by services."""
from __future__ import annotations

import logging
import uuid
from pathlib import Path
from time import perf_counter

from fastapi import FastAPI, Request

_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _build_logger(service_name: str) -> logging.Logger:
    logger = logging.getLogger(f"audit.{service_name}")
    if logger.handlers:
        return logger

    _LOG_DIR.mkdir(exist_ok=True)
    logger.setLevel(logging.INFO)
    handler = logging.FileHandler(_LOG_DIR / f"{service_name}.log")
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    return logger


def configure_logging(level: int = logging.INFO) -> None:
    """Console output for the application loggers (services.*, common.*)."""
    logging.basicConfig(level=level, format=_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


def add_audit_middleware(app: FastAPI, service_name: str) -> None:
    logger = _build_logger(service_name)

    @app.middleware("http")
    async def audit_logger(request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        start = perf_counter()
        response = await call_next(request)
        duration_ms = (perf_counter() - start) * 1000
        client_ip = request.client.host if request.client else "unknown"
        logger.info(
            "%s %s | status=%s | client=%s | request_id=%s | duration=%.2fms",
            request.method,
            request.url.path,
            response.status_code,
            client_ip,
            request_id,
            duration_ms,
        )
        response.headers["X-Request-ID"] = request_id
        return response

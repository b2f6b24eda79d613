from __future__ import annotations

import contextvars
import json
import logging
import threading
import time
import uuid
from collections import Counter
from datetime import datetime, timezone
from typing import Dict

from flask import g, has_request_context, request


_REQUEST_ID_CTX: contextvars.ContextVar[str] = contextvars.ContextVar("erp_obras_request_id", default="")

# attributes every LogRecord carries; anything else came in through `extra=`
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def set_log_request_id(request_id: str | None) -> None:
    _REQUEST_ID_CTX.set(str(request_id or "").strip())


def current_request_id(default: str | None = None) -> str:
    if has_request_context():
        request_id = str(getattr(g, "request_id", "") or "").strip()
        if request_id:
            return request_id
    return _REQUEST_ID_CTX.get() or default or "n/a"


def ensure_request_id() -> str:
    request_id = str(getattr(g, "request_id", "") or "").strip()
    if not request_id:
        request_id = str(request.headers.get("X-Request-Id") or "").strip() or uuid.uuid4().hex
        g.request_id = request_id
    set_log_request_id(request_id)
    return request_id


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line, with request context and `extra` fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, object] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": str(getattr(record, "request_id", "") or "") or current_request_id(),
        }
        if has_request_context():
            entry["method"] = request.method
            entry["path"] = request.path
            workspace_id = getattr(g, "workspace_id", None)
            if workspace_id:
                entry["workspace_id"] = workspace_id

        for key, value in vars(record).items():
            if key in _RECORD_ATTRS or key.startswith("_") or key in entry:
                continue
            entry[key] = value

        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, separators=(",", ":"), default=str)


def configure_json_logging(app) -> None:
    if not bool(app.config.get("LOG_JSON", True)):
        return
    level_name = str(app.config.get("LOG_LEVEL", "INFO")).strip().upper()

    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))
    app.logger.handlers = []
    app.logger.propagate = True


class MetricsRegistry:
    """In-process counters shown under /health; reset per test."""

    _MAX_ROUTES = 40

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._routes: Dict[str, Dict[str, float]] = {}
        self._workspaces: Counter = Counter()
        self._events: Counter = Counter()
        self._approvals: Counter = Counter()
        self._payables_generated = 0

    def observe_http(self, method: str, route: str, status_code: int, duration_ms: float, workspace_id: str | None) -> None:
        key = f"{(method or 'GET').upper()} {route or 'unknown'}"
        duration_ms = max(0.0, float(duration_ms))
        with self._lock:
            stats = self._routes.setdefault(key, {"requests": 0, "errors": 0, "latency_sum_ms": 0.0, "latency_max_ms": 0.0})
            stats["requests"] += 1
            stats["errors"] += 1 if int(status_code) >= 400 else 0
            stats["latency_sum_ms"] += duration_ms
            stats["latency_max_ms"] = max(stats["latency_max_ms"], duration_ms)
            if workspace_id:
                self._workspaces[workspace_id] += 1

    def observe_domain_event_emitted(self, event_type: str) -> None:
        with self._lock:
            self._events[str(event_type or "unknown")] += 1

    def observe_approval(self, result: str) -> None:
        with self._lock:
            self._approvals[str(result or "unknown").lower()] += 1

    def observe_payable_generated(self, count: int = 1) -> None:
        with self._lock:
            self._payables_generated += max(0, int(count or 0))

    def snapshot(self) -> dict:
        with self._lock:
            by_route = [
                {
                    "route": route,
                    "requests": int(stats["requests"]),
                    "errors": int(stats["errors"]),
                    "avg_latency_ms": round(stats["latency_sum_ms"] / stats["requests"], 2) if stats["requests"] else 0.0,
                    "max_latency_ms": round(stats["latency_max_ms"], 2),
                }
                for route, stats in self._routes.items()
            ]
            by_route.sort(key=lambda item: item["requests"], reverse=True)
            return {
                "requests_total": sum(item["requests"] for item in by_route),
                "errors_total": sum(item["errors"] for item in by_route),
                "by_route": by_route[: self._MAX_ROUTES],
                "by_workspace": dict(sorted(self._workspaces.items())),
                "domain_events": {
                    "emitted_total": sum(self._events.values()),
                    "by_type": dict(sorted(self._events.items())),
                },
                "approvals": dict(sorted(self._approvals.items())),
                "payables_generated_total": self._payables_generated,
            }

    def reset(self) -> None:
        with self._lock:
            self._routes.clear()
            self._workspaces.clear()
            self._events.clear()
            self._approvals.clear()
            self._payables_generated = 0


_METRICS = MetricsRegistry()


def mark_request_start() -> None:
    g._request_started_at = time.perf_counter()


def observe_response(response):
    started = getattr(g, "_request_started_at", None)
    elapsed_ms = (time.perf_counter() - started) * 1000.0 if started else 0.0
    route = request.url_rule.rule if request.url_rule is not None else request.path
    _METRICS.observe_http(
        request.method,
        route,
        response.status_code,
        elapsed_ms,
        getattr(g, "workspace_id", None),
    )
    response.headers["X-Response-Time-Ms"] = f"{elapsed_ms:.2f}"
    return response


def metrics_snapshot() -> dict:
    return _METRICS.snapshot()


def observe_domain_event_emitted(event_type: str) -> None:
    _METRICS.observe_domain_event_emitted(event_type)


def observe_approval(result: str) -> None:
    _METRICS.observe_approval(result)


def observe_payable_generated(count: int = 1) -> None:
    _METRICS.observe_payable_generated(count)


def reset_metrics_for_tests() -> None:
    _METRICS.reset()
    set_log_request_id(None)

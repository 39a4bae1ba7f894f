# contentmill/logging_config.py
"""
Structured JSON logging for pipeline observability.

Provides structured logging with trace IDs for correlating logs across
pipeline stages, plus specialized context managers for LLM and storage
operations.
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime

# Context variables for trace correlation
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)
stage_var: ContextVar[str | None] = ContextVar("stage", default=None)
site_var: ContextVar[str | None] = ContextVar("site", default=None)

# Extra record attributes copied into the JSON payload
_EXTRA_FIELDS = (
    "event",
    "duration_ms",
    "items_processed",
    "items_failed",
    "model",
    "provider",
    "call_type",
    "tokens_in",
    "tokens_out",
    "cost_usd",
    "operation",
    "key",
    "size_bytes",
    "job_id",
    "site_id",
    "source_id",
    "article_id",
    "outcome",
    "attempt",
)


# -----------------------------------------------------------------------------
# JSON Formatter
# -----------------------------------------------------------------------------


class JSONFormatter(logging.Formatter):
    """
    Format log records as single-line JSON.

    Output format:
    {"timestamp": "...", "level": "INFO", "message": "...", "trace_id": "...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        trace_id = trace_id_var.get()
        if trace_id:
            log_data["trace_id"] = trace_id

        stage = stage_var.get()
        if stage:
            log_data["stage"] = stage

        site = site_var.get()
        if site:
            log_data["site"] = site

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in _EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, default=str)


def configure_logging(json_format: bool = True, level: str = "INFO") -> None:
    """
    Configure logging for deployed or local runs.

    Args:
        json_format: If True, use JSON format. If False, use human-readable format.
        level: Log level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))

    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    for noisy in ("httpx", "httpcore", "botocore", "boto3", "urllib3", "sqlalchemy", "PIL"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# -----------------------------------------------------------------------------
# Context Managers
# -----------------------------------------------------------------------------


@contextmanager
def log_stage(stage: str, trace_id: str | None = None, site: str | None = None):
    """
    Context manager for stage-level logging.

    Logs stage start and end with duration.

    Usage:
        with log_stage("fetch_sources", trace_id=trace_id, site=site.slug):
            # ... stage logic ...
    """
    if trace_id:
        trace_id_var.set(trace_id)
    if site:
        site_var.set(site)
    stage_var.set(stage)

    start_time = time.time()
    logger = logging.getLogger("pipeline")

    logger.info(f"Stage {stage} started", extra={"event": "stage_start"})

    try:
        yield
        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Stage {stage} completed",
            extra={"event": "stage_complete", "duration_ms": duration_ms},
        )
    except Exception as e:
        duration_ms = int((time.time() - start_time) * 1000)
        logger.error(
            f"Stage {stage} failed: {e}",
            extra={"event": "stage_failed", "duration_ms": duration_ms},
            exc_info=True,
        )
        raise
    finally:
        stage_var.set(None)
        site_var.set(None)


@contextmanager
def log_llm_call(provider: str, model: str, call_type: str):
    """
    Context manager for LLM call instrumentation.

    Usage:
        with log_llm_call("openai", "gpt-4o-mini", "rewrite") as metrics:
            response = client.chat.completions.create(...)
            metrics["tokens_in"] = response.usage.prompt_tokens
            metrics["tokens_out"] = response.usage.completion_tokens
    """
    start_time = time.time()
    logger = logging.getLogger("pipeline.llm")
    metrics: dict = {"tokens_in": 0, "tokens_out": 0}

    logger.debug(
        f"LLM call started: {provider}/{model} for {call_type}",
        extra={
            "event": "llm_call_start",
            "provider": provider,
            "model": model,
            "call_type": call_type,
        },
    )

    try:
        yield metrics

        duration_ms = int((time.time() - start_time) * 1000)
        cost_usd = _estimate_llm_cost(provider, model, metrics["tokens_in"], metrics["tokens_out"])

        logger.info(
            f"LLM call completed: {provider}/{model} ({duration_ms}ms, ${cost_usd:.4f})",
            extra={
                "event": "llm_call_complete",
                "provider": provider,
                "model": model,
                "call_type": call_type,
                "duration_ms": duration_ms,
                "tokens_in": metrics["tokens_in"],
                "tokens_out": metrics["tokens_out"],
                "cost_usd": cost_usd,
            },
        )
    except Exception as e:
        duration_ms = int((time.time() - start_time) * 1000)
        logger.warning(
            f"LLM call failed: {provider}/{model} - {e}",
            extra={
                "event": "llm_call_failed",
                "provider": provider,
                "model": model,
                "call_type": call_type,
                "duration_ms": duration_ms,
            },
        )
        raise


@contextmanager
def log_storage_operation(operation: str, key: str):
    """
    Context manager for object storage instrumentation.

    Usage:
        with log_storage_operation("upload", "site/article/article.webp") as metrics:
            storage.upload(key, data)
            metrics["size_bytes"] = len(data)
    """
    start_time = time.time()
    logger = logging.getLogger("pipeline.storage")
    metrics: dict = {"size_bytes": 0}

    try:
        yield metrics

        duration_ms = int((time.time() - start_time) * 1000)
        logger.debug(
            f"Storage {operation} completed: {key} ({metrics['size_bytes']} bytes, {duration_ms}ms)",
            extra={
                "event": f"storage_{operation}_complete",
                "operation": operation,
                "key": key,
                "duration_ms": duration_ms,
                "size_bytes": metrics["size_bytes"],
            },
        )
    except Exception as e:
        duration_ms = int((time.time() - start_time) * 1000)
        logger.error(
            f"Storage {operation} failed: {key} - {e}",
            extra={
                "event": f"storage_{operation}_failed",
                "operation": operation,
                "key": key,
                "duration_ms": duration_ms,
            },
        )
        raise


# -----------------------------------------------------------------------------
# LLM Cost Estimation
# -----------------------------------------------------------------------------

# Approximate costs per 1M tokens
LLM_COSTS = {
    ("openai", "gpt-4o"): {"input": 2.50, "output": 10.00},
    ("openai", "gpt-4o-mini"): {"input": 0.15, "output": 0.60},
    ("openai", "gpt-4.1-mini"): {"input": 0.40, "output": 1.60},
    ("openai", "gpt-5-mini"): {"input": 0.25, "output": 2.00},
}


def _estimate_llm_cost(provider: str, model: str, tokens_in: int, tokens_out: int) -> float:
    """Estimate LLM cost based on token usage."""
    key = (provider.lower(), model.lower())
    costs = LLM_COSTS.get(key)

    # Longest partial match wins so "gpt-4o-mini-2024" doesn't price as gpt-4o
    if not costs:
        candidates = [
            (m, c) for (p, m), c in LLM_COSTS.items() if p == provider.lower() and m in model.lower()
        ]
        if candidates:
            costs = max(candidates, key=lambda mc: len(mc[0]))[1]

    if not costs:
        costs = {"input": 0.0, "output": 0.0}

    input_cost = (tokens_in / 1_000_000) * costs["input"]
    output_cost = (tokens_out / 1_000_000) * costs["output"]

    return round(input_cost + output_cost, 6)

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterator

from prometheus_client import Counter, Histogram, make_asgi_app

# Low-cardinality labels only: the operation name, never the object key
STORAGE_OPERATIONS = Counter(
    "storage_operations_total",
    "Total object storage operations",
    ["operation", "outcome"],
)

STORAGE_LATENCY = Histogram(
    "storage_operation_duration_seconds",
    "Object storage operation latency in seconds",
    ["operation"],
)

# /metrics ASGI app
metrics_app = make_asgi_app()


@contextmanager
def track_operation(operation: str) -> Iterator[None]:
    """Count one storage operation and time it, labelled by outcome."""
    started = time.perf_counter()
    try:
        yield
    except Exception:
        STORAGE_OPERATIONS.labels(operation=operation, outcome="error").inc()
        raise
    else:
        STORAGE_OPERATIONS.labels(operation=operation, outcome="success").inc()
    finally:
        STORAGE_LATENCY.labels(operation=operation).observe(
            time.perf_counter() - started
        )

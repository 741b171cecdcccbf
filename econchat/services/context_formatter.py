"""Turns cached series into model-ready economic contexts."""
from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone

from ..models import Context, ContextContent, ContextMetadata, SeriesData

CONTEXT_SOURCE = "FRED"
CONTEXT_TYPE = "economic_data"


def to_context(series: SeriesData) -> Context:
    """Build a freshly stamped Context for one series.

    contextId and timestamp are regenerated on every call, even for the same
    series.
    """
    if not isinstance(series, SeriesData):
        raise TypeError(f"to_context expects SeriesData, got {type(series).__name__}")

    generated_at = int(time.time() * 1000)
    return Context(
        contextId=f"fred-{series.id}-{generated_at}-{uuid.uuid4().hex[:8]}",
        type=CONTEXT_TYPE,
        content=ContextContent(
            seriesId=series.id,
            title=series.title,
            observations=list(series.observations),
        ),
        metadata=ContextMetadata(
            source=CONTEXT_SOURCE,
            timestamp=datetime.now(timezone.utc).isoformat(),
            seriesId=series.id,
            title=series.title,
            frequency=series.frequency,
            units=series.units,
            lastUpdated=series.lastUpdated,
        ),
    )

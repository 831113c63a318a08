"""Analysis pipeline: classify, gate, enrich, deliver, dedup."""

from newswatch.pipeline.cache import DedupCache
from newswatch.pipeline.retry import BackoffRetrier

__all__ = ["BackoffRetrier", "DedupCache"]

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class EngineConfig:
    """Tunables shared by the matcher, the selection tracker and the record store."""
    # Max characters between two picked words for them to stay in one run
    adjacency_gap: int = 5
    # Same-or-similar selections inside this window are treated as a double fire
    dedup_window_seconds: float = 1.0
    # rapidfuzz ratio (0-100) above which two selection texts count as "similar"
    similarity_threshold: int = 90
    context_max_words: int = 18
    retention_days: int = 7
    batch_size: int = 25
    schema_version: str = "2.0"


CONFIG = EngineConfig()

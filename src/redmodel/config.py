"""Configuration for the redmodel runtime."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class RedmodelConfig:
    """Configuration for a redmodel Session."""

    url: str = "redis://localhost:6379/0"
    enable_evalsha: bool = True
    fetch_batch_size: int = 1000
    tmp_segment: str = "_tmp"
    tmp_key_bytes: int = 32
    socket_timeout_s: float | None = None

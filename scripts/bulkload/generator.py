"""
Synthetic dataset generation.
Rows are produced lazily so large runs never hold the whole dataset
unless a strategy asks for it.
"""
import random
from datetime import datetime, timedelta
from itertools import islice
from typing import Any, Dict, Iterable, Iterator, List, Optional, TypeVar

T = TypeVar("T")

DEFAULT_START_TIME = datetime(2024, 1, 1)

VOCABULARY = (
    "insert", "commit", "session", "batch", "chunk", "copy", "binary", "row",
    "table", "index", "query", "memory", "flush", "engine", "driver", "stream",
    "mapping", "object", "record", "scale", "million", "buffer", "cursor",
    "transaction", "latency", "throughput", "postgres", "payload", "message",
    "timestamp", "identifier", "network",
)


def generate_messages(
    count: int,
    start_id: int = 1,
    seed: Optional[int] = None,
    words_per_message: int = 8,
    start_time: Optional[datetime] = None
) -> Iterator[Dict[str, Any]]:
    """
    Yield `count` message rows as dicts with id, message and created_at.

    Ids are consecutive from `start_id`; created_at advances one second
    per row. The same seed always produces the same rows.
    """
    if count < 0:
        raise ValueError(f"count must not be negative, got {count}")
    if words_per_message < 1:
        raise ValueError(f"words_per_message must be positive, got {words_per_message}")

    rng = random.Random(seed)
    base_time = start_time or DEFAULT_START_TIME

    for offset in range(count):
        words = rng.choices(VOCABULARY, k=words_per_message)
        yield {
            "id": start_id + offset,
            "message": " ".join(words).capitalize(),
            "created_at": base_time + timedelta(seconds=offset),
        }


def chunked(iterable: Iterable[T], size: int) -> Iterator[List[T]]:
    """Split an iterable into lists of at most `size` items, lazily."""
    if size < 1:
        raise ValueError(f"chunk size must be positive, got {size}")

    iterator = iter(iterable)
    while True:
        chunk = list(islice(iterator, size))
        if not chunk:
            return
        yield chunk

"""Batched embedding computation with retry on transient failures.

Texts are embedded in fixed-size batches. A batch failing with a transient
error (timeout, connection reset, service unavailable, rate limit) is retried
with exponential backoff plus jitter; any other failure, or running out of
attempts, raises :class:`EmbeddingBatchError` naming the batch range.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Protocol, Sequence

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from qbank.telemetry import traceable_if_enabled

logger = logging.getLogger(__name__)

_TRANSIENT_RE = re.compile(
    r"503|429|timeout|timed out|temporary|temporarily|rate limit|too many requests|"
    r"service unavailable|connection reset|ECONNRESET|ETIMEDOUT|ENOTFOUND|fetch failed",
    re.IGNORECASE,
)
_JITTER_SECONDS = 0.2


class EmbeddingClient(Protocol):
    def embed_documents(self, texts: List[str]) -> List[List[float]]: ...


class EmbeddingBatchError(RuntimeError):
    """An embedding batch could not be computed."""

    def __init__(self, start: int, end: int, attempts: int, cause: BaseException) -> None:
        super().__init__(
            f"Failed embedding batch {start}-{end} after {attempts} attempt(s): {cause}"
        )
        self.start = start
        self.end = end
        self.attempts = attempts


@dataclass(frozen=True)
class EmbeddingRetryPolicy:
    batch_size: int = 64
    max_attempts: int = 5
    base_delay: float = 0.5

    @classmethod
    def from_settings(cls, settings: Any) -> "EmbeddingRetryPolicy":
        return cls(
            batch_size=settings.embedding_batch_size,
            max_attempts=settings.embedding_retry_attempts,
            base_delay=settings.embedding_retry_base_ms / 1000,
        )


def is_transient_error(exc: BaseException) -> bool:
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return True
    return bool(_TRANSIENT_RE.search(f"{type(exc).__name__}: {exc}"))


def init_embedding_client(model: str, *, provider: str | None = None) -> EmbeddingClient:
    from langchain.embeddings import init_embeddings

    kwargs: dict[str, Any] = {}
    if provider:
        kwargs["provider"] = provider
    return init_embeddings(model, **kwargs)


@traceable_if_enabled(name="embed_in_batches", run_type="embedding")
def embed_in_batches(
    texts: Sequence[str],
    client: EmbeddingClient,
    *,
    policy: EmbeddingRetryPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> list[list[float]]:
    """Embed ``texts`` preserving order; all-or-nothing."""
    policy = policy or EmbeddingRetryPolicy()
    vectors: list[list[float]] = []
    for start in range(0, len(texts), policy.batch_size):
        batch = list(texts[start : start + policy.batch_size])
        end = start + len(batch) - 1
        vectors.extend(_embed_batch(client, batch, start, end, policy, sleep))
    return vectors


def _embed_batch(
    client: EmbeddingClient,
    batch: list[str],
    start: int,
    end: int,
    policy: EmbeddingRetryPolicy,
    sleep: Callable[[float], None],
) -> list[list[float]]:
    def _log_retry(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        logger.warning(
            "Retry %d/%d for embedding batch %d-%d in %.0fms (reason: %s)",
            state.attempt_number,
            policy.max_attempts - 1,
            start,
            end,
            (state.next_action.sleep if state.next_action else 0.0) * 1000,
            exc,
        )

    retrying = Retrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_exponential(multiplier=policy.base_delay, exp_base=2)
        + wait_random(0, _JITTER_SECONDS),
        retry=retry_if_exception(is_transient_error),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )
    attempts = 0
    try:
        for attempt in retrying:
            with attempt:
                attempts = attempt.retry_state.attempt_number
                vectors = client.embed_documents(batch)
                if len(vectors) != len(batch):
                    raise ValueError(
                        f"Embedding count mismatch: got {len(vectors)} expected {len(batch)}"
                    )
    except Exception as exc:
        raise EmbeddingBatchError(start, end, attempts, exc) from exc

    if attempts > 1:
        logger.info("Embedding batch %d-%d succeeded after retry #%d", start, end, attempts - 1)
    return [list(map(float, vector)) for vector in vectors]


__all__ = [
    "EmbeddingBatchError",
    "EmbeddingClient",
    "EmbeddingRetryPolicy",
    "embed_in_batches",
    "init_embedding_client",
    "is_transient_error",
]

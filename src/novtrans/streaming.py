from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Iterator

from .errors import TranslationCancelledError
from .models import StreamingChunk, TranslationResponse

logger = logging.getLogger("novtrans.streaming")

ChunkProducer = Callable[[], Iterator[StreamingChunk]]

EOF_FINISH_REASON = "eof"


@dataclass(frozen=True)
class _Failure:
    error: BaseException


_END = object()
_WAKE = object()


class ChunkStream:
    """Single-consumer channel fed by a producer thread.

    The producer is a zero-argument callable returning an iterator of chunks
    (usually a generator that owns an open HTTP response). Iteration yields
    chunks in arrival order and ends after exactly one final chunk, or raises
    the producer's error. `cancel()` is cooperative: the producer stops at its
    next chunk boundary and the consumer raises `TranslationCancelledError`.
    """

    def __init__(self, producer: ChunkProducer, *, name: str = "novtrans-stream") -> None:
        self._producer = producer
        self._queue: queue.Queue[object] = queue.Queue()
        self._cancelled = threading.Event()
        self._consumed = False
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()
        self._queue.put(_WAKE)

    def _run(self) -> None:
        chunks = None
        final_seen = False
        try:
            chunks = self._producer()
            for chunk in chunks:
                if self._cancelled.is_set():
                    break
                self._queue.put(chunk)
                if chunk.is_final:
                    final_seen = True
                    break
            if not final_seen and not self._cancelled.is_set():
                logger.warning("Stream ended without a final chunk; closing it")
                self._queue.put(StreamingChunk(finish_reason=EOF_FINISH_REASON, is_final=True))
        except Exception as e:
            self._queue.put(_Failure(e))
        finally:
            close = getattr(chunks, "close", None)
            if close is not None:
                try:
                    close()
                except Exception:
                    logger.debug("Failed to close stream producer", exc_info=True)
            self._queue.put(_END)

    def __iter__(self) -> Iterator[StreamingChunk]:
        if self._consumed:
            raise RuntimeError("ChunkStream can only be iterated once")
        self._consumed = True
        return self._consume()

    def _consume(self) -> Iterator[StreamingChunk]:
        while True:
            item = self._queue.get()
            if self._cancelled.is_set():
                raise TranslationCancelledError("Streaming translation was cancelled")
            if item is _END:
                return
            if item is _WAKE:
                continue
            if isinstance(item, _Failure):
                raise item.error
            if isinstance(item, StreamingChunk):
                yield item
                if item.is_final:
                    return

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    def collect(self, model: str = "") -> TranslationResponse:
        """Drain the stream into a single response."""
        parts: list[str] = []
        final: StreamingChunk | None = None
        for chunk in self:
            parts.append(chunk.text)
            if chunk.is_final:
                final = chunk
        return TranslationResponse(
            text="".join(parts),
            input_tokens=final.input_tokens if final else None,
            output_tokens=final.output_tokens if final else None,
            model_used=model,
            finish_reason=final.finish_reason if final else None,
        )

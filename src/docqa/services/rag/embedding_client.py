from __future__ import annotations

from dataclasses import dataclass
import itertools
import logging
import multiprocessing
from multiprocessing.connection import Connection
from multiprocessing.process import BaseProcess
import threading
import time
from typing import Callable, Protocol

from docqa.services.rag.embedding_worker import run_worker

logger = logging.getLogger(__name__)


class EmbeddingClientError(RuntimeError):
    pass


class EmbeddingTimeoutError(EmbeddingClientError):
    pass


class EmbeddingWorkerError(EmbeddingClientError):
    pass


class EmbeddingInitializationError(EmbeddingClientError):
    pass


class EmbeddingClient(Protocol):
    def embed(self, text: str) -> list[float]: ...

    def embed_texts(self, texts: list[str]) -> list[list[float]]: ...


@dataclass
class WorkerHandle:
    connection: Connection
    unit: BaseProcess | threading.Thread

    def close(self, *, join_timeout: float = 5.0) -> None:
        try:
            self.connection.send({"operation": "shutdown"})
        except (OSError, ValueError) as exc:
            logger.debug("embedding worker already disconnected: %s", exc)
        self.unit.join(join_timeout)
        if isinstance(self.unit, BaseProcess) and self.unit.is_alive():
            self.unit.terminate()
            self.unit.join(join_timeout)
        self.connection.close()


WorkerLauncher = Callable[[str], WorkerHandle]


def launch_process_worker(model_name: str) -> WorkerHandle:
    context = multiprocessing.get_context("spawn")
    parent_end, child_end = context.Pipe()
    process = context.Process(
        target=run_worker,
        args=(child_end, model_name),
        name="docqa-embedding-worker",
        daemon=True,
    )
    process.start()
    child_end.close()
    return WorkerHandle(connection=parent_end, unit=process)


class WorkerEmbeddingClient:
    """Embeds text through a single worker owned by this client.

    The worker is started on the first request and stays up until ``close()``.
    A failed start is remembered: every later call raises
    ``EmbeddingInitializationError`` without trying again.
    """

    def __init__(
        self,
        *,
        model_name: str,
        timeout_seconds: float = 60.0,
        launcher: WorkerLauncher = launch_process_worker,
    ) -> None:
        self._model_name = model_name
        self._timeout_seconds = timeout_seconds
        self._launcher = launcher
        self._handle: WorkerHandle | None = None
        self._init_error: EmbeddingInitializationError | None = None
        self._lock = threading.Lock()
        self._request_ids = itertools.count(1)

    def __enter__(self) -> WorkerEmbeddingClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _ensure_worker(self) -> WorkerHandle:
        if self._init_error is not None:
            raise self._init_error
        if self._handle is None:
            try:
                self._handle = self._launcher(self._model_name)
            except Exception as exc:
                self._init_error = EmbeddingInitializationError(
                    f"Could not start the embedding worker: {exc}"
                )
                raise self._init_error from exc
        return self._handle

    def embed(self, text: str) -> list[float]:
        with self._lock:
            handle = self._ensure_worker()
            request_id = next(self._request_ids)
            try:
                handle.connection.send({"operation": "embed", "id": request_id, "text": text})
            except (OSError, ValueError) as exc:
                raise EmbeddingWorkerError(f"Embedding worker is not reachable: {exc}") from exc
            return self._await_result(handle.connection, request_id)

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        return [self.embed(text) for text in texts]

    def _await_result(self, connection: Connection, request_id: int) -> list[float]:
        deadline = time.monotonic() + self._timeout_seconds

        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0 or not connection.poll(remaining):
                raise EmbeddingTimeoutError(
                    f"Timed out after {self._timeout_seconds:.0f}s waiting for an embedding. "
                    "The model may still be downloading; try again in a few seconds."
                )

            try:
                message = connection.recv()
            except (EOFError, OSError) as exc:
                raise EmbeddingWorkerError("Embedding worker exited unexpectedly") from exc

            if not isinstance(message, dict) or message.get("id") != request_id:
                # reply to a request that already timed out
                logger.debug("discarding stale embedding worker message: %r", message)
                continue

            operation = message.get("operation")
            if operation == "progress":
                logger.info("embedding model progress: %s", message.get("info"))
                continue
            if operation == "result":
                vector = message.get("vector")
                if not isinstance(vector, list) or not vector:
                    raise EmbeddingWorkerError("Embedding worker returned an empty vector")
                return [float(value) for value in vector]
            if operation == "error":
                raise EmbeddingWorkerError(str(message.get("message") or "Unknown error"))

            logger.debug("ignoring embedding worker message: %r", message)

    def close(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.close()
                self._handle = None

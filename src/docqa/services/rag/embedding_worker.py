"""Entry point of the isolated embedding process.

The worker speaks a small dict protocol over a ``multiprocessing`` connection:

* request ``{"operation": "embed", "id": n, "text": str}``
* replies ``{"operation": "result", "id": n, "vector": [...]}``,
  ``{"operation": "error", "id": n, "message": str}`` or
  ``{"operation": "progress", "id": n, "info": {...}}`` (advisory only)
* ``{"operation": "shutdown"}`` stops the loop.
"""
from __future__ import annotations

import logging
from multiprocessing.connection import Connection
from typing import Any

logger = logging.getLogger(__name__)


class _ModelHolder:
    def __init__(self, model_name: str) -> None:
        self._model_name = model_name
        self._model: Any = None

    @property
    def loaded(self) -> bool:
        return self._model is not None

    def get(self) -> Any:
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            self._model = SentenceTransformer(self._model_name, device="cpu")
        return self._model


def run_worker(connection: Connection, model_name: str) -> None:
    holder = _ModelHolder(model_name)

    while True:
        try:
            message = connection.recv()
        except EOFError:
            break

        operation = message.get("operation") if isinstance(message, dict) else None
        if operation == "shutdown":
            break
        if operation != "embed":
            continue

        request_id = message.get("id")
        try:
            if not holder.loaded:
                connection.send(
                    {
                        "operation": "progress",
                        "id": request_id,
                        "info": {"status": "loading", "model": model_name},
                    }
                )
            model = holder.get()
            vector = model.encode(
                [message.get("text", "")],
                normalize_embeddings=True,
                show_progress_bar=False,
            )[0]
            connection.send(
                {
                    "operation": "result",
                    "id": request_id,
                    "vector": [float(value) for value in vector],
                }
            )
        except Exception as exc:
            connection.send({"operation": "error", "id": request_id, "message": str(exc)})

    connection.close()

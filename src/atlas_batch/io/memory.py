# src/atlas_batch/io/memory.py
"""
Leitor e escritor em memória.

`ListItemWriter` é transacional: dentro de uma transação de chunk, os
itens ficam retidos e só se tornam visíveis em `written` no commit; um
rollback os descarta. Fora de uma transação, a escrita é imediata.
"""

from __future__ import annotations

import threading
from typing import Any, List, Sequence

from atlas_batch.core.engine.transaction import current_transaction
from atlas_batch.core.pipeline.step import END_OF_DATA


class ListItemReader:
    """Lê itens de uma lista; a posição é o índice do próximo item."""

    def __init__(self, items: Sequence[Any]):
        self.items = list(items)
        self._index = 0

    def read(self) -> Any:
        if self._index >= len(self.items):
            return END_OF_DATA
        item = self.items[self._index]
        self._index += 1
        return item

    def seek(self, position: Any) -> None:
        index = int(position or 0)
        if index < 0 or index > len(self.items):
            raise ValueError(f"Posição fora da lista: {position!r}")
        self._index = index

    def position(self) -> int:
        return self._index


class _StagedItems:
    def __init__(self, writer: "ListItemWriter", items: List[Any]):
        self.writer = writer
        self.items = items

    def commit(self) -> None:
        self.writer._publish(self.items)

    def rollback(self) -> None:
        self.items = []


class ListItemWriter:
    """Escritor transacional em memória, seguro para uso por várias partições."""

    def __init__(self) -> None:
        self._written: List[Any] = []
        self._lock = threading.Lock()
        self.batches = 0

    @property
    def written(self) -> List[Any]:
        with self._lock:
            return list(self._written)

    def write_batch(self, items: Sequence[Any]) -> None:
        tx = current_transaction()
        if tx is None:
            self._publish(list(items))
            return
        tx.enlist(_StagedItems(self, list(items)))

    def _publish(self, items: List[Any]) -> None:
        with self._lock:
            self._written.extend(items)
            self.batches += 1


# src/atlas_batch/io/csv_writer.py
"""
Escritor CSV transacional.

As linhas de um chunk são retidas até o commit da transação e então
anexadas ao arquivo com `DataFrame.to_csv(mode="a")`. O cabeçalho é
escrito apenas quando o arquivo ainda não existe ou está vazio; um
rollback descarta as linhas retidas sem tocar o arquivo.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd

from atlas_batch.core.engine.transaction import current_transaction


class _StagedRows:
    def __init__(self, writer: "CsvItemWriter", rows: List[Dict[str, Any]]):
        self.writer = writer
        self.rows = rows

    def commit(self) -> None:
        self.writer._append(self.rows)

    def rollback(self) -> None:
        self.rows = []


class CsvItemWriter:
    """
    ItemWriter que anexa itens (dicionários) a um arquivo CSV.

    Args:
        path: Arquivo de destino; diretórios são criados se necessário.
        fieldnames: Ordem das colunas. Se omitido, é inferida do primeiro lote.
    """

    def __init__(self, path: Union[str, Path], fieldnames: Optional[Sequence[str]] = None):
        self.path = Path(path)
        self.fieldnames: Optional[List[str]] = list(fieldnames) if fieldnames is not None else None
        self._lock = threading.Lock()

    def write_batch(self, items: Sequence[Any]) -> None:
        rows = [self._as_row(item) for item in items]
        tx = current_transaction()
        if tx is None:
            self._append(rows)
            return
        tx.enlist(_StagedRows(self, rows))

    def _as_row(self, item: Any) -> Dict[str, Any]:
        if not isinstance(item, dict):
            raise TypeError(f"CsvItemWriter espera dicionários, recebido: {type(item).__name__}")
        return item

    def _append(self, rows: List[Dict[str, Any]]) -> None:
        if not rows:
            return
        with self._lock:
            if self.fieldnames is None:
                self.fieldnames = list(rows[0].keys())
            write_header = not self.path.exists() or self.path.stat().st_size == 0
            self.path.parent.mkdir(parents=True, exist_ok=True)
            frame = pd.DataFrame(rows, columns=self.fieldnames)
            frame.to_csv(self.path, mode="a", header=write_header, index=False)

# src/atlas_batch/io/dataframe.py
"""
Leitor de linhas de um pandas.DataFrame.

Cada item é um dicionário {coluna: valor} de uma linha. A posição lógica
é o índice posicional (`iloc`) da próxima linha, o que torna a retomada
independente do índice rotulado do DataFrame.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Union

import pandas as pd

from atlas_batch.core.pipeline.step import END_OF_DATA


class DataFrameItemReader:
    """ItemReader sobre as linhas de um DataFrame, em ordem."""

    def __init__(self, df: pd.DataFrame):
        if not isinstance(df, pd.DataFrame):
            raise TypeError(f"df deve ser pandas.DataFrame, recebido: {type(df).__name__}")
        self.df = df
        self._index = 0

    @classmethod
    def from_csv(cls, path: Union[str, Path], **read_csv_kwargs: Any) -> "DataFrameItemReader":
        return cls(pd.read_csv(path, **read_csv_kwargs))

    def read(self) -> Any:
        if self._index >= len(self.df):
            return END_OF_DATA
        row: Dict[str, Any] = self.df.iloc[self._index].to_dict()
        self._index += 1
        return row

    def seek(self, position: Any) -> None:
        index = int(position or 0)
        if index < 0 or index > len(self.df):
            raise ValueError(f"Posição fora do DataFrame: {position!r}")
        self._index = index

    def position(self) -> int:
        return self._index

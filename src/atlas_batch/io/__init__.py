# src/atlas_batch/io/__init__.py
"""
Leitores, escritores e particionadores prontos para uso.

Cada classe satisfaz uma capacidade do pipeline por duck typing:
    - memory       → ListItemReader, ListItemWriter
    - dataframe    → DataFrameItemReader (linhas de um pandas.DataFrame)
    - csv_writer   → CsvItemWriter (append transacional via pandas)
    - partitioners → RangePartitioner (faixas contíguas de índices)
"""

from .csv_writer import CsvItemWriter
from .dataframe import DataFrameItemReader
from .memory import ListItemReader, ListItemWriter
from .partitioners import RangePartitioner

__all__ = [
    "CsvItemWriter",
    "DataFrameItemReader",
    "ListItemReader",
    "ListItemWriter",
    "RangePartitioner",
]

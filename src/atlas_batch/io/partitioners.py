# src/atlas_batch/io/partitioners.py
"""
Particionadores prontos.

`RangePartitioner` divide `total` índices em `grid_size` faixas contíguas
[start, end) de tamanhos que diferem em no máximo um item. O contexto
inicial de cada partição é {"start": int, "end": int}.
"""

from __future__ import annotations

from typing import Any, Dict


class RangePartitioner:
    def __init__(self, total: int, *, prefix: str = "partition"):
        if isinstance(total, bool) or not isinstance(total, int) or total < 0:
            raise ValueError("total must be an int >= 0")
        self.total = total
        self.prefix = prefix

    def partition(self, grid_size: int) -> Dict[str, Dict[str, Any]]:
        if grid_size < 1:
            raise ValueError("grid_size must be >= 1")
        base, extra = divmod(self.total, grid_size)
        partitions: Dict[str, Dict[str, Any]] = {}
        start = 0
        for index in range(grid_size):
            size = base + (1 if index < extra else 0)
            partitions[f"{self.prefix}{index}"] = {"start": start, "end": start + size}
            start += size
        return partitions

# src/atlas_batch/core/domain/execution_context.py
"""
ExecutionContext: estado chave/valor persistido para checkpoint e restart.

Invariantes:
    - Chaves são strings não vazias
    - Valores são serializáveis em JSON (validado na escrita)
    - `snapshot()` produz uma cópia profunda independente do estado vivo
"""

from __future__ import annotations

import copy
import json
from typing import Any, Dict, Iterator, Mapping, MutableMapping, Optional


class ExecutionContext(MutableMapping[str, Any]):
    """Mapa de estado de uma execução (job ou step)."""

    def __init__(self, values: Optional[Mapping[str, Any]] = None):
        self._values: Dict[str, Any] = {}
        self._dirty = False
        for key, value in (values or {}).items():
            self[key] = value
        self._dirty = False

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __setitem__(self, key: str, value: Any) -> None:
        if not isinstance(key, str) or not key:
            raise TypeError("ExecutionContext keys must be non-empty strings")
        try:
            json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise TypeError(
                f"Valor não serializável para a chave '{key}': {type(value).__name__}"
            ) from exc
        self._values[key] = copy.deepcopy(value)
        self._dirty = True

    def __delitem__(self, key: str) -> None:
        del self._values[key]
        self._dirty = True

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ExecutionContext({self._values!r})"

    @property
    def dirty(self) -> bool:
        return self._dirty

    def clear_dirty(self) -> None:
        self._dirty = False

    def snapshot(self) -> Dict[str, Any]:
        return copy.deepcopy(self._values)

    def copy(self) -> "ExecutionContext":
        return ExecutionContext(self._values)

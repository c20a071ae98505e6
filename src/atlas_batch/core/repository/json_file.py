# src/atlas_batch/core/repository/json_file.py
"""
Repositório de execuções persistido em arquivo JSON.

Estende o repositório em memória: após cada mutação, o estado completo
é serializado em JSON determinístico (chaves ordenadas, UTF-8) e gravado
de forma atômica (arquivo temporário + `replace`). Na construção, um
arquivo existente é recarregado, permitindo restart entre processos.

Limites explícitos:
    - Um único processo escritor por arquivo
    - Valores de ExecutionContext devem ser serializáveis em JSON
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Union

from .memory import InMemoryJobRepository


SCHEMA_VERSION = 1


class JsonFileJobRepository(InMemoryJobRepository):
    """`JobRepository` com snapshot completo em um arquivo JSON."""

    def __init__(self, path: Union[str, Path]):
        super().__init__()
        self.path = Path(path)
        if self.path.exists():
            self._load()

    def _state(self) -> Dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "sequences": dict(self._sequences),
            "instances": [self._instances[k] for k in sorted(self._instances)],
            "job_executions": [self._job_executions[k] for k in sorted(self._job_executions)],
            "step_executions": [self._step_executions[k] for k in sorted(self._step_executions)],
        }

    def _after_write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(self._state(), f, ensure_ascii=False, indent=2, sort_keys=True)
        os.replace(tmp, self.path)

    def _load(self) -> None:
        with self.path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict) or data.get("schema_version") != SCHEMA_VERSION:
            raise ValueError(f"Arquivo de repositório inválido ou de versão desconhecida: {self.path}")

        with self._lock:
            self._sequences.update({k: int(v) for k, v in data.get("sequences", {}).items()})
            for inst in data.get("instances", []):
                self._instances[int(inst["id"])] = inst
                self._instance_keys[(inst["job_name"], inst["job_key"])] = int(inst["id"])
            for je in data.get("job_executions", []):
                self._job_executions[int(je["id"])] = je
            for se in data.get("step_executions", []):
                self._step_executions[int(se["id"])] = se

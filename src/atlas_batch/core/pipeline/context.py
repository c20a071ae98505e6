# src/atlas_batch/core/pipeline/context.py
"""
Contexto de execução compartilhado de uma JobExecution.

Este módulo define o `RunContext`, a estrutura canônica utilizada pelo
Coordinator, pelo Step Execution Engine e pelo Parallel Executor para
registrar sinais de observabilidade durante uma execução.

O RunContext atua como o único meio permitido de:
    - registro de logs estruturados de execução
    - coleta de warnings não fatais associados a Steps
    - acesso à configuração resolvida do run

Princípios fundamentais:
    - Isolamento por execução (cada JobExecution possui seu próprio contexto)
    - Logs são eventos estruturados, nunca texto livre
    - Ausência de estado global compartilhado

Invariantes:
    - Logs sempre incluem `run_id`, `step_id`, `level` e `timestamp`
    - Warnings são agrupados por `step_id`, na ordem de inserção
    - O contexto é seguro para uso concorrente por partições

Limites explícitos:
    - Não executa Steps
    - Não persiste eventos automaticamente (ver traceability.report)
    - Não carrega estado de restart (ver ExecutionContext)
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass
class RunContext:
    """
    Contexto de observabilidade de uma execução.

    Campos:
        - run_id: identificador da execução (ex.: "job-7")
        - created_at: timestamp de criação (UTC)
        - config: configuração resolvida do run
        - meta: metadados livres (origem, operador, etc.)
        - min_level: eventos abaixo deste nível são descartados
    """

    run_id: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    config: Dict[str, Any] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)
    min_level: str = "DEBUG"

    events: List[Dict[str, Any]] = field(default_factory=list, init=False)
    warnings: Dict[str, List[str]] = field(default_factory=dict, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.min_level not in LEVELS:
            raise ValueError(f"min_level must be one of {LEVELS}")

    # -----------------------------
    # Logging & warnings
    # -----------------------------
    def log(self, *, step_id: Optional[str], level: str, message: str, **extra: Any) -> None:
        if level not in LEVELS:
            raise ValueError(f"level must be one of {LEVELS}")
        if LEVELS.index(level) < LEVELS.index(self.min_level):
            return
        event = {
            "run_id": self.run_id,
            "step_id": step_id,
            "level": level,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "thread": threading.current_thread().name,
        }
        event.update(extra)
        with self._lock:
            self.events.append(event)

    def add_warning(self, *, step_id: str, message: str) -> None:
        with self._lock:
            self.warnings.setdefault(step_id, []).append(message)
        self.log(step_id=step_id, level="WARNING", message=message)

    def events_for(self, step_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(e) for e in self.events if e.get("step_id") == step_id]

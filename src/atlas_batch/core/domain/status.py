# src/atlas_batch/core/domain/status.py
"""
Estados canônicos de execução do Atlas Batch.

Componentes:
    - BatchStatus → máquina de estados de JobExecution/StepExecution
    - ExitStatus  → código de saída usado para roteamento condicional de fluxo

Os valores são strings para facilitar serialização em JSON e inspeção
em relatórios.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class BatchStatus(str, Enum):
    """
    Estados de execução de Jobs e Steps.

    Transições de um StepExecution:
        STARTING → STARTED → {COMPLETED | FAILED | STOPPED}

    A ordem de declaração define a severidade usada em agregações
    (`upgrade`): COMPLETED é o menos severo, UNKNOWN o mais severo.
    """

    COMPLETED = "COMPLETED"
    STARTING = "STARTING"
    STARTED = "STARTED"
    STOPPING = "STOPPING"
    STOPPED = "STOPPED"
    FAILED = "FAILED"
    ABANDONED = "ABANDONED"
    UNKNOWN = "UNKNOWN"

    @property
    def is_running(self) -> bool:
        return self in (BatchStatus.STARTING, BatchStatus.STARTED, BatchStatus.STOPPING)

    @property
    def is_unsuccessful(self) -> bool:
        return self in (BatchStatus.FAILED, BatchStatus.ABANDONED, BatchStatus.UNKNOWN)

    def upgrade(self, other: "BatchStatus") -> "BatchStatus":
        """Retorna o mais severo entre `self` e `other`."""
        order = list(BatchStatus)
        return self if order.index(self) >= order.index(other) else other


@dataclass(frozen=True)
class ExitStatus:
    """
    Código de saída de uma execução.

    Diferente de `BatchStatus`, o `exit_code` é texto livre: listeners
    podem produzir códigos próprios (ex.: "COMPLETED WITH SKIPS") para
    rotear transições condicionais do fluxo.
    """

    exit_code: str
    exit_description: str = ""

    COMPLETED_CODE = "COMPLETED"
    FAILED_CODE = "FAILED"
    STOPPED_CODE = "STOPPED"
    NOOP_CODE = "NOOP"
    EXECUTING_CODE = "EXECUTING"
    UNKNOWN_CODE = "UNKNOWN"

    @classmethod
    def completed(cls, description: str = "") -> "ExitStatus":
        return cls(cls.COMPLETED_CODE, description)

    @classmethod
    def failed(cls, description: str = "") -> "ExitStatus":
        return cls(cls.FAILED_CODE, description)

    @classmethod
    def stopped(cls, description: str = "") -> "ExitStatus":
        return cls(cls.STOPPED_CODE, description)

    @classmethod
    def noop(cls, description: str = "") -> "ExitStatus":
        return cls(cls.NOOP_CODE, description)

    @classmethod
    def executing(cls) -> "ExitStatus":
        return cls(cls.EXECUTING_CODE)

    @classmethod
    def unknown(cls) -> "ExitStatus":
        return cls(cls.UNKNOWN_CODE)

    @classmethod
    def from_status(cls, status: BatchStatus, description: str = "") -> "ExitStatus":
        if status == BatchStatus.COMPLETED:
            return cls.completed(description)
        if status == BatchStatus.FAILED:
            return cls.failed(description)
        if status == BatchStatus.STOPPED:
            return cls.stopped(description)
        if status.is_running:
            return cls(cls.EXECUTING_CODE, description)
        return cls(cls.UNKNOWN_CODE, description)

    def with_description(self, description: Optional[str]) -> "ExitStatus":
        if not description:
            return self
        if self.exit_description:
            description = f"{self.exit_description}; {description}"
        return ExitStatus(self.exit_code, description)

    def to_dict(self) -> dict:
        return {"exit_code": self.exit_code, "exit_description": self.exit_description}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ExitStatus":
        data = data or {}
        return cls(data.get("exit_code", cls.UNKNOWN_CODE), data.get("exit_description", ""))

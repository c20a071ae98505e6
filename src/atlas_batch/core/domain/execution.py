# src/atlas_batch/core/domain/execution.py
"""
Modelo de execução do Atlas Batch.

Entidades:
    - JobInstance   → identidade lógica (nome do job + parâmetros), nunca mutada
    - JobExecution  → uma tentativa de executar uma JobInstance
    - StepExecution → uma tentativa de executar um Step dentro de uma JobExecution

Invariantes:
    - Contadores de StepExecution são monotonicamente não decrescentes
    - Uma StepExecution pertence exclusivamente à sua JobExecution
    - Timestamps são sempre timezone-aware em UTC
    - Todas as entidades são serializáveis via `to_dict` / `from_dict`
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .execution_context import ExecutionContext
from .parameters import JobParameters
from .status import BatchStatus, ExitStatus


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def _parse(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


@dataclass(frozen=True)
class JobInstance:
    """Identidade de uma execução lógica de job (nome + parâmetros)."""

    id: int
    job_name: str
    job_key: str
    parameters: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "job_name": self.job_name,
            "job_key": self.job_key,
            "parameters": dict(self.parameters),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobInstance":
        return cls(
            id=int(data["id"]),
            job_name=data["job_name"],
            job_key=data["job_key"],
            parameters=dict(data.get("parameters", {}) or {}),
        )


# Contadores persistidos de uma StepExecution, na ordem de exibição.
STEP_COUNTERS = (
    "read_count",
    "write_count",
    "filter_count",
    "commit_count",
    "rollback_count",
    "read_skip_count",
    "process_skip_count",
    "write_skip_count",
)


@dataclass
class StepExecution:
    """
    Uma tentativa de executar um Step.

    Os contadores só podem ser alterados por `increment` e `add_retry`,
    garantindo monotonicidade. `execution_context` carrega o checkpoint.
    """

    step_name: str
    job_execution_id: int
    id: Optional[int] = None
    status: BatchStatus = BatchStatus.STARTING
    exit_status: ExitStatus = field(default_factory=ExitStatus.executing)
    execution_context: ExecutionContext = field(default_factory=ExecutionContext)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    last_updated: Optional[datetime] = None
    failures: List[Dict[str, Any]] = field(default_factory=list)
    counters: Dict[str, int] = field(default_factory=lambda: {k: 0 for k in STEP_COUNTERS})
    retry_counts: Dict[str, int] = field(default_factory=dict)
    job_execution: Optional["JobExecution"] = field(default=None, repr=False, compare=False)

    def increment(self, counter: str, amount: int = 1) -> None:
        if counter not in self.counters:
            raise KeyError(counter)
        if amount < 0:
            raise ValueError("counters are monotonically non-decreasing")
        self.counters[counter] += amount

    def add_retry(self, tag: str, amount: int = 1) -> int:
        if amount < 0:
            raise ValueError("counters are monotonically non-decreasing")
        self.retry_counts[tag] = self.retry_counts.get(tag, 0) + amount
        return self.retry_counts[tag]

    @property
    def read_count(self) -> int:
        return self.counters["read_count"]

    @property
    def write_count(self) -> int:
        return self.counters["write_count"]

    @property
    def filter_count(self) -> int:
        return self.counters["filter_count"]

    @property
    def commit_count(self) -> int:
        return self.counters["commit_count"]

    @property
    def rollback_count(self) -> int:
        return self.counters["rollback_count"]

    @property
    def read_skip_count(self) -> int:
        return self.counters["read_skip_count"]

    @property
    def process_skip_count(self) -> int:
        return self.counters["process_skip_count"]

    @property
    def write_skip_count(self) -> int:
        return self.counters["write_skip_count"]

    @property
    def skip_count(self) -> int:
        c = self.counters
        return c["read_skip_count"] + c["process_skip_count"] + c["write_skip_count"]

    @property
    def retry_count(self) -> int:
        return sum(self.retry_counts.values())

    def add_failure(self, failure: Dict[str, Any]) -> None:
        self.failures.append(dict(failure))

    def summary(self) -> Dict[str, Any]:
        """Contadores e checkpoint em forma serializável (diagnóstico)."""
        return {
            "step_name": self.step_name,
            "status": self.status.value,
            "exit_code": self.exit_status.exit_code,
            **dict(self.counters),
            "skip_count": self.skip_count,
            "retry_count": self.retry_count,
            "checkpoint": self.execution_context.snapshot(),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "step_name": self.step_name,
            "job_execution_id": self.job_execution_id,
            "status": self.status.value,
            "exit_status": self.exit_status.to_dict(),
            "execution_context": self.execution_context.snapshot(),
            "start_time": _iso(self.start_time),
            "end_time": _iso(self.end_time),
            "last_updated": _iso(self.last_updated),
            "failures": [dict(f) for f in self.failures],
            "counters": dict(self.counters),
            "retry_counts": dict(self.retry_counts),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StepExecution":
        counters = {k: 0 for k in STEP_COUNTERS}
        counters.update({k: int(v) for k, v in (data.get("counters", {}) or {}).items()})
        return cls(
            id=data.get("id"),
            step_name=data["step_name"],
            job_execution_id=int(data["job_execution_id"]),
            status=BatchStatus(data.get("status", BatchStatus.UNKNOWN.value)),
            exit_status=ExitStatus.from_dict(data.get("exit_status")),
            execution_context=ExecutionContext(data.get("execution_context", {}) or {}),
            start_time=_parse(data.get("start_time")),
            end_time=_parse(data.get("end_time")),
            last_updated=_parse(data.get("last_updated")),
            failures=[dict(f) for f in (data.get("failures", []) or [])],
            counters=counters,
            retry_counts={k: int(v) for k, v in (data.get("retry_counts", {}) or {}).items()},
        )


@dataclass
class JobExecution:
    """
    Uma tentativa de executar uma JobInstance.

    O sinal de parada (`stop_event`) é estado vivo do processo: não é
    persistido e só existe no objeto que está efetivamente executando.
    """

    job_instance: JobInstance
    parameters: JobParameters
    id: Optional[int] = None
    status: BatchStatus = BatchStatus.STARTING
    exit_status: ExitStatus = field(default_factory=ExitStatus.unknown)
    execution_context: ExecutionContext = field(default_factory=ExecutionContext)
    create_time: datetime = field(default_factory=utc_now)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    last_updated: Optional[datetime] = None
    step_executions: List[StepExecution] = field(default_factory=list)
    failures: List[Dict[str, Any]] = field(default_factory=list)
    stop_event: threading.Event = field(default_factory=threading.Event, repr=False, compare=False)
    run_context: Any = field(default=None, repr=False, compare=False)

    @property
    def job_name(self) -> str:
        return self.job_instance.job_name

    @property
    def is_running(self) -> bool:
        return self.status.is_running

    @property
    def stop_requested(self) -> bool:
        return self.stop_event.is_set()

    def request_stop(self) -> None:
        self.stop_event.set()
        if self.status.is_running:
            self.status = BatchStatus.STOPPING

    def create_step_execution(self, step_name: str) -> StepExecution:
        if self.id is None:
            raise ValueError("JobExecution must be persisted before creating StepExecutions")
        step_execution = StepExecution(step_name=step_name, job_execution_id=self.id, job_execution=self)
        self.step_executions.append(step_execution)
        return step_execution

    def add_failure(self, failure: Dict[str, Any]) -> None:
        self.failures.append(dict(failure))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "job_instance": self.job_instance.to_dict(),
            "parameters": self.parameters.to_dict(),
            "status": self.status.value,
            "exit_status": self.exit_status.to_dict(),
            "execution_context": self.execution_context.snapshot(),
            "create_time": _iso(self.create_time),
            "start_time": _iso(self.start_time),
            "end_time": _iso(self.end_time),
            "last_updated": _iso(self.last_updated),
            "failures": [dict(f) for f in self.failures],
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        step_executions: Optional[List[StepExecution]] = None,
    ) -> "JobExecution":
        return cls(
            id=data.get("id"),
            job_instance=JobInstance.from_dict(data["job_instance"]),
            parameters=JobParameters(data.get("parameters", {}) or {}),
            status=BatchStatus(data.get("status", BatchStatus.UNKNOWN.value)),
            exit_status=ExitStatus.from_dict(data.get("exit_status")),
            execution_context=ExecutionContext(data.get("execution_context", {}) or {}),
            create_time=_parse(data.get("create_time")) or utc_now(),
            start_time=_parse(data.get("start_time")),
            end_time=_parse(data.get("end_time")),
            last_updated=_parse(data.get("last_updated")),
            step_executions=list(step_executions or []),
            failures=[dict(f) for f in (data.get("failures", []) or [])],
        )

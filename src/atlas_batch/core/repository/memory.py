# src/atlas_batch/core/repository/memory.py
"""
Repositório de execuções em memória.

Armazena *snapshots* serializados (dicts) de cada entidade, protegidos
por um lock reentrante. Leituras reconstroem objetos novos a partir dos
snapshots, de modo que o estado persistido só muda por chamadas
explícitas de `update_*`.

Invariantes:
    - IDs são inteiros crescentes por tipo de entidade
    - Status, contadores e ExecutionContext de uma StepExecution são
      gravados no mesmo snapshot (atomicidade)
    - No máximo uma JobExecution ativa por JobInstance
"""

from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional, Tuple

from atlas_batch.core.domain.execution import (
    JobExecution,
    JobInstance,
    StepExecution,
    utc_now,
)
from atlas_batch.core.domain.parameters import JobParameters
from atlas_batch.core.domain.status import BatchStatus
from atlas_batch.core.exceptions import JobAlreadyRunningError, NoSuchJobExecutionError


class InMemoryJobRepository:
    """Implementação thread-safe de `JobRepository` baseada em snapshots."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._instances: Dict[int, Dict[str, Any]] = {}
        self._instance_keys: Dict[Tuple[str, str], int] = {}
        self._job_executions: Dict[int, Dict[str, Any]] = {}
        self._step_executions: Dict[int, Dict[str, Any]] = {}
        self._sequences: Dict[str, int] = {"instance": 0, "job_execution": 0, "step_execution": 0}

    # -----------------------------
    # Hooks
    # -----------------------------
    def _next_id(self, kind: str) -> int:
        self._sequences[kind] += 1
        return self._sequences[kind]

    def _after_write(self) -> None:
        """Chamado (sob lock) após toda mutação; subclasses persistem aqui."""

    # -----------------------------
    # JobInstance
    # -----------------------------
    def get_job_instance(self, job_name: str, parameters: JobParameters) -> Optional[JobInstance]:
        key = (job_name, parameters.identity(job_name))
        with self._lock:
            instance_id = self._instance_keys.get(key)
            if instance_id is None:
                return None
            return JobInstance.from_dict(self._instances[instance_id])

    def create_job_instance(self, job_name: str, parameters: JobParameters) -> JobInstance:
        job_key = parameters.identity(job_name)
        with self._lock:
            if (job_name, job_key) in self._instance_keys:
                raise ValueError(f"JobInstance already exists for job '{job_name}' and parameters")
            instance = JobInstance(
                id=self._next_id("instance"),
                job_name=job_name,
                job_key=job_key,
                parameters=parameters.to_dict(),
            )
            self._instances[instance.id] = instance.to_dict()
            self._instance_keys[(job_name, job_key)] = instance.id
            self._after_write()
            return instance

    def get_or_create_job_instance(self, job_name: str, parameters: JobParameters) -> Tuple[JobInstance, bool]:
        """Busca ou cria a JobInstance sob o mesmo lock; retorna (instância, criada)."""
        with self._lock:
            existing = self.get_job_instance(job_name, parameters)
            if existing is not None:
                return existing, False
            return self.create_job_instance(job_name, parameters), True

    def get_job_instances(self, job_name: str) -> List[JobInstance]:
        with self._lock:
            found = [JobInstance.from_dict(d) for d in self._instances.values() if d["job_name"] == job_name]
        return sorted(found, key=lambda i: i.id, reverse=True)

    # -----------------------------
    # JobExecution
    # -----------------------------
    def create_job_execution(self, job_instance: JobInstance, parameters: JobParameters) -> JobExecution:
        with self._lock:
            for data in self._job_executions.values():
                if data["job_instance"]["id"] == job_instance.id and BatchStatus(data["status"]).is_running:
                    raise JobAlreadyRunningError(
                        f"JobInstance {job_instance.id} já possui execução ativa",
                        details={"job_instance_id": job_instance.id, "job_execution_id": data["id"]},
                        hint="Aguarde o término, pare ou abandone a execução ativa",
                    )
            execution = JobExecution(job_instance=job_instance, parameters=parameters)
            execution.id = self._next_id("job_execution")
            execution.last_updated = utc_now()
            self._job_executions[execution.id] = execution.to_dict()
            self._after_write()
            return execution

    def update_job_execution(self, job_execution: JobExecution) -> None:
        if job_execution.id is None:
            raise ValueError("JobExecution must be created before being updated")
        with self._lock:
            if job_execution.id not in self._job_executions:
                raise NoSuchJobExecutionError(
                    f"JobExecution {job_execution.id} inexistente",
                    details={"job_execution_id": job_execution.id},
                )
            job_execution.last_updated = utc_now()
            self._job_executions[job_execution.id] = job_execution.to_dict()
            job_execution.execution_context.clear_dirty()
            self._after_write()

    def get_job_execution(self, execution_id: int) -> Optional[JobExecution]:
        with self._lock:
            data = self._job_executions.get(execution_id)
            if data is None:
                return None
            return JobExecution.from_dict(data, self.get_step_executions(execution_id))

    def get_job_executions(self, job_instance: JobInstance) -> List[JobExecution]:
        with self._lock:
            ids = sorted(
                (d["id"] for d in self._job_executions.values() if d["job_instance"]["id"] == job_instance.id),
                reverse=True,
            )
            return [self.get_job_execution(i) for i in ids]  # type: ignore[misc]

    def get_last_job_execution(self, job_instance: JobInstance) -> Optional[JobExecution]:
        executions = self.get_job_executions(job_instance)
        return executions[0] if executions else None

    def find_running_job_executions(self, job_name: str) -> List[JobExecution]:
        with self._lock:
            ids = sorted(
                d["id"]
                for d in self._job_executions.values()
                if d["job_instance"]["job_name"] == job_name and BatchStatus(d["status"]).is_running
            )
            return [self.get_job_execution(i) for i in ids]  # type: ignore[misc]

    # -----------------------------
    # StepExecution
    # -----------------------------
    def add_step_execution(self, step_execution: StepExecution) -> None:
        with self._lock:
            if step_execution.job_execution_id not in self._job_executions:
                raise NoSuchJobExecutionError(
                    f"JobExecution {step_execution.job_execution_id} inexistente",
                    details={"job_execution_id": step_execution.job_execution_id},
                )
            step_execution.id = self._next_id("step_execution")
            step_execution.last_updated = utc_now()
            self._step_executions[step_execution.id] = step_execution.to_dict()
            step_execution.execution_context.clear_dirty()
            self._after_write()

    def update_step_execution(self, step_execution: StepExecution) -> None:
        if step_execution.id is None:
            raise ValueError("StepExecution must be added before being updated")
        with self._lock:
            step_execution.last_updated = utc_now()
            self._step_executions[step_execution.id] = step_execution.to_dict()
            step_execution.execution_context.clear_dirty()
            self._after_write()

    def get_step_executions(self, job_execution_id: int) -> List[StepExecution]:
        with self._lock:
            found = [
                StepExecution.from_dict(d)
                for d in self._step_executions.values()
                if d["job_execution_id"] == job_execution_id
            ]
        return sorted(found, key=lambda s: s.id or 0)

    def _instance_step_snapshots(self, job_instance: JobInstance, step_name: str) -> List[Dict[str, Any]]:
        execution_ids = {
            d["id"] for d in self._job_executions.values() if d["job_instance"]["id"] == job_instance.id
        }
        return [
            d
            for d in self._step_executions.values()
            if d["job_execution_id"] in execution_ids and d["step_name"] == step_name
        ]

    def get_last_step_execution(self, job_instance: JobInstance, step_name: str) -> Optional[StepExecution]:
        with self._lock:
            snapshots = self._instance_step_snapshots(job_instance, step_name)
            if not snapshots:
                return None
            return StepExecution.from_dict(max(snapshots, key=lambda d: d["id"]))

    def count_step_executions(self, job_instance: JobInstance, step_name: str) -> int:
        with self._lock:
            return len(self._instance_step_snapshots(job_instance, step_name))

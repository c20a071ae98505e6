# src/atlas_batch/core/repository/base.py
"""
Contrato do repositório de execuções (Execution Repository).

O repositório é o único recurso compartilhado entre instâncias do
engine. Requisitos:
    - CRUD de JobInstance, JobExecution e StepExecution
    - `update_step_execution` grava status, contadores e ExecutionContext
      atomicamente
    - `create_job_execution` recusa uma segunda execução ativa para a
      mesma JobInstance (JobAlreadyRunningError)
    - `get_or_create_job_instance` busca e cria sob o mesmo lock: dois
      lançamentos concorrentes compartilham uma única JobInstance
    - Objetos retornados são cópias: mutá-los não altera o estado persistido
"""

from __future__ import annotations

from typing import List, Optional, Protocol, Tuple, runtime_checkable

from atlas_batch.core.domain.execution import JobExecution, JobInstance, StepExecution
from atlas_batch.core.domain.parameters import JobParameters


@runtime_checkable
class JobRepository(Protocol):
    def get_job_instance(self, job_name: str, parameters: JobParameters) -> Optional[JobInstance]:
        ...

    def create_job_instance(self, job_name: str, parameters: JobParameters) -> JobInstance:
        ...

    def get_or_create_job_instance(self, job_name: str, parameters: JobParameters) -> Tuple[JobInstance, bool]:
        ...

    def create_job_execution(self, job_instance: JobInstance, parameters: JobParameters) -> JobExecution:
        ...

    def update_job_execution(self, job_execution: JobExecution) -> None:
        ...

    def add_step_execution(self, step_execution: StepExecution) -> None:
        ...

    def update_step_execution(self, step_execution: StepExecution) -> None:
        ...

    def get_job_execution(self, execution_id: int) -> Optional[JobExecution]:
        ...

    def get_job_executions(self, job_instance: JobInstance) -> List[JobExecution]:
        ...

    def get_last_job_execution(self, job_instance: JobInstance) -> Optional[JobExecution]:
        ...

    def find_running_job_executions(self, job_name: str) -> List[JobExecution]:
        ...

    def get_last_step_execution(self, job_instance: JobInstance, step_name: str) -> Optional[StepExecution]:
        ...

    def count_step_executions(self, job_instance: JobInstance, step_name: str) -> int:
        ...

    def get_step_executions(self, job_execution_id: int) -> List[StepExecution]:
        ...

# src/atlas_batch/core/engine/coordinator.py
"""
Job Execution Coordinator: lançamento, sequenciamento de Steps e status final.

Contrato: `run(job, parameters) -> JobExecution`.

Fluxo de `run`:
    1. Valida parâmetros (ValidationError, nenhuma execução criada)
    2. Valida o fluxo de Steps (FlowDefinitionError)
    3. Obtém ou cria a JobInstance para (nome, parâmetros) e verifica se
       uma nova execução é permitida (ver `_check_restart`)
    4. Cria a JobExecution (JobAlreadyRunningError se houver execução ativa)
    5. Executa um Step por vez, de forma síncrona, seguindo as transições
    6. Agrega o status final e persiste a JobExecution

Status final:
    - COMPLETED quando o fluxo termina normalmente (fim da sequência ou END)
    - FAILED quando um Step FAILED não possui transição de tratamento, ou FAIL
    - STOPPED quando um Step termina STOPPED, o alvo é STOP ou houve stop()

Operações de controle:
    - stop(execution_id)    → sinal cooperativo para uma execução viva
    - abandon(execution_id) → marca uma execução não ativa como ABANDONED
    - recover(execution_id) → marca como FAILED uma execução órfã
                              (processo interrompido) para permitir restart
    - restart(job, execution_id) → nova execução da mesma JobInstance
"""

from __future__ import annotations

import threading
from typing import Any, Dict, Mapping, Optional, Tuple

from atlas_batch.core.domain.execution import JobExecution, JobInstance, utc_now
from atlas_batch.core.domain.parameters import JobParameters
from atlas_batch.core.domain.status import BatchStatus, ExitStatus
from atlas_batch.core.errors import exception_to_payload
from atlas_batch.core.exceptions import (
    ConcurrencyError,
    JobAlreadyRunningError,
    JobInstanceAlreadyCompleteError,
    JobRestartError,
    ListenerError,
    NoSuchJobExecutionError,
)
from atlas_batch.core.pipeline.context import RunContext
from atlas_batch.core.pipeline.job import END, FAIL, STOP, JobDefinition
from atlas_batch.core.pipeline.listeners import ListenerChain

from .planner import FlowPlan, plan_flow
from .step_engine import StepExecutionEngine
from .transaction import TransactionManager


JOB_STEP_ID = "job"


class JobCoordinator:
    """Coordena execuções de Jobs sobre um repositório de execuções."""

    def __init__(
        self,
        repository: Any,
        *,
        transaction_manager: Optional[TransactionManager] = None,
        config: Optional[Dict[str, Any]] = None,
        min_level: str = "DEBUG",
    ):
        self.repository = repository
        self.transaction_manager = transaction_manager or TransactionManager()
        self.config = dict(config or {})
        self.min_level = min_level
        self._live: Dict[int, JobExecution] = {}
        self._live_lock = threading.Lock()

    # -----------------------------
    # Lançamento
    # -----------------------------
    def run(self, job: JobDefinition, parameters: Optional[Mapping[str, Any]] = None) -> JobExecution:
        """
        Executa `job` com `parameters` e retorna a JobExecution terminada.

        Raises:
            ValidationError: Parâmetros inválidos.
            FlowDefinitionError: Fluxo de Steps inválido.
            JobAlreadyRunningError: Já existe execução ativa para a JobInstance.
            JobRestartError: A JobInstance não pode ser reexecutada.
        """
        params = parameters if isinstance(parameters, JobParameters) else JobParameters(parameters or {})
        if job.validator is not None:
            job.validator.validate(params)
        plan = plan_flow(job)

        instance, created = self.repository.get_or_create_job_instance(job.name, params)
        last: Optional[JobExecution] = None
        if not created:
            last = self._check_restart(job, instance)

        execution = self.repository.create_job_execution(instance, params)
        if last is not None and last.status != BatchStatus.COMPLETED:
            execution.execution_context.update(last.execution_context.snapshot())

        ctx = RunContext(
            run_id=f"{job.name}-{execution.id}",
            config=dict(self.config),
            meta={
                "job": job.name,
                "job_instance_id": instance.id,
                "job_execution_id": execution.id,
                "restart_of": last.id if last is not None else None,
            },
            min_level=self.min_level,
        )
        execution.run_context = ctx

        with self._live_lock:
            self._live[execution.id] = execution
        try:
            return self._execute(job, plan, execution, ctx)
        finally:
            with self._live_lock:
                self._live.pop(execution.id, None)

    def restart(self, job: JobDefinition, execution_id: int) -> JobExecution:
        """Nova execução da JobInstance de `execution_id`, com os mesmos parâmetros."""
        previous = self._require_execution(execution_id)
        if previous.job_name != job.name:
            raise JobRestartError(
                f"JobExecution {execution_id} pertence ao job '{previous.job_name}'",
                details={"job_execution_id": execution_id, "job": job.name},
            )
        return self.run(job, previous.parameters)

    def _check_restart(self, job: JobDefinition, instance: JobInstance) -> Optional[JobExecution]:
        last = self.repository.get_last_job_execution(instance)
        if last is None:
            return None
        details = {"job": job.name, "job_instance_id": instance.id, "job_execution_id": last.id}
        if last.status.is_running:
            raise JobAlreadyRunningError(
                f"JobInstance {instance.id} já possui execução ativa",
                details=details,
                hint="Aguarde o término, pare ou recupere a execução ativa",
            )
        if not job.restartable:
            raise JobRestartError(
                f"Job '{job.name}' não é reiniciável",
                details=details,
                hint="Use parâmetros diferentes para criar uma nova JobInstance",
            )
        if last.status == BatchStatus.ABANDONED:
            raise JobRestartError(
                f"JobExecution {last.id} foi abandonada e não pode ser reiniciada",
                details=details,
            )
        if last.status == BatchStatus.COMPLETED and not job.allows_start_if_complete():
            raise JobInstanceAlreadyCompleteError(
                f"JobInstance {instance.id} já foi concluída",
                details=details,
                hint="Use parâmetros diferentes para criar uma nova JobInstance",
            )
        return last

    # -----------------------------
    # Execução
    # -----------------------------
    def _execute(self, job: JobDefinition, plan: FlowPlan, execution: JobExecution, ctx: RunContext) -> JobExecution:
        engine = StepExecutionEngine(self.repository, ctx, transaction_manager=self.transaction_manager)
        chain = ListenerChain(job.listeners, ctx=ctx, step_id=JOB_STEP_ID, fatal=True)

        execution.status = BatchStatus.STARTED
        execution.start_time = utc_now()
        self.repository.update_job_execution(execution)
        ctx.log(step_id=JOB_STEP_ID, level="INFO", message="job started", job=job.name, job_execution_id=execution.id)

        description = ""
        try:
            chain.invoke("before_job", execution)
            status, description = self._run_flow(job, plan, execution, engine)
        except Exception as exc:
            payload = exception_to_payload(exc)
            execution.add_failure({"step": None, **payload.to_dict()})
            status, description = BatchStatus.FAILED, payload.describe()
            ctx.log(step_id=JOB_STEP_ID, level="ERROR", message="job aborted", error_type=payload.type)

        execution.status = status
        execution.exit_status = ExitStatus.from_status(status, description)

        try:
            chain.invoke("after_job", execution)
        except ListenerError as exc:
            ctx.add_warning(step_id=JOB_STEP_ID, message=str(exc))

        execution.end_time = utc_now()
        self.repository.update_job_execution(execution)
        ctx.log(
            step_id=JOB_STEP_ID,
            level="ERROR" if status == BatchStatus.FAILED else "INFO",
            message="job finished",
            status=status.value,
            exit_code=execution.exit_status.exit_code,
        )
        return execution

    def _run_flow(
        self,
        job: JobDefinition,
        plan: FlowPlan,
        execution: JobExecution,
        engine: StepExecutionEngine,
    ) -> Tuple[BatchStatus, str]:
        step = job.first_step
        while step is not None:
            if execution.stop_requested:
                return BatchStatus.STOPPED, "stop requested"

            step_execution = execution.create_step_execution(step.name)
            step_status = engine.execute(step, step_execution)
            if step_status == BatchStatus.FAILED:
                for failure in step_execution.failures:
                    execution.add_failure({"step": step.name, **failure})

            target = self._route(plan, step.name, step_execution.exit_status.exit_code)
            description = self._describe(step.name, step_execution.exit_status)

            if target is None:
                if step_status in (BatchStatus.FAILED, BatchStatus.STOPPED):
                    return step_status, description
                next_name = plan.defaults.get(step.name)
                step = job.step(next_name) if next_name is not None else None
                continue
            if target == END:
                return BatchStatus.COMPLETED, ""
            if target == FAIL:
                return BatchStatus.FAILED, description
            if target == STOP:
                return BatchStatus.STOPPED, description
            step = job.step(target)

        return BatchStatus.COMPLETED, ""

    def _route(self, plan: FlowPlan, step_name: str, exit_code: str) -> Optional[str]:
        if not plan.has_transitions(step_name):
            return None
        target = plan.resolve(step_name, exit_code)
        if target is None and exit_code == ExitStatus.NOOP_CODE:
            target = plan.resolve(step_name, ExitStatus.COMPLETED_CODE)
        return target

    def _describe(self, step_name: str, exit_status: ExitStatus) -> str:
        if exit_status.exit_description:
            return f"step '{step_name}' {exit_status.exit_code}: {exit_status.exit_description}"
        return f"step '{step_name}' {exit_status.exit_code}"

    # -----------------------------
    # Controle
    # -----------------------------
    def stop(self, execution_id: int) -> bool:
        """
        Sinaliza parada cooperativa para uma execução viva neste coordinator.

        Returns:
            bool: False se a execução não estiver em andamento aqui.
        """
        with self._live_lock:
            execution = self._live.get(execution_id)
        if execution is None:
            return False
        execution.request_stop()
        self.repository.update_job_execution(execution)
        if execution.run_context is not None:
            execution.run_context.log(step_id=JOB_STEP_ID, level="INFO", message="stop requested")
        return True

    def abandon(self, execution_id: int) -> JobExecution:
        """
        Marca uma execução terminada como ABANDONED (nunca mais reiniciada).

        Raises:
            NoSuchJobExecutionError: Execução inexistente.
            ConcurrencyError: A execução está em andamento.
        """
        execution = self._require_execution(execution_id)
        if self._is_live(execution_id) or execution.status.is_running:
            raise ConcurrencyError(
                f"JobExecution {execution_id} está em andamento e não pode ser abandonada",
                details={"job_execution_id": execution_id, "status": execution.status.value},
                hint="Pare a execução ou use recover() para execuções órfãs",
            )
        execution.status = BatchStatus.ABANDONED
        execution.exit_status = execution.exit_status.with_description("abandoned")
        execution.end_time = execution.end_time or utc_now()
        self.repository.update_job_execution(execution)
        return execution

    def recover(self, execution_id: int) -> JobExecution:
        """
        Marca como FAILED uma execução órfã que ficou em estado ativo.

        Raises:
            NoSuchJobExecutionError: Execução inexistente.
            ConcurrencyError: A execução está viva neste coordinator.
        """
        execution = self._require_execution(execution_id)
        if self._is_live(execution_id):
            raise ConcurrencyError(
                f"JobExecution {execution_id} está em andamento",
                details={"job_execution_id": execution_id},
            )
        if not execution.status.is_running:
            return execution

        now = utc_now()
        for step_execution in execution.step_executions:
            if step_execution.status.is_running:
                step_execution.status = BatchStatus.FAILED
                step_execution.exit_status = ExitStatus.failed("recovered after abnormal termination")
                step_execution.end_time = now
                self.repository.update_step_execution(step_execution)
        execution.status = BatchStatus.FAILED
        execution.exit_status = ExitStatus.failed("recovered after abnormal termination")
        execution.end_time = now
        self.repository.update_job_execution(execution)
        return execution

    def _is_live(self, execution_id: int) -> bool:
        with self._live_lock:
            return execution_id in self._live

    def _require_execution(self, execution_id: int) -> JobExecution:
        execution = self.repository.get_job_execution(execution_id)
        if execution is None:
            raise NoSuchJobExecutionError(
                f"JobExecution {execution_id} inexistente",
                details={"job_execution_id": execution_id},
            )
        return execution

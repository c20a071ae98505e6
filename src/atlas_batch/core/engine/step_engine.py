# src/atlas_batch/core/engine/step_engine.py
"""
Step Execution Engine: conduz o laço de chunks de um Step até um estado terminal.

Máquina de estados de uma StepExecution:

    STARTING → STARTED → {COMPLETED | FAILED | STOPPED}

Responsabilidades:
    - Restart: copia o ExecutionContext da última StepExecution não
      concluída da mesma JobInstance e posiciona o leitor no checkpoint
    - Idempotência: um Step já COMPLETED não é reexecutado, exceto com
      `allow_start_if_complete` (retorna COMPLETED com exit code NOOP)
    - `start_limit`: número máximo de inícios do Step por JobInstance
    - Laço de chunks: cada ciclo é confirmado junto com seu checkpoint;
      falhas de item são entregues à Fault Policy (SKIP / RETRY / ABORT)
    - Parada cooperativa: o sinal de stop é verificado entre chunks; o
      chunk em andamento sempre termina sua transação antes
    - Steps particionados são delegados ao Parallel Executor

Propagação de erros:
    - SKIP e RETRY são resolvidos localmente e nunca saem do engine
    - ABORT, TransactionError e ListenerError fatal resultam em FAILED,
      com o BatchErrorPayload registrado em `failures` e na exit description
    - Exceções fora de `Exception` (ex.: KeyboardInterrupt) não são
      capturadas: a StepExecution permanece STARTED no repositório
"""

from __future__ import annotations

from typing import Any, Optional, Tuple

from atlas_batch.core.domain.execution import StepExecution, utc_now
from atlas_batch.core.domain.status import BatchStatus, ExitStatus
from atlas_batch.core.errors import BatchErrorPayload, exception_to_payload
from atlas_batch.core.exceptions import ItemError, ListenerError, Phase, StartLimitExceededError
from atlas_batch.core.pipeline.context import RunContext
from atlas_batch.core.pipeline.listeners import ListenerChain
from atlas_batch.core.pipeline.step import ChunkStep, PartitionedStep

from .checkpoint import CheckpointManager, ChunkContribution
from .chunk import Chunk, ChunkProcessor
from .fault import FaultAction, FaultPolicy
from .partition import ParallelExecutor, WorkerPool
from .transaction import TransactionManager


StepOutcome = Tuple[BatchStatus, Optional[BatchErrorPayload]]


class StepExecutionEngine:
    """Executa um ChunkStep ou PartitionedStep sobre uma StepExecution."""

    def __init__(
        self,
        repository: Any,
        ctx: Optional[RunContext] = None,
        *,
        transaction_manager: Optional[TransactionManager] = None,
        checkpoint_manager: Optional[CheckpointManager] = None,
    ):
        self.repository = repository
        self.ctx = ctx
        self.transaction_manager = transaction_manager or TransactionManager()
        self.checkpoints = checkpoint_manager or CheckpointManager(repository, ctx)

    # -----------------------------
    # Entrada
    # -----------------------------
    def execute(self, step: Any, step_execution: StepExecution) -> BatchStatus:
        """
        Executa `step` até um estado terminal.

        Args:
            step: ChunkStep ou PartitionedStep.
            step_execution: StepExecution ainda não adicionada ao repositório,
                criada via `JobExecution.create_step_execution`.

        Returns:
            BatchStatus: COMPLETED, FAILED ou STOPPED.
        """
        settings = step.settings
        instance = self._job_instance(step_execution)

        prior: Optional[StepExecution] = None
        starts = 0
        if instance is not None:
            prior = self.repository.get_last_step_execution(instance, step_execution.step_name)
            starts = self.repository.count_step_executions(instance, step_execution.step_name)

        if prior is not None and prior.status == BatchStatus.COMPLETED and not settings.allow_start_if_complete:
            return self._noop(step_execution)

        if settings.start_limit is not None and starts >= settings.start_limit:
            error = StartLimitExceededError(
                f"Step '{step_execution.step_name}' atingiu o limite de {settings.start_limit} inícios",
                details={
                    "step": step_execution.step_name,
                    "start_limit": settings.start_limit,
                    "starts": starts,
                },
                hint="Aumente start_limit ou crie uma nova JobInstance",
            )
            self._save(step_execution)
            return self._finish(step_execution, None, BatchStatus.FAILED, exception_to_payload(error))

        if prior is not None and prior.status not in (BatchStatus.COMPLETED, BatchStatus.ABANDONED):
            step_execution.execution_context.update(prior.execution_context.snapshot())

        step_execution.status = BatchStatus.STARTED
        step_execution.start_time = utc_now()
        self._save(step_execution)
        self._log(step_execution, "INFO", "step started", restart=prior is not None)

        chain = ListenerChain(
            step.listeners,
            ctx=self.ctx,
            step_id=step_execution.step_name,
            fatal=settings.listeners_fatal,
        )
        try:
            chain.invoke("before_step", step_execution)
            if isinstance(step, PartitionedStep):
                status, payload = self._run_partitioned(step, step_execution)
            else:
                status, payload = self._run_chunks(step, step_execution, chain)
        except Exception as exc:
            status, payload = BatchStatus.FAILED, exception_to_payload(exc)

        return self._finish(step_execution, chain, status, payload)

    # -----------------------------
    # Laço de chunks
    # -----------------------------
    def _run_chunks(self, step: ChunkStep, step_execution: StepExecution, chain: ListenerChain) -> StepOutcome:
        policy = FaultPolicy(step.settings, step_execution)
        processor = ChunkProcessor(
            reader=step.reader,
            writer=step.writer,
            processor=step.processor,
            transaction_manager=self.transaction_manager,
        )
        offset = self._resume(step, step_execution)

        while True:
            if self._stop_requested(step_execution):
                self._log(step_execution, "INFO", "stop signal received", items_consumed=offset)
                return BatchStatus.STOPPED, None

            chunk = Chunk(size=step.settings.chunk_size, start_offset=offset)
            chain.invoke("before_chunk", step_execution)
            payload = self._run_chunk(step_execution, chunk, processor, policy, chain)
            if payload is not None:
                return BatchStatus.FAILED, payload
            chain.invoke("after_chunk", step_execution)

            offset = chunk.offset
            if chunk.end_of_data:
                return BatchStatus.COMPLETED, None

    def _run_chunk(
        self,
        step_execution: StepExecution,
        chunk: Chunk,
        processor: ChunkProcessor,
        policy: FaultPolicy,
        chain: ListenerChain,
    ) -> Optional[BatchErrorPayload]:
        """Repete o ciclo do chunk até o commit ou um ABORT."""

        def before_commit(tx: Any, committed: Chunk) -> None:
            self.checkpoints.checkpoint(
                step_execution,
                committed.position if committed.position is not None else committed.offset,
                items_consumed=committed.offset,
                contribution=ChunkContribution(
                    read_count=committed.read_count,
                    write_count=len(committed.outputs),
                    filter_count=committed.filter_count,
                ),
            )

        while True:
            try:
                processor.process_chunk(chunk, before_commit=before_commit)
                return None
            except ItemError as error:
                step_execution.increment("rollback_count")
                chain.invoke("after_chunk_error", step_execution, error)
                phase = chunk.failed_phase or error.phase or Phase.PROCESS

                if (
                    phase is Phase.WRITE
                    and not chunk.scan
                    and chunk.locate_output(error.item) is None
                    and policy.peek(error) is FaultAction.SKIP
                ):
                    chunk.scan = True
                    self._log(step_execution, "INFO", "write failed without item; scanning chunk", tag=error.tag)
                    continue

                decision = policy.classify(error, phase)

                if decision.action is FaultAction.RETRY:
                    self._log(step_execution, "WARNING", "retrying chunk", tag=error.tag, attempt=decision.count)
                    chain.invoke("on_retry", step_execution, error, decision.count)
                    continue

                if decision.action is FaultAction.SKIP:
                    item = self._discard(chunk, processor, phase, error)
                    self._log(
                        step_execution,
                        "WARNING",
                        "item skipped",
                        tag=error.tag,
                        phase=phase.value,
                        skip_count=decision.count,
                    )
                    chain.invoke("on_skip", phase, item, error)
                    continue

                self._log(
                    step_execution,
                    "ERROR",
                    "chunk aborted",
                    tag=error.tag,
                    phase=phase.value,
                    error_type=decision.payload.type if decision.payload else None,
                )
                return decision.payload

    def _discard(self, chunk: Chunk, processor: ChunkProcessor, phase: Phase, error: ItemError) -> Any:
        if phase is Phase.READ:
            processor.note_read_skip(chunk)
            return error.item

        index = chunk.failed_index
        if index is None and phase is Phase.WRITE:
            index = chunk.locate_output(error.item)
        if index is None:
            return error.item
        item = chunk.discard(index)
        return error.item if error.item is not None else item

    # -----------------------------
    # Particionamento
    # -----------------------------
    def _run_partitioned(self, step: PartitionedStep, step_execution: StepExecution) -> StepOutcome:
        partitions = step.partitioner.partition(step.settings.partitions)
        executor = ParallelExecutor(self, WorkerPool(step.settings.throttle_limit))
        return executor.execute_partitioned(step, partitions, step_execution)

    # -----------------------------
    # Helpers
    # -----------------------------
    def _resume(self, step: ChunkStep, step_execution: StepExecution) -> int:
        if not self.checkpoints.has_checkpoint(step_execution):
            return 0
        position = self.checkpoints.resume(step_execution)
        step.reader.seek(position)
        consumed = self.checkpoints.items_consumed(step_execution)
        self._log(step_execution, "INFO", "resumed from checkpoint", position=position, items_consumed=consumed)
        return consumed

    def _noop(self, step_execution: StepExecution) -> BatchStatus:
        now = utc_now()
        step_execution.status = BatchStatus.COMPLETED
        step_execution.exit_status = ExitStatus.noop("step already completed")
        step_execution.start_time = now
        step_execution.end_time = now
        self._save(step_execution)
        self._log(step_execution, "INFO", "step already completed; not re-executed")
        return BatchStatus.COMPLETED

    def _finish(
        self,
        step_execution: StepExecution,
        chain: Optional[ListenerChain],
        status: BatchStatus,
        payload: Optional[BatchErrorPayload],
    ) -> BatchStatus:
        if payload is not None:
            step_execution.add_failure(payload.to_dict())
        step_execution.status = status
        step_execution.exit_status = ExitStatus.from_status(status, payload.describe() if payload else "")

        if chain is not None:
            try:
                for result in chain.invoke("after_step", step_execution):
                    if isinstance(result, ExitStatus):
                        step_execution.exit_status = result
            except ListenerError as exc:
                failure = exception_to_payload(exc)
                step_execution.add_failure(failure.to_dict())
                step_execution.status = BatchStatus.FAILED
                step_execution.exit_status = ExitStatus.failed(failure.describe())

        step_execution.end_time = utc_now()
        self.repository.update_step_execution(step_execution)
        self.checkpoints.release(step_execution)

        level = "ERROR" if step_execution.status == BatchStatus.FAILED else "INFO"
        self._log(
            step_execution,
            level,
            "step finished",
            status=step_execution.status.value,
            exit_code=step_execution.exit_status.exit_code,
            read_count=step_execution.read_count,
            write_count=step_execution.write_count,
            commit_count=step_execution.commit_count,
            skip_count=step_execution.skip_count,
            rollback_count=step_execution.rollback_count,
        )
        return step_execution.status

    def _save(self, step_execution: StepExecution) -> None:
        if step_execution.id is None:
            self.repository.add_step_execution(step_execution)
        else:
            self.repository.update_step_execution(step_execution)

    def _job_instance(self, step_execution: StepExecution) -> Any:
        job_execution = step_execution.job_execution
        return job_execution.job_instance if job_execution is not None else None

    def _stop_requested(self, step_execution: StepExecution) -> bool:
        job_execution = step_execution.job_execution
        return job_execution is not None and job_execution.stop_requested

    def _log(self, step_execution: StepExecution, level: str, message: str, **extra: Any) -> None:
        if self.ctx is None:
            return
        self.ctx.log(step_id=step_execution.step_name, level=level, message=message, **extra)

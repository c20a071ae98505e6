# src/atlas_batch/core/engine/partition.py
"""
Parallel Executor: execução de um Step particionado.

Cada partição recebe sua própria StepExecution (nome `step:partição`) e
é executada por uma chamada independente do Step Execution Engine. A
concorrência é limitada pelo `WorkerPool` do Step, cujo tamanho é o
`throttle_limit`: partições excedentes aguardam na fila do pool.

Agregação do status do Step pai:
    - FAILED se alguma partição terminou FAILED
    - COMPLETED somente se todas terminaram COMPLETED
    - STOPPED nos demais casos

O status de cada partição é registrado no ExecutionContext do Step pai
(`partitions`) e os contadores das partições são somados aos do pai.
Checkpoint e restart são independentes por partição: no restart do
Step pai, partições já COMPLETED são tratadas pelo engine como NOOP.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, TypeVar

from atlas_batch.core.domain.execution import STEP_COUNTERS, StepExecution
from atlas_batch.core.domain.execution_context import ExecutionContext
from atlas_batch.core.domain.status import BatchStatus
from atlas_batch.core.errors import BatchErrorPayload, partitions_failed
from atlas_batch.core.exceptions import EngineConfigurationError
from atlas_batch.core.pipeline.step import ChunkStep, PartitionedStep

if TYPE_CHECKING:
    from .step_engine import StepExecutionEngine


T = TypeVar("T")
R = TypeVar("R")

PARTITIONS_KEY = "partitions"


class WorkerPool:
    """
    Pool de threads pertencente a um Step particionado.

    O tamanho é explícito (nunca lido de estado global) e limita o número
    de partições ativas ao mesmo tempo.
    """

    def __init__(self, max_workers: int, *, thread_name_prefix: str = "atlas-batch-partition"):
        if isinstance(max_workers, bool) or not isinstance(max_workers, int) or max_workers < 1:
            raise EngineConfigurationError(
                f"Tamanho de pool inválido: {max_workers!r}",
                details={"key": "throttle_limit", "value": repr(max_workers)},
                hint="Declare throttle_limit como inteiro >= 1",
            )
        self.max_workers = max_workers
        self.thread_name_prefix = thread_name_prefix

    def map(self, fn: Callable[[T], R], items: Sequence[T]) -> List[R]:
        """Aplica `fn` a cada item no pool; resultados na ordem de `items`."""
        results: List[Optional[R]] = [None] * len(items)
        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix=self.thread_name_prefix)
        try:
            futures: Dict[Future, int] = {executor.submit(fn, item): index for index, item in enumerate(items)}
            for future in as_completed(futures):
                results[futures[future]] = future.result()
        except BaseException:
            executor.shutdown(wait=True, cancel_futures=True)
            raise
        executor.shutdown(wait=True)
        return results  # type: ignore[return-value]


@dataclass
class _PartitionUnit:
    name: str
    step: ChunkStep
    execution: StepExecution


class ParallelExecutor:
    """Executa as partições de um PartitionedStep e agrega o status."""

    def __init__(self, engine: "StepExecutionEngine", pool: WorkerPool):
        self.engine = engine
        self.pool = pool

    def execute_partitioned(
        self,
        step: PartitionedStep,
        partitions: Mapping[str, Mapping[str, Any]],
        parent: StepExecution,
    ) -> Tuple[BatchStatus, Optional[BatchErrorPayload]]:
        """
        Executa as partições de `step` sob a StepExecution `parent`.

        Args:
            step: Definição particionada.
            partitions: Contexto inicial de cada partição, indexado pelo nome.
            parent: StepExecution do Step pai (já STARTED).

        Returns:
            Tuple[BatchStatus, Optional[BatchErrorPayload]]: status agregado
            e, quando FAILED, o payload com as partições que falharam.

        Raises:
            EngineConfigurationError: Se não houver partições ou se a fábrica
                não produzir um ChunkStep.
        """
        if not partitions:
            raise EngineConfigurationError(
                f"Particionador de '{step.name}' não produziu partições",
                details={"step": step.name, "grid_size": step.settings.partitions},
            )

        built = [self._build(step, name, initial) for name, initial in partitions.items()]
        units = [self._attach(step, name, chunk_step, context, parent) for name, chunk_step, context in built]
        self._log(parent, "INFO", "partitions scheduled", count=len(units), throttle_limit=self.pool.max_workers)

        statuses = self.pool.map(self._run, units)
        return self._aggregate(step, parent, units, statuses)

    def _build(
        self,
        step: PartitionedStep,
        name: str,
        initial: Mapping[str, Any],
    ) -> Tuple[str, ChunkStep, ExecutionContext]:
        context = ExecutionContext(dict(initial or {}))
        built = step.step_factory(name, context)
        if not isinstance(built, ChunkStep):
            raise EngineConfigurationError(
                f"step_factory de '{step.name}' deve retornar ChunkStep",
                details={"step": step.name, "partition": name, "received": type(built).__name__},
            )
        return name, built, context

    def _attach(
        self,
        step: PartitionedStep,
        name: str,
        built: ChunkStep,
        context: ExecutionContext,
        parent: StepExecution,
    ) -> _PartitionUnit:
        step_name = step.partition_step_name(name)
        job_execution = parent.job_execution
        if job_execution is not None:
            execution = job_execution.create_step_execution(step_name)
        else:
            execution = StepExecution(step_name=step_name, job_execution_id=parent.job_execution_id)
        execution.execution_context.update(context.snapshot())
        return _PartitionUnit(name=name, step=replace(built, name=step_name, settings=step.settings), execution=execution)

    def _run(self, unit: _PartitionUnit) -> BatchStatus:
        return self.engine.execute(unit.step, unit.execution)

    def _aggregate(
        self,
        step: PartitionedStep,
        parent: StepExecution,
        units: List[_PartitionUnit],
        statuses: List[BatchStatus],
    ) -> Tuple[BatchStatus, Optional[BatchErrorPayload]]:
        report: Dict[str, str] = {}
        for unit, status in zip(units, statuses):
            report[unit.name] = status.value
            for counter in STEP_COUNTERS:
                parent.increment(counter, unit.execution.counters[counter])
            for tag, count in unit.execution.retry_counts.items():
                parent.add_retry(tag, count)
        parent.execution_context[PARTITIONS_KEY] = report

        failed = [unit.name for unit, status in zip(units, statuses) if status == BatchStatus.FAILED]
        if failed:
            self._log(parent, "ERROR", "partitions failed", failed=failed)
            return BatchStatus.FAILED, partitions_failed(step_name=step.name, failed=failed)
        if all(status == BatchStatus.COMPLETED for status in statuses):
            return BatchStatus.COMPLETED, None
        return BatchStatus.STOPPED, None

    def _log(self, parent: StepExecution, level: str, message: str, **extra: Any) -> None:
        ctx = self.engine.ctx
        if ctx is not None:
            ctx.log(step_id=parent.step_name, level=level, message=message, **extra)

# src/atlas_batch/core/engine/checkpoint.py
"""
Checkpoint Manager: posição do leitor e contadores persistidos por chunk.

O checkpoint é um recurso transacional alistado por último na transação
do chunk. Na fase de preparação, antes de qualquer recurso de dados
confirmar, ele aplica a contribuição do chunk aos contadores da
StepExecution, grava a posição no ExecutionContext e persiste tudo em
uma única chamada `update_step_execution` (status + contadores +
contexto). Se essa gravação falha, os dados do chunk são descartados.
Se um recurso de dados falha depois dela, o rollback regrava o snapshot
anterior. Um chunk desfeito nunca deixa checkpoint.

Chaves gravadas no ExecutionContext:
    checkpoint.position        → posição lógica informada pelo leitor
    checkpoint.items_consumed  → itens consumidos da fonte (lidos + descartados)
    checkpoint.commit_count    → chunks confirmados nesta StepExecution

Escritas para a mesma StepExecution são serializadas por um lock
próprio; StepExecutions distintas (partições) gravam de forma independente.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from atlas_batch.core.domain.execution import StepExecution
from atlas_batch.core.exceptions import TransactionError
from atlas_batch.core.pipeline.context import RunContext

from .transaction import current_transaction


POSITION_KEY = "checkpoint.position"
CONSUMED_KEY = "checkpoint.items_consumed"
COMMITS_KEY = "checkpoint.commit_count"


@dataclass(frozen=True)
class ChunkContribution:
    """Incrementos de contadores produzidos por um chunk confirmado."""

    read_count: int = 0
    write_count: int = 0
    filter_count: int = 0

    def as_counters(self) -> Dict[str, int]:
        return {
            "read_count": self.read_count,
            "write_count": self.write_count,
            "filter_count": self.filter_count,
            "commit_count": 1,
        }


def _restore(step_execution: StepExecution, previous: Tuple[Dict[str, int], Dict[str, Any]]) -> None:
    counters, context = previous
    step_execution.counters.clear()
    step_execution.counters.update(counters)
    step_execution.execution_context.clear()
    step_execution.execution_context.update(context)


class _CheckpointResource:
    def __init__(
        self,
        manager: "CheckpointManager",
        step_execution: StepExecution,
        position: Any,
        items_consumed: int,
        contribution: ChunkContribution,
    ):
        self.manager = manager
        self.step_execution = step_execution
        self.position = position
        self.items_consumed = items_consumed
        self.contribution = contribution
        self.previous: Optional[Tuple[Dict[str, int], Dict[str, Any]]] = None

    def prepare(self) -> None:
        self.manager._persist(self)

    def commit(self) -> None:
        """Já gravado no prepare."""

    def rollback(self) -> None:
        if self.previous is not None:
            self.manager._revert(self)


class CheckpointManager:
    """Registra e recupera checkpoints de StepExecutions."""

    def __init__(self, repository: Any, ctx: Optional[RunContext] = None):
        self.repository = repository
        self.ctx = ctx
        self._locks: Dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, step_execution: StepExecution) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(id(step_execution), threading.Lock())

    def checkpoint(
        self,
        step_execution: StepExecution,
        reader_position: Any,
        *,
        items_consumed: int = 0,
        contribution: Optional[ChunkContribution] = None,
    ) -> None:
        """
        Alista o checkpoint do chunk corrente na transação ativa.

        Raises:
            TransactionError: Se não houver transação ativa na thread.
        """
        tx = current_transaction()
        if tx is None:
            raise TransactionError(
                "Checkpoint exige uma transação ativa",
                details={"step": step_execution.step_name},
            )
        tx.enlist(
            _CheckpointResource(
                self,
                step_execution,
                reader_position,
                items_consumed,
                contribution or ChunkContribution(),
            )
        )

    def _persist(self, resource: _CheckpointResource) -> None:
        step_execution = resource.step_execution
        with self._lock_for(step_execution):
            previous = (dict(step_execution.counters), step_execution.execution_context.snapshot())
            try:
                for counter, amount in resource.contribution.as_counters().items():
                    step_execution.increment(counter, amount)
                context = step_execution.execution_context
                context[POSITION_KEY] = resource.position
                context[CONSUMED_KEY] = resource.items_consumed
                context[COMMITS_KEY] = step_execution.commit_count
                self.repository.update_step_execution(step_execution)
            except Exception:
                _restore(step_execution, previous)
                raise
            resource.previous = previous

        if self.ctx is not None:
            self.ctx.log(
                step_id=step_execution.step_name,
                level="DEBUG",
                message="checkpoint committed",
                position=resource.position,
                items_consumed=resource.items_consumed,
                commit_count=step_execution.commit_count,
            )

    def _revert(self, resource: _CheckpointResource) -> None:
        """Regrava o snapshot anterior ao chunk cujo commit de dados falhou."""
        step_execution = resource.step_execution
        with self._lock_for(step_execution):
            _restore(step_execution, resource.previous)
            resource.previous = None
            self.repository.update_step_execution(step_execution)

        if self.ctx is not None:
            self.ctx.log(
                step_id=step_execution.step_name,
                level="WARNING",
                message="checkpoint reverted",
                position=step_execution.execution_context.get(POSITION_KEY),
                commit_count=step_execution.commit_count,
            )

    def resume(self, step_execution: StepExecution) -> Optional[Any]:
        """Última posição confirmada, ou None se não houver checkpoint."""
        return step_execution.execution_context.get(POSITION_KEY)

    def items_consumed(self, step_execution: StepExecution) -> int:
        return int(step_execution.execution_context.get(CONSUMED_KEY, 0) or 0)

    def has_checkpoint(self, step_execution: StepExecution) -> bool:
        return POSITION_KEY in step_execution.execution_context

    def release(self, step_execution: StepExecution) -> None:
        with self._locks_guard:
            self._locks.pop(id(step_execution), None)

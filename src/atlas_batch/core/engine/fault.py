# src/atlas_batch/core/engine/fault.py
"""
Fault Policy: decide SKIP, RETRY ou ABORT para cada falha de item.

A classificação é dado de configuração: um mapa explícito de *tag* de
erro (`ItemError.tag`) para ação, com limites numéricos. Nenhuma
decisão é inferida da hierarquia de exceções.

Regras (na ordem):
    1. Tag em `retryable` e retries dessa tag < retry_limit → RETRY
    2. Tag em `skippable` e total de skips < skip_limit     → SKIP
    3. Caso contrário                                        → ABORT

Uma tag presente nos dois conjuntos é primeiro retentada até o limite;
só depois da exaustão de retries o skip é considerado.

Os contadores vivem na StepExecution (por fase para skips, por tag para
retries), de modo que cada StepExecution possui contagem independente.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from atlas_batch.core.config.settings import StepSettings
from atlas_batch.core.domain.execution import StepExecution
from atlas_batch.core.errors import BatchErrorPayload, limit_exceeded, unclassified, exception_to_payload
from atlas_batch.core.exceptions import ItemError, Phase


class FaultAction(str, Enum):
    SKIP = "SKIP"
    RETRY = "RETRY"
    ABORT = "ABORT"


@dataclass(frozen=True)
class FaultDecision:
    """Decisão da política; `payload` descreve o motivo de um ABORT."""

    action: FaultAction
    count: int = 0
    payload: Optional[BatchErrorPayload] = None


_SKIP_COUNTERS = {
    Phase.READ: "read_skip_count",
    Phase.PROCESS: "process_skip_count",
    Phase.WRITE: "write_skip_count",
}


class FaultPolicy:
    """Política de tolerância a falhas de uma StepExecution."""

    def __init__(self, settings: StepSettings, step_execution: StepExecution):
        self.settings = settings
        self.step_execution = step_execution

    def peek(self, error: BaseException) -> FaultAction:
        """Ação que `classify` tomaria, sem alterar contadores."""
        if not isinstance(error, ItemError):
            return FaultAction.ABORT
        tag = error.tag
        if tag in self.settings.retryable:
            if self.step_execution.retry_counts.get(tag, 0) < self.settings.retry_limit:
                return FaultAction.RETRY
        if tag in self.settings.skippable:
            if self.step_execution.skip_count < self.settings.skip_limit:
                return FaultAction.SKIP
        return FaultAction.ABORT

    def classify(self, error: BaseException, phase: Optional[Phase] = None) -> FaultDecision:
        """
        Classifica `error` e atualiza os contadores da StepExecution.

        Args:
            error: Falha propagada pelo Chunk Processor.
            phase: Fase da falha; por padrão, `error.phase`.

        Returns:
            FaultDecision: ação tomada e contagem resultante.
        """
        if not isinstance(error, ItemError):
            return FaultDecision(FaultAction.ABORT, payload=exception_to_payload(error))

        phase = phase or error.phase or Phase.PROCESS
        action = self.peek(error)
        tag = error.tag

        if action is FaultAction.RETRY:
            count = self.step_execution.add_retry(tag)
            return FaultDecision(FaultAction.RETRY, count=count)

        if action is FaultAction.SKIP:
            self.step_execution.increment(_SKIP_COUNTERS[phase])
            return FaultDecision(FaultAction.SKIP, count=self.step_execution.skip_count)

        if tag in self.settings.skippable:
            return FaultDecision(
                FaultAction.ABORT,
                payload=limit_exceeded(
                    kind="skip",
                    error=error,
                    count=self.step_execution.skip_count + 1,
                    limit=self.settings.skip_limit,
                ),
            )
        if tag in self.settings.retryable:
            return FaultDecision(
                FaultAction.ABORT,
                payload=limit_exceeded(
                    kind="retry",
                    error=error,
                    count=self.step_execution.retry_counts.get(tag, 0) + 1,
                    limit=self.settings.retry_limit,
                ),
            )
        return FaultDecision(FaultAction.ABORT, payload=unclassified(error))

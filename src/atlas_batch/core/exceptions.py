# src/atlas_batch/core/exceptions.py
"""
Atlas Batch: Canonical Exceptions (v1)

Este módulo define as exceções tipadas internas do Atlas Batch.

Objetivo:
- Permitir que Engine, Coordinator e componentes de I/O levantem exceções
  semânticas tipadas
- Carregar a *tag* de classificação usada pela Fault Policy
- Facilitar o mapeamento determinístico para BatchErrorPayload

Regras:
- Exceções carregam apenas dados estruturados (serializáveis) em `details`.
- A classificação skip/retry nunca é inferida pela hierarquia de classes:
  ela depende exclusivamente de `ItemError.tag`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class Phase(str, Enum):
    """Fase do ciclo read → process → write em que um erro ocorreu."""

    READ = "read"
    PROCESS = "process"
    WRITE = "write"


class BatchException(Exception):
    """Base class para exceções internas do Atlas Batch.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - Não embedar stack trace em payloads de erro
    - Mensagem deve ser curta e humana
    """

    code = "BATCH_ERROR"

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
        hint: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})
        self.hint = hint

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Lançamento / Parâmetros
# ---------------------------------------------------------------------------

class ValidationError(BatchException):
    """Parâmetros de job inválidos. Nenhuma execução é criada."""

    code = "JOB_PARAMETERS_INVALID"


class EngineConfigurationError(BatchException):
    """Configuração inválida ou inconsistente para execução."""

    code = "ENGINE_CONFIGURATION_ERROR"


class FlowDefinitionError(EngineConfigurationError):
    """Grafo de fluxo de Steps inválido (alvo desconhecido, ciclo, duplicidade)."""

    code = "FLOW_DEFINITION_ERROR"


class ConcurrencyError(BatchException):
    """Conflito de execução concorrente sobre a mesma JobInstance."""

    code = "CONCURRENCY_ERROR"


class JobAlreadyRunningError(ConcurrencyError):
    """Já existe uma JobExecution ativa para a JobInstance."""

    code = "JOB_ALREADY_RUNNING"


class JobRestartError(BatchException):
    """A JobInstance não pode ser reiniciada."""

    code = "JOB_RESTART_ERROR"


class JobInstanceAlreadyCompleteError(JobRestartError):
    """A última execução da JobInstance já terminou COMPLETED."""

    code = "JOB_INSTANCE_ALREADY_COMPLETE"


class NoSuchJobExecutionError(BatchException):
    """JobExecution inexistente no repositório."""

    code = "NO_SUCH_JOB_EXECUTION"


class StartLimitExceededError(BatchException):
    """O Step excedeu o número máximo de inícios para a JobInstance."""

    code = "START_LIMIT_EXCEEDED"


# ---------------------------------------------------------------------------
# Execução / Itens
# ---------------------------------------------------------------------------

class ItemError(BatchException):
    """Falha associada a um item do ciclo read → process → write.

    Atributos:
    - tag: chave de classificação consultada pela Fault Policy
    - phase: fase em que a falha ocorreu
    - item: item ofensor, quando conhecido
    """

    code = "ITEM_ERROR"
    phase: Optional[Phase] = None

    def __init__(
        self,
        message: str,
        *,
        tag: Optional[str] = None,
        item: Any = None,
        details: Optional[Dict[str, Any]] = None,
        hint: Optional[str] = None,
    ):
        super().__init__(message, details=details, hint=hint)
        self.tag = tag or self.code
        self.item = item

    @classmethod
    def wrap(cls, exc: BaseException, *, item: Any = None) -> "ItemError":
        """Encapsula uma exceção arbitrária, usando o nome da classe como tag."""
        if isinstance(exc, ItemError):
            if exc.item is None:
                exc.item = item
            return exc
        wrapped = cls(
            str(exc) or exc.__class__.__name__,
            tag=exc.__class__.__name__,
            item=item,
            details={"exception_class": exc.__class__.__name__},
        )
        wrapped.__cause__ = exc
        return wrapped


class ReadError(ItemError):
    """Falha ao ler o próximo item da fonte."""

    code = "READ_ERROR"
    phase = Phase.READ


class ProcessError(ItemError):
    """Falha ao processar (transformar/filtrar) um item."""

    code = "PROCESS_ERROR"
    phase = Phase.PROCESS


class WriteError(ItemError):
    """Falha ao escrever um lote de itens."""

    code = "WRITE_ERROR"
    phase = Phase.WRITE


class TransactionError(BatchException):
    """Falha de infraestrutura em commit/rollback. Sempre ABORT."""

    code = "TRANSACTION_ERROR"


class ListenerError(BatchException):
    """Falha de um listener configurado como fatal."""

    code = "LISTENER_ERROR"

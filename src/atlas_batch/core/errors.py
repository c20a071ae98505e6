# src/atlas_batch/core/errors.py
"""
Atlas Batch: Canonical Error Structures (v1)

Este módulo define o padrão canônico de erros serializáveis do Atlas Batch.

Erros são considerados artefatos operacionais e fazem parte do contrato
de diagnóstico do sistema, devendo ser:
- explícitos
- serializáveis
- rastreáveis
- acionáveis

Eles alimentam a `exit_description` de StepExecution/JobExecution e o
relatório de execução. Nenhum stack trace cru é exposto ao operador.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict, field
from typing import Any, Dict, List, Optional

from .exceptions import BatchException, ItemError


# ---------------------------------------------------------------------------
# Payload canônico
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BatchErrorPayload:
    """
    Payload canônico de erro do Atlas Batch.

    Campos:
    - type: código estável do erro (não é texto livre)
    - message: mensagem curta, humana e objetiva
    - details: dados estruturados relevantes para diagnóstico
    - hint: ação sugerida ao operador (onde corrigir)
    """

    type: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        return asdict(self)

    def describe(self) -> str:
        """Forma textual compacta usada como exit description."""
        return f"{self.type}: {self.message}"


# ---------------------------------------------------------------------------
# Catálogo canônico de tipos de erro (v1)
# ---------------------------------------------------------------------------

ENGINE_EXECUTION_ERROR = "ENGINE_EXECUTION_ERROR"
SKIP_LIMIT_EXCEEDED = "SKIP_LIMIT_EXCEEDED"
RETRY_LIMIT_EXCEEDED = "RETRY_LIMIT_EXCEEDED"
UNCLASSIFIED_ITEM_ERROR = "UNCLASSIFIED_ITEM_ERROR"
PARTITION_FAILED = "PARTITION_FAILED"


def exception_to_payload(exc: BaseException) -> BatchErrorPayload:
    """Converte exceções em BatchErrorPayload (serializável, acionável).

    Regras:
    - BatchException: já vem com message/details/hint; `code` é o tipo estável.
    - ItemError: acrescenta tag e fase aos detalhes.
    - Outras exceções: encapsular como ENGINE_EXECUTION_ERROR sem expor stack trace.
    """
    if isinstance(exc, BatchException):
        details = dict(exc.details)
        if isinstance(exc, ItemError):
            details.setdefault("tag", exc.tag)
            if exc.phase is not None:
                details.setdefault("phase", exc.phase.value)
        return BatchErrorPayload(
            type=exc.code,
            message=exc.message or "Erro de execução",
            details=details,
            hint=exc.hint,
        )

    return BatchErrorPayload(
        type=ENGINE_EXECUTION_ERROR,
        message=str(exc) or "Erro inesperado durante execução",
        details={"exception_class": exc.__class__.__name__},
        hint="Verifique os eventos do run e a configuração do Step",
    )


def limit_exceeded(*, kind: str, error: ItemError, count: int, limit: int) -> BatchErrorPayload:
    """Payload para ABORT por estouro de limite de skip ou retry."""
    type_ = SKIP_LIMIT_EXCEEDED if kind == "skip" else RETRY_LIMIT_EXCEEDED
    return BatchErrorPayload(
        type=type_,
        message=f"Limite de {kind} excedido ({count}/{limit}) para a tag {error.tag}",
        details={
            "tag": error.tag,
            "phase": error.phase.value if error.phase else None,
            "count": count,
            "limit": limit,
            "cause": error.message,
        },
        hint=f"Aumente {kind}.limit na configuração do Step ou corrija a origem dos erros",
    )


def unclassified(error: ItemError) -> BatchErrorPayload:
    """Payload para ABORT por erro sem classificação configurada."""
    return BatchErrorPayload(
        type=UNCLASSIFIED_ITEM_ERROR,
        message=error.message or "Erro de item não classificado",
        details={
            "tag": error.tag,
            "phase": error.phase.value if error.phase else None,
        },
        hint="Declare a tag em skip.tags ou retry.tags para tolerar este erro",
    )


def partitions_failed(*, step_name: str, failed: List[str]) -> BatchErrorPayload:
    """Payload para um Step particionado com partições FAILED."""
    return BatchErrorPayload(
        type=PARTITION_FAILED,
        message=f"{len(failed)} partição(ões) de '{step_name}' falharam",
        details={"step": step_name, "failed_partitions": list(failed)},
        hint="Corrija as partições listadas e reinicie: partições COMPLETED não são reexecutadas",
    )

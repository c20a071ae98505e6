# src/atlas_batch/core/engine/transaction.py
"""
Fronteira transacional de um chunk.

Uma `Transaction` agrega recursos transacionais (qualquer objeto com
`commit()` e `rollback()`) alistados durante o ciclo do chunk. O context
manager `transaction(manager)`:

    - associa a transação à thread corrente (`current_transaction()`)
    - quando o bloco termina normalmente, executa `prepare()` nos recursos
      que o oferecem e depois `commit()` em todos, na ordem de alistamento
    - executa `rollback()` em todos os recursos, em ordem reversa, quando
      o bloco termina com qualquer exceção
    - sempre libera a associação com a thread

Invariantes:
    - Uma transação termina exatamente uma vez (COMMITTED ou ROLLED_BACK)
    - Falhas de infraestrutura em commit/rollback viram TransactionError
    - Se um `prepare()` falha, todos os recursos sofrem rollback e nada
      é confirmado
    - Se um recurso falha no commit, os recursos seguintes sofrem rollback;
      o checkpoint, alistado por último, é gravado no prepare e desfeito
      nesse rollback
"""

from __future__ import annotations

import itertools
import threading
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional, Protocol, runtime_checkable

from atlas_batch.core.exceptions import TransactionError


ACTIVE = "ACTIVE"
COMMITTED = "COMMITTED"
ROLLED_BACK = "ROLLED_BACK"

_local = threading.local()


@runtime_checkable
class TransactionalResource(Protocol):
    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...


class Transaction:
    """Transação local agregando recursos alistados."""

    def __init__(self, tx_id: int, name: Optional[str] = None):
        self.id = tx_id
        self.name = name or f"tx-{tx_id}"
        self.state = ACTIVE
        self._resources: List[Any] = []

    def enlist(self, resource: Any) -> None:
        if self.state != ACTIVE:
            raise TransactionError(
                f"Transação {self.name} não está ativa ({self.state})",
                details={"transaction": self.name, "state": self.state},
            )
        if not isinstance(resource, TransactionalResource):
            raise TypeError("resource must implement commit() and rollback()")
        if not any(r is resource for r in self._resources):
            self._resources.append(resource)

    @property
    def resources(self) -> List[Any]:
        return list(self._resources)

    def commit(self) -> None:
        self._require_active()
        for resource in self._resources:
            prepare = getattr(resource, "prepare", None)
            if prepare is None:
                continue
            try:
                prepare()
            except Exception as exc:
                self.state = ROLLED_BACK
                self._rollback_resources(self._resources)
                raise TransactionError(
                    f"Falha na preparação da transação {self.name}: {exc}",
                    details={
                        "transaction": self.name,
                        "resource": type(resource).__name__,
                        "exception_class": exc.__class__.__name__,
                        "committed_resources": 0,
                    },
                ) from exc
        for index, resource in enumerate(self._resources):
            try:
                resource.commit()
            except Exception as exc:
                self.state = ROLLED_BACK
                self._rollback_resources(self._resources[index + 1:])
                raise TransactionError(
                    f"Falha no commit da transação {self.name}: {exc}",
                    details={
                        "transaction": self.name,
                        "resource": type(resource).__name__,
                        "exception_class": exc.__class__.__name__,
                        "committed_resources": index,
                    },
                ) from exc
        self.state = COMMITTED

    def rollback(self) -> None:
        self._require_active()
        self.state = ROLLED_BACK
        errors = self._rollback_resources(self._resources)
        if errors:
            raise TransactionError(
                f"Falha no rollback da transação {self.name}: {errors[0]}",
                details={
                    "transaction": self.name,
                    "failures": [e.__class__.__name__ for e in errors],
                },
            ) from errors[0]

    def _rollback_resources(self, resources: List[Any]) -> List[Exception]:
        errors: List[Exception] = []
        for resource in reversed(resources):
            try:
                resource.rollback()
            except Exception as exc:
                errors.append(exc)
        return errors

    def _require_active(self) -> None:
        if self.state != ACTIVE:
            raise TransactionError(
                f"Transação {self.name} já finalizada ({self.state})",
                details={"transaction": self.name, "state": self.state},
            )


class TransactionManager:
    """Fábrica de transações locais; contabiliza commits e rollbacks."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self.commits = 0
        self.rollbacks = 0

    def begin(self, name: Optional[str] = None) -> Transaction:
        with self._lock:
            tx_id = next(self._ids)
        return Transaction(tx_id, name)

    def _record(self, tx: Transaction) -> None:
        with self._lock:
            if tx.state == COMMITTED:
                self.commits += 1
            elif tx.state == ROLLED_BACK:
                self.rollbacks += 1


def current_transaction() -> Optional[Transaction]:
    """Transação ativa na thread corrente, se houver."""
    return getattr(_local, "transaction", None)


@contextmanager
def transaction(manager: TransactionManager, name: Optional[str] = None) -> Iterator[Transaction]:
    """Escopo transacional: commit na saída normal, rollback em exceção."""
    if current_transaction() is not None:
        raise TransactionError("Transações aninhadas não são suportadas")
    tx = manager.begin(name)
    _local.transaction = tx
    try:
        try:
            yield tx
        except BaseException:
            if tx.state == ACTIVE:
                tx.rollback()
            raise
        if tx.state == ACTIVE:
            tx.commit()
    finally:
        _local.transaction = None
        manager._record(tx)

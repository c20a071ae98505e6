# src/atlas_batch/core/pipeline/step.py
"""
Contratos de capacidade e definições de Step do Atlas Batch.

Capacidades (duck typing, `@runtime_checkable`):
    - ItemReader    → `read() -> item | END_OF_DATA`, `seek(position)`
    - ItemProcessor → `process(item) -> item | None` (None = item filtrado)
    - ItemWriter    → `write_batch(items)`
    - Partitioner   → `partition(grid_size) -> {nome: contexto inicial}`

Leitores podem, opcionalmente, expor `position()`; quando ausente, a
posição lógica é o número de itens já consumidos da fonte.

Definições:
    - ChunkStep       → um Step read → process → write
    - PartitionedStep → um Step executado sobre partições independentes

Limites explícitos:
    - Definições não executam nada: a execução é responsabilidade do engine
    - Nenhuma herança é exigida das implementações de I/O
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from atlas_batch.core.config.settings import StepSettings
from atlas_batch.core.domain.execution_context import ExecutionContext


class _EndOfData:
    _instance: Optional["_EndOfData"] = None

    def __new__(cls) -> "_EndOfData":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "END_OF_DATA"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (_EndOfData, ())


END_OF_DATA = _EndOfData()


@runtime_checkable
class ItemReader(Protocol):
    """Fonte de itens capaz de retomar a partir de uma posição lógica."""

    def read(self) -> Any:
        """Retorna o próximo item ou END_OF_DATA; pode levantar ReadError."""
        ...

    def seek(self, position: Any) -> None:
        """Posiciona a fonte logo após o último item já commitado."""
        ...


@runtime_checkable
class ItemProcessor(Protocol):
    def process(self, item: Any) -> Any:
        """Transforma o item; retornar None filtra o item."""
        ...


@runtime_checkable
class ItemWriter(Protocol):
    def write_batch(self, items: Sequence[Any]) -> None:
        """Escreve o lote completo do chunk; pode levantar WriteError."""
        ...


@runtime_checkable
class Partitioner(Protocol):
    def partition(self, grid_size: int) -> Dict[str, Dict[str, Any]]:
        """Retorna o contexto inicial de cada partição, indexado pelo nome."""
        ...


@dataclass
class ChunkStep:
    """
    Definição de um Step orientado a chunks.

    Campos:
        - name: nome único do Step no job
        - reader / processor / writer: capacidades de I/O
        - settings: configuração efetiva (ver `resolve_step_settings`)
        - listeners: callbacks invocados nos pontos do ciclo de vida
    """

    name: str
    reader: ItemReader
    writer: ItemWriter
    processor: Optional[ItemProcessor] = None
    settings: StepSettings = field(default_factory=StepSettings)
    listeners: List[Any] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("step.name must be a non-empty string")
        if not isinstance(self.reader, ItemReader):
            raise TypeError(f"Step '{self.name}': reader must implement read() and seek()")
        if not isinstance(self.writer, ItemWriter):
            raise TypeError(f"Step '{self.name}': writer must implement write_batch()")
        if self.processor is not None and not isinstance(self.processor, ItemProcessor):
            raise TypeError(f"Step '{self.name}': processor must implement process()")


# Constrói o ChunkStep de uma partição a partir de (nome da partição, contexto inicial).
StepFactory = Callable[[str, ExecutionContext], ChunkStep]


@dataclass
class PartitionedStep:
    """
    Definição de um Step particionado.

    O particionador define as partições; `step_factory` constrói um
    ChunkStep independente (leitor próprio) para cada partição.
    `settings.partitions` é o grid size e `settings.throttle_limit`
    limita as partições ativas simultaneamente.
    """

    name: str
    partitioner: Partitioner
    step_factory: StepFactory
    settings: StepSettings = field(default_factory=StepSettings)
    listeners: List[Any] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("step.name must be a non-empty string")
        if not isinstance(self.partitioner, Partitioner):
            raise TypeError(f"Step '{self.name}': partitioner must implement partition()")
        if not callable(self.step_factory):
            raise TypeError(f"Step '{self.name}': step_factory must be callable")

    def partition_step_name(self, partition: str) -> str:
        return f"{self.name}:{partition}"

# src/atlas_batch/core/engine/chunk.py
"""
Chunk Processor: um ciclo read → process → write dentro de uma transação.

O `Chunk` é o estado transitório de um ciclo. Ele sobrevive a novas
tentativas do mesmo ciclo (retry/skip): itens já lidos ficam em memória
e não são relidos; a leitura continua da posição corrente do leitor.

Garantias de `ChunkProcessor.process_chunk`:
    - Itens são processados na ordem de leitura; o lote escrito preserva
      essa ordem
    - O escritor recebe o lote completo do chunk em uma única chamada
      (exceto em modo *scan*, ver abaixo)
    - Qualquer falha de processamento ou escrita desfaz a transação
      inteira e é propagada como ItemError classificado; a decisão de
      skip/retry pertence ao engine
    - O checkpoint (hook `before_commit`) é alistado por último na mesma
      transação: dados e checkpoint são confirmados juntos

Modo scan: após um erro de escrita tolerável sem item identificado, o
chunk é reescrito item a item (uma chamada por item, mesma transação)
para isolar o item ofensor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

from atlas_batch.core.exceptions import Phase, ProcessError, ReadError, WriteError
from atlas_batch.core.pipeline.step import END_OF_DATA

from .transaction import Transaction, TransactionManager, transaction


@dataclass
class Chunk:
    """
    Estado de um chunk entre dois pontos de commit.

    Campos:
        - size: número de leituras bem-sucedidas que fecha o chunk
        - start_offset: itens consumidos da fonte antes deste chunk
        - inputs: itens lidos e ainda não descartados, em ordem de leitura
        - read_count: leituras bem-sucedidas (não decresce com descartes)
        - read_skips: leituras descartadas por skip
        - end_of_data: a fonte sinalizou fim dos dados
        - scan: escrita item a item ativa
        - failed_index: índice em `inputs` do item que causou a última falha
        - failed_phase: fase da última falha (read, process ou write)
        - attempts: tentativas já realizadas do ciclo
    """

    size: int
    start_offset: int = 0
    inputs: List[Any] = field(default_factory=list)
    read_count: int = 0
    read_skips: int = 0
    end_of_data: bool = False
    scan: bool = False
    failed_index: Optional[int] = None
    failed_phase: Optional[Phase] = None
    attempts: int = 0
    position: Any = None
    outputs: List[Tuple[int, Any]] = field(default_factory=list)
    filter_count: int = 0

    @property
    def consumed(self) -> int:
        return self.read_count + self.read_skips

    @property
    def offset(self) -> int:
        return self.start_offset + self.consumed

    @property
    def is_full(self) -> bool:
        return self.read_count >= self.size

    @property
    def is_empty(self) -> bool:
        return self.consumed == 0

    def locate_output(self, item: Any) -> Optional[int]:
        """Índice em `inputs` cuja saída é `item` (identidade, depois igualdade)."""
        if item is None:
            return None
        for index, output in self.outputs:
            if output is item:
                return index
        for index, output in self.outputs:
            try:
                if output == item:
                    return index
            except (TypeError, ValueError):
                continue
        return None

    def discard(self, index: int) -> Any:
        """Remove o item `inputs[index]` do chunk e o retorna."""
        item = self.inputs.pop(index)
        self.failed_index = None
        return item


# Chamado dentro da transação, após a escrita, para alistar o checkpoint.
BeforeCommit = Callable[[Transaction, Chunk], None]


class ChunkProcessor:
    """Executa um ciclo read → process → write com escopo transacional."""

    def __init__(
        self,
        *,
        reader: Any,
        writer: Any,
        processor: Any = None,
        transaction_manager: Optional[TransactionManager] = None,
    ):
        self.reader = reader
        self.writer = writer
        self.processor = processor
        self.transaction_manager = transaction_manager or TransactionManager()

    def process_chunk(self, chunk: Chunk, *, before_commit: Optional[BeforeCommit] = None) -> int:
        """
        Processa e confirma `chunk`.

        Returns:
            int: Quantidade de itens escritos e confirmados.

        Raises:
            ItemError: ReadError/ProcessError/WriteError classificáveis;
                a transação já foi desfeita.
            TransactionError: falha de infraestrutura em commit/rollback.
        """
        chunk.attempts += 1
        chunk.failed_index = None
        chunk.failed_phase = None
        with transaction(self.transaction_manager, name=f"chunk@{chunk.start_offset}") as tx:
            self._fill(chunk)
            self._transform(chunk)
            items = [output for _, output in chunk.outputs]
            if items:
                self._write(chunk, items)
            if before_commit is not None and not chunk.is_empty:
                before_commit(tx, chunk)
        return len(chunk.outputs)

    # -----------------------------
    # Fases
    # -----------------------------
    def _fill(self, chunk: Chunk) -> None:
        while not chunk.end_of_data and not chunk.is_full:
            try:
                item = self.reader.read()
            except Exception as exc:
                chunk.failed_phase = Phase.READ
                raise ReadError.wrap(exc)
            if item is END_OF_DATA:
                chunk.end_of_data = True
                break
            chunk.inputs.append(item)
            chunk.read_count += 1
            chunk.position = self._reader_position(chunk)

    def _transform(self, chunk: Chunk) -> None:
        chunk.outputs = []
        chunk.filter_count = 0
        for index, item in enumerate(chunk.inputs):
            if self.processor is None:
                chunk.outputs.append((index, item))
                continue
            try:
                result = self.processor.process(item)
            except Exception as exc:
                chunk.failed_index = index
                chunk.failed_phase = Phase.PROCESS
                raise ProcessError.wrap(exc, item=item)
            if result is None:
                chunk.filter_count += 1
                continue
            chunk.outputs.append((index, result))

    def _write(self, chunk: Chunk, items: List[Any]) -> None:
        if not chunk.scan:
            try:
                self.writer.write_batch(items)
            except Exception as exc:
                chunk.failed_phase = Phase.WRITE
                raise WriteError.wrap(exc)
            return

        for index, output in chunk.outputs:
            try:
                self.writer.write_batch([output])
            except Exception as exc:
                chunk.failed_index = index
                chunk.failed_phase = Phase.WRITE
                raise WriteError.wrap(exc, item=output)

    def _reader_position(self, chunk: Chunk) -> Any:
        position = getattr(self.reader, "position", None)
        if callable(position):
            return position()
        return chunk.offset

    def note_read_skip(self, chunk: Chunk) -> None:
        """Contabiliza uma leitura descartada e atualiza a posição lógica."""
        chunk.read_skips += 1
        chunk.position = self._reader_position(chunk)

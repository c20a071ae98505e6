# src/atlas_batch/__init__.py
"""
Atlas Batch: núcleo de execução em lote orientado a chunks.

Um Job é uma sequência de Steps; cada Step lê, processa e escreve itens
em chunks, confirmando cada chunk junto com um checkpoint. Falhas de
item são toleradas por políticas explícitas de skip e retry, e uma
execução interrompida é retomada a partir do último checkpoint.

Arquitetura em alto nível:
    - core.config       → configuração (YAML/JSON), settings de Step
    - core.domain       → JobInstance, JobExecution, StepExecution
    - core.repository   → persistência das execuções
    - core.pipeline     → ItemReader/ItemProcessor/ItemWriter, ChunkStep, JobDefinition
    - core.engine       → Chunk Processor, Fault Policy, Checkpoint, Engine, Coordinator
    - core.traceability → relatório de execução
    - io                → leitores e escritores prontos (listas, DataFrame, CSV)

Limites explícitos:
    - Execução em um único processo
    - Não é um agendador de jobs
"""

from .core.config import StepSettings, load_config, resolve_step_settings
from .core.domain import (
    BatchStatus,
    DefaultJobParametersValidator,
    ExecutionContext,
    ExitStatus,
    JobExecution,
    JobInstance,
    JobParameters,
    StepExecution,
)
from .core.engine.coordinator import JobCoordinator
from .core.engine.step_engine import StepExecutionEngine
from .core.exceptions import ItemError, ProcessError, ReadError, WriteError
from .core.pipeline.context import RunContext
from .core.pipeline.job import END, FAIL, STOP, JobDefinition
from .core.pipeline.step import END_OF_DATA, ChunkStep, PartitionedStep
from .core.repository import InMemoryJobRepository, JsonFileJobRepository
from .core.traceability import build_execution_report, load_report, save_report

__all__ = [
    "BatchStatus",
    "ChunkStep",
    "DefaultJobParametersValidator",
    "END",
    "END_OF_DATA",
    "ExecutionContext",
    "ExitStatus",
    "FAIL",
    "InMemoryJobRepository",
    "ItemError",
    "JobCoordinator",
    "JobDefinition",
    "JobExecution",
    "JobInstance",
    "JobParameters",
    "JsonFileJobRepository",
    "PartitionedStep",
    "ProcessError",
    "ReadError",
    "RunContext",
    "STOP",
    "StepExecution",
    "StepExecutionEngine",
    "StepSettings",
    "WriteError",
    "build_execution_report",
    "load_config",
    "load_report",
    "resolve_step_settings",
    "save_report",
]

# src/atlas_batch/core/domain/__init__.py
"""
Modelo de domínio do Atlas Batch.

- status            → BatchStatus, ExitStatus
- parameters        → JobParameters e validadores de parâmetros
- execution_context → ExecutionContext (estado de checkpoint)
- execution         → JobInstance, JobExecution, StepExecution
"""

from .execution import JobExecution, JobInstance, StepExecution, utc_now
from .execution_context import ExecutionContext
from .parameters import DefaultJobParametersValidator, JobParameters, JobParametersValidator
from .status import BatchStatus, ExitStatus

__all__ = [
    "BatchStatus",
    "DefaultJobParametersValidator",
    "ExecutionContext",
    "ExitStatus",
    "JobExecution",
    "JobInstance",
    "JobParameters",
    "JobParametersValidator",
    "StepExecution",
    "utc_now",
]

# src/atlas_batch/core/repository/__init__.py
"""
Repositórios de execução do Atlas Batch.

- base      → protocolo `JobRepository`
- memory    → `InMemoryJobRepository` (snapshots, thread-safe)
- json_file → `JsonFileJobRepository` (snapshot persistido em JSON)
"""

from .base import JobRepository
from .json_file import JsonFileJobRepository
from .memory import InMemoryJobRepository

__all__ = ["InMemoryJobRepository", "JobRepository", "JsonFileJobRepository"]

# src/atlas_batch/core/traceability/__init__.py
"""
Rastreabilidade do Atlas Batch: relatório de execução.

API pública:
    - build_execution_report → diagnóstico consolidado de uma JobExecution
    - save_report            → persistência em JSON determinístico
    - load_report            → leitura de um relatório salvo
"""

from .report import build_execution_report, load_report, save_report

__all__ = ["build_execution_report", "load_report", "save_report"]

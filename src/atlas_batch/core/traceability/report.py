# src/atlas_batch/core/traceability/report.py
"""
Relatório de execução: diagnóstico de uma JobExecution.

O relatório consolida, em um único documento JSON determinístico:
    - identidade do job (nome, JobInstance, parâmetros)
    - hash da configuração efetiva do run (`config_hash`)
    - status final, exit status e duração
    - estado de cada StepExecution (status, contadores, checkpoint, falhas)
    - o Step que falhou, quando houver, com o checkpoint alcançado
    - o Event Log do RunContext, na ordem de emissão

Ele responde às perguntas de um operador após uma falha: qual Step
falhou, por quê e até onde o processamento foi confirmado.

Decisões arquiteturais:
    - UTC é o timezone canônico para todos os timestamps
    - O formato de persistência é JSON com chaves ordenadas
    - Nenhum evento é gerado aqui: o relatório apenas lê o estado

Limites explícitos:
    - Não executa Jobs
    - Não altera o repositório de execuções
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from atlas_batch.core.config.hashing import compute_config_hash
from atlas_batch.core.domain.execution import JobExecution, StepExecution
from atlas_batch.core.domain.status import BatchStatus
from atlas_batch.core.pipeline.context import RunContext


REPORT_VERSION = 1


def _iso(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def _ms_between(start: Optional[datetime], end: Optional[datetime]) -> Optional[int]:
    """Duração em milissegundos; None se algum extremo estiver ausente."""
    if start is None or end is None:
        return None
    return max(0, int((end - start).total_seconds() * 1000))


def _step_entry(step_execution: StepExecution) -> Dict[str, Any]:
    entry = step_execution.summary()
    entry.update(
        {
            "id": step_execution.id,
            "exit_description": step_execution.exit_status.exit_description,
            "start_time": _iso(step_execution.start_time),
            "end_time": _iso(step_execution.end_time),
            "duration_ms": _ms_between(step_execution.start_time, step_execution.end_time),
            "retry_counts": dict(step_execution.retry_counts),
            "failures": [dict(f) for f in step_execution.failures],
        }
    )
    return entry


def build_execution_report(job_execution: JobExecution, ctx: Optional[RunContext] = None) -> Dict[str, Any]:
    """
    Constrói o relatório de diagnóstico de `job_execution`.

    Args:
        job_execution: Execução (viva ou recarregada do repositório).
        ctx: RunContext da execução; por padrão, `job_execution.run_context`.

    Returns:
        Dict[str, Any]: Documento serializável em JSON.
    """
    ctx = ctx if ctx is not None else job_execution.run_context
    steps = [_step_entry(s) for s in job_execution.step_executions]

    failed_step = None
    for entry in steps:
        if entry["status"] == BatchStatus.FAILED.value:
            failed_step = {
                "step_name": entry["step_name"],
                "exit_description": entry["exit_description"],
                "checkpoint": entry["checkpoint"],
            }
            break

    return {
        "report_version": REPORT_VERSION,
        "job": {
            "name": job_execution.job_name,
            "job_instance_id": job_execution.job_instance.id,
            "job_key": job_execution.job_instance.job_key,
            "job_execution_id": job_execution.id,
            "parameters": job_execution.parameters.to_dict(),
        },
        "status": job_execution.status.value,
        "config_hash": compute_config_hash(ctx.config) if ctx is not None else None,
        "exit_status": job_execution.exit_status.to_dict(),
        "start_time": _iso(job_execution.start_time),
        "end_time": _iso(job_execution.end_time),
        "duration_ms": _ms_between(job_execution.start_time, job_execution.end_time),
        "failed_step": failed_step,
        "failures": [dict(f) for f in job_execution.failures],
        "steps": steps,
        "warnings": {k: list(v) for k, v in (ctx.warnings.items() if ctx is not None else [])},
        "events": [dict(e) for e in (ctx.events if ctx is not None else [])],
    }


def save_report(report: Dict[str, Any], path: Union[str, Path]) -> None:
    """Persiste o relatório em JSON determinístico, criando diretórios."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(report, ensure_ascii=False, indent=2, sort_keys=True), encoding="utf-8")


def load_report(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Carrega um relatório salvo por `save_report`.

    Raises:
        FileNotFoundError: Se o arquivo não existir.
        ValueError: Se o conteúdo não for um relatório válido.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict) or "report_version" not in data:
        raise ValueError(f"Arquivo não contém um relatório de execução: {path}")
    return data

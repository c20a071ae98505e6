# tests/domain/test_execution_model.py
"""
Testes do modelo de execução (JobInstance, JobExecution, StepExecution)
e do ExecutionContext.

Os testes asseguram que:
- contadores de StepExecution são monotonicamente não decrescentes
- entidades sobrevivem a `to_dict` / `from_dict` sem perda
- o ExecutionContext aceita apenas valores serializáveis em JSON
- o sinal de stop é estado vivo e leva a execução a STOPPING

Limites explícitos:
    - Não valida persistência (ver tests/core/repository)
"""

import pytest

try:
    from atlas_batch.core.domain.execution import JobExecution, JobInstance, StepExecution, utc_now
    from atlas_batch.core.domain.execution_context import ExecutionContext
    from atlas_batch.core.domain.parameters import JobParameters
    from atlas_batch.core.domain.status import BatchStatus
except Exception as e:  # noqa: BLE001
    JobExecution = None
    JobInstance = None
    StepExecution = None
    ExecutionContext = None
    JobParameters = None
    BatchStatus = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Missing execution model. Import error: {_IMPORT_ERR}")


def _job_execution():
    instance = JobInstance(id=1, job_name="import", job_key="k", parameters={"date": "2025-01-01"})
    execution = JobExecution(job_instance=instance, parameters=JobParameters({"date": "2025-01-01"}))
    execution.id = 7
    return execution


def test_counters_are_monotonic():
    _require_imports()
    step = StepExecution(step_name="load", job_execution_id=7)
    step.increment("read_count", 3)
    step.increment("process_skip_count")
    step.increment("write_skip_count", 2)
    assert step.read_count == 3
    assert step.skip_count == 3

    with pytest.raises(ValueError):
        step.increment("read_count", -1)
    with pytest.raises(KeyError):
        step.increment("unknown_count")
    with pytest.raises(ValueError):
        step.add_retry("DEADLOCK", -1)
    assert step.read_count == 3


def test_retry_counts_are_per_tag():
    _require_imports()
    step = StepExecution(step_name="load", job_execution_id=7)
    assert step.add_retry("DEADLOCK") == 1
    assert step.add_retry("DEADLOCK") == 2
    assert step.add_retry("TIMEOUT") == 1
    assert step.retry_count == 3


def test_step_execution_round_trip():
    """
    Verifica que uma StepExecution serializada é reconstruída sem perda.

    Invariantes:
        - Status, contadores, retries, contexto e timestamps são preservados
        - O vínculo vivo com a JobExecution não é serializado
    """
    _require_imports()
    execution = _job_execution()
    step = execution.create_step_execution("load")
    step.id = 3
    step.status = BatchStatus.FAILED
    step.start_time = utc_now()
    step.increment("commit_count", 2)
    step.add_retry("DEADLOCK")
    step.execution_context["checkpoint.position"] = 6
    step.add_failure({"type": "SKIP_LIMIT_EXCEEDED", "message": "x"})

    data = step.to_dict()
    assert "job_execution" not in data
    restored = StepExecution.from_dict(data)
    assert restored == step
    assert restored.job_execution is None


def test_job_execution_round_trip_and_stop():
    _require_imports()
    execution = _job_execution()
    execution.status = BatchStatus.STARTED
    execution.execution_context["cursor"] = "abc"
    execution.request_stop()

    assert execution.stop_requested
    assert execution.status == BatchStatus.STOPPING

    restored = JobExecution.from_dict(execution.to_dict())
    assert restored.status == BatchStatus.STOPPING
    assert restored.execution_context["cursor"] == "abc"
    assert restored.parameters == {"date": "2025-01-01"}
    # o sinal de stop não é persistido
    assert not restored.stop_requested


def test_step_execution_requires_persisted_job_execution():
    _require_imports()
    execution = _job_execution()
    execution.id = None
    with pytest.raises(ValueError):
        execution.create_step_execution("load")


def test_execution_context_rejects_non_json_values():
    _require_imports()
    ctx = ExecutionContext({"a": 1})
    ctx["nested"] = {"list": [1, 2]}
    with pytest.raises(TypeError):
        ctx["bad"] = object()
    with pytest.raises(TypeError):
        ctx[""] = 1

    snap = ctx.snapshot()
    snap["nested"]["list"].append(3)
    assert ctx["nested"] == {"list": [1, 2]}

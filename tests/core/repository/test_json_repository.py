# tests/repository/test_json_repository.py
"""
Testes do repositório de execuções persistido em JSON.

O arquivo é o meio pelo qual um restart encontra o checkpoint de uma
execução anterior em outro processo. Os testes simulam esse cenário
abrindo uma segunda instância do repositório sobre o mesmo arquivo.

Invariantes:
    - Toda mutação é refletida no arquivo
    - Sequências de IDs continuam após o recarregamento
"""

import json

import pytest

try:
    from atlas_batch.core.domain.parameters import JobParameters
    from atlas_batch.core.domain.status import BatchStatus
    from atlas_batch.core.repository.json_file import JsonFileJobRepository
except Exception as e:  # noqa: BLE001
    JobParameters = None
    BatchStatus = None
    JsonFileJobRepository = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Missing JsonFileJobRepository. Import error: {_IMPORT_ERR}")


def test_state_survives_reload(tmp_path):
    _require_imports()
    path = tmp_path / "repo" / "executions.json"
    repo = JsonFileJobRepository(path)
    params = JobParameters({"date": "2025-01-01"})
    instance = repo.create_job_instance("import", params)
    execution = repo.create_job_execution(instance, params)
    step = execution.create_step_execution("load")
    repo.add_step_execution(step)
    step.status = BatchStatus.STARTED
    step.increment("commit_count", 2)
    step.execution_context["checkpoint.position"] = 6
    repo.update_step_execution(step)

    assert path.exists()
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["schema_version"] == 1

    reopened = JsonFileJobRepository(path)
    assert reopened.get_job_instance("import", params) == instance
    last = reopened.get_last_step_execution(instance, "load")
    assert last.status == BatchStatus.STARTED
    assert last.commit_count == 2
    assert last.execution_context["checkpoint.position"] == 6

    # a sequência continua de onde parou
    other = reopened.create_job_instance("import", JobParameters({"date": "2025-01-02"}))
    assert other.id == instance.id + 1


def test_invalid_file_is_rejected(tmp_path):
    _require_imports()
    path = tmp_path / "executions.json"
    path.write_text('{"schema_version": 99}', encoding="utf-8")
    with pytest.raises(ValueError):
        JsonFileJobRepository(path)

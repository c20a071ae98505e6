# tests/traceability/test_execution_report.py
"""
Testes do relatório de execução (diagnóstico pós-falha).

Os testes asseguram que o relatório responde, para um job que falhou:
- qual Step falhou
- por quê (exit description com o tipo de erro)
- até onde o processamento foi confirmado (checkpoint)

E que o relatório pode ser salvo e recarregado sem perda estrutural.

Decisões arquiteturais:
    - O relatório é um dicionário serializável em JSON
    - A persistência usa chaves ordenadas (JSON determinístico)

Limites explícitos:
    - Não valida o conteúdo textual das mensagens de log
"""

import json

import pytest

from tests.fixtures.items import FailingProcessor

try:
    from atlas_batch.core.engine.checkpoint import POSITION_KEY
    from atlas_batch.core.errors import SKIP_LIMIT_EXCEEDED
    from atlas_batch.core.pipeline.job import JobDefinition
    from atlas_batch.core.traceability import build_execution_report, load_report, save_report
except Exception as e:  # noqa: BLE001
    build_execution_report = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing execution report. Implement:"
            "- src/atlas_batch/core/traceability/report.py"
            f"Import error: {_IMPORT_ERR}"
        )


@pytest.fixture
def failed_execution(coordinator, make_step):
    extract = make_step("extract", [1, 2])
    load = make_step(
        "load",
        range(1, 7),
        processor=FailingProcessor({2, 5}, tag="BAD"),
        chunk_size=3,
        skippable={"BAD"},
        skip_limit=1,
    )
    return coordinator.run(JobDefinition(name="import", steps=[extract, load]), {"date": "2025-01-01"})


def test_report_identifies_failed_step(failed_execution):
    _require_imports()
    report = build_execution_report(failed_execution)

    assert report["status"] == "FAILED"
    assert report["job"]["name"] == "import"
    assert report["job"]["parameters"] == {"date": "2025-01-01"}

    failed = report["failed_step"]
    assert failed["step_name"] == "load"
    assert SKIP_LIMIT_EXCEEDED in failed["exit_description"]
    assert failed["checkpoint"][POSITION_KEY] == 3

    by_name = {s["step_name"]: s for s in report["steps"]}
    assert by_name["extract"]["status"] == "COMPLETED"
    assert by_name["load"]["skip_count"] == 1
    assert by_name["load"]["duration_ms"] >= 0
    assert report["events"] and all(e["run_id"] == report["events"][0]["run_id"] for e in report["events"])


def test_successful_report_has_no_failed_step(coordinator, make_step):
    _require_imports()
    execution = coordinator.run(JobDefinition(name="ok", steps=[make_step("load", [1])]), {})
    report = build_execution_report(execution)
    assert report["failed_step"] is None
    assert report["failures"] == []


def test_report_carries_config_hash(repository, make_step):
    """Runs com configurações distintas produzem `config_hash` distintos."""
    _require_imports()
    from atlas_batch.core.config.hashing import compute_config_hash
    from atlas_batch.core.engine.coordinator import JobCoordinator

    config = {"engine": {"chunk_size": 2}}
    execution = JobCoordinator(repository, config=config).run(
        JobDefinition(name="ok", steps=[make_step("load", [1])]), {}
    )
    report = build_execution_report(execution)
    assert report["config_hash"] == compute_config_hash(config)
    assert report["config_hash"] != compute_config_hash({})


def test_save_and_load_round_trip(tmp_path, failed_execution):
    _require_imports()
    report = build_execution_report(failed_execution)
    path = tmp_path / "reports" / "run.json"
    save_report(report, path)

    raw = path.read_text(encoding="utf-8")
    assert list(json.loads(raw).keys()) == sorted(report.keys())
    assert load_report(path) == json.loads(json.dumps(report))


def test_load_rejects_foreign_json(tmp_path):
    _require_imports()
    path = tmp_path / "other.json"
    path.write_text(json.dumps({"run_id": "x"}), encoding="utf-8")
    with pytest.raises(ValueError):
        load_report(path)

# tests/pipeline/test_run_context.py
"""
Testes de logging estruturado e coleta de warnings no RunContext.

Os testes asseguram que:
- eventos de log são dicionários com metadados mínimos de rastreabilidade
- campos adicionais são preservados sem perda
- eventos abaixo de `min_level` são descartados
- warnings são agrupados por Step e também geram um evento WARNING

Invariantes:
    - `run_id`, `step_id`, `level` e `timestamp` estão em todos os eventos
    - Níveis desconhecidos são rejeitados com ValueError

Limites explícitos:
    - Não valida persistência dos eventos (ver traceability)
"""

import threading

import pytest

try:
    from atlas_batch.core.pipeline.context import RunContext
except Exception as e:  # noqa: BLE001
    RunContext = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing RunContext. Implement:"
            "- src/atlas_batch/core/pipeline/context.py (RunContext.log, add_warning)"
            f"Import error: {_IMPORT_ERR}"
        )


def test_log_event_is_structured(run_ctx):
    _require_imports()
    run_ctx.log(step_id="load", level="INFO", message="chunk committed", commit_count=3)

    [event] = run_ctx.events
    for key in ("run_id", "step_id", "level", "message", "timestamp", "thread"):
        assert key in event
    assert event["run_id"] == "test-run"
    assert event["commit_count"] == 3
    assert event["thread"] == threading.current_thread().name


def test_min_level_discards_lower_events():
    _require_imports()
    ctx = RunContext(run_id="r", min_level="WARNING")
    ctx.log(step_id="load", level="DEBUG", message="noise")
    ctx.log(step_id="load", level="INFO", message="noise")
    ctx.log(step_id="load", level="ERROR", message="boom")
    assert [e["message"] for e in ctx.events] == ["boom"]


def test_invalid_levels_are_rejected(run_ctx):
    _require_imports()
    with pytest.raises(ValueError):
        run_ctx.log(step_id="load", level="TRACE", message="x")
    with pytest.raises(ValueError):
        RunContext(run_id="r", min_level="VERBOSE")


def test_warnings_grouped_by_step(run_ctx):
    _require_imports()
    run_ctx.add_warning(step_id="load", message="first")
    run_ctx.add_warning(step_id="load", message="second")
    run_ctx.add_warning(step_id="report", message="other")

    assert run_ctx.warnings == {"load": ["first", "second"], "report": ["other"]}
    assert [e["message"] for e in run_ctx.events_for("load")] == ["first", "second"]
    assert all(e["level"] == "WARNING" for e in run_ctx.events)

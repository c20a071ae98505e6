# tests/engine/test_restart.py
"""
Testes de restart e idempotência.

Cenário central: um processo é interrompido abruptamente (exceção fora
de `Exception`) no meio de um Step. Um segundo processo, abrindo o mesmo
repositório JSON, recupera a execução órfã e reinicia a JobInstance.

Invariantes verificados:
    - Itens confirmados antes da interrupção não são reescritos
    - Itens do chunk interrompido são escritos exatamente uma vez
    - Uma execução órfã bloqueia novas execuções até `recover()`
    - Steps já COMPLETED não são reexecutados no restart (NOOP)

Limites explícitos:
    - O "segundo processo" é simulado por uma nova instância do
      repositório e do coordinator sobre o mesmo arquivo
"""

import pytest

from tests.fixtures.items import CrashingWriter, FailingProcessor, SimulatedCrash

try:
    from atlas_batch.core.domain.status import BatchStatus, ExitStatus
    from atlas_batch.core.engine.checkpoint import COMMITS_KEY, POSITION_KEY
    from atlas_batch.core.engine.coordinator import JobCoordinator
    from atlas_batch.core.exceptions import JobAlreadyRunningError
    from atlas_batch.core.pipeline.job import JobDefinition
    from atlas_batch.core.repository.json_file import JsonFileJobRepository
    from atlas_batch.io.memory import ListItemWriter
except Exception as e:  # noqa: BLE001
    JobCoordinator = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


PARAMS = {"date": "2025-01-01"}


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Missing Coordinator. Import error: {_IMPORT_ERR}")


def test_restart_after_crash_writes_each_item_once(tmp_path, make_step):
    _require_imports()
    path = tmp_path / "executions.json"
    sink = ListItemWriter()
    items = list(range(1, 11))

    crashing = make_step("load", items, writer=CrashingWriter(sink, crash_on=3), chunk_size=3)
    with pytest.raises(SimulatedCrash):
        JobCoordinator(JsonFileJobRepository(path)).run(JobDefinition(name="import", steps=[crashing]), PARAMS)
    assert sink.written == [1, 2, 3, 4, 5, 6]

    # segundo processo
    repository = JsonFileJobRepository(path)
    coordinator = JobCoordinator(repository)
    [orphan] = repository.find_running_job_executions("import")
    interrupted = orphan.step_executions[0]
    assert interrupted.status == BatchStatus.STARTED
    assert interrupted.execution_context[POSITION_KEY] == 6
    assert interrupted.commit_count == 2

    healthy = make_step("load", items, writer=sink, chunk_size=3)
    job = JobDefinition(name="import", steps=[healthy])
    with pytest.raises(JobAlreadyRunningError):
        coordinator.run(job, PARAMS)

    recovered = coordinator.recover(orphan.id)
    assert recovered.status == BatchStatus.FAILED
    assert recovered.step_executions[0].status == BatchStatus.FAILED

    execution = coordinator.run(job, PARAMS)
    assert execution.status == BatchStatus.COMPLETED
    assert execution.job_instance.id == orphan.job_instance.id
    assert sink.written == items

    resumed = execution.step_executions[0]
    assert resumed.read_count == 4
    assert resumed.write_count == 4
    assert resumed.execution_context[POSITION_KEY] == 10
    assert resumed.execution_context[COMMITS_KEY] == resumed.commit_count


def test_restart_skips_completed_steps(coordinator, repository, make_step):
    """
    Verifica que, no restart, Steps COMPLETED retornam NOOP e o Step que
    falhou continua do último checkpoint.
    """
    _require_imports()
    extract = make_step("extract", [1, 2, 3], chunk_size=2)
    processor = FailingProcessor({5}, tag=None, times=1)
    load = make_step("load", range(1, 7), processor=processor, chunk_size=3)
    job = JobDefinition(name="import", steps=[extract, load])

    first = coordinator.run(job, PARAMS)
    assert first.status == BatchStatus.FAILED
    assert load.writer.written == [10, 20, 30]

    second = coordinator.restart(job, first.id)
    assert second.status == BatchStatus.COMPLETED
    assert second.job_instance.id == first.job_instance.id

    by_name = {s.step_name: s for s in second.step_executions}
    assert by_name["extract"].exit_status.exit_code == ExitStatus.NOOP_CODE
    assert by_name["extract"].read_count == 0
    assert extract.writer.written == [1, 2, 3]
    assert load.writer.written == [10, 20, 30, 40, 50, 60]
    assert by_name["load"].read_count == 3

    instance = first.job_instance
    assert repository.count_step_executions(instance, "extract") == 2
    assert [e.status for e in repository.get_job_executions(instance)] == [
        BatchStatus.COMPLETED,
        BatchStatus.FAILED,
    ]


def test_failed_checkpoint_write_keeps_restart_exactly_once(make_step):
    """
    Uma falha do repositório ao gravar o checkpoint do segundo chunk.

    O chunk não pode ficar visível sem checkpoint: o Step falha com
    TRANSACTION_ERROR, os itens 2 e 3 são descartados e o restart os
    escreve uma única vez.
    """
    _require_imports()
    from atlas_batch.core.repository.memory import InMemoryJobRepository

    class FlakyRepository(InMemoryJobRepository):
        failed = False

        def update_step_execution(self, step_execution):
            if not self.failed and step_execution.execution_context.get(COMMITS_KEY) == 2:
                self.failed = True
                raise IOError("repositório indisponível")
            super().update_step_execution(step_execution)

    repository = FlakyRepository()
    coordinator = JobCoordinator(repository)
    sink = ListItemWriter()

    def _job():
        return JobDefinition(name="import", steps=[make_step("load", range(6), writer=sink, chunk_size=2)])

    first = coordinator.run(_job(), PARAMS)
    assert first.status == BatchStatus.FAILED
    failed_step = first.step_executions[0]
    assert failed_step.failures[0]["type"] == "TRANSACTION_ERROR"
    assert failed_step.commit_count == 1
    assert sink.written == [0, 1]

    stored = repository.get_job_execution(first.id).step_executions[0]
    assert stored.execution_context[POSITION_KEY] == 2
    assert stored.execution_context[COMMITS_KEY] == 1

    second = coordinator.run(_job(), PARAMS)
    assert second.status == BatchStatus.COMPLETED
    assert sink.written == [0, 1, 2, 3, 4, 5]

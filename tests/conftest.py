# tests/conftest.py
"""
Fixtures compartilhados para testes do Atlas Batch.

Este módulo define fixtures reutilizáveis que fornecem:
- repositório de execuções em memória, isolado por teste
- contexto de execução controlado (RunContext)
- um JobCoordinator pronto para uso
- fábricas de ChunkStep e de StepExecution já persistida

Decisões arquiteturais:
    - Fixtures são mantidas simples e explícitas
    - Leitores, escritores e processadores dummy vivem em
      `tests/fixtures/items.py` e utilizam duck typing
    - Imports do core são realizados de forma lazy para
      melhorar a clareza de erros durante falhas

Invariantes:
    - Nenhuma fixture compartilha estado entre testes
    - Nenhuma fixture realiza I/O em disco (ver `tmp_path` nos testes)

Limites explícitos:
    - Não substituir testes de integração
    - Não conter lógica condicional complexa
"""

import pytest
from datetime import datetime, timezone


@pytest.fixture
def repository():
    """Repositório de execuções em memória, vazio."""
    from atlas_batch.core.repository.memory import InMemoryJobRepository

    return InMemoryJobRepository()


@pytest.fixture
def run_ctx():
    """
    Fixture que fornece um RunContext mínimo e determinístico.

    Decisões arquiteturais:
        - `run_id` e `created_at` fixos para asserts estáveis
        - `min_level` DEBUG para que todos os eventos fiquem visíveis

    Returns:
        RunContext: Contexto isolado por teste.
    """
    from atlas_batch.core.pipeline.context import RunContext

    return RunContext(
        run_id="test-run",
        created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        meta={"source": "pytest"},
    )


@pytest.fixture
def coordinator(repository):
    from atlas_batch.core.engine.coordinator import JobCoordinator

    return JobCoordinator(repository)


@pytest.fixture
def make_step():
    """
    Fábrica de ChunkStep sobre uma lista de itens.

    Uso:
        step = make_step("load", range(1, 11), chunk_size=3, skippable={"BAD"}, skip_limit=2)

    Argumentos nomeados reconhecidos por StepSettings são repassados às
    settings; `reader`, `writer`, `processor` e `listeners` substituem os
    componentes padrão (ListItemReader / ListItemWriter).
    """
    from atlas_batch.core.config.settings import StepSettings
    from atlas_batch.core.pipeline.step import ChunkStep
    from atlas_batch.io.memory import ListItemReader, ListItemWriter

    def _make(name="load", items=(), *, reader=None, writer=None, processor=None, listeners=None, **settings):
        return ChunkStep(
            name=name,
            reader=reader if reader is not None else ListItemReader(list(items)),
            writer=writer if writer is not None else ListItemWriter(),
            processor=processor,
            settings=StepSettings(**settings),
            listeners=list(listeners or []),
        )

    return _make


@pytest.fixture
def job_execution(repository):
    """JobExecution persistida para o job `test-job` (status STARTING)."""
    from atlas_batch.core.domain.parameters import JobParameters

    params = JobParameters({"run": 1})
    instance = repository.create_job_instance("test-job", params)
    return repository.create_job_execution(instance, params)


@pytest.fixture
def step_execution(repository, job_execution):
    """StepExecution `load` já adicionada ao repositório."""
    step_execution = job_execution.create_step_execution("load")
    repository.add_step_execution(step_execution)
    return step_execution

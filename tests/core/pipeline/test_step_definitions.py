# tests/pipeline/test_step_definitions.py
"""
Testes das definições de Step e Job.

Os testes asseguram que:
- ChunkStep valida suas capacidades por duck typing
- PartitionedStep exige particionador e fábrica chamável
- JobDefinition rejeita nomes duplicados e jobs sem Steps

Limites explícitos:
    - Não executa Steps (ver tests/engine)
"""

import pytest

try:
    from atlas_batch.core.pipeline.job import JobDefinition
    from atlas_batch.core.pipeline.registry import DuplicateStepNameError
    from atlas_batch.core.pipeline.step import END_OF_DATA, ChunkStep, PartitionedStep
    from atlas_batch.io.memory import ListItemReader, ListItemWriter
    from atlas_batch.io.partitioners import RangePartitioner
except Exception as e:  # noqa: BLE001
    ChunkStep = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing step definitions. Implement:"
            "- src/atlas_batch/core/pipeline/step.py (ChunkStep, PartitionedStep)"
            f"Import error: {_IMPORT_ERR}"
        )


class ReadOnly:
    def read(self):
        return END_OF_DATA


def test_chunk_step_accepts_duck_typed_io():
    _require_imports()
    step = ChunkStep(name="load", reader=ListItemReader([1]), writer=ListItemWriter())
    assert step.processor is None
    assert step.settings.chunk_size >= 1


@pytest.mark.parametrize(
    "kwargs",
    [
        {"reader": ReadOnly()},
        {"writer": object()},
        {"processor": object()},
    ],
)
def test_chunk_step_rejects_incomplete_io(kwargs):
    _require_imports()
    params = {"reader": ListItemReader([]), "writer": ListItemWriter(), **kwargs}
    with pytest.raises(TypeError):
        ChunkStep(name="load", **params)


def test_chunk_step_requires_name():
    _require_imports()
    with pytest.raises(ValueError):
        ChunkStep(name=" ", reader=ListItemReader([]), writer=ListItemWriter())


def test_partitioned_step_validation():
    _require_imports()
    with pytest.raises(TypeError):
        PartitionedStep(name="load", partitioner=object(), step_factory=lambda n, c: None)
    with pytest.raises(TypeError):
        PartitionedStep(name="load", partitioner=RangePartitioner(4), step_factory="nope")

    step = PartitionedStep(name="load", partitioner=RangePartitioner(4), step_factory=lambda n, c: None)
    assert step.partition_step_name("partition0") == "load:partition0"


def test_end_of_data_is_falsy_singleton():
    _require_imports()
    assert not END_OF_DATA
    assert type(END_OF_DATA)() is END_OF_DATA
    assert repr(END_OF_DATA) == "END_OF_DATA"


def test_job_definition_validation(make_step):
    _require_imports()
    with pytest.raises(ValueError):
        JobDefinition(name="empty", steps=[])
    with pytest.raises(DuplicateStepNameError):
        JobDefinition(name="dup", steps=[make_step("a"), make_step("a")])

    job = JobDefinition(name="ok", steps=[make_step("a"), make_step("b", allow_start_if_complete=True)])
    assert job.first_step.name == "a"
    assert job.step("b").name == "b"
    assert job.allows_start_if_complete()

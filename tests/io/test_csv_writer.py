# tests/io/test_csv_writer.py
"""
Testes do escritor CSV transacional.

Invariantes:
    - O cabeçalho é escrito uma única vez
    - Linhas só chegam ao arquivo no commit da transação
    - Um rollback não cria nem altera o arquivo
"""

import pytest

try:
    import pandas as pd

    from atlas_batch.core.domain.status import BatchStatus
    from atlas_batch.core.engine.transaction import TransactionManager, transaction
    from atlas_batch.core.pipeline.job import JobDefinition
    from atlas_batch.io.csv_writer import CsvItemWriter
    from atlas_batch.io.memory import ListItemReader
except Exception as e:  # noqa: BLE001
    CsvItemWriter = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Missing io.csv_writer. Import error: {_IMPORT_ERR}")


def test_header_written_once(tmp_path):
    _require_imports()
    path = tmp_path / "out" / "rows.csv"
    writer = CsvItemWriter(path)
    manager = TransactionManager()
    with transaction(manager):
        writer.write_batch([{"id": 1, "name": "a"}])
    with transaction(manager):
        writer.write_batch([{"id": 2, "name": "b"}])

    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines == ["id,name", "1,a", "2,b"]


def test_rollback_leaves_file_untouched(tmp_path):
    _require_imports()
    path = tmp_path / "rows.csv"
    writer = CsvItemWriter(path, fieldnames=["id"])
    with pytest.raises(RuntimeError):
        with transaction(TransactionManager()):
            writer.write_batch([{"id": 1}])
            raise RuntimeError("boom")
    assert not path.exists()


def test_rejects_non_dict_items(tmp_path):
    _require_imports()
    with pytest.raises(TypeError):
        CsvItemWriter(tmp_path / "rows.csv").write_batch([1])


def test_step_output_read_back_with_pandas(tmp_path, coordinator, make_step):
    _require_imports()
    path = tmp_path / "rows.csv"
    items = [{"id": i, "amount": i * 10} for i in range(1, 6)]
    step = make_step("export", reader=ListItemReader(items), writer=CsvItemWriter(path), chunk_size=2)
    execution = coordinator.run(JobDefinition(name="export", steps=[step]), {"date": "2025-01-01"})

    assert execution.status == BatchStatus.COMPLETED
    df = pd.read_csv(path)
    assert df["id"].tolist() == [1, 2, 3, 4, 5]
    assert df["amount"].sum() == 150

# tests/io/test_dataframe_reader.py
"""
Testes do leitor de linhas de pandas.DataFrame.

Invariantes:
    - Cada item é um dicionário {coluna: valor}
    - A posição é posicional (iloc), independente do índice rotulado
"""

import pytest

try:
    import pandas as pd

    from atlas_batch.core.pipeline.step import END_OF_DATA
    from atlas_batch.io.dataframe import DataFrameItemReader
except Exception as e:  # noqa: BLE001
    DataFrameItemReader = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Missing io.dataframe. Import error: {_IMPORT_ERR}")


def test_reads_rows_as_dicts_and_resumes():
    _require_imports()
    df = pd.DataFrame({"id": [1, 2, 3], "name": ["a", "b", "c"]}, index=[10, 20, 30])
    reader = DataFrameItemReader(df)

    assert reader.read() == {"id": 1, "name": "a"}
    assert reader.position() == 1

    reader.seek(2)
    assert reader.read() == {"id": 3, "name": "c"}
    assert reader.read() is END_OF_DATA


def test_from_csv(tmp_path):
    _require_imports()
    path = tmp_path / "input.csv"
    path.write_text("id,amount\n1,10\n2,20\n", encoding="utf-8")
    reader = DataFrameItemReader.from_csv(path)
    assert reader.read() == {"id": 1, "amount": 10}


def test_rejects_non_dataframe():
    _require_imports()
    with pytest.raises(TypeError):
        DataFrameItemReader([{"id": 1}])
    with pytest.raises(ValueError):
        DataFrameItemReader(pd.DataFrame({"id": [1]})).seek(5)

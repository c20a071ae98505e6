# tests/config/test_merge.py
"""
Testes da política de deep-merge de configuração.

Os testes asseguram que:
- valores escalares são sobrescritos corretamente
- dicionários são mesclados de forma recursiva
- listas são sobrescritas integralmente
- `None` representa "não definido" e aceita qualquer tipo
- conflitos de tipo são detectados e rejeitados explicitamente
- objetos de entrada não são mutados durante o merge

Invariantes:
    - Nenhum merge parcial é produzido em caso de erro
"""

import pytest

try:
    from atlas_batch.core.config.merge import deep_merge
    from atlas_batch.core.config.errors import ConfigTypeConflictError
except Exception as e:  # noqa: BLE001
    deep_merge = None
    ConfigTypeConflictError = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing deep_merge. Implement:"
            "- src/atlas_batch/core/config/merge.py (deep_merge)"
            f"Import error: {_IMPORT_ERR}"
        )


def test_merge_simple_override():
    """
    Verifica o override de escalares sem mutar as entradas.

    Invariantes:
        - O valor sobrescrito reflete exatamente o override
        - `base` e `override` não sofrem mutação
    """
    _require_imports()
    base = {"a": 1, "b": 2}
    override = {"b": 99}
    out = deep_merge(base, override)
    assert out == {"a": 1, "b": 99}
    assert base == {"a": 1, "b": 2}
    assert override == {"b": 99}


def test_merge_nested_dict():
    _require_imports()
    base = {"engine": {"chunk_size": 10, "throttle_limit": 4}}
    override = {"engine": {"throttle_limit": 2}}
    assert deep_merge(base, override) == {"engine": {"chunk_size": 10, "throttle_limit": 2}}


def test_merge_list_override_total():
    _require_imports()
    base = {"skip": {"tags": ["PARSE_ERROR", "BAD_ITEM"]}}
    override = {"skip": {"tags": ["DEADLOCK"]}}
    assert deep_merge(base, override) == {"skip": {"tags": ["DEADLOCK"]}}


def test_merge_none_accepts_any_type():
    """
    Verifica que `None` no base (ex.: `start_limit: null`) aceita override tipado.

    Decisões arquiteturais:
        - `None` significa "não definido", não um tipo concorrente
    """
    _require_imports()
    assert deep_merge({"start_limit": None}, {"start_limit": 3}) == {"start_limit": 3}
    assert deep_merge({"start_limit": 3}, {"start_limit": None}) == {"start_limit": None}


def test_merge_type_conflict_raises():
    """
    Verifica que conflitos de tipo são rejeitados explicitamente.

    Exemplo:
        - base:     {"engine": {"chunk_size": 10}}
        - override: {"engine": "fast"}
    """
    _require_imports()
    base = {"engine": {"chunk_size": 10}}
    override = {"engine": "fast"}
    with pytest.raises(ConfigTypeConflictError):
        deep_merge(base, override)
    assert base == {"engine": {"chunk_size": 10}}

# tests/config/test_loader.py
"""
Testes do loader canônico de configuração.

Este módulo valida `load_config`, responsável por carregar o arquivo
de defaults (obrigatório) e aplicar o override local (opcional) via
deep-merge.

Os testes asseguram que:
- a ausência de defaults é um erro fatal e explícito
- a ausência do override local não é erro
- overrides locais prevalecem sobre defaults
- raiz não-dict e extensões desconhecidas são rejeitadas

Decisões arquiteturais:
    - YAML e JSON são os únicos formatos suportados
    - Erros estruturais são exceções da hierarquia ConfigError

Limites explícitos:
    - Não valida semântica de valores (ver test_step_settings.py)
"""

from pathlib import Path

import pytest

try:
    from atlas_batch.core.config.loader import load_config
    from atlas_batch.core.config.errors import (
        DefaultsNotFoundError,
        InvalidConfigRootTypeError,
        UnsupportedConfigFormatError,
    )
except Exception as e:  # noqa: BLE001
    load_config = None
    DefaultsNotFoundError = None
    InvalidConfigRootTypeError = None
    UnsupportedConfigFormatError = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


DEFAULTS_YAML = """\
engine:
  chunk_size: 10
  throttle_limit: 4
steps:
  load:
    chunk_size: 100
    skip:
      tags: [PARSE_ERROR]
      limit: 5
"""

LOCAL_YAML = """\
engine:
  throttle_limit: 2
steps:
  load:
    skip:
      limit: 50
"""


def _require_imports():
    """
    Garante que o loader de configuração esteja disponível para os testes.

    Falha imediatamente, com mensagem acionável, quando os símbolos
    públicos esperados não podem ser importados.
    """
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing config loader. Implement:"
            "- src/atlas_batch/core/config/loader.py (load_config)"
            "- src/atlas_batch/core/config/errors.py"
            f"Import error: {_IMPORT_ERR}"
        )


def test_missing_defaults_raises(tmp_path: Path):
    """
    Verifica que a ausência do arquivo de defaults é tratada como erro fatal.

    Invariantes:
        - Nenhuma configuração parcial é retornada
        - O erro é do tipo DefaultsNotFoundError
    """
    _require_imports()
    missing = tmp_path / "config.defaults.yaml"
    with pytest.raises(DefaultsNotFoundError):
        load_config(defaults_path=str(missing), local_path=None)


def test_missing_local_is_ok(tmp_path: Path):
    _require_imports()
    defaults = tmp_path / "config.defaults.yaml"
    defaults.write_text(DEFAULTS_YAML, encoding="utf-8")

    out = load_config(defaults_path=str(defaults), local_path=str(tmp_path / "config.local.yaml"))
    assert out["engine"]["chunk_size"] == 10
    assert out["steps"]["load"]["skip"]["limit"] == 5


def test_load_defaults_and_local(tmp_path: Path):
    """
    Verifica que o override local é aplicado sobre os defaults.

    Decisões arquiteturais:
        - Dicionários são mesclados recursivamente
        - Listas e escalares do override substituem os da base

    Invariantes:
        - Chaves não sobrescritas permanecem intactas
    """
    _require_imports()
    defaults = tmp_path / "config.defaults.yaml"
    local = tmp_path / "config.local.yaml"
    defaults.write_text(DEFAULTS_YAML, encoding="utf-8")
    local.write_text(LOCAL_YAML, encoding="utf-8")

    out = load_config(defaults_path=str(defaults), local_path=str(local))
    assert out["engine"] == {"chunk_size": 10, "throttle_limit": 2}
    assert out["steps"]["load"]["skip"] == {"tags": ["PARSE_ERROR"], "limit": 50}
    assert out["steps"]["load"]["chunk_size"] == 100


def test_json_defaults_supported(tmp_path: Path):
    _require_imports()
    defaults = tmp_path / "config.defaults.json"
    defaults.write_text('{"engine": {"chunk_size": 3}}', encoding="utf-8")
    assert load_config(defaults_path=str(defaults)) == {"engine": {"chunk_size": 3}}


def test_empty_file_is_empty_config(tmp_path: Path):
    _require_imports()
    defaults = tmp_path / "config.defaults.yaml"
    defaults.write_text("", encoding="utf-8")
    assert load_config(defaults_path=str(defaults)) == {}


def test_invalid_root_type_raises(tmp_path: Path):
    _require_imports()
    defaults = tmp_path / "config.defaults.yaml"
    defaults.write_text("- just\n- a\n- list\n", encoding="utf-8")
    with pytest.raises(InvalidConfigRootTypeError):
        load_config(defaults_path=str(defaults), local_path=None)


def test_unsupported_extension_raises(tmp_path: Path):
    _require_imports()
    defaults = tmp_path / "config.defaults.toml"
    defaults.write_text("engine = { chunk_size = 10 }\n", encoding="utf-8")
    with pytest.raises(UnsupportedConfigFormatError):
        load_config(defaults_path=str(defaults), local_path=None)

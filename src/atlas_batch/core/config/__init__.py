# src/atlas_batch/core/config/__init__.py
"""
Camada de configuração do Atlas Batch.

Responsabilidades do pacote:
    - Carregamento de arquivos de configuração (defaults + overrides locais)
    - Resolução de configuração final via deep-merge determinístico
    - Resolução e validação das configurações efetivas de cada Step
    - Geração de hash canônico (configuração e identidade de JobInstance)

Limites explícitos:
    - Não executa Steps
    - Não interage diretamente com o repositório de execuções
"""

from .errors import (
    ConfigError,
    ConfigTypeConflictError,
    DefaultsNotFoundError,
    InvalidConfigRootTypeError,
    UnsupportedConfigFormatError,
)
from .hashing import compute_config_hash, compute_parameters_hash
from .loader import load_config
from .merge import deep_merge
from .settings import StepSettings, resolve_step_settings

__all__ = [
    "ConfigError",
    "ConfigTypeConflictError",
    "DefaultsNotFoundError",
    "InvalidConfigRootTypeError",
    "UnsupportedConfigFormatError",
    "StepSettings",
    "compute_config_hash",
    "compute_parameters_hash",
    "deep_merge",
    "load_config",
    "resolve_step_settings",
]

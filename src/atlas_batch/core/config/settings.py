# src/atlas_batch/core/config/settings.py
"""
Resolução das configurações efetivas de um Step.

Estrutura esperada na configuração (YAML ou dict já resolvido):

    engine:                 # defaults globais para todos os Steps
      chunk_size: 10
      throttle_limit: 4
    steps:
      <step_name>:          # overrides por Step
        chunk_size: 100
        skip:  {tags: [PARSE_ERROR], limit: 10}
        retry: {tags: [DEADLOCK], limit: 3}
        partitions: 4
        throttle_limit: 2
        allow_start_if_complete: false
        start_limit: null
        listeners_fatal: true

A seção do Step sobrescreve `engine` via deep-merge. Valores semanticamente
inválidos geram `EngineConfigurationError` antes de qualquer execução.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Optional

from atlas_batch.core.exceptions import EngineConfigurationError

from .merge import deep_merge


DEFAULT_CHUNK_SIZE = 10
DEFAULT_THROTTLE_LIMIT = 4


@dataclass(frozen=True)
class StepSettings:
    """
    Configuração imutável consumida pelo Step Execution Engine.

    Campos:
        - chunk_size: itens por transação
        - skippable / skip_limit: tags toleradas por descarte de item
        - retryable / retry_limit: tags toleradas por nova tentativa do chunk
        - throttle_limit: máximo de partições ativas simultaneamente
        - partitions: número de partições solicitado ao particionador
        - allow_start_if_complete: reexecuta o Step mesmo se já COMPLETED
        - start_limit: máximo de inícios do Step por JobInstance (None = ilimitado)
        - listeners_fatal: falha de listener vira ABORT
    """

    chunk_size: int = DEFAULT_CHUNK_SIZE
    skippable: FrozenSet[str] = field(default_factory=frozenset)
    skip_limit: int = 0
    retryable: FrozenSet[str] = field(default_factory=frozenset)
    retry_limit: int = 0
    throttle_limit: int = DEFAULT_THROTTLE_LIMIT
    partitions: int = 1
    allow_start_if_complete: bool = False
    start_limit: Optional[int] = None
    listeners_fatal: bool = True

    def __post_init__(self) -> None:
        _require_int("chunk_size", self.chunk_size, minimum=1)
        _require_int("skip_limit", self.skip_limit, minimum=0)
        _require_int("retry_limit", self.retry_limit, minimum=0)
        _require_int("throttle_limit", self.throttle_limit, minimum=1)
        _require_int("partitions", self.partitions, minimum=1)
        if self.start_limit is not None:
            _require_int("start_limit", self.start_limit, minimum=1)
        object.__setattr__(self, "skippable", frozenset(self.skippable))
        object.__setattr__(self, "retryable", frozenset(self.retryable))


def _require_int(name: str, value: Any, *, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise EngineConfigurationError(
            f"Valor inválido para '{name}': {value!r}",
            details={"key": name, "value": repr(value), "minimum": minimum},
            hint=f"Declare '{name}' como inteiro >= {minimum}",
        )


def _tags(section: Dict[str, Any], name: str) -> Iterable[str]:
    if not isinstance(section, dict):
        raise EngineConfigurationError(
            f"Seção '{name}' deve ser um mapa",
            details={"key": name, "value": repr(section)},
        )
    # YAML 1.1 lê a chave `on` como o booleano True
    odd = [key for key in section if not isinstance(key, str)]
    if odd:
        raise EngineConfigurationError(
            f"Seção '{name}' possui chaves não textuais: {odd!r}",
            details={"key": name, "keys": [repr(k) for k in odd]},
            hint=f"Declare as tags em '{name}.tags'",
        )
    tags = section.get("tags", []) or []
    if isinstance(tags, str):
        tags = [tags]
    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        raise EngineConfigurationError(
            f"'{name}.tags' deve ser uma lista de tags",
            details={"key": f"{name}.tags", "value": repr(tags)},
        )
    return tags


def resolve_step_settings(config: Optional[Dict[str, Any]], step_name: str) -> StepSettings:
    """
    Resolve as configurações efetivas de `step_name`.

    Args:
        config: Configuração resolvida (ver `load_config`) ou None.
        step_name: Nome do Step.

    Returns:
        StepSettings: Configuração validada e imutável.

    Raises:
        EngineConfigurationError: Se algum valor for inválido.
    """
    config = config or {}
    engine_cfg = config.get("engine", {}) or {}
    step_cfg = ((config.get("steps", {}) or {}).get(step_name, {})) or {}
    if not isinstance(engine_cfg, dict) or not isinstance(step_cfg, dict):
        raise EngineConfigurationError(
            f"Seções 'engine' e 'steps.{step_name}' devem ser mapas",
            details={"step": step_name},
        )
    effective = deep_merge(engine_cfg, step_cfg)

    skip_cfg = effective.get("skip", {}) or {}
    retry_cfg = effective.get("retry", {}) or {}

    return StepSettings(
        chunk_size=effective.get("chunk_size", DEFAULT_CHUNK_SIZE),
        skippable=frozenset(_tags(skip_cfg, "skip")),
        skip_limit=skip_cfg.get("limit", 0),
        retryable=frozenset(_tags(retry_cfg, "retry")),
        retry_limit=retry_cfg.get("limit", 0),
        throttle_limit=effective.get("throttle_limit", DEFAULT_THROTTLE_LIMIT),
        partitions=effective.get("partitions", 1),
        allow_start_if_complete=bool(effective.get("allow_start_if_complete", False)),
        start_limit=effective.get("start_limit"),
        listeners_fatal=bool(effective.get("listeners_fatal", True)),
    )

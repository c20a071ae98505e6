# src/atlas_batch/core/pipeline/registry.py
"""
Registro estrutural de Steps de um job.

O registry atua como uma camada de proteção antecipada, garantindo que:
    - cada Step possua um nome válido
    - não existam nomes duplicados
    - a ordem de declaração dos Steps seja preservada explicitamente

Limites explícitos:
    - Não valida transições de fluxo (ver engine.planner)
    - Não executa Steps
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from atlas_batch.core.exceptions import FlowDefinitionError


class DuplicateStepNameError(FlowDefinitionError):
    """Dois Steps registrados com o mesmo `name` no mesmo job."""


@dataclass
class StepRegistry:
    """
    Registro canônico de Steps para validação estrutural pré-execução.

    Invariantes:
        - Cada `step.name` é único no registry
        - `list()` reflete exatamente a ordem de registro
    """

    _steps: Dict[str, Any] = field(default_factory=dict, init=False, repr=False)
    _order: List[str] = field(default_factory=list, init=False, repr=False)

    def add(self, step: Any) -> None:
        name = getattr(step, "name", None)
        if not isinstance(name, str) or not name.strip():
            raise ValueError("step.name must be a non-empty string")
        if name in self._steps:
            raise DuplicateStepNameError(f"Duplicate step name: {name}", details={"step": name})
        self._steps[name] = step
        self._order.append(name)

    def get(self, name: str) -> Any:
        return self._steps[name]

    def __contains__(self, name: object) -> bool:
        return name in self._steps

    def names(self) -> List[str]:
        return list(self._order)

    def list(self) -> List[Any]:
        return [self._steps[name] for name in self._order]

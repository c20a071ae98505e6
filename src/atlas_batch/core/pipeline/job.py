# src/atlas_batch/core/pipeline/job.py
"""
Definição declarativa de um Job.

Um Job é uma sequência de Steps com fluxo linear ou condicional:

    - Sem transições declaradas para um Step, o fluxo segue para o próximo
      Step da lista; FAILED/STOPPED encerram o job com o mesmo status.
    - Com transições, o `exit_code` do Step é comparado aos padrões
      declarados (`*` e `?` como curingas; correspondência exata vence).
      O alvo é o nome de outro Step ou um dos terminais END, FAIL, STOP.

Exemplo:

    JobDefinition(
        name="import",
        steps=[load, report, cleanup],
        transitions={"load": {"FAILED": "cleanup", "*": "report"}},
    )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from atlas_batch.core.domain.parameters import JobParametersValidator

from .registry import StepRegistry


END = "END"
FAIL = "FAIL"
STOP = "STOP"
TERMINALS = (END, FAIL, STOP)


@dataclass
class JobDefinition:
    """
    Definição de um Job.

    Campos:
        - name: nome do job (parte da identidade da JobInstance)
        - steps: Steps na ordem de declaração; o primeiro é o ponto de entrada
        - transitions: {step: {padrão de exit_code: alvo}}
        - validator: validador de parâmetros executado antes do lançamento
        - restartable: permite novas execuções de uma JobInstance existente
        - listeners: listeners de job (before_job / after_job)
    """

    name: str
    steps: List[Any]
    transitions: Dict[str, Dict[str, str]] = field(default_factory=dict)
    validator: Optional[JobParametersValidator] = None
    restartable: bool = True
    listeners: List[Any] = field(default_factory=list)
    registry: StepRegistry = field(default_factory=StepRegistry, init=False, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("job.name must be a non-empty string")
        if not self.steps:
            raise ValueError(f"Job '{self.name}' must declare at least one step")
        for step in self.steps:
            self.registry.add(step)

    @property
    def first_step(self) -> Any:
        return self.steps[0]

    def step(self, name: str) -> Any:
        return self.registry.get(name)

    def allows_start_if_complete(self) -> bool:
        return any(
            getattr(getattr(step, "settings", None), "allow_start_if_complete", False)
            for step in self.steps
        )

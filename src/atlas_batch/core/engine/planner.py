# src/atlas_batch/core/engine/planner.py
"""
Planejador de fluxo de Steps de um Job.

Valida a estrutura do fluxo antes de qualquer execução e resolve, em
tempo de execução, o próximo passo a partir do `exit_code` de um Step.

Regras do fluxo:
    - Sem transições declaradas para um Step, o fluxo segue para o próximo
      Step da lista (aresta padrão); FAILED e STOPPED encerram o job
    - Com transições, o `exit_code` é comparado aos padrões declarados
      (`*` e `?` como curingas). Correspondência exata vence; entre
      curingas, vence o padrão mais específico (menos curingas, mais longo)
    - Um padrão `*` substitui a aresta padrão do Step
    - Alvos são nomes de Steps ou os terminais END, FAIL, STOP

Validações estruturais (FlowDefinitionError):
    - transições de/para Steps inexistentes
    - padrões vazios
    - ciclos no grafo (arestas declaradas + arestas padrão)

A detecção de ciclos usa a ordenação topológica determinística de Kahn;
empates são resolvidos pela ordem de declaração dos Steps.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from typing import Dict, List, Optional

from atlas_batch.core.exceptions import FlowDefinitionError
from atlas_batch.core.pipeline.job import TERMINALS, JobDefinition


def _wildcards(pattern: str) -> int:
    return pattern.count("*") + pattern.count("?")


@dataclass(frozen=True)
class FlowPlan:
    """
    Fluxo validado de um Job.

    Campos:
        - job_name: nome do job
        - order: nomes dos Steps em ordem topológica
        - transitions: {step: {padrão: alvo}} já validadas
        - defaults: {step: próximo Step na ordem de declaração | None}
    """

    job_name: str
    order: List[str]
    transitions: Dict[str, Dict[str, str]] = field(default_factory=dict)
    defaults: Dict[str, Optional[str]] = field(default_factory=dict)

    def has_transitions(self, step_name: str) -> bool:
        return bool(self.transitions.get(step_name))

    def resolve(self, step_name: str, exit_code: str) -> Optional[str]:
        """
        Alvo da transição de `step_name` para `exit_code`.

        Returns:
            Optional[str]: nome do Step, terminal ou None se nenhum padrão casar.
        """
        patterns = self.transitions.get(step_name, {}) or {}
        if exit_code in patterns:
            return patterns[exit_code]
        matches = [p for p in patterns if fnmatchcase(exit_code, p)]
        if not matches:
            return None
        best = sorted(matches, key=lambda p: (_wildcards(p), -len(p), p))[0]
        return patterns[best]


def plan_flow(job: JobDefinition) -> FlowPlan:
    """
    Valida o fluxo de `job` e produz um FlowPlan.

    Args:
        job: Definição do Job.

    Returns:
        FlowPlan: Fluxo pronto para ser percorrido pelo Coordinator.

    Raises:
        FlowDefinitionError: Transição inválida ou ciclo no fluxo.
    """
    names = job.registry.names()
    known = set(names)

    transitions: Dict[str, Dict[str, str]] = {}
    for source, patterns in (job.transitions or {}).items():
        if source not in known:
            raise FlowDefinitionError(
                f"Transição declarada para Step inexistente '{source}'",
                details={"job": job.name, "step": source},
            )
        if not isinstance(patterns, dict):
            raise FlowDefinitionError(
                f"Transições de '{source}' devem ser um mapa padrão → alvo",
                details={"job": job.name, "step": source},
            )
        for pattern, target in patterns.items():
            if not isinstance(pattern, str) or not pattern:
                raise FlowDefinitionError(
                    f"Padrão de transição vazio em '{source}'",
                    details={"job": job.name, "step": source},
                )
            if target not in known and target not in TERMINALS:
                raise FlowDefinitionError(
                    f"Step '{source}' transita para alvo desconhecido '{target}'",
                    details={"job": job.name, "step": source, "pattern": pattern, "target": target},
                    hint=f"Use um Step declarado ou um dos terminais {', '.join(TERMINALS)}",
                )
        transitions[source] = dict(patterns)

    defaults: Dict[str, Optional[str]] = {}
    for index, name in enumerate(names):
        defaults[name] = names[index + 1] if index + 1 < len(names) else None

    # Kahn (determinístico pela ordem de declaração)
    outgoing: Dict[str, List[str]] = {name: [] for name in names}
    for name in names:
        targets = [t for t in transitions.get(name, {}).values() if t in known]
        if "*" not in transitions.get(name, {}) and defaults[name] is not None:
            targets.append(defaults[name])  # type: ignore[arg-type]
        for target in targets:
            if target not in outgoing[name]:
                outgoing[name].append(target)

    incoming_count: Dict[str, int] = {name: 0 for name in names}
    for name in names:
        for target in outgoing[name]:
            incoming_count[target] += 1

    ready: List[str] = [name for name in names if incoming_count[name] == 0]
    order: List[str] = []
    while ready:
        name = ready.pop(0)
        order.append(name)
        for target in outgoing[name]:
            incoming_count[target] -= 1
            if incoming_count[target] == 0:
                ready.append(target)
                ready.sort(key=names.index)

    if len(order) != len(names):
        cyclic = [name for name in names if name not in order]
        raise FlowDefinitionError(
            f"Ciclo detectado no fluxo do job '{job.name}'",
            details={"job": job.name, "steps": cyclic},
        )

    return FlowPlan(job_name=job.name, order=order, transitions=transitions, defaults=defaults)

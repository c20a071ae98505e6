# src/atlas_batch/core/domain/parameters.py
"""
Parâmetros de Job e validação de parâmetros.

Um `JobParameters` é um mapa imutável de chave textual para valor
escalar. Junto com o nome do job, ele define a identidade de uma
JobInstance.

Validadores são plugáveis: qualquer objeto com
`validate(parameters) -> None` que levante `ValidationError` satisfaz
o protocolo `JobParametersValidator`.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Protocol, runtime_checkable

from atlas_batch.core.config.hashing import compute_parameters_hash
from atlas_batch.core.exceptions import ValidationError


_SCALARS = (str, int, float, bool)


def _normalize(key: str, value: Any) -> Any:
    if value is None or isinstance(value, _SCALARS):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise ValidationError(
        f"Tipo de parâmetro não suportado em '{key}': {type(value).__name__}",
        details={"key": key, "type": type(value).__name__},
        hint="Use str, int, float, bool ou datetime",
    )


class JobParameters(Mapping[str, Any]):
    """Mapa imutável de parâmetros de uma execução."""

    def __init__(self, values: Optional[Mapping[str, Any]] = None):
        normalized: Dict[str, Any] = {}
        for key, value in (values or {}).items():
            if not isinstance(key, str) or not key.strip():
                raise ValidationError(
                    "Chaves de parâmetro devem ser strings não vazias",
                    details={"key": repr(key)},
                )
            normalized[key] = _normalize(key, value)
        self._values = normalized

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"JobParameters({self._values!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return dict(self._values) == dict(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def identity(self, job_name: str) -> str:
        """Chave estável da JobInstance para (job_name, parâmetros)."""
        return compute_parameters_hash(job_name, self._values)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._values)


@runtime_checkable
class JobParametersValidator(Protocol):
    """Contrato de validação de parâmetros executado antes do lançamento."""

    def validate(self, parameters: JobParameters) -> None:
        ...


class DefaultJobParametersValidator:
    """
    Validador por chaves obrigatórias e opcionais.

    Regras:
        - toda chave em `required_keys` deve estar presente e não ser None
        - se `optional_keys` for informado, chaves fora de
          `required_keys ∪ optional_keys` são rejeitadas
    """

    def __init__(
        self,
        required_keys: Iterable[str] = (),
        optional_keys: Optional[Iterable[str]] = None,
    ):
        self.required_keys = frozenset(required_keys)
        self.optional_keys = None if optional_keys is None else frozenset(optional_keys)
        if self.optional_keys is not None and self.required_keys & self.optional_keys:
            raise ValueError("required_keys e optional_keys não podem se sobrepor")

    def validate(self, parameters: JobParameters) -> None:
        missing = sorted(k for k in self.required_keys if parameters.get(k) is None)
        if missing:
            raise ValidationError(
                "Parâmetros obrigatórios ausentes",
                details={"missing": missing},
                hint="Informe os parâmetros obrigatórios ao lançar o job",
            )
        if self.optional_keys is None:
            return
        allowed = self.required_keys | self.optional_keys
        unexpected = sorted(k for k in parameters if k not in allowed)
        if unexpected:
            raise ValidationError(
                "Parâmetros não declarados",
                details={"unexpected": unexpected},
                hint="Remova os parâmetros extras ou declare-os como opcionais",
            )

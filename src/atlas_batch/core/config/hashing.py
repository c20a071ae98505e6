# src/atlas_batch/core/config/hashing.py
"""
Hashing canônico de configuração e de parâmetros de job.

O hash gerado representa a **identidade estrutural** do objeto e é
utilizado para:
    - chave de JobInstance (nome do job + parâmetros identificadores)
    - rastreabilidade da configuração efetiva no relatório de execução

Política de hashing (v1):
    - Serialização JSON canônica (chaves ordenadas, separadores compactos)
    - Codificação UTF-8
    - SHA-256, saída hexadecimal de 64 caracteres
"""

import hashlib
import json
from typing import Any, Dict, Mapping


def _canonical_sha256(payload: Any) -> str:
    canonical_json = json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()


def compute_config_hash(config: Dict[str, Any]) -> str:
    """
    Gera um hash determinístico da configuração efetiva.

    Args:
        config (Dict[str, Any]): Configuração resolvida.

    Returns:
        str: Hash SHA-256 hexadecimal da configuração.

    Raises:
        TypeError: Se o objeto fornecido não for um dicionário.
    """
    if not isinstance(config, dict):
        raise TypeError(
            f"Config para hashing deve ser dict, recebido: {type(config).__name__}"
        )
    return _canonical_sha256(config)


def compute_parameters_hash(job_name: str, parameters: Mapping[str, Any]) -> str:
    """
    Gera a chave de identidade de uma JobInstance.

    A mesma combinação (nome do job, parâmetros) sempre produz a mesma
    chave, independentemente da ordem original dos parâmetros.
    """
    if not isinstance(job_name, str) or not job_name.strip():
        raise TypeError("job_name must be a non-empty string")
    return _canonical_sha256({"job": job_name, "parameters": dict(parameters)})

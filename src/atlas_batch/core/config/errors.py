# src/atlas_batch/core/config/errors.py
"""
Exceções canônicas da camada de configuração do Atlas Batch.

As exceções aqui definidas representam **violações estruturais
explícitas** da configuração, e não erros de execução de Steps.

Invariantes:
    - Todas as exceções de configuração herdam de `ConfigError`
    - Nenhuma exceção representa falha de item ou de transação

Valores semanticamente inválidos (ex.: `chunk_size: 0`) não pertencem
a esta hierarquia: eles são sinalizados por `EngineConfigurationError`
no momento da resolução das configurações de Step.
"""


class ConfigError(Exception):
    """
    Exceção base para erros relacionados à configuração do Atlas Batch.

    Permite captura genérica de falhas de carregamento e merge,
    distinguindo-as das falhas de execução do engine.
    """


class DefaultsNotFoundError(ConfigError):
    """
    Exceção levantada quando o arquivo de configuração base (defaults)
    não é encontrado no caminho especificado.

    Sem defaults não existe configuração efetiva válida.
    """


class UnsupportedConfigFormatError(ConfigError):
    """
    Exceção levantada quando o formato do arquivo de configuração
    não é suportado pelo loader.

    Formatos suportados (v1):
        - YAML (.yaml, .yml)
        - JSON (.json)
    """


class InvalidConfigRootTypeError(ConfigError):
    """Exceção levantada quando o conteúdo raiz da configuração não é um `dict`."""


class ConfigTypeConflictError(ConfigError):
    """
    Exceção levantada quando ocorre conflito de tipos durante o deep-merge.

    Exemplo de conflito:
        - base:     {"engine": {"chunk_size": 10}}
        - override: {"engine": "fast"}

    Nenhum merge parcial é produzido em caso de conflito.
    """

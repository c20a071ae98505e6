# src/atlas_batch/core/pipeline/__init__.py
"""
# Pipeline Core: Atlas Batch

Este pacote define os **contratos canônicos** e as **definições
declarativas** consumidas pelo engine.

## Componentes

- **context**: `RunContext`, logs estruturados e warnings por Step
- **step**: capacidades `ItemReader`, `ItemProcessor`, `ItemWriter`,
  `Partitioner` e as definições `ChunkStep` / `PartitionedStep`
- **listeners**: `ListenerChain`, invocação ordenada de hooks
- **registry**: `StepRegistry`, unicidade de nomes de Step
- **job**: `JobDefinition`, sequência e transições condicionais

## Princípios Fundamentais

- Definições não conhecem o engine nem o repositório
- I/O é definido por capacidade (duck typing), não por herança
- Nenhuma decisão implícita ou silenciosa
"""

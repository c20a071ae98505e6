# src/atlas_batch/core/engine/__init__.py
"""
Engine do Atlas Batch.

Componentes, das folhas para a raiz:
    - transaction → fronteira transacional por chunk e recursos alistados
    - fault       → Fault Policy (SKIP / RETRY / ABORT por tag de erro)
    - chunk       → Chunk Processor (um ciclo read → process → write)
    - checkpoint  → Checkpoint Manager (posição + contadores por commit)
    - step_engine → Step Execution Engine (laço de chunks de um Step)
    - partition   → Parallel Executor e WorkerPool (partições com throttle)
    - planner     → validação e resolução do fluxo de Steps
    - coordinator → Job Execution Coordinator

Princípios fundamentais:
    - Um chunk é confirmado junto com seu checkpoint, ou não é confirmado
    - A única fonte de concorrência é o Parallel Executor
    - Nenhuma falha é engolida: toda falha vira status terminal e payload
"""

# src/atlas_batch/core/__init__.py
"""
Core do Atlas Batch.

Núcleo de execução em lote orientado a chunks, reiniciável e tolerante
a falhas, executado em um único processo.

Componentes principais:
    - config       → carregamento, merge, hashing e settings de Step
    - domain       → status, parâmetros, ExecutionContext e execuções
    - repository   → repositório de execuções (memória e arquivo JSON)
    - pipeline     → capacidades de I/O, definições de Step/Job, listeners
    - engine       → transação, chunk, fault policy, checkpoint, execução
    - traceability → relatório de diagnóstico de execuções

Princípios fundamentais:
    - Nenhuma decisão silenciosa: todo comportamento é explícito e testado
    - Estado de restart vive exclusivamente no ExecutionContext
    - Falhas são sempre convertidas em payloads serializáveis

Limites explícitos:
    - Não é um agendador distribuído nem um motor de DAG genérico
    - Não define formatos de armazenamento de dados
"""

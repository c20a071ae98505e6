# src/atlas_batch/core/pipeline/listeners.py
"""
Listeners do ciclo de vida de Jobs, Steps e chunks.

Um listener é qualquer objeto que implemente um subconjunto dos hooks
abaixo (duck typing); hooks ausentes são simplesmente ignorados.

    before_job(job_execution)
    after_job(job_execution)
    before_step(step_execution)
    after_step(step_execution) -> Optional[ExitStatus]
    before_chunk(step_execution)
    after_chunk(step_execution)
    after_chunk_error(step_execution, error)
    on_skip(phase, item, error)
    on_retry(step_execution, error, attempt)

Os listeners são invocados de forma síncrona, na ordem de registro
(hooks `after_*` em ordem reversa). Uma falha de listener é registrada
no RunContext; se a cadeia for fatal, ela é convertida em ListenerError
e tratada pelo engine como ABORT.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional

from atlas_batch.core.exceptions import ListenerError

from .context import RunContext


HOOKS = (
    "before_job",
    "after_job",
    "before_step",
    "after_step",
    "before_chunk",
    "after_chunk",
    "after_chunk_error",
    "on_skip",
    "on_retry",
)


class ListenerChain:
    """Lista ordenada de listeners registrados para um Step ou Job."""

    def __init__(
        self,
        listeners: Iterable[Any] = (),
        *,
        ctx: Optional[RunContext] = None,
        step_id: Optional[str] = None,
        fatal: bool = True,
    ):
        self.listeners: List[Any] = list(listeners)
        self.ctx = ctx
        self.step_id = step_id
        self.fatal = fatal

    def register(self, listener: Any) -> None:
        self.listeners.append(listener)

    def invoke(self, hook: str, *args: Any) -> List[Any]:
        """Invoca `hook` em cada listener e retorna os valores não nulos."""
        if hook not in HOOKS:
            raise ValueError(f"Unknown listener hook: {hook}")

        ordered = reversed(self.listeners) if hook.startswith("after") else self.listeners
        results: List[Any] = []
        for listener in list(ordered):
            fn = getattr(listener, hook, None)
            if fn is None:
                continue
            try:
                value = fn(*args)
            except Exception as exc:
                self._report(hook, listener, exc)
                if self.fatal:
                    raise ListenerError(
                        f"Listener {type(listener).__name__}.{hook} falhou: {exc}",
                        details={
                            "hook": hook,
                            "listener": type(listener).__name__,
                            "exception_class": exc.__class__.__name__,
                        },
                        hint="Corrija o listener ou configure listeners_fatal: false",
                    ) from exc
                continue
            if value is not None:
                results.append(value)
        return results

    def _report(self, hook: str, listener: Any, exc: Exception) -> None:
        if self.ctx is None:
            return
        message = f"listener {type(listener).__name__}.{hook} failed: {exc}"
        if self.fatal:
            self.ctx.log(
                step_id=self.step_id,
                level="ERROR",
                message=message,
                hook=hook,
                exception_class=exc.__class__.__name__,
            )
        else:
            self.ctx.add_warning(step_id=self.step_id or "job", message=message)

"""Optional LangSmith tracing for model calls.

A Tracer is built once from configuration and handed to the components that
call the model provider. When tracing is disabled ``wrap()`` returns the
function unchanged, so the untraced path carries no overhead. When enabled,
the call is recorded as a LangSmith run (name, inputs, outputs, error);
return values and exceptions pass through untouched.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from langsmith import Client, traceable, tracing_context

from repolens.config import TracingCfg

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


class Tracer:
    """Wraps async callables in LangSmith runs when tracing is enabled.

    Args:
        enabled:  Whether to trace at all.
        project:  LangSmith project the runs are filed under.
        api_key:  LangSmith API key; tracing is disabled when missing.
        api_url:  Optional LangSmith endpoint override.
    """

    def __init__(
        self,
        enabled: bool = False,
        project: str = "repolens",
        api_key: str | None = None,
        api_url: str | None = None,
    ) -> None:
        self._project = project
        self._client: Client | None = None
        if enabled and not api_key:
            logger.warning("Tracing requested but LANGSMITH_API_KEY is not set; tracing disabled")
        elif enabled:
            self._client = Client(api_key=api_key, api_url=api_url)
            logger.info("LangSmith tracing enabled (project %s)", project)

    @classmethod
    def from_config(
        cls, cfg: TracingCfg, api_key: str | None = None, api_url: str | None = None
    ) -> "Tracer":
        return cls(enabled=cfg.enabled, project=cfg.project, api_key=api_key, api_url=api_url)

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def wrap(self, fn: F, name: str, run_type: str = "llm") -> F:
        """Return *fn* traced as a run called *name*, or *fn* itself when disabled."""
        if self._client is None:
            return fn

        traced = traceable(run_type=run_type, name=name)(fn)
        client = self._client
        project = self._project

        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            with tracing_context(enabled=True, client=client, project_name=project):
                return await traced(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

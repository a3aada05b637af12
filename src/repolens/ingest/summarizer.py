"""Summarization + embedding client over LiteLLM.

One explicitly constructed object owns the model names and credentials for
both calls. Summarization never raises (an empty string means "no summary");
embedding errors propagate so the caller can drop that single item.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import litellm

from repolens.config import EmbeddingCfg, SummaryCfg
from repolens.tracing import Tracer

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True

logger = logging.getLogger(__name__)

_CODE_ROLE = """\
You are an intelligent senior software engineer who specializes in onboarding \
junior software engineers onto projects.
You are onboarding a junior software engineer and explaining to them the \
purpose of the {path} file. The user message is the code.
Give a summary no more than 100 words of the code."""

COMMIT_ROLE = """\
You are an expert programmer, and you are trying to summarize a git diff.
Reminders about the git diff format:
For every file, there are a few metadata lines, like (for example):
```
diff --git a/lib/index.js b/lib/index.js
index aadf691..1111111 100644
--- a/lib/index.js
+++ b/lib/index.js
```
This means that `lib/index.js` was modified in this commit. Note that this is only an example.
Then there is a specifier of the lines that were modified.
A line starting with `+` means that the line was added.
A line starting with `-` means that the line was removed.
A line that starts with neither `+` nor `-` is code given for context and better understanding.
It is not part of the diff.

EXAMPLE SUMMARY COMMENTS:
```
* Raised the amount of returned recordings from `10` to `100` [packages/server/recordings_api.ts], [packages/server/constants.ts]
* Fixed a typo in the github action name [.github/workflows/gpt-commit-summarizer.yml]
* Moved the `octokit` initialization to a separate file [src/octokit.ts]
* Added an OpenAI API for completion [packages/utils/apis/openai.ts]
* Lowered numeric tolerance for test files
```
Most commits will have fewer comments than this example list.
The last comment does not include the file names,
because there were more than two relevant files in the hypothetical commit.
Do not include parts of the example in your summary.
It is given only as an example of appropriate comments.

Please summarize the diff file in the user message."""

_DEFAULT_MAX_CHARS = 10_000

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "ollama": None,  # local, no key
    "ollama_chat": None,
}


def provider_of(model: str) -> str:
    return model.split("/")[0].lower() if "/" in model else "openai"


def api_key_env(provider: str) -> str | None:
    """Environment variable holding *provider*'s key; None for keyless providers."""
    provider = provider.lower()
    return _PROVIDER_ENV.get(provider, f"{provider.upper()}_API_KEY")


def missing_api_key(model: str) -> str | None:
    """Return the provider name if its API key env var is unset, else None."""
    provider = provider_of(model)
    env_var = api_key_env(provider)
    if env_var is None or os.getenv(env_var):
        return None
    return provider


class SummaryClient:
    """Summarize source files / commit diffs and embed text via LiteLLM.

    Args:
        summary_model:   LiteLLM model string for summaries.
        embedding_model: LiteLLM model string for embeddings.
        api_key:         Provider key passed to every call; None lets LiteLLM
                         read its usual environment variable.
        max_chars:       Input beyond this many characters is ignored.
        max_tokens:      Maximum tokens in a generated summary.
        tracer:          Optional Tracer; both operations are wrapped with it.
    """

    def __init__(
        self,
        summary_model: str = "openai/gpt-4o-mini",
        embedding_model: str = "openai/text-embedding-3-small",
        *,
        api_key: str | None = None,
        max_chars: int = _DEFAULT_MAX_CHARS,
        max_tokens: int = 500,
        tracer: Tracer | None = None,
    ) -> None:
        self.summary_model = summary_model
        self.embedding_model = embedding_model
        self._api_key = api_key
        self._max_chars = max_chars
        self._max_tokens = max_tokens

        tracer = tracer or Tracer()
        self.summarize = tracer.wrap(self.summarize, "summarize", run_type="llm")
        self.embed = tracer.wrap(self.embed, "embed", run_type="embedding")

    @classmethod
    def from_config(
        cls,
        summary: SummaryCfg,
        embedding: EmbeddingCfg,
        *,
        api_key: str | None = None,
        tracer: Tracer | None = None,
    ) -> "SummaryClient":
        return cls(
            summary.model,
            embedding.model,
            api_key=api_key,
            max_chars=summary.max_chars,
            max_tokens=summary.max_tokens,
            tracer=tracer,
        )

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    async def summarize(self, text: str, role_context: str) -> str:
        """Summarize the first ``max_chars`` characters of *text*.

        *role_context* is sent as the system message and should already
        contain any task-specific instructions. Returns "" on provider error.
        """
        try:
            response = await litellm.acompletion(
                model=self.summary_model,
                messages=[
                    {"role": "system", "content": role_context},
                    {"role": "user", "content": text[: self._max_chars]},
                ],
                max_tokens=self._max_tokens,
                temperature=0.0,
                **self._auth(),
            )
            return (response.choices[0].message.content or "").strip()
        except Exception as exc:
            logger.warning("Summary generation failed (%s): %s", self.summary_model, exc)
            return ""

    async def summarize_code(self, path: str, code: str) -> str:
        """Onboarding-style summary (max ~100 words) of one source file."""
        return await self.summarize(code, _CODE_ROLE.format(path=path))

    async def summarize_commit(self, diff: str) -> str:
        """Bullet-list summary of one commit's unified diff."""
        return await self.summarize(diff, COMMIT_ROLE)

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    async def embed(self, text: str) -> list[float]:
        """Return the embedding vector for *text*. Provider errors propagate."""
        response = await litellm.aembedding(
            model=self.embedding_model,
            input=[text],
            **self._auth(),
        )
        return list(response.data[0]["embedding"])

    def _auth(self) -> dict[str, Any]:
        return {"api_key": self._api_key} if self._api_key else {}

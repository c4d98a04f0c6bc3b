"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

Streaming "misleading" rewrite of a transcript through a hosted LLM.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, Optional

from .config import settings
from .errors import RemoteEngineError, TransformationFailed
from .replicate_client import ReplicateClient, get_replicate_client

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You rewrite transcripts of spoken statements. Produce a misleading version that "
    "reverses the meaning of the original while keeping roughly the same length, tone "
    "and speaking style. Output only the rewritten statement, without quotes, notes or "
    "commentary."
)


def build_prompt(text: str) -> str:
    return f"Original statement:\n{text}\n\nMisleading version:"


class TransformationStream:
    """
    Single-use stream of text fragments.

    Iterating yields each non-empty fragment and accumulates them into
    ``text``. A failure part-way through raises ``TransformationFailed`` with
    the text received so far attached as ``partial_text``.
    """

    def __init__(self, fragments: AsyncIterator[str]):
        self._fragments = fragments
        self._started = False
        self.finished = False
        self.text = ""

    def __aiter__(self):
        if self._started:
            raise RuntimeError("Transformation stream can only be consumed once")
        self._started = True
        return self._iterate()

    async def _iterate(self):
        try:
            async for fragment in self._fragments:
                if not fragment:
                    continue
                self.text += fragment
                yield fragment
        except TransformationFailed as e:
            if not e.partial_text:
                e.partial_text = self.text
            raise
        except RemoteEngineError as e:
            logger.warning("Transformation stream failed after %d characters: %s", len(self.text), e)
            raise TransformationFailed(f"Transformation failed: {e}", partial_text=self.text) from e
        self.finished = True

    async def collect(self) -> str:
        """Drain the stream and return the final concatenation."""
        async for _ in self:
            pass
        return self.text


class BaseTransformer(ABC):
    """Rewrites transcript text, streaming the result."""

    @abstractmethod
    def transform(self, text: str) -> TransformationStream:
        pass


class ReplicateTransformer(BaseTransformer):
    def __init__(
        self,
        client: ReplicateClient,
        model: str,
        max_tokens: int = 512,
        temperature: float = 0.7,
        timeout: float = 60.0,
        system_prompt: str = SYSTEM_PROMPT,
    ):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout
        self.system_prompt = system_prompt

    def build_input(self, text: str) -> Dict[str, Any]:
        return {
            "prompt": build_prompt(text),
            "system_prompt": self.system_prompt,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

    def transform(self, text: str) -> TransformationStream:
        logger.debug("Transforming %d characters via %s", len(text), self.model)
        return TransformationStream(self.client.stream(self.model, self.build_input(text), timeout=self.timeout))


def get_transformer(client: Optional[ReplicateClient] = None) -> BaseTransformer:
    return ReplicateTransformer(
        client or get_replicate_client(),
        settings.transformation_model,
        max_tokens=settings.transformation_max_tokens,
        temperature=settings.transformation_temperature,
        timeout=settings.transformation_timeout_seconds,
    )

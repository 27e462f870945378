"""LLM inference engine for topic condition matching."""

import hashlib
import time

from openai import AsyncOpenAI
from redis.asyncio import Redis

from autorule.core.config import get_settings
from autorule.core.exceptions import DecisionError
from autorule.core.logging import get_logger
from autorule.engine.llm.parser import Decision, parse_decision
from autorule.engine.llm.prompt import build_match_prompt
from autorule.storage.auxiliary import MatchCacheStore

logger = get_logger(__name__)


def create_llm_client() -> AsyncOpenAI:
    """OpenAI-compatible client from settings."""
    settings = get_settings()
    return AsyncOpenAI(
        api_key=settings.openai_api_key or "dummy-key",
        base_url=settings.openai_base_url,
        timeout=settings.openai_timeout,
    )


class LLMDecisionStrategy:
    """Decides whether an event matches a topic condition using an LLM."""

    def __init__(
        self,
        redis: Redis | None = None,
        client: AsyncOpenAI | None = None,
    ):
        """Initialize LLM strategy.

        Args:
            redis: Redis client for caching (optional)
            client: Preconfigured OpenAI client (optional)
        """
        self._settings = get_settings()
        self._client = client or create_llm_client()
        self._cache = MatchCacheStore(redis) if redis else None

    async def close(self) -> None:
        """Close the model client."""
        await self._client.close()

    async def decide(self, condition_text: str, event_summary: str) -> Decision:
        """Evaluate one condition against an event summary.

        Raises:
            DecisionError: If the LLM service cannot be reached
        """
        start_time = time.time()

        cache_key = self._compute_cache_key(condition_text, event_summary)
        if self._cache:
            cached = await self._cache.get("decision", cache_key)
            if cached:
                logger.debug("LLM cache hit", cache_key=cache_key)
                return Decision(
                    matches=cached["matches"],
                    confidence=cached["confidence"],
                    reasoning=cached["reasoning"] + " (cached)",
                )

        system_prompt, user_prompt = build_match_prompt(condition_text, event_summary)
        try:
            response = await self._client.chat.completions.create(
                model=self._settings.openai_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=0.1,
                max_tokens=500,
            )
        except Exception as e:
            raise DecisionError(f"LLM service error: {e}") from e

        content = response.choices[0].message.content or ""
        decision = parse_decision(content)

        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.info(
            "LLM match decision",
            matches=decision.matches,
            confidence=decision.confidence,
            elapsed_ms=elapsed_ms,
        )

        if self._cache:
            await self._cache.set(
                "decision",
                cache_key,
                {
                    "matches": decision.matches,
                    "confidence": decision.confidence,
                    "reasoning": decision.reasoning,
                },
            )

        return decision

    @staticmethod
    def _compute_cache_key(condition_text: str, event_summary: str) -> str:
        data = f"{condition_text}:{event_summary}"
        return hashlib.sha256(data.encode()).hexdigest()[:16]

"""
Text-completion client for model-assisted extraction.

Provides a unified interface for completion calls using LangChain.
Supports OpenAI and Anthropic providers. Every call carries a timeout and
no automatic retries: a failed call is handled by the caller's rule-based
fallback, never retried here.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from citypulse.configs.settings import Settings, get_settings
from citypulse.ingestion.normalization.errors import LLMUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-haiku-20240307",
}


class BaseLLMClient(ABC):
    """Abstract base class for text-completion clients."""

    @property
    def is_available(self) -> bool:
        return True

    @abstractmethod
    def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Return the raw completion text for a system + user prompt."""
        pass


class LangChainLLMClient(BaseLLMClient):
    """
    Completion client using LangChain chat models.

    Supports:
    - OpenAI (GPT-4o mini and friends)
    - Anthropic (Claude)
    """

    def __init__(
        self,
        provider: str = "openai",
        model_name: Optional[str] = None,
        api_key: Optional[str] = None,
        temperature: float = 0.1,
        timeout: float = 20.0,
        max_tokens: int = 800,
    ):
        """
        Initialize the LangChain completion client.

        Args:
            provider: "openai" or "anthropic"
            model_name: Model identifier (defaults per provider)
            api_key: API key for the provider
            temperature: Temperature for generation (0.0-1.0)
            timeout: Per-call timeout in seconds
            max_tokens: Maximum tokens in response
        """
        self.provider = provider.lower().strip()
        self.model_name = model_name or DEFAULT_MODELS.get(self.provider, "gpt-4o-mini")
        self.api_key = api_key
        self.temperature = temperature
        self.timeout = timeout
        self.max_tokens = max_tokens

        self._llm = None

    def _get_llm(self):
        """Lazy initialization of the chat model."""
        if self._llm is not None:
            return self._llm

        if not self.api_key:
            logger.warning(f"No API key found for {self.provider}")
            return None

        if self.provider == "openai":
            self._llm = ChatOpenAI(
                model=self.model_name,
                api_key=self.api_key,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                timeout=self.timeout,
                max_retries=0,
            )
        elif self.provider == "anthropic":
            self._llm = ChatAnthropic(
                model=self.model_name,
                api_key=self.api_key,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                timeout=self.timeout,
                max_retries=0,
            )
        else:
            raise ValueError(f"Unknown provider: {self.provider}")

        return self._llm

    @property
    def is_available(self) -> bool:
        """Check if the chat model can be built."""
        return self._get_llm() is not None

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        """
        Invoke the chat model with system and user prompts.

        Raises:
            LLMUnavailableError: No API key configured for the provider
        """
        llm = self._get_llm()
        if not llm:
            raise LLMUnavailableError(
                "LLM not available - check API key and provider", provider=self.provider
            )

        messages = [
            SystemMessage(content=system_prompt),
            HumanMessage(content=user_prompt),
        ]
        response = llm.invoke(messages)
        return _content_to_text(response.content)


def _content_to_text(content) -> str:
    """Flatten LangChain message content (str or list of parts) into text."""
    if isinstance(content, str):
        return content
    parts = []
    for part in content or []:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)


def create_llm_client(settings: Optional[Settings] = None) -> Optional[BaseLLMClient]:
    """
    Factory function to create a completion client from settings.

    Returns None when the model path is disabled or no API key is set; the
    extractor then runs rule-based only.
    """
    settings = settings or get_settings()

    if not settings.LLM_ENABLED:
        logger.info("LLM extraction disabled, using rule-based extraction")
        return None

    client = LangChainLLMClient(
        provider=settings.LLM_PROVIDER,
        model_name=settings.LLM_MODEL_NAME,
        api_key=settings.llm_api_key(),
        temperature=settings.LLM_TEMPERATURE,
        timeout=settings.LLM_TIMEOUT_SECONDS,
    )

    if client.is_available:
        return client

    logger.info("LLM unavailable, using rule-based extraction")
    return None

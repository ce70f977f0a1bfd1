"""Generation service client."""

from functools import lru_cache

import structlog
from langchain_core.output_parsers import StrOutputParser
from langchain_core.runnables import Runnable
from langchain_ollama import OllamaLLM
from pydantic_settings import BaseSettings, SettingsConfigDict

from roadmap.errors import GenerationUnavailable
from roadmap.llm.prompt_builder import GenerationRequest

logger = structlog.get_logger(__name__)


class LLMSettings(BaseSettings):
    """LLM configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        extra="ignore",
    )

    ollama_base_url: str = "http://localhost:11434"
    model_name: str = "llama3.1:8b"
    temperature: float = 0.7
    request_timeout: int = 120
    num_ctx: int = 8192
    num_predict: int = 2048  # Max tokens to generate


@lru_cache
def get_llm_settings() -> LLMSettings:
    """Get cached LLM settings."""
    return LLMSettings()


def create_llm_client(settings: LLMSettings | None = None) -> OllamaLLM:
    """Create configured Ollama LLM client.

    Args:
        settings: Optional custom settings. Uses defaults if not provided.

    Returns:
        Configured OllamaLLM instance.
    """
    settings = settings or get_llm_settings()

    return OllamaLLM(
        model=settings.model_name,
        base_url=settings.ollama_base_url,
        temperature=settings.temperature,
        num_ctx=settings.num_ctx,
        num_predict=settings.num_predict,
        # Passed through to the underlying HTTP client.
        client_kwargs={"timeout": settings.request_timeout},
    )


class GenerationClient:
    """Single-attempt access to the external generation service.

    Any LangChain runnable that accepts a message list can back the client,
    which keeps the service substitutable with fakes.
    """

    def __init__(self, llm: Runnable, model_name: str = "unknown"):
        self._chain = llm | StrOutputParser()
        self.model_name = model_name

    @classmethod
    def from_settings(cls, settings: LLMSettings | None = None) -> "GenerationClient":
        settings = settings or get_llm_settings()
        return cls(create_llm_client(settings), model_name=settings.model_name)

    async def generate(self, request: GenerationRequest) -> str:
        """Send the request once and return the raw response text.

        Raises:
            GenerationUnavailable: On transport error, service error or empty output.
        """
        logger.debug(
            "generation_request",
            model=self.model_name,
            document_label=request.document_label,
            text_length=request.text_length,
            truncated=request.truncated,
        )

        try:
            response = await self._chain.ainvoke(request.messages)
        except Exception as e:
            logger.warning("generation_failed", model=self.model_name, error=str(e))
            raise GenerationUnavailable(f"Generation service error: {e}") from e

        if not response or not response.strip():
            logger.warning("generation_empty_response", model=self.model_name)
            raise GenerationUnavailable("Generation service returned an empty response")

        logger.debug("generation_response", model=self.model_name, length=len(response))

        return response

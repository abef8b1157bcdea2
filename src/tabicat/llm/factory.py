from typing import Any

from .base import LLMProvider
from .providers import OllamaProvider


def create_llm_provider(provider: str, **config: Any) -> LLMProvider:
    """Create a model server provider instance.

    This factory function hides the instantiation logic for different providers.

    Args:
        provider: Provider type ('ollama')
        **config: Provider-specific configuration
            For Ollama:
                - base_url: str (default: 'http://localhost:11434')
                - chat_timeout: float (default: 300.0)
                - any httpx.AsyncClient keyword (transport, headers, ...)

    Returns:
        Initialized provider instance

    Raises:
        ValueError: If provider type is not supported

    Examples:
        >>> provider = create_llm_provider("ollama", base_url="http://localhost:11434")
    """
    provider_lower = provider.lower()

    if provider_lower == "ollama":
        return OllamaProvider(**config)

    raise ValueError(
        f"Unsupported provider: {provider}. "
        f"Supported providers: 'ollama'"
    )

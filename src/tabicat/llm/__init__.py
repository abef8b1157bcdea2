from .base import LLMProvider
from .client import ChatClient, ProgressCallback, build_messages
from .factory import create_llm_provider
from .models import ChatMessage, ProbeResult, StreamingResponse
from .monitor import ConnectionMonitor, extract_model_names
from .providers import OllamaProvider

__all__ = [
    "LLMProvider",
    "create_llm_provider",
    "ChatClient",
    "ChatMessage",
    "ConnectionMonitor",
    "OllamaProvider",
    "ProbeResult",
    "ProgressCallback",
    "StreamingResponse",
    "build_messages",
    "extract_model_names",
]

"""Reachability probe for the model server."""

import asyncio
import logging
from typing import Any

from ..config import PROBE_TIMEOUT_SECONDS
from ..presets import unique_model_names
from .base import LLMProvider
from .models import ProbeResult

logger = logging.getLogger(__name__)


def extract_model_names(payload: Any) -> list[str]:
    """Pull model names out of a listing payload.

    Accepts ``{"models": [...]}`` or a bare list, where each entry is either
    a name string or an object with a ``name`` field. Blank and duplicate
    names are dropped, first-seen order is kept.
    """
    if isinstance(payload, dict):
        entries = payload.get("models")
    else:
        entries = payload
    if not isinstance(entries, list):
        return []

    names = []
    for entry in entries:
        if isinstance(entry, str):
            names.append(entry)
        elif isinstance(entry, dict) and isinstance(entry.get("name"), str):
            names.append(entry["name"])
    return unique_model_names(names)


class ConnectionMonitor:
    """Checks whether the server is reachable and which models it offers.

    Probes run on demand and never raise: any failure, including running
    past the timeout, is reported as unreachable with no models.
    """

    def __init__(self, provider: LLMProvider, timeout: float = PROBE_TIMEOUT_SECONDS):
        self._provider = provider
        self._timeout = timeout
        self._last_result: ProbeResult | None = None

    @property
    def last_result(self) -> ProbeResult | None:
        return self._last_result

    async def probe(self, timeout: float | None = None) -> ProbeResult:
        """Read the model listing within ``timeout`` seconds."""
        limit = self._timeout if timeout is None else timeout
        try:
            payload = await asyncio.wait_for(self._provider.list_models(timeout=limit), timeout=limit)
        except asyncio.TimeoutError:
            logger.warning("Model server did not answer within %.1fs", limit)
            result = ProbeResult(reachable=False)
        except Exception as e:
            logger.warning("Model server unreachable: %s", e)
            result = ProbeResult(reachable=False)
        else:
            result = ProbeResult(reachable=True, models=extract_model_names(payload))
            logger.debug("Model server reachable with %d models", len(result.models))

        self._last_result = result
        return result

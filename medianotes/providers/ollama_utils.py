"""
Shared Ollama utilities: server location and model presence.
"""

import logging
import os

import requests

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_URL = "http://localhost:11434"


def ollama_base_url(base_url: str | None = None) -> str:
    """Resolve the Ollama server URL.

    Explicit argument, then OLLAMA_HOST, then localhost. OLLAMA_HOST may be
    given without a scheme ("127.0.0.1:11434").
    """
    url = base_url or os.environ.get("OLLAMA_HOST") or DEFAULT_OLLAMA_URL
    if "://" not in url:
        url = f"http://{url}"
    return url.rstrip("/")


def ollama_model_installed(base_url: str, model: str) -> bool:
    """Check whether a model has been pulled on the Ollama server.

    Raises RuntimeError if Ollama is unreachable.
    """
    # Ollama lists models as "name:tag"; a bare name means ":latest"
    bare = model.split(":")[0] if ":" in model else model

    try:
        resp = requests.get(f"{base_url}/api/tags", timeout=5)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise RuntimeError(
            f"Cannot reach Ollama at {base_url}. "
            "Is Ollama running? Start it with: ollama serve"
        ) from e

    installed = {m["name"] for m in resp.json().get("models", [])}
    logger.debug("Ollama models at %s: %s", base_url, sorted(installed))
    if model in installed or f"{model}:latest" in installed:
        return True
    return bare in installed or f"{bare}:latest" in installed

"""AI service for text generation using Google GenAI.

Keys are supplied per call rather than per instance so the same service can
be driven by the key rotation executor.
"""

import logging
from typing import Optional

from google.genai import Client
from google.genai import types

from utils.key_rotation import KeyRotationExecutor

logger = logging.getLogger(__name__)

DEFAULT_TEXT_MODEL = "gemini-2.5-flash"

# The models list endpoint does not flag speech models
VOICE_MODELS = [
    "gemini-2.5-flash-preview-tts",
    "gemini-2.5-pro-preview-tts",
]


class AIService:
    """Thin async wrapper around the Gemini ``generate_content`` endpoint."""

    def __init__(
        self,
        model_name: str = DEFAULT_TEXT_MODEL,
        timeout_seconds: float = 120.0,
    ):
        """Initialize the service.

        Args:
            model_name: Default Gemini model for text generation
            timeout_seconds: HTTP timeout applied to every request
        """
        self.model_name = model_name
        self.timeout_seconds = timeout_seconds
        self._clients: dict[str, Client] = {}
        logger.info(f"Initialized AI service with model: {model_name}")

    def _client(self, api_key: str) -> Client:
        """Return the client bound to one API key, creating it on first use."""
        client = self._clients.get(api_key)
        if client is None:
            client = Client(
                api_key=api_key,
                http_options=types.HttpOptions(timeout=int(self.timeout_seconds * 1000)),
            )
            self._clients[api_key] = client
        return client

    async def generate_text(
        self,
        prompt: str,
        api_key: str,
        model: Optional[str] = None,
        temperature: float = 0.7,
    ) -> Optional[str]:
        """Generate text for a prompt with a single key.

        Args:
            prompt: Full prompt text
            api_key: Google GenAI API key to use for this call
            model: Model override (defaults to the service model)
            temperature: Sampling temperature

        Returns:
            Response text, or None if the model returned no text
        """
        client = self._client(api_key)
        response = await client.aio.models.generate_content(
            model=model or self.model_name,
            contents=prompt,
            config=types.GenerateContentConfig(temperature=temperature),
        )

        if not response.text:
            logger.warning("AI response is empty")
            return None
        return response.text

    async def list_models(self, api_key: str) -> list[str]:
        """List the models that support ``generateContent`` for one key.

        Returns:
            Model names without the ``models/`` prefix
        """
        client = self._client(api_key)
        names = []
        async for model in await client.aio.models.list():
            if "generateContent" not in (model.supported_actions or []):
                continue
            names.append(model.name.removeprefix("models/"))
        return names

    async def discover_models(
        self, credentials: str, executor: KeyRotationExecutor
    ) -> dict[str, list[str]]:
        """Discover the text models available to ``credentials``.

        Returns:
            Dict with ``text_models`` from the API and the fixed ``voice_models``
        """
        text_models = await executor.execute(self.list_models, credentials, "Model discovery")
        logger.info(f"Discovered {len(text_models)} text models")
        return {"text_models": text_models, "voice_models": list(VOICE_MODELS)}

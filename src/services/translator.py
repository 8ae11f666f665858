"""Script translation with a non-fatal fallback to the original text."""

import logging
from typing import Optional

from services.ai_service import AIService
from services.prompts import SCRIPT_TRANSLATOR_V1
from utils.key_rotation import KeyRotationExecutor

logger = logging.getLogger(__name__)


class Translator:
    """Translates narration scripts with Gemini.

    A failed translation never stops the pipeline: the original script is
    returned and the failure is kept on ``last_error``.
    """

    def __init__(self, ai_service: AIService, executor: KeyRotationExecutor):
        self.ai = ai_service
        self.executor = executor
        self.last_error: Optional[str] = None

    async def translate(
        self,
        script: str,
        target_language: str,
        credentials: str,
        model: Optional[str] = None,
    ) -> str:
        """Translate ``script`` into ``target_language``.

        Returns:
            Translated text, or ``script`` unchanged on any failure
        """
        self.last_error = None
        prompt = SCRIPT_TRANSLATOR_V1.format(language=target_language, script=script)

        async def operation(api_key: str) -> Optional[str]:
            return await self.ai.generate_text(prompt, api_key, model=model)

        try:
            translated = await self.executor.execute(
                operation, credentials, "Script translation"
            )
        except Exception as e:
            logger.error(f"Translation Error: {e}")
            self.last_error = str(e) or type(e).__name__
            return script

        if not translated or not translated.strip():
            logger.warning(f"Empty translation to {target_language}, keeping original script")
            self.last_error = "Empty translation response"
            return script

        return translated.strip()

"""Unit tests for Translator - translation never fails the pipeline."""

from unittest.mock import AsyncMock, Mock

import pytest

from services.translator import Translator
from utils.key_rotation import KeyRotationExecutor

SCRIPT = "A swirling black hole. Stars bend around it."


@pytest.fixture
def ai_service():
    mock = Mock()
    mock.generate_text = AsyncMock()
    return mock


@pytest.fixture
def translator(ai_service):
    return Translator(ai_service, KeyRotationExecutor())


@pytest.mark.unit
class TestTranslate:
    """Tests for Translator.translate()."""

    @pytest.mark.asyncio
    async def test_returns_stripped_translation(self, translator, ai_service):
        ai_service.generate_text.return_value = "  Un agujero negro.  \n"

        result = await translator.translate(SCRIPT, "Spanish", "gkey1")

        assert result == "Un agujero negro."
        assert translator.last_error is None
        prompt = ai_service.generate_text.call_args.args[0]
        assert "Spanish" in prompt
        assert SCRIPT in prompt

    @pytest.mark.asyncio
    async def test_transport_failure_returns_original(self, translator, ai_service):
        ai_service.generate_text.side_effect = Exception("503 backend unavailable")

        result = await translator.translate(SCRIPT, "French", "gkey1,gkey2")

        assert result == SCRIPT
        assert "503" in translator.last_error

    @pytest.mark.asyncio
    async def test_exhausted_keys_return_original(self, translator, ai_service):
        ai_service.generate_text.side_effect = Exception("quota exceeded")

        result = await translator.translate(SCRIPT, "German", "gkey1,gkey2")

        assert result == SCRIPT
        assert ai_service.generate_text.await_count == 2
        assert "All API keys failed" in translator.last_error

    @pytest.mark.asyncio
    async def test_missing_credentials_return_original(self, translator, ai_service):
        result = await translator.translate(SCRIPT, "German", "")

        assert result == SCRIPT
        ai_service.generate_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_reply_returns_original(self, translator, ai_service):
        ai_service.generate_text.return_value = "   "

        result = await translator.translate(SCRIPT, "Italian", "gkey1")

        assert result == SCRIPT
        assert translator.last_error

    @pytest.mark.asyncio
    async def test_last_error_resets_between_calls(self, translator, ai_service):
        ai_service.generate_text.side_effect = [Exception("boom"), "Hola"]

        await translator.translate(SCRIPT, "Spanish", "gkey1")
        assert translator.last_error

        assert await translator.translate(SCRIPT, "Spanish", "gkey1") == "Hola"
        assert translator.last_error is None

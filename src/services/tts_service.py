"""TTS Service - speech synthesis via the Gemini speech generation API."""

import base64
import binascii
import io
import logging
import re
import wave
from typing import Optional

from google.genai import Client
from google.genai import types

from models.media import MediaAsset, MediaKind
from services.asset_store import AssetStore
from utils.errors import NoAudioContentError
from utils.key_rotation import KeyRotationExecutor

logger = logging.getLogger(__name__)

DEFAULT_VOICE_MODEL = "gemini-2.5-flash-preview-tts"
DEFAULT_VOICE_NAME = "Kore"

# Gemini returns headerless 16-bit little-endian PCM
PCM_DEFAULT_RATE = 24000
PCM_CHANNELS = 1
PCM_SAMPLE_WIDTH = 2


class TTSService:
    """Renders narration text into an audio asset."""

    def __init__(
        self,
        executor: KeyRotationExecutor,
        voice_name: str = DEFAULT_VOICE_NAME,
        timeout_seconds: float = 300.0,
    ):
        """Initialize TTS service.

        Args:
            executor: Key rotation executor owned by the current job
            voice_name: Prebuilt Gemini voice to speak with
            timeout_seconds: HTTP timeout (speech for long text can take minutes)
        """
        self.executor = executor
        self.voice_name = voice_name
        self.timeout_seconds = timeout_seconds
        self._clients: dict[str, Client] = {}

    def _client(self, api_key: str) -> Client:
        client = self._clients.get(api_key)
        if client is None:
            client = Client(
                api_key=api_key,
                http_options=types.HttpOptions(timeout=int(self.timeout_seconds * 1000)),
            )
            self._clients[api_key] = client
        return client

    @staticmethod
    def detect_audio_format(audio_bytes: bytes) -> str:
        """Detect audio format from magic bytes."""
        if len(audio_bytes) >= 12 and audio_bytes[:4] == b"RIFF" and audio_bytes[8:12] == b"WAVE":
            return "wav"
        if audio_bytes[:3] == b"ID3" or (
            len(audio_bytes) >= 2
            and audio_bytes[0] == 0xFF
            and (audio_bytes[1] & 0xE0) == 0xE0
        ):
            return "mp3"
        if audio_bytes[:4] == b"OggS":
            return "ogg"
        return "bin"

    @staticmethod
    def file_extension_for_audio_format(audio_format: str) -> str:
        """Map internal audio format to file extension."""
        return {
            "wav": "wav",
            "mp3": "mp3",
            "ogg": "ogg",
        }.get(audio_format, "bin")

    @staticmethod
    def is_raw_pcm(mime_type: Optional[str]) -> bool:
        """Check whether a MIME type describes headerless PCM samples."""
        if not mime_type:
            return False
        mime = mime_type.lower()
        return mime.startswith("audio/l16") or mime.startswith("audio/pcm")

    @staticmethod
    def sample_rate_from_mime(mime_type: Optional[str]) -> int:
        """Read ``rate=NNNN`` from a MIME type such as ``audio/L16;codec=pcm;rate=24000``."""
        match = re.search(r"rate=(\d+)", mime_type or "")
        return int(match.group(1)) if match else PCM_DEFAULT_RATE

    @staticmethod
    def pcm_to_wav(pcm: bytes, sample_rate: int = PCM_DEFAULT_RATE) -> bytes:
        """Wrap raw PCM frames in a WAV container."""
        output = io.BytesIO()
        with wave.open(output, "wb") as wav_file:
            wav_file.setnchannels(PCM_CHANNELS)
            wav_file.setsampwidth(PCM_SAMPLE_WIDTH)
            wav_file.setframerate(sample_rate)
            wav_file.writeframes(pcm)
        return output.getvalue()

    @staticmethod
    def decode_audio_payload(payload: bytes | str) -> bytes:
        """Decode an audio payload that may arrive base64-encoded.

        Raises:
            NoAudioContentError: If the payload is empty or not valid base64
        """
        if isinstance(payload, str):
            try:
                payload = base64.b64decode(payload, validate=True)
            except (binascii.Error, ValueError) as e:
                raise NoAudioContentError("Audio payload is not valid base64") from e
        if not payload:
            raise NoAudioContentError("No audio data in response")
        return payload

    @staticmethod
    def _find_audio_part(response) -> tuple[bytes | str, Optional[str]]:
        """Return (payload, mime_type) of the first audio part in a response.

        Raises:
            NoAudioContentError: If there is no candidate or no audio part
        """
        candidates = getattr(response, "candidates", None) or []
        if not candidates or candidates[0].content is None:
            raise NoAudioContentError()

        for part in candidates[0].content.parts or []:
            inline = getattr(part, "inline_data", None)
            if inline is not None and inline.data:
                return inline.data, inline.mime_type
        raise NoAudioContentError("No audio data in response")

    async def synthesize(
        self,
        text: str,
        voice_model: Optional[str],
        credentials: str,
        store: AssetStore,
    ) -> MediaAsset:
        """Generate narration audio for ``text``.

        Args:
            text: Full narration text
            voice_model: Gemini speech model id
            credentials: Comma-separated Google API keys
            store: Asset store of the current job

        Returns:
            Audio MediaAsset (WAV for PCM responses)

        Raises:
            NoAudioContentError: If the response carries no audio
        """
        model = voice_model or DEFAULT_VOICE_MODEL
        logger.info(f"Generating speech: {len(text)} chars, model={model}, voice={self.voice_name}")

        speech_config = types.GenerateContentConfig(
            response_modalities=["AUDIO"],
            speech_config=types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(
                        voice_name=self.voice_name,
                    )
                )
            ),
        )

        async def operation(api_key: str) -> tuple[bytes, Optional[str]]:
            client = self._client(api_key)
            response = await client.aio.models.generate_content(
                model=model,
                contents=text,
                config=speech_config,
            )
            payload, mime_type = self._find_audio_part(response)
            return self.decode_audio_payload(payload), mime_type

        audio_bytes, mime_type = await self.executor.execute(
            operation, credentials, "Text-to-speech generation"
        )

        if self.is_raw_pcm(mime_type):
            audio_bytes = self.pcm_to_wav(audio_bytes, self.sample_rate_from_mime(mime_type))
            mime_type = "audio/wav"

        extension = self.file_extension_for_audio_format(self.detect_audio_format(audio_bytes))
        asset = store.put_bytes(
            audio_bytes,
            MediaKind.AUDIO,
            label="tts",
            suffix=f".{extension}",
            mime_type=mime_type,
        )
        logger.info(f"Speech ready: {asset.size / 1024:.0f} KB ({extension})")
        return asset

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Optional, Union
import google.generativeai as genai
from config import API_KEY, MODEL_NAME

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Any failure talking to the model provider, with a readable message."""
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class ImageAttachment:
    """Image picked by the user; held in memory for one request only."""
    ref: str
    data: bytes
    mime_type: str


@dataclass(frozen=True)
class AudioClip:
    """Recorded speech, sent inline like an image."""
    ref: str
    data: bytes
    mime_type: str


InlineData = Union[ImageAttachment, AudioClip]


def build_system_instruction(instruction: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now().astimezone()
    stamp = now.strftime("%A, %d %B %Y %H:%M %Z").strip()
    return f"{instruction}\n[SYSTEM DATA: Current Time {stamp}]"


def build_parts(context_block: str, user_text: str, image: Optional[InlineData] = None) -> List[Any]:
    parts: List[Any] = []
    if context_block:
        parts.append(context_block)
    if user_text:
        parts.append(user_text)
    if image is not None:
        parts.append({"mime_type": image.mime_type, "data": image.data})
    return parts


class GeminiGateway:
    """Issues exactly one generate_content call per request. No retries."""
    def __init__(self, api_key: Optional[str] = API_KEY, model_name: str = MODEL_NAME,
                 model_factory: Optional[Callable[..., Any]] = None):
        if model_factory is None:
            if not api_key:
                raise ConfigError("⚠️ GEMINI_API_KEY not found. Please add it to your .env file.")
            genai.configure(api_key=api_key)
            model_factory = genai.GenerativeModel
        self.model_name = model_name
        self._model_factory = model_factory

    async def generate(self, system_instruction: str, context_block: str, user_text: str,
                       image: Optional[InlineData] = None) -> str:
        parts = build_parts(context_block, user_text, image)
        try:
            model = self._model_factory(
                self.model_name,
                system_instruction=build_system_instruction(system_instruction),
            )
            response = await model.generate_content_async(parts)
            # .text raises ValueError when the candidate was blocked or empty
            text = response.text
        except Exception as e:
            logger.warning(f"Gemini API error: {e!r}", extra={'persona_id': '-'})
            raise ProviderError(str(e) or e.__class__.__name__) from e
        if not isinstance(text, str):
            raise ProviderError("Malformed response from model: missing text")
        return text


TRANSCRIBE_INSTRUCTION = (
    "Transcribe the user's speech verbatim. Reply with the transcript only, "
    "without quotes or commentary."
)


class GeminiTranscriber:
    """Turns one recorded clip into text through the same gateway."""
    def __init__(self, gateway: GeminiGateway, clip: AudioClip):
        self.gateway = gateway
        self.clip = clip

    async def listen(self) -> str:
        text = await self.gateway.generate(TRANSCRIBE_INSTRUCTION, "", "", self.clip)
        return text.strip()

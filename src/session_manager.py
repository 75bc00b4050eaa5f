import time
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol
from config import CONTEXT_WINDOW, HISTORY_KEY, PERSONA_KEY
from gemini_gateway import ImageAttachment, ProviderError
from local_store import LocalStore
from personas import DEFAULT_PERSONA, Persona, get_persona

logger = logging.getLogger(__name__)

WELCOME_TEXT = (
    "Hi! I'm Gilar AI with a brand new bright look! ☀️\n\n"
    "Try asking me to make an image, there's a download button for it now! 💾"
)
ERROR_PREFIX = "❌ Error:"


class Sender(str, Enum):
    USER = "user"
    BOT = "bot"


@dataclass(frozen=True)
class Message:
    id: int
    text: str
    sender: Sender
    attached_image_ref: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "sender": self.sender.value,
            "attached_image_ref": self.attached_image_ref,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        """Rebuild a stored message; raises ValueError on any malformed field."""
        if not isinstance(data, dict):
            raise ValueError(f"Message must be an object, got {type(data).__name__}")
        msg_id, text, ref = data.get("id"), data.get("text"), data.get("attached_image_ref")
        if not isinstance(msg_id, int) or isinstance(msg_id, bool):
            raise ValueError(f"Bad message id: {msg_id!r}")
        if not isinstance(text, str):
            raise ValueError(f"Bad message text for id {msg_id}")
        if ref is not None and not isinstance(ref, str):
            raise ValueError(f"Bad image reference for id {msg_id}")
        return cls(id=msg_id, text=text, sender=Sender(data.get("sender")), attached_image_ref=ref)


def welcome_message() -> Message:
    return Message(id=1, text=WELCOME_TEXT, sender=Sender.BOT)


@dataclass
class SessionState:
    messages: List[Message] = field(default_factory=list)
    selected_persona: Persona = DEFAULT_PERSONA
    pending: bool = False
    draft_text: str = ""
    draft_image: Optional[ImageAttachment] = None


class Gateway(Protocol):
    async def generate(self, system_instruction: str, context_block: str, user_text: str,
                       image: Optional[ImageAttachment] = None) -> str: ...


class Transcriber(Protocol):
    async def listen(self) -> str: ...


def build_context(history: List[Message], window: int = CONTEXT_WINDOW) -> str:
    """Render the trailing `window` turns as a labeled block, or '' for no history."""
    if window <= 0 or not history:
        return ""
    lines = [
        f"{'User' if m.sender is Sender.USER else 'Assistant'}: {m.text}"
        for m in history[-window:]
    ]
    return "Context:\n" + "\n".join(lines) + "\n---"


class SessionManager:
    """Owns the conversation: message log, selected persona and the pending flag.

    The presentation layer keeps a reference to `state` for rendering and calls
    the operations below; nothing else mutates the state.
    """
    def __init__(self, store: LocalStore, gateway: Gateway,
                 context_window: int = CONTEXT_WINDOW,
                 clock: Callable[[], float] = time.time):
        self.store = store
        self.gateway = gateway
        self.context_window = context_window
        self.clock = clock
        self.state = SessionState()
        self._last_id = 0
        self._closed = False

    def _log_extra(self):
        return {'persona_id': self.state.selected_persona.id}

    def _next_id(self) -> int:
        candidate = int(self.clock() * 1000)
        if candidate <= self._last_id:
            candidate = self._last_id + 1
        self._last_id = candidate
        return candidate

    def _append(self, message: Message):
        self.state.messages.append(message)
        self._last_id = max(self._last_id, message.id)

    def _persist_messages(self):
        self.store.save(HISTORY_KEY, [m.to_dict() for m in self.state.messages])

    def _persist_persona(self):
        self.store.save(PERSONA_KEY, self.state.selected_persona.id)

    def _check_open(self):
        if self._closed:
            raise RuntimeError("SessionManager has been torn down")

    def restore(self) -> SessionState:
        """Load the stored log and persona once; anything unreadable falls back to defaults."""
        self._check_open()
        messages = [welcome_message()]
        raw = self.store.load(HISTORY_KEY)
        if raw is not None:
            try:
                if not isinstance(raw, list):
                    raise ValueError("stored history is not a list")
                messages = [Message.from_dict(item) for item in raw]
            except ValueError as e:
                logger.warning(f"Stored history unreadable, using default: {e}", extra=self._log_extra())

        persona = DEFAULT_PERSONA
        persona_id = self.store.load(PERSONA_KEY)
        if persona_id is not None:
            try:
                persona = get_persona(persona_id)
            except (KeyError, TypeError):
                logger.warning(f"Stored persona {persona_id!r} unknown, using default", extra=self._log_extra())

        self.state.messages = messages
        self.state.selected_persona = persona
        self.state.pending = False
        self._last_id = max((m.id for m in messages), default=0)
        logger.info(f"Restored session with {len(messages)} messages", extra=self._log_extra())
        return self.state

    def switch_persona(self, persona):
        """Select another persona and start from an empty log."""
        self._check_open()
        if isinstance(persona, str):
            persona = get_persona(persona)
        self.state.selected_persona = persona
        self.state.messages = []
        self._persist_persona()
        self._persist_messages()
        logger.info(f"Switched persona to {persona.display_name}", extra=self._log_extra())

    async def send_turn(self, text: str, image: Optional[ImageAttachment] = None) -> Optional[Message]:
        """Send one user turn and append the reply (or an error notice).

        Returns the bot message, or None when the call was rejected because the
        input was empty or another request is still pending.
        """
        self._check_open()
        if self.state.pending or (not (text or "").strip() and image is None):
            logger.debug("send_turn rejected", extra=self._log_extra())
            return None

        current_text, current_image = text or "", image
        self.state.draft_text = ""
        self.state.draft_image = None

        history = list(self.state.messages)
        self._append(Message(
            id=self._next_id(),
            text=current_text,
            sender=Sender.USER,
            attached_image_ref=current_image.ref if current_image is not None else None,
        ))
        self.state.pending = True
        try:
            self._persist_messages()
            persona = self.state.selected_persona
            context_block = build_context(history, self.context_window)
            try:
                reply = await self.gateway.generate(
                    persona.system_instruction, context_block, current_text, current_image
                )
                bot = Message(id=self._next_id(), text=reply, sender=Sender.BOT)
            except ProviderError as e:
                logger.warning(f"Request failed: {e.message}", extra=self._log_extra())
                bot = Message(id=self._next_id(), text=f"{ERROR_PREFIX} {e.message}", sender=Sender.BOT)
            self._append(bot)
            return bot
        finally:
            self.state.pending = False
            self._persist_messages()

    def reset(self):
        """Drop the conversation, keeping the persona."""
        self._check_open()
        self.state.messages = []
        self.store.remove(HISTORY_KEY)
        logger.info("Chat reset", extra=self._log_extra())

    async def dictate(self, transcriber: Transcriber) -> str:
        """Put one recognized utterance into the input draft."""
        self._check_open()
        utterance = await transcriber.listen()
        self.state.draft_text = utterance
        return utterance

    def teardown(self):
        if self._closed:
            return
        self._persist_persona()
        self._persist_messages()
        self._closed = True
        logger.info("Session closed", extra=self._log_extra())

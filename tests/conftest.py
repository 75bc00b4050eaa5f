import asyncio
import pytest
from gemini_gateway import ProviderError
from local_store import LocalStore
from session_manager import SessionManager


class FakeGateway:
    """Records every call; replies with `reply` or raises `error`."""
    def __init__(self, reply="hi there", error=None):
        self.reply = reply
        self.error = error
        self.calls = []
        self.gate = None

    async def generate(self, system_instruction, context_block, user_text, image=None):
        self.calls.append({
            "system_instruction": system_instruction,
            "context_block": context_block,
            "user_text": user_text,
            "image": image,
        })
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise ProviderError(self.error)
        return self.reply


class Clock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now


@pytest.fixture
def store(tmp_path):
    return LocalStore(str(tmp_path / "chat.db"))


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def manager(store, gateway):
    m = SessionManager(store, gateway, clock=Clock())
    m.restore()
    return m


def run(coro):
    return asyncio.run(coro)

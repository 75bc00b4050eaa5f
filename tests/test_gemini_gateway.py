import asyncio
from datetime import datetime
import pytest
from gemini_gateway import (
    ConfigError, GeminiGateway, ImageAttachment, ProviderError, build_parts, build_system_instruction,
)


class FakeResponse:
    def __init__(self, text=None, blocked=False):
        self._text = text
        self._blocked = blocked

    @property
    def text(self):
        if self._blocked:
            raise ValueError("response was blocked")
        return self._text


class FakeModel:
    created = []

    def __init__(self, model_name, system_instruction=None, result=None):
        self.model_name = model_name
        self.system_instruction = system_instruction
        self.result = result
        self.parts = None
        FakeModel.created.append(self)

    async def generate_content_async(self, parts):
        self.parts = parts
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


def factory(result):
    FakeModel.created = []

    def make(model_name, system_instruction=None):
        return FakeModel(model_name, system_instruction, result)
    return make


def test_build_parts_skips_empty_pieces():
    image = ImageAttachment("cat.png", b"\x89PNG", "image/png")
    assert build_parts("", "hello") == ["hello"]
    assert build_parts("Context:\nUser: a\n---", "", image) == [
        "Context:\nUser: a\n---",
        {"mime_type": "image/png", "data": b"\x89PNG"},
    ]


def test_system_instruction_carries_current_time():
    text = build_system_instruction("Be brief.", datetime(2024, 5, 6, 7, 8))
    assert text.startswith("Be brief.\n[SYSTEM DATA: Current Time Monday, 06 May 2024 07:08")
    assert text.endswith("]")


def test_generate_returns_text():
    gw = GeminiGateway(model_name="gemini-test", model_factory=factory(FakeResponse("hi there")))
    text = asyncio.run(gw.generate("Be brief.", "", "hello"))
    assert text == "hi there"
    model = FakeModel.created[0]
    assert model.model_name == "gemini-test"
    assert model.system_instruction.startswith("Be brief.\n[SYSTEM DATA:")
    assert model.parts == ["hello"]


@pytest.mark.parametrize("result", [
    ConnectionError("network down"),
    FakeResponse(blocked=True),
    FakeResponse(text=None),
])
def test_failures_become_provider_error(result):
    gw = GeminiGateway(model_factory=factory(result))
    with pytest.raises(ProviderError) as info:
        asyncio.run(gw.generate("x", "", "hello"))
    assert info.value.message


def test_missing_api_key_is_config_error():
    with pytest.raises(ConfigError):
        GeminiGateway(api_key=None)

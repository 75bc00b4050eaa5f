from chat_handler import chat_loop, load_image
from config import HISTORY_KEY, PERSONA_KEY
from conftest import Clock, FakeGateway
from session_manager import SessionManager


def feed(monkeypatch, lines):
    it = iter(lines)
    monkeypatch.setattr("builtins.input", lambda prompt="": next(it))


def test_chat_loop_sends_and_switches(store, monkeypatch, capsys):
    gateway = FakeGateway()
    manager = SessionManager(store, gateway, clock=Clock())
    feed(monkeypatch, ["hello", "/persona image-gen", "draw a cat", "exit"])
    chat_loop(manager)

    out = capsys.readouterr().out
    assert "Gemini: hi there" in out
    assert "Switched to Image Generator" in out
    assert [c["user_text"] for c in gateway.calls] == ["hello", "draw a cat"]
    assert store.load(PERSONA_KEY) == "image-gen"
    assert [m["text"] for m in store.load(HISTORY_KEY)] == ["draw a cat", "hi there"]


def test_chat_loop_reports_unknown_persona(store, monkeypatch, capsys):
    manager = SessionManager(store, FakeGateway())
    feed(monkeypatch, ["/persona pirate", "exit"])
    chat_loop(manager)
    assert "Unknown persona: pirate" in capsys.readouterr().out


def test_image_command_attaches_file(store, tmp_path, monkeypatch):
    pic = tmp_path / "cat.png"
    pic.write_bytes(b"\x89PNG")
    gateway = FakeGateway()
    manager = SessionManager(store, gateway, clock=Clock())
    feed(monkeypatch, [f"/image {pic} what is this", "exit"])
    chat_loop(manager)

    image = gateway.calls[0]["image"]
    assert image == load_image(str(pic))
    assert image.mime_type == "image/png"
    assert gateway.calls[0]["user_text"] == "what is this"
    assert manager.state.messages[-2].attached_image_ref == "cat.png"


def test_speak_writes_last_reply(store, tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("chat_handler.synthesize_speech", lambda text: b"ID3" + text.encode())
    manager = SessionManager(store, FakeGateway(), clock=Clock())
    feed(monkeypatch, ["hello", "/speak", "exit"])
    chat_loop(manager)

    assert (tmp_path / "reply.mp3").read_bytes() == b"ID3hi there"
    assert "Saved reading to reply.mp3" in capsys.readouterr().out


def test_dictate_sends_transcript(store, tmp_path, monkeypatch, capsys):
    from gemini_gateway import TRANSCRIBE_INSTRUCTION

    class Gateway(FakeGateway):
        async def generate(self, system_instruction, context_block, user_text, image=None):
            reply = await super().generate(system_instruction, context_block, user_text, image)
            return "what time is it" if system_instruction == TRANSCRIBE_INSTRUCTION else reply

    clip = tmp_path / "note.wav"
    clip.write_bytes(b"RIFF")
    gateway = Gateway()
    manager = SessionManager(store, gateway, clock=Clock())
    feed(monkeypatch, [f"/dictate {clip}", "exit"])
    chat_loop(manager)

    assert "Heard: what time is it" in capsys.readouterr().out
    assert gateway.calls[0]["image"].mime_type.startswith("audio/")
    assert gateway.calls[1]["user_text"] == "what time is it"
    assert [m.text for m in manager.state.messages[-2:]] == ["what time is it", "hi there"]

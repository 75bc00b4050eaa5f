from contextlib import nullcontext
from types import SimpleNamespace
import app
from conftest import Clock, FakeGateway
from gemini_gateway import ImageAttachment
from session_manager import SessionManager


def test_previews_are_kept_per_message(store, monkeypatch):
    fake_st = SimpleNamespace(session_state=SimpleNamespace(previews={}), spinner=lambda text: nullcontext())
    monkeypatch.setattr(app, "st", fake_st)
    manager = SessionManager(store, FakeGateway(), clock=Clock())
    manager.restore()

    app.send(manager, "first", ImageAttachment("image.png", b"one", "image/png"))
    first_user = manager.state.messages[-2]
    app.send(manager, "second", ImageAttachment("image.png", b"two", "image/png"))
    second_user = manager.state.messages[-2]

    previews = fake_st.session_state.previews
    assert first_user.attached_image_ref == second_user.attached_image_ref == "image.png"
    assert previews[first_user.id] == b"one"
    assert previews[second_user.id] == b"two"

import asyncio
import streamlit as st
from config import DB_PATH, setup_logging
from gemini_gateway import AudioClip, ConfigError, GeminiGateway, GeminiTranscriber, ImageAttachment, ProviderError
from local_store import LocalStore
from personas import PERSONAS
from reply_tools import (
    DownloadError, SpeechError, download_image, extract_image_urls, is_generated_image, synthesize_speech,
)
from session_manager import Sender, SessionManager

st.set_page_config(page_title="✨ Gilar AI", layout="wide")


@st.cache_resource
def get_store():
    setup_logging()
    return LocalStore(DB_PATH)


def get_manager():
    if 'manager' not in st.session_state:
        manager = SessionManager(get_store(), GeminiGateway())
        manager.restore()
        st.session_state.manager = manager
        # Image bytes by user message id; never persisted
        st.session_state.previews = {}
    return st.session_state.manager


def send(manager: SessionManager, text: str, image=None):
    with st.spinner("Thinking..."):
        reply = asyncio.run(manager.send_turn(text, image))
    if reply is not None and image is not None:
        user_msg = manager.state.messages[-2]
        st.session_state.previews[user_msg.id] = image.data


def render_sidebar(manager: SessionManager):
    st.sidebar.title("GILAR AI")
    st.sidebar.caption("Select Mode")
    current = manager.state.selected_persona
    for persona in PERSONAS:
        label = f"{persona.emoji} **{persona.display_name}**"
        if st.sidebar.button(label, key=f"persona_{persona.id}", help=persona.short_description,
                             type="primary" if persona.id == current.id else "secondary"):
            manager.switch_persona(persona)
            st.rerun()

    if st.sidebar.button("🗑️ Reset Chat"):
        manager.reset()
        st.rerun()


def render_dictation(manager: SessionManager):
    recording = st.sidebar.audio_input("🎤 Dictate", key=f"dictate_{len(manager.state.messages)}")
    if recording is not None and not manager.state.draft_text:
        clip = AudioClip(ref="dictation", data=recording.getvalue(), mime_type=recording.type or "audio/wav")
        try:
            asyncio.run(manager.dictate(GeminiTranscriber(manager.gateway, clip)))
        except ProviderError as e:
            st.sidebar.error(f"Could not transcribe: {e.message}")
    if manager.state.draft_text:
        st.sidebar.info(manager.state.draft_text)
        if st.sidebar.button("📨 Send dictation", disabled=manager.state.pending):
            send(manager, manager.state.draft_text)
            st.rerun()


def render_bot_tools(msg):
    if is_generated_image(msg.text):
        for i, url in enumerate(extract_image_urls(msg.text)):
            if st.button("💾 Download", key=f"dl_{msg.id}_{i}"):
                try:
                    st.success(f"Saved to {download_image(url, 'downloads')}")
                except DownloadError as e:
                    st.error(str(e))
        return
    if st.button("🔊", key=f"speak_{msg.id}", help="Read aloud"):
        try:
            audio = synthesize_speech(msg.text)
        except SpeechError as e:
            st.info(str(e))
        else:
            if audio:
                st.audio(audio, format="audio/mp3")


def render_messages(manager: SessionManager):
    state = manager.state
    if not state.messages:
        st.markdown(f"### {state.selected_persona.emoji}\nReady to assist you.")

    for msg in state.messages:
        role = "user" if msg.sender is Sender.USER else "assistant"
        with st.chat_message(role):
            preview = st.session_state.previews.get(msg.id)
            if preview is not None:
                st.image(preview)
            st.markdown(msg.text)
            if msg.sender is Sender.BOT:
                render_bot_tools(msg)


def main():
    try:
        manager = get_manager()
    except ConfigError as e:
        st.error(str(e))
        st.stop()

    render_sidebar(manager)
    render_dictation(manager)
    st.title(f"{manager.state.selected_persona.emoji} {manager.state.selected_persona.display_name}")
    render_messages(manager)

    upload = st.file_uploader("Attach image", type=["png", "jpg", "jpeg", "webp"],
                              key=f"upload_{len(manager.state.messages)}")
    if prompt := st.chat_input("Type a message...", disabled=manager.state.pending):
        image = None
        if upload is not None:
            image = ImageAttachment(ref=upload.name, data=upload.getvalue(), mime_type=upload.type)
        send(manager, prompt, image)
        st.rerun()


if __name__ == "__main__":
    main()

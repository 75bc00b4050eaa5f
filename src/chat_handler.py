import asyncio
import logging
import mimetypes
import os
from gemini_gateway import AudioClip, GeminiTranscriber, ImageAttachment, ProviderError
from personas import PERSONAS
from reply_tools import SpeechError, synthesize_speech
from session_manager import Sender, SessionManager


def load_image(path: str) -> ImageAttachment:
    mime_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
    with open(path, "rb") as fh:
        data = fh.read()
    return ImageAttachment(ref=os.path.basename(path), data=data, mime_type=mime_type)


def load_audio(path: str) -> AudioClip:
    mime_type = mimetypes.guess_type(path)[0] or "audio/wav"
    with open(path, "rb") as fh:
        data = fh.read()
    return AudioClip(ref=os.path.basename(path), data=data, mime_type=mime_type)


def speak_last_reply(manager: SessionManager, out_path: str = "reply.mp3"):
    """Write the latest bot reply as MP3; generated images are skipped."""
    bot_turns = [m for m in manager.state.messages if m.sender is Sender.BOT]
    if not bot_turns:
        print("Nothing to read yet.\n")
        return None
    try:
        audio = synthesize_speech(bot_turns[-1].text)
    except SpeechError as e:
        print(f"⚠️ {e}\n")
        return None
    if audio is None:
        print("🎨 Generated images are not read aloud.\n")
        return None
    with open(out_path, "wb") as fh:
        fh.write(audio)
    print(f"🔊 Saved reading to {out_path}\n")
    return out_path


def print_message(msg):
    who = "You" if msg.sender is Sender.USER else "Gemini"
    image = f" [image: {msg.attached_image_ref}]" if msg.attached_image_ref else ""
    print(f"{who}:{image} {msg.text}\n")


def chat_loop(manager: SessionManager):
    """Interactive chat loop: restore, then send turns until 'exit'."""
    state = manager.restore()
    persona = state.selected_persona
    print(f"{persona.emoji} {persona.display_name} | Gemini chat (type 'exit' to quit)\n")
    print("💡 Commands: /reset, /personas, /persona <id>, /image <path> [text], /dictate <audio>, /speak\n")
    for msg in state.messages:
        print_message(msg)

    try:
        while True:
            user_input = input("You: ").strip()
            if user_input.lower() == 'exit':
                break

            if user_input == '/reset':
                manager.reset()
                print("🗑️ Chat cleared.\n")
                continue

            if user_input == '/personas':
                for p in PERSONAS:
                    marker = "*" if p.id == manager.state.selected_persona.id else " "
                    print(f" {marker} {p.id:<12} {p.emoji} {p.display_name} - {p.short_description}")
                print()
                continue

            if user_input.startswith('/persona '):
                try:
                    manager.switch_persona(user_input[9:].strip())
                except KeyError as e:
                    print(f"⚠️ {e.args[0]}\n")
                    continue
                p = manager.state.selected_persona
                print(f"{p.emoji} Switched to {p.display_name}. History cleared.\n")
                continue

            if user_input == '/speak':
                speak_last_reply(manager)
                continue

            if user_input.startswith('/dictate '):
                try:
                    clip = load_audio(user_input[9:].strip())
                    heard = asyncio.run(manager.dictate(GeminiTranscriber(manager.gateway, clip)))
                except OSError as e:
                    print(f"⚠️ Could not read audio: {e}\n")
                    continue
                except ProviderError as e:
                    print(f"⚠️ Could not transcribe: {e.message}\n")
                    continue
                print(f"🎤 Heard: {heard}\n")
                user_input = manager.state.draft_text

            image = None
            if user_input.startswith('/image '):
                path, _, user_input = user_input[7:].strip().partition(' ')
                try:
                    image = load_image(path)
                except OSError as e:
                    print(f"⚠️ Could not read image: {e}\n")
                    continue

            reply = asyncio.run(manager.send_turn(user_input, image))
            if reply is not None:
                print_message(reply)
    finally:
        manager.teardown()
        logging.getLogger(__name__).info("Chat loop ended", extra={'persona_id': manager.state.selected_persona.id})

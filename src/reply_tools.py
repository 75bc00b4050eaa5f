"""Helpers for collaborators that consume bot replies (read-aloud, image downloads)."""

import io
import os
import re
import time
import logging
from typing import List, Optional
import requests
from gtts import gTTS, gTTSError
from personas import IMAGE_MARKER

logger = logging.getLogger(__name__)

_MARKDOWN_IMAGE = re.compile(r"!\[[^\]]*\]\((\S+?)\)")
_SPEECH_NOISE = re.compile(r"[*#`]")


class DownloadError(Exception):
    pass


class SpeechError(Exception):
    pass


def is_generated_image(text: str) -> bool:
    return IMAGE_MARKER in text


def speakable_text(text: str) -> Optional[str]:
    """Text to read aloud, or None for generated-image replies (never read URLs out)."""
    if is_generated_image(text):
        return None
    return _SPEECH_NOISE.sub("", text)


def synthesize_speech(text: str, lang: str = "en") -> Optional[bytes]:
    """MP3 bytes of the reply read aloud, or None when there is nothing to read."""
    spoken = speakable_text(text)
    if not spoken or not spoken.strip():
        return None
    buf = io.BytesIO()
    try:
        gTTS(spoken, lang=lang).write_to_fp(buf)
    except (gTTSError, AssertionError, ValueError) as e:
        logger.warning(f"Text-to-speech failed: {e}", extra={'persona_id': '-'})
        raise SpeechError(f"Text-to-speech unavailable: {e}") from e
    return buf.getvalue()


def extract_image_urls(text: str) -> List[str]:
    return _MARKDOWN_IMAGE.findall(text)


def download_image(url: str, dest_dir: str = ".", timeout: float = 30.0) -> str:
    """Fetch a generated image and save it as generated-image-<ms>.jpg; returns the path."""
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.error(f"Image download failed for {url}: {e}", extra={'persona_id': '-'})
        raise DownloadError(f"Failed to download image: {e}") from e

    os.makedirs(dest_dir, exist_ok=True)
    path = os.path.join(dest_dir, f"generated-image-{int(time.time() * 1000)}.jpg")
    with open(path, "wb") as fh:
        fh.write(response.content)
    logger.info(f"Saved image to {path}", extra={'persona_id': '-'})
    return path

from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True)
class Persona:
    id: str
    display_name: str
    short_description: str
    emoji: str
    system_instruction: str


IMAGE_MARKER = "![Generated Image]"

PERSONAS: Tuple[Persona, ...] = (
    Persona(
        id="all-in-one",
        display_name="All-in-One",
        short_description="A smart, do-everything assistant.",
        emoji="✨",
        system_instruction=(
            "You are the smart 'All-in-One' AI assistant. "
            "Answer questions concisely, accurately and with tidy formatting."
        ),
    ),
    Persona(
        id="image-gen",
        display_name="Image Generator",
        short_description="Creates visual images instantly.",
        emoji="🎨",
        system_instruction=(
            "You have ONLY ONE task: turn the user's request into an IMAGE. "
            "If the user asks for an image, reply ONLY in this format: "
            "![Generated Image](https://image.pollinations.ai/prompt/{detailed_english_description}?nologo=true). "
            "Do not talk about anything else."
        ),
    ),
)

DEFAULT_PERSONA = PERSONAS[0]

_BY_ID: Dict[str, Persona] = {p.id: p for p in PERSONAS}


def get_persona(persona_id: str) -> Persona:
    """Look up a persona by id, raising KeyError if it is not registered."""
    try:
        return _BY_ID[persona_id]
    except KeyError:
        raise KeyError(f"Unknown persona: {persona_id}") from None

"""
Narration: deterministic guidance texts, optional AI descriptions, and the
dispatcher that hands navigation events to a speech or UI callback.
"""

from beaconnav.narration.fallbacks import (
    doorway_fallback_text,
    location_fallback_text,
    room_fallback_text,
)
from beaconnav.narration.descriptions import (
    DescriptionContext,
    OpenAIDescriptionGenerator,
    build_prompt,
)
from beaconnav.narration.dispatcher import NarrationDispatcher

__all__ = [
    "doorway_fallback_text",
    "location_fallback_text",
    "room_fallback_text",
    "DescriptionContext",
    "OpenAIDescriptionGenerator",
    "build_prompt",
    "NarrationDispatcher",
]

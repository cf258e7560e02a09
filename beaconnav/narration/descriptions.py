"""
Optional natural-language descriptions of rooms and doorways.

The generator is a convenience on top of the deterministic texts in
fallbacks.py: callers must always be ready to use the fallback when
generation is disabled, slow or failing.
"""

from dataclasses import dataclass
from typing import Optional

from beaconnav.config import NarrationConfig
from beaconnav.errors import DescriptionGenerationFailed
from beaconnav.floorplan.types import DoorAction, Doorway, Room
from beaconnav.narration.fallbacks import doorway_fallback_text, room_fallback_text
from beaconnav.navigation.interfaces import DescriptionGenerator
from beaconnav.utils.log import get_logger

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You are an expert in creating concise, practical audio navigation "
    "instructions for blind users."
)


@dataclass(frozen=True, eq=False)
class DescriptionContext:
    """
    What to describe.

    Attributes:
        kind: "room" or "doorway".
        room: Room to describe (kind "room").
        doorway: Doorway being approached (kind "doorway").
        from_room_id: Room the user is leaving.
        to_room_id: Room the user is entering.
        from_room_name: Spoken name of the room being left.
        to_room_name: Spoken name of the room being entered.
    """

    kind: str
    room: Optional[Room] = None
    doorway: Optional[Doorway] = None
    from_room_id: Optional[str] = None
    to_room_id: Optional[str] = None
    from_room_name: str = "previous room"
    to_room_name: str = "next room"

    def __post_init__(self):
        if self.kind == "room" and self.room is None:
            raise ValueError("A room description needs a room")
        if self.kind == "doorway" and self.doorway is None:
            raise ValueError("A doorway description needs a doorway")
        if self.kind not in ("room", "doorway"):
            raise ValueError(f"Unknown description kind '{self.kind}'")

    @classmethod
    def for_room(cls, room: Room) -> "DescriptionContext":
        return cls(kind="room", room=room)

    @classmethod
    def for_doorway(cls, doorway: Doorway, from_room_id: Optional[str], to_room_id: Optional[str],
                    from_room_name: str, to_room_name: str) -> "DescriptionContext":
        return cls(kind="doorway", doorway=doorway, from_room_id=from_room_id,
                   to_room_id=to_room_id, from_room_name=from_room_name,
                   to_room_name=to_room_name)

    @property
    def action(self) -> DoorAction:
        if self.doorway is None or self.from_room_id is None:
            return DoorAction.WALK_THROUGH
        return self.doorway.action(self.from_room_id)

    def fallback_text(self) -> str:
        if self.kind == "room":
            return room_fallback_text(self.room)
        return doorway_fallback_text(self.doorway, self.from_room_id, self.to_room_name)


def room_prompt(room: Room) -> str:
    return f"""Create a concise audio description for a blind user entering this room. Focus on practical navigation information:

Room Details:
- Name: {room.name}
- Type: {room.type.value.replace('_', ' ')}
- Floor Surface: {room.floor_surface.value}
- Description: {room.description or 'none provided'}

Requirements:
- Maximum 25 words
- Must mention: "You'll be walking on [floor surface]"
- Include relevant audio cues based on room type and floor surface
- Sound natural when spoken aloud
- Use present tense and active voice

Floor surface audio characteristics:
- tile/marble/concrete: high echo, hard footsteps
- carpet: low echo, soft footsteps
- hardwood: medium echo, distinct footsteps
- linoleum: low to medium echo

Example: "You are in the Kitchen with tile flooring. You'll be walking on tile. Listen for appliances. High echo environment."
"""


def doorway_prompt(context: DescriptionContext) -> str:
    doorway = context.doorway
    return f"""Create a concise audio instruction for a blind user approaching this doorway:

Doorway Details:
- Name: {doorway.name}
- Type: {doorway.door_type.value.replace('_', '-')}
- Action Required: {context.action.value}
- From: {context.from_room_name} → To: {context.to_room_name}
- Door Width: {doorway.width:.1f}m
- Description: {doorway.description or 'none'}

Action instructions:
- push: "push to open" or "push to enter"
- pull: "pull to open" or "pull to enter"
- slide: "slide to open"
- automatic: "will open automatically"
- walk_through: "walk through"

Requirements:
- Maximum 20 words
- Must mention the hinge type (left-hinged/right-hinged) if applicable
- Must specify push/pull action clearly
- Include door width if narrow (<1.0m) or wide (>1.2m)
- Use imperative mood

Examples:
- "Right-hinged door, push to enter Kitchen"
- "Wide automatic door to Living Room, will open automatically"
"""


def build_prompt(context: DescriptionContext) -> str:
    return room_prompt(context.room) if context.kind == "room" else doorway_prompt(context)


class OpenAIDescriptionGenerator(DescriptionGenerator):
    """
    Description generator backed by the OpenAI chat completions API.

    Args:
        config: Narration settings (model, temperature, max_tokens, api_key).
        client: Pre-built async client; created from config.api_key when
            omitted.

    Raises:
        DescriptionGenerationFailed: From generate_description() on any API
            error or empty response.
    """

    def __init__(self, config: Optional[NarrationConfig] = None, client=None):
        self.config = config or NarrationConfig()
        self.config.validate()
        if client is None:
            from openai import AsyncOpenAI
            client = AsyncOpenAI(api_key=self.config.api_key, timeout=self.config.timeout)
        self.client = client

    async def generate_description(self, context: DescriptionContext) -> str:
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_prompt(context)},
        ]
        try:
            rsp = await self.client.chat.completions.create(
                model=self.config.model, messages=messages,
                temperature=self.config.temperature, max_tokens=self.config.max_tokens,
            )
        except Exception as exc:
            raise DescriptionGenerationFailed(f"Description request failed: {exc}") from exc

        content = rsp.choices[0].message.content if rsp.choices else None
        if not content or not content.strip():
            raise DescriptionGenerationFailed("Empty description returned")
        text = content.strip()
        logger.debug("Description generated", extra={"extra": {"kind": context.kind, "text": text}})
        return text

"""Character presets rendered into persona instructions."""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_SAFETY_RULES = (
    "- Keep the conversation respectful and considerate.\n"
    "- Do not guess at anyone's real-world personal information.\n"
    "- Soften excessive violent or sexual content."
)


@dataclass
class Character:
    name: str
    relationship: str
    personality: str
    background: str = ""
    first_person: str = "I"
    second_person: str = "you"
    style: str = "casual"
    traits: list[str] = field(default_factory=list)
    safety_rules: str = ""


def build_character_prompt(character: Character) -> str:
    """Render a character sheet as persona instructions."""
    lines = [
        "[Character]",
        f"- Name: {character.name}",
        f"- Relationship: {character.relationship}",
    ]
    if character.background:
        lines.append(f"- Background: {character.background}")

    lines += [
        "",
        "[Voice and style]",
        f"- Refers to self as: {character.first_person}",
        f"- Addresses the user as: {character.second_person}",
        f"- Speech style: {character.style}",
        "",
        "[Personality and behavior]",
        character.personality,
    ]
    if character.traits:
        lines += ["", f"Key traits: {', '.join(character.traits)}"]

    lines += ["", "[Safety rules]", character.safety_rules or DEFAULT_SAFETY_RULES]
    lines += ["", "Stay in this role naturally according to the settings above."]
    return "\n".join(lines)

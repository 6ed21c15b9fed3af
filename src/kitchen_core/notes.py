"""
Kitchen-note rewriter.

Turns free-text modifiers and item notes into the terse, upper-case lines
cooks read on a ticket ("no onions" -> "HOLD: ONIONS"). Rules are tried in
order and the first match wins; text no rule recognizes is passed through
as "NOTE: ...".
"""

import re
from dataclasses import dataclass
from enum import Enum

from kitchen_core.types import TicketItem


class NoteCategory(str, Enum):
    """What kind of instruction a kitchen line carries."""

    HOLD = "hold"
    SPICE = "spice"
    ALLERGY = "allergy"
    COOK = "cook"
    ADDON = "addon"
    SPECIAL = "special"


@dataclass(frozen=True)
class RewriteRule:
    """
    One rewrite rule.

    Attributes:
        patterns: Case-insensitive regexes; the first that matches applies
        template: Output line; ``{1}`` is replaced by the first capture group
        category: Kind of instruction produced
    """

    patterns: tuple[re.Pattern, ...]
    template: str
    category: NoteCategory


def _rule(patterns: list[str], template: str, category: NoteCategory) -> RewriteRule:
    return RewriteRule(
        patterns=tuple(re.compile(p, re.IGNORECASE) for p in patterns),
        template=template,
        category=category,
    )


# Allergy and spice rules come before HOLD so "no nuts" and "no spice"
# are not rewritten as plain holds
REWRITE_RULES: tuple[RewriteRule, ...] = (
    _rule(
        [r"gluten\s*free", r"\bgf\b", r"coeliac", r"celiac"],
        "GF: USE GLUTEN-FREE BASE (ALLERGY)",
        NoteCategory.ALLERGY,
    ),
    _rule(
        [r"nut\s*free", r"no\s+nuts", r"nut\s+allergy"],
        "NUT-FREE: CHECK ALL INGREDIENTS (ALLERGY)",
        NoteCategory.ALLERGY,
    ),
    _rule(
        [r"dairy\s*free", r"no\s+dairy", r"lactose", r"vegan"],
        "DAIRY-FREE: USE VEGAN OPTIONS (ALLERGY)",
        NoteCategory.ALLERGY,
    ),
    _rule([r"vegetarian", r"veggie"], "VEGETARIAN", NoteCategory.ALLERGY),
    _rule([r"extra\s+spicy", r"very\s+spicy"], "SPICE: EXTRA HOT", NoteCategory.SPICE),
    _rule([r"mild", r"not\s+spicy", r"no\s+spice"], "SPICE: MILD", NoteCategory.SPICE),
    _rule([r"medium\s+spic"], "SPICE: MEDIUM", NoteCategory.SPICE),
    _rule([r"spicy", r"\bhot\b", r"chill?i"], "SPICE: HOT", NoteCategory.SPICE),
    _rule(
        [r"\bno\s+(\w+)", r"without\s+(\w+)", r"hold\s+(?:the\s+)?(\w+)", r"remove\s+(\w+)"],
        "HOLD: {1}",
        NoteCategory.HOLD,
    ),
    _rule([r"well[\s-]+done"], "COOK: WELL DONE", NoteCategory.COOK),
    _rule([r"medium[\s-]+well"], "COOK: MEDIUM-WELL", NoteCategory.COOK),
    _rule([r"medium[\s-]+rare"], "COOK: MEDIUM-RARE", NoteCategory.COOK),
    _rule([r"\brare\b"], "COOK: RARE", NoteCategory.COOK),
    _rule([r"\bmedium\b"], "COOK: MEDIUM", NoteCategory.COOK),
    _rule([r"crispy"], "COOK: EXTRA CRISPY", NoteCategory.COOK),
    _rule([r"dressing\s+on\s+(?:the\s+)?side"], "DRESSING: ON SIDE", NoteCategory.SPECIAL),
    _rule([r"on\s+the\s+side", r"side\s+of\s+\w+"], "SIDE: ON THE SIDE", NoteCategory.SPECIAL),
    _rule([r"extra\s+(\w+)", r"add\s+(\w+)", r"more\s+(\w+)"], "ADD: EXTRA {1}", NoteCategory.ADDON),
)

_ALLERGY_PATTERN = re.compile(
    r"allerg|gluten|\bnuts?\b|peanut|dairy|lactose|celiac|coeliac|vegan|intoleran|anaphyla|shellfish",
    re.IGNORECASE,
)


def rewrite_note(note: str | None) -> str:
    """
    Rewrite one modifier or note as a kitchen line.

    Args:
        note: Free text as entered by the guest or server

    Returns:
        Kitchen line, or "" for empty input

    Example:
        rewrite_note("no onions")     -> "HOLD: ONIONS"
        rewrite_note("extra spicy")   -> "SPICE: EXTRA HOT"
        rewrite_note("birthday plate") -> "NOTE: BIRTHDAY PLATE"
    """
    if not note or not note.strip():
        return ""

    text = note.strip()
    for rule in REWRITE_RULES:
        for pattern in rule.patterns:
            match = pattern.search(text)
            if match:
                line = rule.template
                for index, group in enumerate(match.groups(), start=1):
                    line = line.replace(f"{{{index}}}", (group or "").upper())
                return line
    return f"NOTE: {text.upper()}"


def kitchen_lines(item: TicketItem) -> list[str]:
    """Kitchen lines for an item: one per modifier, then its notes."""
    lines = [rewrite_note(modifier) for modifier in item.modifiers]
    if item.notes:
        lines.append(rewrite_note(item.notes))
    return [line for line in lines if line]


def is_allergy_note(text: str | None) -> bool:
    """True if ``text`` mentions an allergy or dietary restriction."""
    return bool(text) and bool(_ALLERGY_PATTERN.search(text))

"""Inline disambiguation markup: ``字(描述)`` pins a position on a character."""

from __future__ import annotations

from dataclasses import dataclass
import logging

from autoderiver.errors import InvalidDescriptionError
from autoderiver.phonology.position import Position
from autoderiver.phonology.repository import PositionStore

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 6


@dataclass(frozen=True)
class InlineMatch:
    """Position pinned by markup and the number of characters it occupies.

    ``consumed`` counts the characters after the annotated character, both
    parentheses included.
    """

    position: Position
    consumed: int


def parse_inline_position(text: str, index: int, store: PositionStore) -> InlineMatch | None:
    """Detect ``(description)`` immediately after ``text[index]``.

    The description may be at most :data:`MAX_DESCRIPTION_LENGTH` characters.
    A span that does not have this shape, or whose description does not parse
    or is not admissible, is plain text and yields ``None``.

    Args:
        text: Article text.
        index: Offset of the annotated character.
        store: Store used to parse and validate the description.

    Returns:
        The match, or ``None`` when nothing should be consumed.
    """

    open_index = index + 1
    if open_index >= len(text) or text[open_index] != "(":
        return None

    limit = open_index + 1 + MAX_DESCRIPTION_LENGTH
    close_index = open_index + 1
    while close_index < len(text) and close_index <= limit and text[close_index] != ")":
        close_index += 1
    if close_index >= len(text) or close_index > limit or text[close_index] != ")":
        return None

    description = text[open_index + 1 : close_index]
    try:
        parsed = store.parse_description(description)
    except InvalidDescriptionError:
        logger.debug("Treating '(%s)' after '%s' as plain text", description, text[index])
        return None

    position = store.strict_adapt(parsed)
    if position is None:
        logger.debug("Position '%s' after '%s' is not admissible", description, text[index])
        return None
    return InlineMatch(position=position, consumed=close_index - index)

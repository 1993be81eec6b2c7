"""Pre-annotated reference text: fetching and derivation."""

from __future__ import annotations

from functools import lru_cache
import logging
from pathlib import Path

import httpx

from autoderiver.engine.deriver import Deriver
from autoderiver.errors import FetchError, InvalidDescriptionError
from autoderiver.models import PresetLine, PresetParagraph, PresetSegment
from autoderiver.phonology.repository import PositionStore

logger = logging.getLogger(__name__)

DEFAULT_PRESET_SOURCE = (
    "https://cdn.jsdelivr.net/gh/nk2028/qieyun-text-label@qieyun-0.13/index.txt"
)


class PresetTextFetcher:
    """Retrieve the preset text once and keep it for the fetcher's lifetime.

    ``source`` is either an ``http(s)`` URL or a local file path. Failed
    fetches are not memoized, so a later call tries again.
    """

    def __init__(
        self,
        source: str = DEFAULT_PRESET_SOURCE,
        *,
        client: httpx.Client | None = None,
        timeout_s: float = 30.0,
    ) -> None:
        self.source = source
        self.timeout_s = timeout_s
        self._client = client
        self._text: str | None = None

    @property
    def is_remote(self) -> bool:
        return self.source.startswith(("http://", "https://"))

    def fetch(self) -> str:
        """Return the preset text, fetching it on first use.

        Raises:
            FetchError: If the text cannot be retrieved.
        """

        if self._text is None:
            self._text = self._fetch_remote() if self.is_remote else self._read_local()
        return self._text

    def _read_local(self) -> str:
        path = Path(self.source)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as err:
            raise FetchError(f"Failed to read preset text from {path}", source=self.source) from err
        logger.debug("Read preset text from %s (%d chars)", path, len(text))
        return text

    def _fetch_remote(self) -> str:
        try:
            if self._client is not None:
                response = self._client.get(self.source)
            else:
                with httpx.Client(timeout=self.timeout_s, follow_redirects=True) as client:
                    response = client.get(self.source)
            response.raise_for_status()
        except httpx.HTTPError as err:
            raise FetchError(f"Failed to fetch preset text from {self.source}", source=self.source) from err
        logger.info("Fetched preset text from %s (%d chars)", self.source, len(response.text))
        return response.text


@lru_cache(maxsize=None)
def default_fetcher(source: str = DEFAULT_PRESET_SOURCE) -> PresetTextFetcher:
    """Return the process-wide fetcher for ``source``."""

    return PresetTextFetcher(source)


def fetch_preset_text(source: str = DEFAULT_PRESET_SOURCE) -> str:
    """Fetch ``source`` through the process-wide fetcher."""

    return default_fetcher(source).fetch()


def _annotate_line(line: str, store: PositionStore, deriver: Deriver) -> PresetLine:
    segments: list[PresetSegment] = []
    plain: list[str] = []
    index = 0
    while index < len(line):
        if index + 1 < len(line) and line[index + 1] == "(":
            close_index = line.find(")", index + 2)
            if close_index == -1:
                raise InvalidDescriptionError(
                    f"Unterminated annotation after '{line[index]}'",
                    description=line[index + 2 :],
                )
            description = line[index + 2 : close_index]
            position = store.strict_adapt(store.parse_description(description))
            if position is None:
                raise InvalidDescriptionError(
                    f"Position '{description}' after '{line[index]}' does not occur",
                    description=description,
                )
            if plain:
                segments.append(PresetSegment(text="".join(plain)))
                plain = []
            segments.append(
                PresetSegment(
                    text=line[index],
                    position=position,
                    outputs=deriver.derive(position, line[index]),
                )
            )
            index = close_index + 1
            continue
        plain.append(line[index])
        index += 1
    if plain:
        segments.append(PresetSegment(text="".join(plain)))
    return PresetLine(segments=tuple(segments))


def annotate_preset_text(
    text: str, store: PositionStore, deriver: Deriver
) -> tuple[PresetParagraph, ...]:
    """Derive every ``字(描述)`` occurrence of a pre-annotated document.

    Paragraphs are separated by blank lines; the first line of each paragraph
    is its heading. Positions come from the markup, normalized the same way as
    dictionary rows and inline pins, without variant lookup or group selection.

    Args:
        text: Preset document.
        store: Store used to parse descriptions.
        deriver: Active derivation functions.

    Returns:
        Paragraphs in document order.

    Raises:
        InvalidDescriptionError: If any description is malformed or names a
            position that does not occur.
        DerivationError: If a derivation function fails.
    """

    normalized = text.replace("\r\n", "\n").strip("\n")
    if not normalized:
        return ()

    paragraphs: list[PresetParagraph] = []
    for block in normalized.split("\n\n"):
        lines = [_annotate_line(line, store, deriver) for line in block.split("\n")]
        paragraphs.append(PresetParagraph(heading=lines[0], body=tuple(lines[1:])))

    logger.debug("Annotated preset text with %d paragraphs", len(paragraphs))
    return tuple(paragraphs)

"""Unit tests for preset text annotation and fetching."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from autoderiver.engine.deriver import Deriver
from autoderiver.errors import FetchError, InvalidDescriptionError
from autoderiver.export.preset import (
    PresetTextFetcher,
    annotate_preset_text,
    default_fetcher,
)
from autoderiver.models import PresetSegment
from autoderiver.phonology.position import Position
from autoderiver.phonology.repository import PositionRepository

PRESET = "滕王閣序\n清風(幫三東平)生(生開三庚平)\n\n東(端一東平)方\r\n"


def test_paragraphs_split_on_blank_lines_with_heading_first(
    store: PositionRepository, describing_deriver: Deriver
) -> None:
    """Preset text should split into paragraphs whose first line is the heading."""

    paragraphs = annotate_preset_text(PRESET, store, describing_deriver)

    assert len(paragraphs) == 2
    first, second = paragraphs
    assert first.heading.segments == (PresetSegment(text="滕王閣序"),)
    (line,) = first.body
    assert line.segments == (
        PresetSegment(text="清"),
        PresetSegment(
            text="風",
            position=Position.from_description("幫三東平"),
            outputs=("幫三東平",),
        ),
        PresetSegment(
            text="生",
            position=Position.from_description("生開三庚平"),
            outputs=("生開三庚平",),
        ),
    )
    assert second.body == ()
    assert [segment.is_annotated for segment in second.heading.segments] == [True, False]


def test_preset_headword_is_the_annotated_character(store: PositionRepository) -> None:
    """The annotated character should be passed as headword."""

    headword_deriver = Deriver(functions=(lambda position, headword: headword,))

    (paragraph,) = annotate_preset_text("籟(來開一泰去)", store, headword_deriver)

    assert paragraph.heading.segments[0].outputs == ("籟",)


def test_preset_positions_are_normalized(
    store: PositionRepository, describing_deriver: Deriver
) -> None:
    """Preset markup should reach schemes in the same form as dictionary rows."""

    (paragraph,) = annotate_preset_text("風(幫開三東平)", store, describing_deriver)

    (segment,) = paragraph.heading.segments
    assert segment.position == Position.from_description("幫三東平")
    assert segment.outputs == ("幫三東平",)


def test_empty_preset_has_no_paragraphs(
    store: PositionRepository, describing_deriver: Deriver
) -> None:
    assert annotate_preset_text("", store, describing_deriver) == ()
    assert annotate_preset_text("\n\n", store, describing_deriver) == ()


@pytest.mark.parametrize("text", ["風(幫三)", "風(幫三東平", "歌(見開一歌入)"])
def test_bad_description_in_preset_is_fatal(
    text: str, store: PositionRepository, describing_deriver: Deriver
) -> None:
    """Bad markup in preset text should abort the run."""

    with pytest.raises(InvalidDescriptionError):
        annotate_preset_text(text, store, describing_deriver)


def _client(calls: list[str], status_code: int = 200) -> httpx.Client:
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(status_code, text="東(端一東平)")

    return httpx.Client(transport=httpx.MockTransport(handler))


def test_fetch_is_memoized_per_fetcher() -> None:
    """A fetcher should download its source only once."""

    calls: list[str] = []
    fetcher = PresetTextFetcher("https://example.test/index.txt", client=_client(calls))

    assert fetcher.fetch() == "東(端一東平)"
    assert fetcher.fetch() == "東(端一東平)"
    assert calls == ["https://example.test/index.txt"]


def test_failed_fetch_is_not_memoized() -> None:
    """A failed fetch should be retried on the next call."""

    calls: list[str] = []
    fetcher = PresetTextFetcher("https://example.test/index.txt", client=_client(calls, 503))

    with pytest.raises(FetchError) as exc_info:
        fetcher.fetch()
    with pytest.raises(FetchError):
        fetcher.fetch()

    assert len(calls) == 2
    assert exc_info.value.source == "https://example.test/index.txt"
    assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)


def test_transport_error_becomes_fetch_error() -> None:
    """Transport failures should surface as FetchError."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    fetcher = PresetTextFetcher("https://example.test/index.txt", client=client)

    with pytest.raises(FetchError):
        fetcher.fetch()


def test_local_source_is_read_from_disk(tmp_path: Path) -> None:
    """Local paths should be read from disk instead of fetched."""

    path = tmp_path / "index.txt"
    path.write_text("風(幫三東平)", encoding="utf-8")

    fetcher = PresetTextFetcher(str(path))

    assert not fetcher.is_remote
    assert fetcher.fetch() == "風(幫三東平)"
    with pytest.raises(FetchError):
        PresetTextFetcher(str(tmp_path / "missing.txt")).fetch()


def test_default_fetcher_is_shared_per_source() -> None:
    """The process-wide fetcher should be shared per source."""

    assert default_fetcher("https://example.test/a.txt") is default_fetcher("https://example.test/a.txt")
    assert default_fetcher("https://example.test/a.txt") is not default_fetcher(
        "https://example.test/b.txt"
    )

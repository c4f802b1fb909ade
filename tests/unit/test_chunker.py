"""Unit tests for the HtmlChunker: byte-bounded, boundary-snapping HTML chunking."""

from __future__ import annotations

import pytest

from cardshow_scout.services.chunker import HtmlChunker


def _row(i: int) -> str:
    return f"<tr><td>Show {i}</td><td>July {i % 28 + 1}</td></tr>\n"


class TestChunkSizes:
    def test_empty_input(self) -> None:
        assert HtmlChunker().chunk("") == []
        assert HtmlChunker().chunk("   \n ") == []

    def test_small_page_is_one_chunk(self) -> None:
        html = "<ul><li>Indy Card Expo - July 15</li></ul>"
        assert HtmlChunker().chunk(html) == [html]

    def test_chunks_are_bounded_and_ordered(self) -> None:
        html = "a" * 40_000
        chunks = HtmlChunker(max_chunk_bytes=15_000, max_chunks=5).chunk(html)

        assert len(chunks) == 3
        assert all(len(c.encode("utf-8")) <= 15_000 for c in chunks)
        assert "".join(chunks) == html

    def test_at_most_max_chunks(self) -> None:
        html = "a" * 100_000
        chunks = HtmlChunker(max_chunk_bytes=15_000, max_chunks=5).chunk(html)

        assert len(chunks) == 5
        assert sum(len(c) for c in chunks) == 75_000

    def test_bytes_input(self) -> None:
        assert HtmlChunker().chunk(b"<p>Show</p>") == ["<p>Show</p>"]

    @pytest.mark.parametrize(("size", "count"), [(0, 5), (100, 0), (-1, -1)])
    def test_invalid_configuration(self, size: int, count: int) -> None:
        with pytest.raises(ValueError):
            HtmlChunker(max_chunk_bytes=size, max_chunks=count)


class TestBoundaries:
    def test_cuts_snap_to_tag_or_newline(self) -> None:
        html = "<table>" + "".join(_row(i) for i in range(2_000)) + "</table>"
        chunks = HtmlChunker(max_chunk_bytes=5_000, max_chunks=5).chunk(html)

        assert len(chunks) == 5
        for chunk in chunks:
            assert len(chunk.encode("utf-8")) <= 5_000
            assert chunk.endswith((">", "\n"))

    def test_never_splits_multibyte_characters(self) -> None:
        html = "é" * 10_000  # 2 bytes each
        chunks = HtmlChunker(max_chunk_bytes=15_001, max_chunks=5).chunk(html)

        assert "".join(chunks) == html
        assert all(len(c.encode("utf-8")) <= 15_001 for c in chunks)

    def test_chunk_order_follows_document(self) -> None:
        html = "".join(_row(i) for i in range(600))
        chunks = HtmlChunker(max_chunk_bytes=4_000, max_chunks=10).chunk(html)

        assert "Show 0<" in chunks[0]
        assert "Show 599<" in chunks[-1]
        assert "".join(chunks) == html

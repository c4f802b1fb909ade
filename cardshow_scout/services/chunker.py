"""Byte-bounded HTML chunking for the extraction endpoint.

The extraction endpoint has a size and latency budget per request, so a
page is cut into at most ``max_chunks`` consecutive chunks of at most
``max_chunk_bytes`` UTF-8 bytes each.  Anything past
``max_chunks * max_chunk_bytes`` is not scanned.

Boundaries are byte offsets.  Within the last stretch of each window the
cut is moved back to just after a closing tag or newline when one exists,
which keeps most listing rows intact, but no semantic split is guaranteed.
A cut never lands inside a multi-byte UTF-8 sequence.  Chunk order is the
document order, so chunk indices give the approximate source position of
every candidate.
"""

from __future__ import annotations

import structlog

logger = structlog.get_logger(logger_name=__name__)

# Fraction of a window searched backwards for a tag/newline boundary.
_SNAP_FRACTION = 0.1


def _utf8_safe_cut(data: bytes, cut: int) -> int:
    """Move *cut* back so it does not fall inside a multi-byte sequence."""
    while 0 < cut < len(data) and (data[cut] & 0xC0) == 0x80:
        cut -= 1
    return cut


class HtmlChunker:
    """Split HTML into ordered, size-bounded chunks."""

    def __init__(self, max_chunk_bytes: int = 15000, max_chunks: int = 5) -> None:
        if max_chunk_bytes <= 0 or max_chunks <= 0:
            raise ValueError("max_chunk_bytes and max_chunks must be positive")
        self._max_chunk_bytes = max_chunk_bytes
        self._max_chunks = max_chunks

    def chunk(self, html: str | bytes) -> list[str]:
        """Return up to ``max_chunks`` chunks of at most ``max_chunk_bytes`` bytes."""
        data = html.encode("utf-8") if isinstance(html, str) else html
        if not data.strip():
            return []

        chunks: list[str] = []
        offset = 0
        snap_window = max(1, int(self._max_chunk_bytes * _SNAP_FRACTION))

        while offset < len(data) and len(chunks) < self._max_chunks:
            end = min(offset + self._max_chunk_bytes, len(data))
            if end < len(data):
                snap = self._find_boundary(data, end - snap_window, end)
                if snap > offset:
                    end = snap
                end = _utf8_safe_cut(data, end)
                if end <= offset:
                    # A window smaller than one character; take the character whole.
                    end = min(offset + self._max_chunk_bytes, len(data))
            piece = data[offset:end].decode("utf-8", errors="ignore")
            if piece.strip():
                chunks.append(piece)
            offset = end

        if offset < len(data):
            logger.info(
                "html_truncated",
                total_bytes=len(data),
                scanned_bytes=offset,
                max_chunks=self._max_chunks,
            )
        return chunks

    @staticmethod
    def _find_boundary(data: bytes, start: int, end: int) -> int:
        """Return the offset just after the last ``>`` or newline in
        ``data[start:end]``, or ``-1`` when there is none."""
        start = max(start, 0)
        position = max(data.rfind(b">", start, end), data.rfind(b"\n", start, end))
        return position + 1 if position != -1 else -1

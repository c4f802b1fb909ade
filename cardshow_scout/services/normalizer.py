"""Candidate normalization: the boundary between LLM output and typed data.

Every :class:`RawCandidate` passes through :meth:`ShowNormalizer.normalize`,
which either returns a validated :class:`NormalizedShow` or a
:class:`NormalizationDrop` naming why the candidate was discarded.  Drops
are ordinary values, not errors.

Drop reasons:
    missing_name      no usable name after cleanup
    missing_date      no start date at all
    unparseable_date  start date text that no supported format matches
    past_date         start date strictly before today
"""

from __future__ import annotations

from datetime import date

from cardshow_scout.models.show import NormalizationDrop, NormalizedShow, RawCandidate
from cardshow_scout.utils.logging import get_logger
from cardshow_scout.utils.text_normalizer import (
    clean_text,
    normalize_state,
    parse_date_range,
    parse_entry_fee,
)

logger = get_logger(__name__)


class ShowNormalizer:
    """Pure per-candidate transform; holds no state between calls."""

    def normalize(
        self, candidate: RawCandidate, today: date
    ) -> NormalizedShow | NormalizationDrop:
        fields = candidate.fields

        name = clean_text(fields.name)
        if not name:
            return self._drop(candidate, "missing_name")

        start_text = clean_text(fields.start_date)
        if not start_text:
            return self._drop(candidate, "missing_date", name=name)

        parsed = parse_date_range(start_text, today)
        if parsed is None:
            return self._drop(candidate, "unparseable_date", name=name, detail=start_text)
        start_date, end_date = parsed

        end_text = clean_text(fields.end_date)
        if end_text:
            # A yearless end date belongs to the same or a later year than the start.
            end_parsed = parse_date_range(end_text, start_date)
            if end_parsed is not None:
                end_date = end_parsed[1]
        if end_date < start_date:
            end_date = start_date

        if start_date < today:
            return self._drop(
                candidate, "past_date", name=name, detail=start_date.isoformat()
            )

        fee_text = clean_text(fields.entry_fee)
        return NormalizedShow(
            name=name,
            start_date=start_date,
            end_date=end_date,
            venue_name=clean_text(fields.venue_name),
            address=clean_text(fields.address),
            city=clean_text(fields.city),
            state=normalize_state(clean_text(fields.state)),
            entry_fee=parse_entry_fee(fee_text),
            entry_fee_text=fee_text,
            description=clean_text(fields.description),
            url=fields.url.strip() if fields.url and fields.url.strip() else None,
            contact_info=clean_text(fields.contact_info),
        )

    @staticmethod
    def _drop(
        candidate: RawCandidate,
        reason: str,
        name: str | None = None,
        detail: str = "",
    ) -> NormalizationDrop:
        logger.info(
            "candidate_dropped",
            reason=reason,
            source_url=candidate.source_url,
            chunk_index=candidate.chunk_index,
            name=name,
            detail=detail,
        )
        return NormalizationDrop(
            reason=reason,
            source_url=candidate.source_url,
            chunk_index=candidate.chunk_index,
            name=name,
            detail=detail,
        )

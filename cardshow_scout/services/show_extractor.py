"""LLM-based card show extraction from HTML chunks.

Sends one HTML chunk at a time to an LLM provider together with a strict
instruction prompt and parses the response into :class:`RawCandidate`
records.

Architecture: LLM-as-Parser with Response Repair
------------------------------------------------
Listing pages are wildly inconsistent (calendars, tables, forum posts), so
parsing is delegated to an LLM.  Its output is untrusted:

  - **Fence stripping** -- models wrap JSON in ```json fences despite being
    told not to.
  - **Bracket repair** -- prose before or after the array is cut away by
    keeping the substring between the first ``[`` and the last ``]``.
  - **Transient retries** -- a timeout or API error is retried up to
    ``max_retries`` times for that chunk only.  A malformed response is
    not retried; the chunk contributes zero candidates.

Failures never escape :meth:`ShowExtractor.extract_chunk`; they are reported
in the returned :class:`ChunkExtraction` so the pipeline can carry on with
the remaining chunks.
"""

from __future__ import annotations

import asyncio
import json
import re
from datetime import date
from typing import Any

from pydantic import ValidationError

from cardshow_scout.interfaces.llm_provider import ILLMProvider
from cardshow_scout.models.pipeline import ChunkExtraction
from cardshow_scout.models.show import RawCandidate, RawShowFields
from cardshow_scout.utils.errors import ExtractionError, LLMError
from cardshow_scout.utils.logging import get_logger
from cardshow_scout.utils.text_normalizer import parse_date_range

# Matches markdown code fences (```json ... ``` or ``` ... ```) that LLMs
# frequently wrap around JSON output despite being asked not to.
_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)

# Keys some models use to wrap the array in an object.
_WRAPPER_KEYS = ("shows", "events", "results", "data")


class ShowExtractor:
    """Extracts raw card show candidates from HTML chunks using an LLM."""

    def __init__(
        self,
        llm_provider: ILLMProvider,
        timeout_s: float = 15.0,
        max_retries: int = 1,
        retry_backoff_s: float = 1.0,
    ) -> None:
        self._llm = llm_provider
        self._timeout_s = timeout_s
        self._max_retries = max_retries
        self._retry_backoff_s = retry_backoff_s
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def extract_chunk(
        self,
        chunk: str,
        chunk_index: int,
        source_url: str,
        today: date,
    ) -> ChunkExtraction:
        """Extract candidates from one chunk.  Never raises.

        Parameters
        ----------
        chunk:
            HTML fragment produced by the chunker.
        chunk_index:
            Position of the chunk within the page.
        source_url:
            URL of the page, used in the prompt and as the default ``url``.
        today:
            The current date; events that started before it are discarded.
        """
        provider_name = self._llm.get_provider_name()
        log = self._logger.bind(source_url=source_url, chunk_index=chunk_index)

        try:
            response = await self._complete_with_retries(chunk, source_url, today, log)
            items = self._parse_llm_response(response)
        except (LLMError, ExtractionError) as exc:
            log.warning("chunk_extraction_failed", error=str(exc), provider=provider_name)
            return ChunkExtraction(chunk_index=chunk_index, failed=True, error=str(exc))

        candidates: list[RawCandidate] = []
        past_dropped = 0
        for item in items:
            fields = self._build_fields(item, source_url)
            if fields is None:
                continue
            if self._starts_before(fields, today):
                past_dropped += 1
                log.info("past_candidate_dropped", name=fields.name, start_date=fields.start_date)
                continue
            candidates.append(
                RawCandidate(source_url=source_url, chunk_index=chunk_index, fields=fields)
            )

        log.info(
            "chunk_extracted",
            candidates=len(candidates),
            past_dropped=past_dropped,
            provider=provider_name,
        )
        return ChunkExtraction(
            chunk_index=chunk_index,
            candidates=candidates,
            past_dropped=past_dropped,
        )

    # ------------------------------------------------------------------
    # LLM call
    # ------------------------------------------------------------------

    async def _complete_with_retries(
        self, chunk: str, source_url: str, today: date, log: Any
    ) -> str:
        prompt = self._build_extraction_prompt(chunk, source_url, today)
        attempt = 0
        while True:
            attempt += 1
            try:
                return await asyncio.wait_for(
                    self._llm.complete(
                        system_prompt=self._system_prompt(),
                        user_prompt=prompt,
                        temperature=0.0,
                        max_tokens=4000,
                    ),
                    timeout=self._timeout_s,
                )
            except asyncio.TimeoutError as exc:
                if attempt > self._max_retries:
                    raise LLMError(
                        message=f"Extraction timed out after {self._timeout_s:g}s",
                        provider_name=self._llm.get_provider_name(),
                    ) from exc
                error = "timeout"
            except LLMError as exc:
                if attempt > self._max_retries:
                    raise
                error = str(exc)

            log.info("chunk_extraction_retry", attempt=attempt, error=error)
            if self._retry_backoff_s:
                await asyncio.sleep(self._retry_backoff_s * attempt)

    # ------------------------------------------------------------------
    # Prompt construction
    # ------------------------------------------------------------------

    @staticmethod
    def _system_prompt() -> str:
        return (
            "You are a specialized card show event extractor.  You read HTML "
            "from sports and trading card show calendars and return the events "
            "as a JSON array."
        )

    @staticmethod
    def _build_extraction_prompt(chunk: str, source_url: str, today: date) -> str:
        """Build the extraction prompt for one chunk."""
        return (
            f"TODAY = {today.isoformat()}\n"
            f"SOURCE URL = {source_url}\n"
            "\n"
            "Extract every trading card show event from the HTML below.\n"
            "\n"
            "Each event object MUST have these keys (use null if missing):\n"
            "{\n"
            '  "name": "Full event name/title",\n'
            '  "startDate": "Start date as written on the page",\n'
            '  "endDate": "End date for multi-day events, otherwise null",\n'
            '  "venueName": "Name of the venue only, not the street address",\n'
            '  "address": "Street address only",\n'
            '  "city": "City name",\n'
            '  "state": "Two-letter state code",\n'
            '  "entryFee": "Entry fee as a number or text",\n'
            '  "description": "Short description if available",\n'
            '  "url": "Direct link to the event, otherwise the source URL",\n'
            '  "contactInfo": "Promoter or contact information"\n'
            "}\n"
            "\n"
            "RULES:\n"
            "1. Only extract actual card show events.  Ignore reviews, comments, "
            "ads and unrelated content.\n"
            "2. Do NOT include any event whose date is before TODAY.\n"
            "3. If an event's date is ambiguous or missing, leave the event out "
            "rather than guess.\n"
            '4. Strip state codes from dates: "Aug 2 AL" becomes "Aug 2".\n'
            '5. A range like "January 5-6, 2025" is ONE event with startDate and '
            "endDate set.\n"
            "6. A show repeated on several dates is one object per date.\n"
            "7. Keep the venue name and the street address in separate fields.\n"
            "8. Output ONLY the JSON array.  No explanations, no markdown.\n"
            "\n"
            "HTML:\n"
            f"{chunk}"
        )

    # ------------------------------------------------------------------
    # Response parsing
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_llm_response(response: str) -> list[dict[str, Any]]:
        """Extract the JSON array of event objects from an LLM response.

        Raises
        ------
        ExtractionError
            If no JSON array can be recovered.
        """
        text = response.strip()

        # --- Strategy 1: Strip markdown code fences ---
        fence_match = _JSON_FENCE_RE.search(text)
        if fence_match:
            text = fence_match.group(1).strip()

        # --- Strategy 2: Bracket extraction ---
        # Prose around the array ("Here are the shows: [...] Hope this helps")
        # is dropped by keeping the outermost bracket pair.
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as exc:
            bracket_start = text.find("[")
            bracket_end = text.rfind("]")
            if bracket_start == -1 or bracket_end <= bracket_start:
                raise ExtractionError(message=f"Unparseable LLM response: {exc}") from exc
            try:
                parsed = json.loads(text[bracket_start : bracket_end + 1])
            except json.JSONDecodeError as inner:
                raise ExtractionError(
                    message=f"Unparseable LLM response: {inner}"
                ) from inner

        if isinstance(parsed, dict):
            for key in _WRAPPER_KEYS:
                if isinstance(parsed.get(key), list):
                    parsed = parsed[key]
                    break
            else:
                parsed = [parsed]

        if not isinstance(parsed, list):
            raise ExtractionError(message="LLM response is not a JSON array")

        return [item for item in parsed if isinstance(item, dict)]

    @staticmethod
    def _build_fields(item: dict[str, Any], source_url: str) -> RawShowFields | None:
        try:
            fields = RawShowFields.model_validate(item)
        except ValidationError:
            return None
        if not fields.url:
            fields = fields.model_copy(update={"url": source_url})
        return fields

    @staticmethod
    def _starts_before(fields: RawShowFields, today: date) -> bool:
        """Return ``True`` when the candidate's start date already passed.

        Unparseable dates are left for the normalizer to drop.
        """
        parsed = parse_date_range(fields.start_date, today)
        return parsed is not None and parsed[0] < today

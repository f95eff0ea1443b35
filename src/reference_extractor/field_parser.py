"""Turn raw field-code strings into citation entries."""
from __future__ import annotations

import json
import logging
import re
from typing import Iterable, List, Mapping, Optional, Tuple

from .config import CITATION_PREFIXES
from .errors import ErrorCode, FieldParseError
from .models import CitationEntry, RawField

logger = logging.getLogger(__name__)


class CitationFieldParser:
    """Parse CSL citation field codes written by Mendeley and Zotero."""

    # Zotero appends a random token after the JSON payload.
    TRAILING_TOKEN_PATTERN = re.compile(r"^(\{.*\})\s+[0-9A-Za-z]+$", re.DOTALL)

    def __init__(self, prefixes: Tuple[str, ...] = CITATION_PREFIXES):
        self.prefixes = tuple(sorted(prefixes, key=len, reverse=True))

    def match_prefix(self, text: str) -> Optional[str]:
        for prefix in self.prefixes:
            if text.startswith(prefix):
                return prefix
        return None

    def extract_payload(self, text: str) -> Optional[str]:
        """Return the JSON part of a field code, or ``None`` when it is not a citation."""

        stripped = text.strip()
        prefix = self.match_prefix(stripped)
        if prefix is None:
            return None
        payload = stripped[len(prefix):].strip()
        match = self.TRAILING_TOKEN_PATTERN.match(payload)
        if match:
            payload = match.group(1)
        return payload

    def parse_field(self, raw_field: RawField) -> List[CitationEntry]:
        payload = self.extract_payload(raw_field.text)
        if payload is None:
            logger.debug("Field %d is not a citation field, skipping", raw_field.order)
            return []

        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise FieldParseError(
                f"Invalid citation JSON in field {raw_field.order}",
                code=ErrorCode.INVALID_JSON_FORMAT,
                context={"field_index": raw_field.order},
                cause=exc,
            ) from exc

        if not isinstance(data, Mapping) or not isinstance(data.get("citationItems"), list):
            raise FieldParseError(
                f"Field {raw_field.order} has no citationItems list",
                code=ErrorCode.INVALID_JSON_FORMAT,
                context={"field_index": raw_field.order},
            )

        entries: List[CitationEntry] = []
        for item_index, item in enumerate(data["citationItems"]):
            if not isinstance(item, Mapping):
                logger.debug("Skipping non-object citation item %d in field %d", item_index, raw_field.order)
                continue
            uris = item.get("uris")
            item_data = item.get("itemData")
            entries.append(
                CitationEntry(
                    uris=tuple(uri for uri in uris if isinstance(uri, str)) if isinstance(uris, list) else (),
                    item_data=item_data if isinstance(item_data, Mapping) else None,
                    field_index=raw_field.order,
                    item_index=item_index,
                    file_index=raw_field.file_index,
                    item=item,
                )
            )
        return entries

    def parse_fields(
        self,
        fields: Iterable[RawField],
        failures: Optional[List[FieldParseError]] = None,
    ) -> List[CitationEntry]:
        """Parse every field, collecting per-field failures instead of raising them."""

        entries: List[CitationEntry] = []
        parsed = 0
        for raw_field in fields:
            try:
                field_entries = self.parse_field(raw_field)
            except FieldParseError as exc:
                logger.warning("Skipping field %d: %s", raw_field.order, exc)
                if failures is not None:
                    failures.append(exc)
                continue
            if field_entries:
                parsed += 1
            entries.extend(field_entries)
        logger.info("Parsed %d citation entries from %d citation fields", len(entries), parsed)
        return entries


__all__ = ["CitationFieldParser"]

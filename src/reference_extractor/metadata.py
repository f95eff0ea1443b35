"""Select the canonical records that carry usable metadata."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Tuple

from .models import CslRecord, DeduplicationCluster

logger = logging.getLogger(__name__)

REQUIRED_FIELDS: Tuple[str, ...] = ("title",)


def is_valid_metadata(record: Any) -> bool:
    if not isinstance(record, Mapping):
        return False
    return any(str(record.get(name) or "").strip() for name in REQUIRED_FIELDS)


@dataclass
class ProjectionResult:
    citations: List[CslRecord] = field(default_factory=list)
    cites_without_metadata: int = 0


class MetadataProjector:
    """Keep clusters whose canonical record has a title; count the rest."""

    def project(self, clusters: Iterable[DeduplicationCluster]) -> ProjectionResult:
        result = ProjectionResult()
        for position, cluster in enumerate(clusters, start=1):
            record = cluster.canonical_record
            if record is None:
                logger.debug("Citation %d has no itemData", position)
                result.cites_without_metadata += 1
            elif not is_valid_metadata(record):
                logger.warning("Citation %d has incomplete metadata", position)
                result.cites_without_metadata += 1
            else:
                result.citations.append(record)

        logger.info(
            "Metadata extraction completed: %d with metadata, %d without",
            len(result.citations),
            result.cites_without_metadata,
        )
        return result


__all__ = ["MetadataProjector", "ProjectionResult", "is_valid_metadata"]

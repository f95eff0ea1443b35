"""Cluster citation entries that point at the same source."""
from __future__ import annotations

import copy
import logging
import re
from typing import Dict, List, Optional, Sequence, Set

from .errors import DeduplicationError
from .models import CitationEntry, CslRecord, DeduplicationCluster

logger = logging.getLogger(__name__)

TIMES_CITED_PATTERN = re.compile(r"^Times cited: \d+(?:\n|$)", re.MULTILINE)


def annotate_count(record: CslRecord, count: int) -> CslRecord:
    """Prefix the record's note with ``Times cited: N``, replacing any earlier count."""

    note = TIMES_CITED_PATTERN.sub("", str(record.get("note") or ""))
    count_info = f"Times cited: {count}"
    record["note"] = f"{count_info}\n{note}" if note else count_info
    return record


class _IdentifierSets:
    """Union-find over identifiers, remembering first-seen order per component."""

    def __init__(self) -> None:
        self.parent: Dict[str, str] = {}
        self.order: Dict[str, int] = {}

    def add(self, identifier: str) -> None:
        if identifier not in self.parent:
            self.parent[identifier] = identifier
            self.order[identifier] = len(self.order)

    def find(self, identifier: str) -> str:
        root = identifier
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[identifier] != root:
            self.parent[identifier], identifier = root, self.parent[identifier]
        return root

    def union(self, left: str, right: str) -> None:
        left_root, right_root = self.find(left), self.find(right)
        if left_root == right_root:
            return
        # The earliest identifier stays the root.
        if self.order[right_root] < self.order[left_root]:
            left_root, right_root = right_root, left_root
        self.parent[right_root] = left_root

    def components(self) -> Dict[str, List[str]]:
        grouped: Dict[str, List[str]] = {}
        for identifier in sorted(self.parent, key=self.order.__getitem__):
            grouped.setdefault(self.find(identifier), []).append(identifier)
        return grouped


class DeduplicationEngine:
    """Merge entries sharing an identifier, directly or through other entries."""

    def deduplicate(self, entries: Sequence[CitationEntry]) -> List[DeduplicationCluster]:
        if not entries:
            logger.info("No citations to deduplicate")
            return []

        try:
            clusters = self._cluster(entries)
        except DeduplicationError:
            raise
        except Exception as exc:
            raise DeduplicationError(
                "Citation deduplication failed",
                context={"citation_count": len(entries)},
                cause=exc,
            ) from exc

        total = sum(cluster.occurrence_count for cluster in clusters)
        if total != len(entries):
            raise DeduplicationError(
                "Cluster counts do not add up to the number of citations",
                context={"citation_count": len(entries), "clustered": total},
            )

        logger.info(
            "Deduplication completed: %d citations, %d clusters, %d duplicates removed",
            len(entries),
            len(clusters),
            len(entries) - len(clusters),
        )
        return clusters

    def expand_identifiers(self, entries: Sequence[CitationEntry]) -> List[List[str]]:
        """Give every entry the identifiers of everything it is transitively linked to.

        Each list starts with the entry's own identifiers, followed by the rest
        of its component in first-seen order.
        """

        sets = _IdentifierSets()
        for entry in entries:
            for uri in entry.uris:
                sets.add(uri)
            for uri in entry.uris[1:]:
                sets.union(entry.uris[0], uri)

        components = sets.components()
        expanded: List[List[str]] = []
        for entry in entries:
            own = list(dict.fromkeys(entry.uris))
            if not own:
                expanded.append([])
                continue
            seen = set(own)
            rest = [uri for uri in components[sets.find(own[0])] if uri not in seen]
            expanded.append(own + rest)
        return expanded

    def _cluster(self, entries: Sequence[CitationEntry]) -> List[DeduplicationCluster]:
        identifiers = self.expand_identifiers(entries)

        holders: Dict[str, List[int]] = {}
        for index, uris in enumerate(identifiers):
            for uri in uris:
                holders.setdefault(uri, []).append(index)

        absorbed: Set[int] = set()
        clusters: List[DeduplicationCluster] = []
        for index, entry in enumerate(entries):
            if index in absorbed:
                continue
            uris = identifiers[index]
            if not uris:
                members = [index]
            else:
                members = [other for other in holders[uris[0]] if other not in absorbed]
            absorbed.update(member for member in members if member > index)

            clusters.append(
                DeduplicationCluster(
                    canonical_record=self._canonical_record(entries, members),
                    occurrence_count=len(members),
                    member_indices=tuple(members),
                    identifiers=tuple(uris),
                )
            )
        return clusters

    @staticmethod
    def _canonical_record(
        entries: Sequence[CitationEntry], members: Sequence[int]
    ) -> Optional[CslRecord]:
        for member in members:
            item_data = entries[member].item_data
            if item_data is not None:
                return annotate_count(copy.deepcopy(dict(item_data)), len(members))
        return None


__all__ = ["DeduplicationEngine", "TIMES_CITED_PATTERN", "annotate_count"]

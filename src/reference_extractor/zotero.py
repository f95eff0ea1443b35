"""Build zotero://select links for the libraries a document cites from."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .config import (
    ZOTERO_LOCAL_URI_PREFIX,
    ZOTERO_SELECTION_PREFIX,
    ZOTERO_URI_PREFIX,
    ZOTERO_WEB_URI_PREFIX,
)
from .models import DeduplicationCluster, ZoteroLibrary

logger = logging.getLogger(__name__)

LIBRARY_TYPES = ("users", "groups")


@dataclass(frozen=True)
class ZoteroItemRef:
    uri: str
    normalized_uri: str
    library_type: str
    library_id: str
    item_key: str

    @property
    def library_url(self) -> str:
        return f"https://www.zotero.org/{self.library_type}/{self.library_id}"


def is_zotero_uri(uri: object) -> bool:
    return isinstance(uri, str) and ZOTERO_URI_PREFIX in uri


def parse_zotero_uri(uri: str) -> Optional[ZoteroItemRef]:
    """Parse ``http://zotero.org/{users|groups}/{id}/items/{key}``; ``None`` if malformed."""

    if not is_zotero_uri(uri):
        return None
    normalized = uri.replace(ZOTERO_LOCAL_URI_PREFIX, ZOTERO_WEB_URI_PREFIX, 1)
    parts = normalized.split("/")
    if len(parts) != 7:
        logger.warning("Invalid Zotero URI format: %s (%d parts)", uri, len(parts))
        return None
    protocol, _, domain, library_type, library_id, keyword, item_key = parts
    if protocol != "http:" or domain != "zotero.org" or keyword != "items":
        logger.warning("Invalid Zotero URI structure: %s", uri)
        return None
    if library_type not in LIBRARY_TYPES:
        logger.warning("Invalid Zotero library type %r in %s", library_type, uri)
        return None
    if not library_id or not item_key:
        logger.warning("Zotero URI is missing a library id or item key: %s", uri)
        return None
    return ZoteroItemRef(
        uri=uri,
        normalized_uri=normalized,
        library_type=library_type,
        library_id=library_id,
        item_key=item_key,
    )


def collect_zotero_uris(clusters: Iterable[DeduplicationCluster]) -> List[str]:
    uris: List[str] = []
    for cluster in clusters:
        uris.extend(uri for uri in cluster.identifiers if is_zotero_uri(uri))
    logger.debug("Found %d Zotero item URIs", len(uris))
    return uris


def selection_string(library_type: str, library_id: str, item_keys: Iterable[str]) -> str:
    keys = ",".join(item_keys)
    if library_type == "users":
        return f"{ZOTERO_SELECTION_PREFIX}library/items?itemKey={keys}"
    return f"{ZOTERO_SELECTION_PREFIX}groups/{library_id}/items?itemKey={keys}"


def build_library_selectors(uris: Iterable[str]) -> Dict[str, ZoteroLibrary]:
    """Group item keys per library and attach a ``zotero://select`` string to each."""

    grouped: Dict[str, List[str]] = {}
    refs: Dict[str, ZoteroItemRef] = {}
    for uri in uris:
        ref = parse_zotero_uri(uri)
        if ref is None:
            continue
        keys = grouped.setdefault(ref.library_url, [])
        refs.setdefault(ref.library_url, ref)
        if ref.item_key not in keys:
            keys.append(ref.item_key)

    libraries: Dict[str, ZoteroLibrary] = {}
    for library_url, keys in grouped.items():
        ref = refs[library_url]
        libraries[library_url] = ZoteroLibrary(
            library_url=library_url,
            library_type=ref.library_type,
            library_id=ref.library_id,
            items=tuple(keys),
            selection_string=selection_string(ref.library_type, ref.library_id, keys),
        )
    logger.info("Generated Zotero selectors for %d libraries", len(libraries))
    return libraries


__all__ = [
    "ZoteroItemRef",
    "build_library_selectors",
    "collect_zotero_uris",
    "is_zotero_uri",
    "parse_zotero_uri",
    "selection_string",
]

from reference_extractor.models import DeduplicationCluster
from reference_extractor.zotero import (
    build_library_selectors,
    collect_zotero_uris,
    parse_zotero_uri,
)


def test_local_user_uri_is_normalized():
    ref = parse_zotero_uri("http://zotero.org/users/local/AbC123/items/ITEM1")

    assert ref is not None
    assert ref.normalized_uri == "http://zotero.org/users/AbC123/items/ITEM1"
    assert ref.library_type == "users"
    assert ref.library_id == "AbC123"
    assert ref.item_key == "ITEM1"
    assert ref.library_url == "https://www.zotero.org/users/AbC123"


def test_malformed_uris_are_skipped(caplog):
    assert parse_zotero_uri("http://zotero.org/users/1/collections/X") is None
    assert parse_zotero_uri("http://zotero.org/teams/1/items/X") is None
    assert parse_zotero_uri("http://zotero.org/users/1/items") is None
    assert parse_zotero_uri("https://mendeley.com/documents/?uuid=1") is None
    assert "Invalid Zotero" in caplog.text


def test_selectors_group_items_per_library():
    libraries = build_library_selectors(
        [
            "http://zotero.org/users/7/items/A",
            "http://zotero.org/users/7/items/B",
            "http://zotero.org/users/7/items/A",
            "http://zotero.org/groups/99/items/C",
            "not-a-zotero-uri",
        ]
    )

    user = libraries["https://www.zotero.org/users/7"]
    group = libraries["https://www.zotero.org/groups/99"]
    assert user.items == ("A", "B")
    assert user.selection_string == "zotero://select/library/items?itemKey=A,B"
    assert group.selection_string == "zotero://select/groups/99/items?itemKey=C"


def test_uris_are_collected_from_clusters():
    clusters = [
        DeduplicationCluster(
            canonical_record={"title": "X"},
            occurrence_count=2,
            member_indices=(0, 1),
            identifiers=("http://zotero.org/users/1/items/A", "http://www.mendeley.com/documents/?uuid=1"),
        ),
        DeduplicationCluster(canonical_record=None, occurrence_count=1, member_indices=(2,)),
    ]

    assert collect_zotero_uris(clusters) == ["http://zotero.org/users/1/items/A"]

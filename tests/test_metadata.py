from reference_extractor.metadata import MetadataProjector, is_valid_metadata
from reference_extractor.models import DeduplicationCluster


def cluster(record, count=1):
    return DeduplicationCluster(canonical_record=record, occurrence_count=count, member_indices=(0,))


def test_is_valid_metadata_requires_title():
    assert is_valid_metadata({"title": "Paper"})
    assert is_valid_metadata({"title": 2020})
    assert not is_valid_metadata({"title": "   "})
    assert not is_valid_metadata({"author": [{"family": "Doe"}]})
    assert not is_valid_metadata(None)
    assert not is_valid_metadata("title")


def test_projection_keeps_titled_records_in_order_and_counts_the_rest():
    clusters = [
        cluster({"title": "B"}),
        cluster(None, count=3),
        cluster({"title": ""}),
        cluster({"title": "A"}),
    ]

    result = MetadataProjector().project(clusters)

    assert [record["title"] for record in result.citations] == ["B", "A"]
    assert result.cites_without_metadata == 2

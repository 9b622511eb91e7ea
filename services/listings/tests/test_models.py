"""
Tests for entity snapshots and media filename helpers.
"""

import listings
from listings.models import (
    BinaryPayload,
    EntityKind,
    EntitySnapshot,
    TaxonomyNode,
    filename_from_locator,
    is_unpersisted,
)


class TestEntitySnapshot:
    def test_from_api(self, project_body):
        snapshot = EntitySnapshot.from_api(EntityKind.PROJECT, project_body)

        assert snapshot.media == [
            "https://cdn.example.com/projects/p1/a.png",
            "https://cdn.example.com/projects/p1/b.png",
        ]
        assert (snapshot.region_code, snapshot.sub_region_code, snapshot.sub_sub_region_code) == ("79", "760", "26734")
        assert snapshot.street == "12 Nguyen Hue"
        assert snapshot.fields["name"] == "Sunrise Riverside"
        assert "images" not in snapshot.fields
        assert snapshot.has_structured_address

    def test_missing_optional_parts(self):
        snapshot = EntitySnapshot.from_api(EntityKind.APARTMENT, {"id": 5, "latitude": "n/a"})

        assert snapshot.id == "5"
        assert snapshot.media == []
        assert snapshot.coordinates is None
        assert not snapshot.has_structured_address


class TestHelpers:
    def test_filename_from_locator(self):
        assert filename_from_locator("https://cdn.test/a/b/photo.jpg?v=2") == "photo.jpg"
        assert filename_from_locator("https://cdn.test/") == "image.jpg"
        assert filename_from_locator("") == "image.jpg"

    def test_is_unpersisted(self):
        assert is_unpersisted("temp_42")
        assert is_unpersisted(None)
        assert not is_unpersisted("42")

    def test_entity_kind_wire_names(self):
        assert EntityKind.APARTMENT.resource == "/apartments"
        assert EntityKind.APARTMENT.file_field == "files"
        assert EntityKind.PROJECT.file_field == "file"
        assert EntityKind.PROJECT.cache_prefix == "project_image"

    def test_taxonomy_node_alias(self):
        node = TaxonomyNode.model_validate({"id": 3, "name": "Gym", "parentId": 1})
        assert node.parent_id == "1"
        assert node.dict_for_api()["parentId"] == "1"


def test_package_exports():
    assert listings.__version__ == "0.1.0"
    assert listings.EditSession is not None


def test_binary_payload_from_path(tmp_path):
    photo = tmp_path / "front.png"
    photo.write_bytes(b"PNG")

    payload = BinaryPayload.from_path(photo)

    assert payload.as_multipart() == ("front.png", b"PNG", "image/png")

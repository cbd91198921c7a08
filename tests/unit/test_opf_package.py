# ABOUTME: Unit tests for parsing OPF bytes into a Document and serializing it back.
# ABOUTME: Covers node classification, version detection, error handling and round-trip fidelity.

import pytest

from bookwright.opf.document import (
    OPF_FILE_AS,
    OPF_ROLE,
    OPF_SCHEME,
    Document,
    ManifestEntry,
    MetaElement,
    OpaqueElement,
    SchemaVersion,
    SimpleElement,
)
from bookwright.opf.extractor import extract_metadata
from bookwright.opf.package import OpfParseError, parse_package, serialize_package
from tests.fixtures.epub_samples import OPF_V3

MINIMAL = b"""<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" unique-identifier="uid">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:identifier id="uid">abc</dc:identifier>
  </metadata>
</package>
"""


class TestParsePackage:
    """Tests for parse_package."""

    def test_version_three(self, opf_v3: Document) -> None:
        """A 3.0 package is tagged V3 and keeps its unique-identifier."""
        assert opf_v3.version is SchemaVersion.V3
        assert not opf_v3.is_v2
        assert opf_v3.unique_identifier_ref == "uid"

    def test_version_two(self, opf_v2: Document) -> None:
        """A 2.0 package is tagged V2."""
        assert opf_v2.is_v2

    def test_missing_version_means_three(self) -> None:
        """No version attribute is treated as version 3."""
        assert parse_package(MINIMAL).version is SchemaVersion.V3

    def test_classifies_metadata_children(self, opf_v3: Document) -> None:
        """DC elements, metas and everything else become distinct node types."""
        assert len(opf_v3.elements("title")) == 2
        assert all(isinstance(n, SimpleElement) for n in opf_v3.elements("subject"))
        assert any(isinstance(n, MetaElement) and n.refines == "t1" for n in opf_v3.metadata)
        opaque = [n for n in opf_v3.metadata if isinstance(n, OpaqueElement)]
        assert len(opaque) == 2

    def test_version_two_attributes_use_clark_names(self, opf_v2: Document) -> None:
        """opf:scheme is exposed under its namespaced key."""
        isbn = opf_v2.elements("identifier")[1]
        assert isbn.attrs[OPF_SCHEME] == "ISBN"

    def test_manifest_entries(self, opf_v3: Document) -> None:
        """Manifest items keep id, href, media type and properties."""
        assert opf_v3.manifest is not None
        cover = opf_v3.manifest_entry("cover-img")
        assert cover is not None
        assert cover.href == "images/cover.png"
        assert cover.media_type == "image/png"
        assert cover.has_property("cover-image")

    def test_no_manifest_is_none(self) -> None:
        """A package without a manifest element has manifest None."""
        assert parse_package(MINIMAL).manifest is None

    def test_wrong_root_raises(self) -> None:
        """A document whose root is not <package> is rejected."""
        with pytest.raises(OpfParseError):
            parse_package(b"<html><body/></html>")

    def test_garbage_raises(self) -> None:
        """Bytes that are not XML at all are rejected."""
        with pytest.raises(OpfParseError):
            parse_package(b"not xml at all")


class TestSerializePackage:
    """Tests for serialize_package."""

    def test_unmodified_round_trip_keeps_metadata(self, opf_v3: Document) -> None:
        """Serializing an untouched document yields the same extracted record."""
        before = extract_metadata(opf_v3).metadata
        after = extract_metadata(parse_package(serialize_package(opf_v3))).metadata
        assert after == before

    def test_untouched_elements_survive_verbatim(self, opf_v3: Document) -> None:
        """Comments, links, refinements and the spine are written back unchanged."""
        out = serialize_package(opf_v3)
        assert b"<!-- catalogue record -->" in out
        assert b'rel="record"' in out
        assert (
            b'<meta refines="#isbn" property="identifier-type" scheme="onix:codelist5">15</meta>'
            in out
        )
        assert b'<itemref idref="chap01"/>' in out

    def test_metadata_order_is_preserved(self, opf_v3: Document) -> None:
        """Re-parsed nodes come back in the original order."""
        reparsed = parse_package(serialize_package(opf_v3))
        names = [n.name for n in reparsed.metadata if isinstance(n, SimpleElement)]
        original = [n.name for n in opf_v3.metadata if isinstance(n, SimpleElement)]
        assert names == original

    def test_new_and_changed_elements_are_written(self, opf_v3: Document) -> None:
        """A changed value and an added element both reach the output."""
        opf_v3.elements("publisher")[0].value = "Vintage"
        opf_v3.insert_after(
            opf_v3.last_simple_element(), [SimpleElement(name="rights", value="All rights")]
        )
        reparsed = parse_package(serialize_package(opf_v3))
        assert reparsed.first_value("publisher") == "Vintage"
        assert reparsed.first_value("rights") == "All rights"

    def test_opf_attributes_get_a_prefix_under_default_namespace(self) -> None:
        """opf: attributes are declared with the opf prefix, never a generated one."""
        document = parse_package(MINIMAL)
        creator = SimpleElement(
            name="creator",
            value="A. Writer",
            attrs={"id": "creator-0", OPF_ROLE: "aut", OPF_FILE_AS: "Writer, A."},
        )
        document.insert_after(document.last_simple_element(), [creator])

        out = serialize_package(document)

        assert b'opf:role="aut"' in out
        assert b"ns0" not in out
        written = parse_package(out).elements("creator")[0]
        assert written.attrs[OPF_FILE_AS] == "Writer, A."

    def test_removed_nodes_are_dropped(self, opf_v3: Document) -> None:
        """Nodes removed from the document disappear from the XML."""
        opf_v3.remove(opf_v3.elements("subject"))
        reparsed = parse_package(serialize_package(opf_v3))
        assert reparsed.elements("subject") == []
        assert len(reparsed.elements("title")) == 2

    def test_manifest_additions(self, opf_v3: Document) -> None:
        """A new manifest entry is serialized with its properties."""
        assert opf_v3.manifest is not None
        opf_v3.manifest.append(
            ManifestEntry(id="extra", href="images/extra.jpg", media_type="image/jpeg")
        )
        reparsed = parse_package(serialize_package(opf_v3))
        entry = reparsed.manifest_entry("extra")
        assert entry is not None
        assert entry.href == "images/extra.jpg"
        assert reparsed.manifest_entry("nav") is not None

    def test_unique_identifier_is_updated(self) -> None:
        """Changing the unique identifier reference updates the package attribute."""
        document = parse_package(MINIMAL)
        document.unique_identifier_ref = "pub-id"
        assert b'unique-identifier="pub-id"' in serialize_package(document)

    def test_document_without_source_tree(self) -> None:
        """A document built in memory serializes to a parseable package."""
        document = Document(
            metadata=[
                SimpleElement(name="title", value="Fresh"),
                SimpleElement(name="identifier", value="9780156001311", attrs={"id": "pub-id"}),
            ],
            unique_identifier_ref="pub-id",
        )
        reparsed = parse_package(serialize_package(document))
        assert reparsed.first_value("title") == "Fresh"
        assert reparsed.unique_identifier_ref == "pub-id"

    def test_declaration_is_present(self) -> None:
        """Output starts with an XML declaration."""
        out = serialize_package(parse_package(OPF_V3.encode("utf-8")))
        assert out.startswith(b"<?xml")

# ABOUTME: Parses OPF package XML into a typed Document and serializes it back with lxml.
# ABOUTME: Untouched elements, attribute order, comments and whitespace survive the round trip.

import logging

from lxml import etree

from bookwright.opf.document import (
    DC_NS,
    OPF_NS,
    Document,
    ManifestEntry,
    MetadataNode,
    MetaElement,
    OpaqueElement,
    SchemaVersion,
    SimpleElement,
)

logger = logging.getLogger(__name__)

_PREFIXES = {DC_NS: "dc", OPF_NS: "opf"}
_MANIFEST_KEYS = ("id", "href", "media-type", "properties")
_DEFAULT_CHILD_TAIL = "\n    "
_DEFAULT_CLOSING_TAIL = "\n  "


class OpfParseError(ValueError):
    """Raised when bytes cannot be parsed as an OPF package document."""


def _local_name(tag: object) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.split("}", 1)[1] if "}" in tag else tag


def _namespace(tag: object) -> str | None:
    if not isinstance(tag, str) or not tag.startswith("{"):
        return None
    return tag[1:].split("}", 1)[0]


def _child(node: etree._Element, local_name: str) -> etree._Element | None:
    for child in node:
        if _local_name(child.tag) == local_name:
            return child
    return None


def _node_from_element(element: etree._Element) -> MetadataNode:
    """Classify one child of <metadata>."""
    if not isinstance(element.tag, str):
        return OpaqueElement(source=element)
    if len(element):
        # Mixed content is kept verbatim rather than flattened.
        return OpaqueElement(source=element)
    if _namespace(element.tag) == DC_NS:
        return SimpleElement(
            name=_local_name(element.tag),
            value=element.text or "",
            attrs=dict(element.attrib),
            source=element,
        )
    if _local_name(element.tag) == "meta":
        return MetaElement(value=element.text or "", attrs=dict(element.attrib), source=element)
    return OpaqueElement(source=element)


def _entry_from_item(item: etree._Element) -> ManifestEntry:
    attrs = dict(item.attrib)
    return ManifestEntry(
        id=attrs.get("id", ""),
        href=attrs.get("href", ""),
        media_type=attrs.get("media-type", ""),
        properties=attrs.get("properties", "").split(),
        attrs={k: v for k, v in attrs.items() if k not in _MANIFEST_KEYS},
        source=item,
    )


def parse_package(raw: bytes) -> Document:
    """Parse OPF bytes into a Document.

    Args:
        raw: The package document as stored in the archive.

    Returns:
        Document tagged with its schema version.

    Raises:
        OpfParseError: If the bytes are not XML or the root is not <package>.
    """
    parser = etree.XMLParser(resolve_entities=False, no_network=True, recover=True)
    try:
        root = etree.fromstring(raw, parser=parser)
    except etree.XMLSyntaxError as exc:
        raise OpfParseError(f"Invalid package XML: {exc}") from exc
    if root is None or _local_name(root.tag) != "package":
        raise OpfParseError("Package document has no <package> root element")

    metadata_el = _child(root, "metadata")
    metadata = []
    if metadata_el is not None:
        metadata = [_node_from_element(child) for child in metadata_el]

    manifest_el = _child(root, "manifest")
    manifest = None
    if manifest_el is not None:
        manifest = [
            _entry_from_item(item) for item in manifest_el if _local_name(item.tag) == "item"
        ]
    else:
        logger.debug("Package document has no manifest")

    return Document(
        version=SchemaVersion.from_version_attribute(root.get("version")),
        metadata=metadata,
        manifest=manifest,
        unique_identifier_ref=root.get("unique-identifier") or None,
        root=root,
    )


def _new_element(parent: etree._Element, tag: str, attrs: dict[str, str]) -> etree._Element:
    """Create a detached element, declaring any namespace the parent lacks."""
    # Attributes cannot use the default namespace, so they need a prefixed mapping.
    prefixed = {ns for prefix, ns in parent.nsmap.items() if prefix}
    needed = {_namespace(key) for key in attrs} - prefixed
    if _namespace(tag) not in parent.nsmap.values():
        needed.add(_namespace(tag))
    nsmap = {_PREFIXES[ns]: ns for ns in needed if ns in _PREFIXES}
    return etree.Element(tag, nsmap=nsmap or None)


def _sync_attributes(element: etree._Element, attrs: dict[str, str]) -> None:
    if dict(element.attrib) == attrs:
        return
    element.attrib.clear()
    for key, value in attrs.items():
        element.set(key, value)


def _sync_text(element: etree._Element, value: str) -> None:
    if (element.text or "") != value:
        element.text = value or None


def _element_for_node(node: MetadataNode, metadata_el: etree._Element) -> etree._Element:
    """Return the XML element for a node, updating or creating it as needed."""
    if isinstance(node, OpaqueElement):
        return node.source

    if node.source is None:
        if isinstance(node, SimpleElement):
            tag = f"{{{DC_NS}}}{node.name}"
        else:
            ns = _namespace(metadata_el.tag)
            tag = f"{{{ns}}}meta" if ns else "meta"
        node.source = _new_element(metadata_el, tag, node.attrs)

    _sync_attributes(node.source, node.attrs)
    _sync_text(node.source, node.value)
    return node.source


def _write_metadata(document: Document, metadata_el: etree._Element) -> None:
    existing = list(metadata_el)
    child_tail = existing[0].tail if existing and existing[0].tail else _DEFAULT_CHILD_TAIL
    closing_tail = existing[-1].tail if existing and existing[-1].tail else _DEFAULT_CLOSING_TAIL
    if not (metadata_el.text or "").strip():
        metadata_el.text = child_tail

    for child in existing:
        metadata_el.remove(child)

    elements = [_element_for_node(node, metadata_el) for node in document.metadata]
    for position, element in enumerate(elements):
        is_last = position == len(elements) - 1
        if element.tail is None or not element.tail.strip():
            element.tail = closing_tail if is_last else child_tail
        metadata_el.append(element)


def _write_manifest(document: Document, manifest_el: etree._Element) -> None:
    kept = {id(entry.source) for entry in document.manifest or [] if entry.source is not None}
    for item in list(manifest_el):
        if _local_name(item.tag) == "item" and id(item) not in kept:
            manifest_el.remove(item)

    items = [item for item in manifest_el if _local_name(item.tag) == "item"]
    child_tail = items[0].tail if items and items[0].tail else _DEFAULT_CHILD_TAIL
    ns = _namespace(manifest_el.tag)
    for entry in document.manifest or []:
        attrs = {"id": entry.id, "href": entry.href, "media-type": entry.media_type}
        if entry.properties:
            attrs["properties"] = " ".join(entry.properties)
        attrs.update(entry.attrs)

        if entry.source is None:
            entry.source = etree.Element(f"{{{ns}}}item" if ns else "item")
            last = manifest_el[-1] if len(manifest_el) else None
            entry.source.tail = last.tail if last is not None else _DEFAULT_CLOSING_TAIL
            if last is not None:
                last.tail = child_tail
            manifest_el.append(entry.source)

        current = dict(entry.source.attrib)
        if current != attrs:
            # Keep the original attribute order when the set of keys is unchanged.
            ordered = {k: attrs[k] for k in current if k in attrs}
            ordered.update({k: v for k, v in attrs.items() if k not in ordered})
            _sync_attributes(entry.source, ordered)


def _skeleton(document: Document) -> etree._Element:
    version = "2.0" if document.is_v2 else "3.0"
    root = etree.Element(f"{{{OPF_NS}}}package", nsmap={None: OPF_NS})
    root.set("version", version)
    etree.SubElement(root, f"{{{OPF_NS}}}metadata", nsmap={"dc": DC_NS, "opf": OPF_NS})
    return root


def serialize_package(document: Document) -> bytes:
    """Write a Document back to OPF bytes.

    The document's original tree is updated in place: reused elements keep
    their namespace prefixes, tails and attribute order; only elements whose
    value or attributes changed are rewritten.
    """
    if document.root is None:
        document.root = _skeleton(document)
    root = document.root

    unique_ref = document.unique_identifier_ref
    if unique_ref and root.get("unique-identifier") != unique_ref:
        root.set("unique-identifier", unique_ref)

    metadata_el = _child(root, "metadata")
    if metadata_el is None:
        ns = _namespace(root.tag)
        metadata_el = etree.Element(f"{{{ns}}}metadata" if ns else "metadata", nsmap={"dc": DC_NS})
        root.insert(0, metadata_el)
    _write_metadata(document, metadata_el)

    if document.manifest is not None:
        manifest_el = _child(root, "manifest")
        if manifest_el is None:
            ns = _namespace(root.tag)
            manifest_el = etree.Element(f"{{{ns}}}manifest" if ns else "manifest")
            metadata_el.addnext(manifest_el)
        _write_manifest(document, manifest_el)

    tree = root.getroottree()
    encoding = tree.docinfo.encoding or "utf-8"
    return etree.tostring(tree, xml_declaration=True, encoding=encoding)

# ABOUTME: Merges caller updates into a parsed package Document, following version 2/3 rules.
# ABOUTME: Untouched fields and non-ISBN identifiers pass through; problems come back as warnings.

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

from bookwright.metadata.isbn import (
    ONIX_ISBN10,
    ONIX_ISBN13,
    ONIX_SCHEME,
    is_isbn_identifier,
    onix_code,
)
from bookwright.metadata.language import normalize_language_code
from bookwright.metadata.normalizer import sanitize_metadata_string
from bookwright.metadata.types import (
    DEFAULT_AUTHOR_ROLE,
    DEFAULT_CONTRIBUTOR_ROLE,
    Author,
    Contributor,
    MetadataUpdate,
    Series,
)
from bookwright.opf.cover import locate_cover
from bookwright.opf.document import (
    OPF_FILE_AS,
    OPF_ROLE,
    Document,
    ManifestEntry,
    MetaElement,
    SimpleElement,
)
from bookwright.opf.extractor import identifier_records

logger = logging.getLogger(__name__)

NEW_ISBN_ID = "pub-id"
COLLECTION_ID = "collection"
NEW_COVER_ID = "cover-image"
NEW_COVER_HREF = "images/cover.jpg"
JPEG_MAGIC = b"\xff\xd8"
MARC_RELATORS = "marc:relators"

MISSING_TITLE_WARNING = "EPUB requires a title (dc:title)"
MISSING_IDENTIFIER_WARNING = "EPUB requires at least one identifier (dc:identifier)"


class ResourceStore(Protocol):
    """Archive resources addressed by href, relative to the package document."""

    def read(self, href: str) -> bytes | None: ...

    def write(self, href: str, data: bytes) -> None: ...


@dataclass
class MergeResult:
    """The mutated document and the advisory warnings produced by the merge."""

    document: Document
    warnings: list[str]


def _set_simple(document: Document, name: str, value: str | None) -> None:
    """Overwrite a single-valued Dublin Core field when the new value is non-empty."""
    value = sanitize_metadata_string(value)
    if not value:
        return
    existing = document.elements(name)
    if not existing:
        new = SimpleElement(name=name, value=value)
        document.insert_after(document.last_simple_element(), [new])
        return
    existing[0].value = value
    extras = existing[1:]
    document.remove_refinements([e.id for e in extras])
    document.remove(extras)


def _apply_title(document: Document, updates: MetadataUpdate) -> None:
    title = sanitize_metadata_string(updates.title)
    if not title:
        return
    subtitle = sanitize_metadata_string(updates.subtitle)
    combined = sanitize_metadata_string(f"{title}: {subtitle}") if subtitle else title

    # Multiple titles collapse into one; title-type refinements no longer apply.
    document.remove(document.metas_with_property("title-type"))
    titles = document.elements("title")
    if not titles:
        new = SimpleElement(name="title", value=combined)
        document.insert_after(document.last_simple_element(), [new])
        return
    titles[0].value = combined
    document.remove_refinements([t.id for t in titles[1:]])
    document.remove(titles[1:])


def _apply_language(document: Document, updates: MetadataUpdate) -> None:
    raw = sanitize_metadata_string(updates.language)
    if not raw:
        return
    result = normalize_language_code(raw)
    if result.warning:
        logger.warning("Writing unverified language code: %s", result.code)
    _set_simple(document, "language", result.code)


def _person_elements(
    document: Document,
    tag: str,
    people: list[tuple[str, str | None, str | None]],
    default_role: str,
) -> list[MetaElement | SimpleElement]:
    """Build creator/contributor elements followed by their version-3 refinements.

    Each person gets a synthetic id (`creator-0`, ...). Version 2 carries
    role and file-as as opf: attributes; version 3 uses refinements and only
    for non-default roles.
    """
    elements: list[MetaElement | SimpleElement] = []
    refinements: list[MetaElement | SimpleElement] = []
    for index, (name, role, file_as) in enumerate(people):
        element_id = f"{tag}-{index}"
        attrs = {"id": element_id}
        if document.is_v2:
            if role:
                attrs[OPF_ROLE] = role
            if file_as:
                attrs[OPF_FILE_AS] = file_as
        else:
            if file_as:
                refinements.append(MetaElement.refinement(element_id, "file-as", file_as))
            if role and role != default_role:
                refinements.append(
                    MetaElement.refinement(element_id, "role", role, scheme=MARC_RELATORS)
                )
        elements.append(SimpleElement(name=tag, value=name, attrs=attrs))
    return elements + refinements


def _replace_people(document: Document, tag: str, nodes: list[MetaElement | SimpleElement]) -> None:
    existing = document.elements(tag)
    document.remove_refinements([e.id for e in existing])
    document.replace_elements(tag, nodes)


def _apply_authors(document: Document, updates: MetadataUpdate) -> None:
    if updates.authors:
        people = []
        for author in updates.authors:
            if isinstance(author, str):
                author = Author(name=author)
            name = sanitize_metadata_string(author.name)
            role = sanitize_metadata_string(author.role)
            file_as = sanitize_metadata_string(author.file_as)
            if name:
                people.append((name, role, file_as))
        if people:
            nodes = _person_elements(document, "creator", people, DEFAULT_AUTHOR_ROLE)
            _replace_people(document, "creator", nodes)
        return

    # Legacy single-author callers: one creator, no refinements.
    name = sanitize_metadata_string(updates.author)
    if name:
        creator = SimpleElement(name="creator", value=name, attrs={"id": "creator-0"})
        _replace_people(document, "creator", [creator])


def _apply_contributors(document: Document, updates: MetadataUpdate) -> None:
    if updates.contributors is None:
        return
    people = []
    for contributor in updates.contributors:
        if isinstance(contributor, str):
            contributor = Contributor(name=contributor)
        name = sanitize_metadata_string(contributor.name)
        if name:
            people.append((name, sanitize_metadata_string(contributor.role), None))
    nodes = _person_elements(document, "contributor", people, DEFAULT_CONTRIBUTOR_ROLE)
    if document.is_v2:
        for node in nodes:
            if node.attrs.get(OPF_ROLE) == DEFAULT_CONTRIBUTOR_ROLE:
                del node.attrs[OPF_ROLE]
    _replace_people(document, "contributor", nodes)


def _rewrite_isbn(document: Document, element: SimpleElement, value: str, code: str) -> None:
    """Update the ISBN slot in place: same id, same attributes."""
    had_urn = element.value.strip().lower().startswith("urn:isbn:")
    if had_urn and not value.lower().startswith("urn:isbn:"):
        value = f"urn:isbn:{value}"
    element.value = value
    id_type = document.refinement(element.id, "identifier-type")
    if id_type is not None and id_type.value.strip() in (ONIX_ISBN10, ONIX_ISBN13):
        id_type.value = code


def _apply_identifier(document: Document, updates: MetadataUpdate) -> None:
    value = sanitize_metadata_string(updates.identifier)
    if not value:
        return
    code = onix_code(value)
    if code is None:
        logger.debug("Identifier %r is not ISBN-shaped; not written", value)
        return

    elements = document.elements("identifier")
    for element, record in zip(elements, identifier_records(document)):
        if is_isbn_identifier(record):
            _rewrite_isbn(document, element, value, code)
            return

    new_id = document.unused_id(NEW_ISBN_ID)
    nodes: list[SimpleElement | MetaElement] = [
        SimpleElement(name="identifier", value=value, attrs={"id": new_id})
    ]
    if not document.is_v2:
        nodes.append(MetaElement.refinement(new_id, "identifier-type", code, scheme=ONIX_SCHEME))
    anchor = elements[-1] if elements else document.last_simple_element()
    document.insert_after(anchor, nodes)

    if not document.unique_identifier_ref:
        document.unique_identifier_ref = new_id


def _apply_subjects(document: Document, updates: MetadataUpdate) -> None:
    if updates.subjects is None:
        return
    values: list[str] = []
    for subject in updates.subjects:
        cleaned = sanitize_metadata_string(subject)
        if cleaned and cleaned not in values:
            values.append(cleaned)
    existing = document.elements("subject")
    document.remove_refinements([e.id for e in existing])
    document.replace_elements("subject", [SimpleElement(name="subject", value=v) for v in values])


def _remove_calibre_series(document: Document) -> None:
    names = ("calibre:series", "calibre:series_index")
    document.remove([m for m in document.metas() if m.name in names])


def _write_v3_series(document: Document, series: Series) -> None:
    collections = document.metas_with_property("belongs-to-collection")
    targets = [c.id for c in collections] + [COLLECTION_ID]
    document.remove_refinements(targets)
    document.remove(collections)
    document.remove(
        [m for m in document.metas() if m.prop in ("collection-type", "group-position")]
    )
    _remove_calibre_series(document)

    name = sanitize_metadata_string(series.name)
    if not name:
        return
    document.append(
        MetaElement(value=name, attrs={"property": "belongs-to-collection", "id": COLLECTION_ID})
    )
    document.append(MetaElement.refinement(COLLECTION_ID, "collection-type", "series"))
    index = sanitize_metadata_string(series.index)
    if index:
        document.append(MetaElement.refinement(COLLECTION_ID, "group-position", index))


def _write_v2_series(document: Document, series: Series) -> None:
    _remove_calibre_series(document)
    name = sanitize_metadata_string(series.name)
    if not name:
        return
    document.append(MetaElement.named("calibre:series", name))
    index = sanitize_metadata_string(series.index)
    if index:
        document.append(MetaElement.named("calibre:series_index", index))


def _apply_series(document: Document, updates: MetadataUpdate) -> None:
    if updates.series is None:
        return
    if document.is_v2:
        _write_v2_series(document, updates.series)
    else:
        _write_v3_series(document, updates.series)


def _stamp_modified(document: Document, now: datetime | None) -> None:
    """Refresh dcterms:modified (version 3 only)."""
    if document.is_v2:
        return
    moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    document.remove(document.metas_with_property("dcterms:modified"))
    stamp = moment.strftime("%Y-%m-%dT%H:%M:%SZ")
    document.append(MetaElement(value=stamp, attrs={"property": "dcterms:modified"}))


def _unused_cover_href(document: Document) -> str:
    """`NEW_COVER_HREF` if no manifest entry uses it, otherwise `images/cover-1.jpg`, ..."""
    taken = {entry.href for entry in document.manifest or []}
    stem, _, extension = NEW_COVER_HREF.rpartition(".")
    href = NEW_COVER_HREF
    counter = 0
    while href in taken:
        counter += 1
        href = f"{stem}-{counter}.{extension}"
    return href


def _add_cover(document: Document, cover: bytes, resources: ResourceStore) -> None:
    cover_id = document.unused_id(NEW_COVER_ID)
    href = _unused_cover_href(document)
    resources.write(href, cover)

    entry = ManifestEntry(
        id=cover_id,
        href=href,
        media_type="image/jpeg",
        properties=[] if document.is_v2 else ["cover-image"],
    )
    if document.manifest is None:
        document.manifest = []
    document.manifest.append(entry)

    # The name="cover" pointer is read by both version 2 and version 3 readers.
    document.remove([m for m in document.metas() if m.name == "cover"])
    document.append(MetaElement.named("cover", cover_id))


def _replace_cover(document: Document, cover: bytes, resources: ResourceStore | None) -> list[str]:
    """Swap in new cover bytes; failures leave the document's cover state as it was."""
    if resources is None:
        logger.warning("Cover supplied without a resource store; cover left unchanged")
        return ["Cover image could not be replaced: no archive to write it to"]
    try:
        entry = locate_cover(document)
        if entry is None:
            _add_cover(document, cover, resources)
            return []
        resources.write(entry.href, cover)
        if cover[:2] == JPEG_MAGIC:
            entry.media_type = "image/jpeg"
    except Exception as exc:
        logger.warning("Cover replacement failed: %s", exc)
        return [f"Cover image could not be replaced: {exc}"]
    return []


def validate_document(document: Document) -> list[str]:
    """Advisory checks for elements every package document needs."""
    warnings = []
    if not any(e.value.strip() for e in document.elements("title")):
        warnings.append(MISSING_TITLE_WARNING)
    if not any(e.value.strip() for e in document.elements("identifier")):
        warnings.append(MISSING_IDENTIFIER_WARNING)
    return warnings


def merge_metadata(
    document: Document,
    updates: MetadataUpdate,
    cover: bytes | None = None,
    resources: ResourceStore | None = None,
    now: datetime | None = None,
) -> MergeResult:
    """Apply field updates (and optionally a new cover) to a package Document.

    The document is mutated in place. Fields left as None in `updates` are
    not touched. Nothing here raises for imperfect input: problems become
    warnings in the result.

    Args:
        document: The parsed package document; owned by this edit.
        updates: The fields to change.
        cover: New cover image bytes, if the cover should be replaced.
        resources: Where cover bytes are written, addressed by manifest href.
        now: Timestamp for dcterms:modified; defaults to the current UTC time.

    Returns:
        MergeResult with the same document and any advisory warnings.
    """
    _apply_title(document, updates)
    for name in ("publisher", "date", "description", "rights"):
        _set_simple(document, name, getattr(updates, name))
    _apply_language(document, updates)
    _apply_authors(document, updates)
    _apply_contributors(document, updates)
    _apply_identifier(document, updates)
    _apply_subjects(document, updates)
    _apply_series(document, updates)

    warnings: list[str] = []
    if cover:
        warnings.extend(_replace_cover(document, cover, resources))

    _stamp_modified(document, now)
    warnings.extend(validate_document(document))
    return MergeResult(document=document, warnings=warnings)

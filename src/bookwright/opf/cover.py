# ABOUTME: Finds the manifest entry holding a package's cover image.
# ABOUTME: An ordered chain of independent rules; the first rule that matches wins.

from collections.abc import Callable

from bookwright.opf.document import Document, ManifestEntry

CoverRule = Callable[[Document], ManifestEntry | None]


def cover_from_meta_pointer(document: Document) -> ManifestEntry | None:
    """<meta name="cover" content="ID"> naming a manifest entry."""
    meta = document.meta_named("cover")
    if meta is None:
        return None
    return document.manifest_entry((meta.content or "").strip())


def cover_from_manifest_property(document: Document) -> ManifestEntry | None:
    """A version-3 manifest entry with properties="cover-image"."""
    if document.is_v2:
        return None
    for entry in document.manifest or []:
        if entry.has_property("cover-image"):
            return entry
    return None


def cover_from_id_heuristic(document: Document) -> ManifestEntry | None:
    """An image entry whose id mentions "cover"."""
    for entry in document.manifest or []:
        if "cover" in entry.id.lower() and entry.media_type.startswith("image/"):
            return entry
    return None


COVER_RULES: tuple[CoverRule, ...] = (
    cover_from_meta_pointer,
    cover_from_manifest_property,
    cover_from_id_heuristic,
)


def locate_cover(
    document: Document, rules: tuple[CoverRule, ...] = COVER_RULES
) -> ManifestEntry | None:
    """Return the cover's manifest entry, or None when the package has no cover.

    A package without a manifest simply has no cover.
    """
    if not document.manifest:
        return None
    for rule in rules:
        entry = rule(document)
        if entry is not None:
            return entry
    return None

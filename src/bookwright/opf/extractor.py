# ABOUTME: Builds a version-agnostic BookMetadata record from a parsed package Document.
# ABOUTME: Resolves title/subtitle, creator refinements, the ISBN slot, language, and series.

from dataclasses import dataclass

from bookwright.metadata.isbn import find_isbn, strip_urn_prefix
from bookwright.metadata.language import normalize_language_code
from bookwright.metadata.types import (
    DEFAULT_AUTHOR_ROLE,
    DEFAULT_CONTRIBUTOR_ROLE,
    Author,
    BookMetadata,
    Contributor,
    IdentifierRecord,
    Series,
)
from bookwright.opf.document import (
    OPF_FILE_AS,
    OPF_ROLE,
    OPF_SCHEME,
    Document,
    MetaElement,
    SimpleElement,
)


@dataclass
class ExtractionResult:
    """Extracted metadata plus the language note that goes with it.

    Attributes:
        metadata: The canonical record.
        language_warning: Set when the stored language tag looks wrong.
        language_original: The stored tag, when it was converted to a
            two-letter code.
    """

    metadata: BookMetadata
    language_warning: str | None = None
    language_original: str | None = None

    @property
    def warnings(self) -> list[str]:
        return [self.language_warning] if self.language_warning else []


def _refinement_value(
    document: Document, element: SimpleElement | MetaElement, prop: str
) -> str | None:
    refinement = document.refinement(element.id, prop)
    if refinement is None:
        return None
    return refinement.value.strip() or None


def _resolve_titles(document: Document) -> tuple[str, str | None]:
    """Pick the main title and the subtitle among all dc:title elements."""
    title = ""
    subtitle = None
    main_found = False
    for element in document.elements("title"):
        value = element.value.strip()
        title_type = _refinement_value(document, element, "title-type")
        if title_type == "subtitle":
            subtitle = value
        elif title_type == "main":
            title = value
            main_found = True
        elif title_type is None and not main_found and not title:
            title = value
    return title, subtitle


def _role(document: Document, element: SimpleElement, default: str) -> str:
    return (
        _refinement_value(document, element, "role")
        or element.attrs.get(OPF_ROLE, "").strip()
        or default
    )


def _authors(document: Document) -> list[Author]:
    authors = []
    for element in document.elements("creator"):
        file_as = _refinement_value(document, element, "file-as") or element.attrs.get(OPF_FILE_AS)
        authors.append(
            Author(
                name=element.value.strip(),
                role=_role(document, element, DEFAULT_AUTHOR_ROLE),
                file_as=file_as.strip() if file_as else None,
            )
        )
    return authors


def _contributors(document: Document) -> list[Contributor]:
    return [
        Contributor(name=e.value.strip(), role=_role(document, e, DEFAULT_CONTRIBUTOR_ROLE))
        for e in document.elements("contributor")
    ]


def identifier_records(document: Document) -> list[IdentifierRecord]:
    """Describe every dc:identifier element, including its identifier-type refinement."""
    return [
        IdentifierRecord(
            value=element.value.strip(),
            scheme=element.attrs.get(OPF_SCHEME),
            id=element.id,
            type_refinement=_refinement_value(document, element, "identifier-type"),
        )
        for element in document.elements("identifier")
    ]


def _series(document: Document) -> Series | None:
    collections = document.metas_with_property("belongs-to-collection")
    if collections:
        series_typed = [
            c for c in collections if _refinement_value(document, c, "collection-type") == "series"
        ]
        chosen = series_typed[0] if series_typed else collections[0]
        index = _refinement_value(document, chosen, "group-position")
        positions = document.metas_with_property("group-position")
        if index is None and positions:
            index = positions[0].value.strip() or None
        return Series(name=chosen.value.strip(), index=index)

    calibre_series = document.meta_named("calibre:series")
    if calibre_series is not None and (calibre_series.content or "").strip():
        calibre_index = document.meta_named("calibre:series_index")
        index = (calibre_index.content or "").strip() if calibre_index is not None else ""
        return Series(name=calibre_series.content.strip(), index=index or None)
    return None


def extract_metadata(document: Document) -> ExtractionResult:
    """Read the canonical metadata record out of a package Document.

    Never raises: missing elements simply produce empty fields.

    Args:
        document: A parsed package document.

    Returns:
        ExtractionResult holding the BookMetadata and any language note.
    """
    title, subtitle = _resolve_titles(document)

    records = identifier_records(document)
    isbn_record = find_isbn(records)
    isbn = strip_urn_prefix(isbn_record.value) if isbn_record is not None else ""
    others = [r for r in records if r is not isbn_record]

    language = normalize_language_code(document.first_value("language"))

    metadata = BookMetadata(
        title=title,
        subtitle=subtitle,
        authors=_authors(document),
        contributors=_contributors(document),
        language=language.code,
        isbn=isbn,
        identifiers=others,
        publisher=document.first_value("publisher"),
        date=document.first_value("date"),
        description=document.first_value("description"),
        rights=document.first_value("rights"),
        series=_series(document),
        subjects=[e.value.strip() for e in document.elements("subject") if e.value.strip()],
    )
    return ExtractionResult(
        metadata=metadata,
        language_warning=language.warning,
        language_original=language.original if language.converted else None,
    )

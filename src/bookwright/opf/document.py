# ABOUTME: Typed, mutable model of an OPF package document's metadata block and manifest.
# ABOUTME: A closed set of node types plus accessors, so edits never poke at raw XML.

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

OPF_NS = "http://www.idpf.org/2007/opf"
DC_NS = "http://purl.org/dc/elements/1.1/"

# Version-2 attributes live in the OPF namespace.
OPF_SCHEME = f"{{{OPF_NS}}}scheme"
OPF_ROLE = f"{{{OPF_NS}}}role"
OPF_FILE_AS = f"{{{OPF_NS}}}file-as"


class SchemaVersion(Enum):
    """The two package-document schema generations."""

    V2 = "2"
    V3 = "3"

    @classmethod
    def from_version_attribute(cls, raw: str | None) -> "SchemaVersion":
        """Classify a package `version` attribute; missing means version 3."""
        value = (raw or "3.0").strip()
        return cls.V2 if value.startswith("2") else cls.V3


@dataclass(eq=False)
class SimpleElement:
    """A Dublin Core element such as dc:title or dc:identifier.

    `name` is the local name ("title"). `attrs` keeps attribute order; keys
    of namespaced attributes use Clark notation (see OPF_SCHEME).
    """

    name: str
    value: str = ""
    attrs: dict[str, str] = field(default_factory=dict)
    source: Any = field(default=None, repr=False)

    @property
    def id(self) -> str | None:
        return self.attrs.get("id") or None


@dataclass(eq=False)
class MetaElement:
    """An OPF <meta> element.

    Covers both version-3 property metas (including refinements, which point
    at another element through `refines="#id"`) and version-2 name/content
    pairs.
    """

    value: str = ""
    attrs: dict[str, str] = field(default_factory=dict)
    source: Any = field(default=None, repr=False)

    @property
    def id(self) -> str | None:
        return self.attrs.get("id") or None

    @property
    def prop(self) -> str | None:
        return self.attrs.get("property")

    @property
    def name(self) -> str | None:
        return self.attrs.get("name")

    @property
    def content(self) -> str | None:
        return self.attrs.get("content")

    @property
    def refines(self) -> str | None:
        """Id of the element this meta refines, without the leading "#"."""
        target = self.attrs.get("refines")
        if not target:
            return None
        return target[1:] if target.startswith("#") else target

    @classmethod
    def refinement(cls, target_id: str, prop: str, value: str, **extra: str) -> "MetaElement":
        """Build a version-3 refinement of the element with id `target_id`."""
        return cls(value=value, attrs={"refines": f"#{target_id}", "property": prop, **extra})

    @classmethod
    def named(cls, name: str, content: str) -> "MetaElement":
        """Build a name/content meta pair."""
        return cls(attrs={"name": name, "content": content})


@dataclass(eq=False)
class OpaqueElement:
    """Anything in the metadata block this model does not interpret (links, comments,
    proprietary extensions). Passed through untouched."""

    source: Any = field(default=None, repr=False)


MetadataNode = SimpleElement | MetaElement | OpaqueElement


@dataclass(eq=False)
class ManifestEntry:
    """A resource declared in the manifest."""

    id: str
    href: str
    media_type: str
    properties: list[str] = field(default_factory=list)
    attrs: dict[str, str] = field(default_factory=dict)
    source: Any = field(default=None, repr=False)

    def has_property(self, prop: str) -> bool:
        return prop in self.properties


@dataclass(eq=False)
class Document:
    """One parsed package document, owned by a single edit operation.

    `manifest` is None when the package has no manifest element at all.
    `root` is the parsed XML tree the document came from, if any; the
    serializer writes changes back into it.
    """

    version: SchemaVersion = SchemaVersion.V3
    metadata: list[MetadataNode] = field(default_factory=list)
    manifest: list[ManifestEntry] | None = None
    unique_identifier_ref: str | None = None
    root: Any = field(default=None, repr=False)

    @property
    def is_v2(self) -> bool:
        return self.version is SchemaVersion.V2

    # Lookups

    def elements(self, name: str) -> list[SimpleElement]:
        """All Dublin Core elements with the given local name, in document order."""
        return [n for n in self.metadata if isinstance(n, SimpleElement) and n.name == name]

    def first_value(self, name: str) -> str:
        """Stripped text of the first element with the given local name, or ""."""
        for element in self.elements(name):
            return element.value.strip()
        return ""

    def metas(self) -> list[MetaElement]:
        return [n for n in self.metadata if isinstance(n, MetaElement)]

    def metas_with_property(self, prop: str) -> list[MetaElement]:
        return [m for m in self.metas() if m.prop == prop]

    def meta_named(self, name: str) -> MetaElement | None:
        """First name/content meta with the given name."""
        for meta in self.metas():
            if meta.name == name:
                return meta
        return None

    def refinements(self, target_id: str | None) -> list[MetaElement]:
        """Every meta that refines the element with id `target_id`."""
        if not target_id:
            return []
        return [m for m in self.metas() if m.refines == target_id]

    def refinement(self, target_id: str | None, prop: str) -> MetaElement | None:
        """The first refinement of `target_id` carrying `prop`, or None."""
        for meta in self.refinements(target_id):
            if meta.prop == prop:
                return meta
        return None

    def manifest_entry(self, entry_id: str | None) -> ManifestEntry | None:
        if not entry_id or not self.manifest:
            return None
        for entry in self.manifest:
            if entry.id == entry_id:
                return entry
        return None

    def has_id(self, candidate: str) -> bool:
        """Whether any metadata node or manifest entry already uses this id."""
        for node in self.metadata:
            if isinstance(node, (SimpleElement, MetaElement)) and node.id == candidate:
                return True
            if isinstance(node, OpaqueElement) and _source_id(node.source) == candidate:
                return True
        return self.manifest_entry(candidate) is not None

    def unused_id(self, base: str) -> str:
        """`base` if free, otherwise `base-1`, `base-2`, ..."""
        candidate = base
        counter = 0
        while self.has_id(candidate):
            counter += 1
            candidate = f"{base}-{counter}"
        return candidate

    # Mutation

    def append(self, node: MetadataNode) -> None:
        self.metadata.append(node)

    def insert_after(self, anchor: MetadataNode | None, nodes: list[MetadataNode]) -> None:
        """Insert nodes right after `anchor`, or at the end when anchor is None."""
        if anchor is None:
            self.metadata.extend(nodes)
            return
        position = self.metadata.index(anchor) + 1
        self.metadata[position:position] = nodes

    def remove(self, nodes: list[MetadataNode]) -> None:
        doomed = {id(n) for n in nodes}
        self.metadata = [n for n in self.metadata if id(n) not in doomed]

    def remove_refinements(self, target_ids: list[str | None]) -> None:
        """Drop every refinement pointing at any of the given ids."""
        targets = {t for t in target_ids if t}
        self.remove([m for m in self.metas() if m.refines in targets])

    def last_simple_element(self) -> SimpleElement | None:
        """The last Dublin Core element in the block, used as an insertion point."""
        simple = [n for n in self.metadata if isinstance(n, SimpleElement)]
        return simple[-1] if simple else None

    def replace_elements(self, name: str, replacements: list[MetadataNode]) -> None:
        """Swap every `name` element for `replacements`.

        The replacements take the place of the first existing element, or
        follow the last Dublin Core element when there was none.
        """
        existing = self.elements(name)
        if not existing:
            self.insert_after(self.last_simple_element(), replacements)
            return
        position = self.metadata.index(existing[0])
        self.remove(existing)
        self.metadata[position:position] = replacements


def _source_id(source: Any) -> str | None:
    get = getattr(source, "get", None)
    return get("id") if callable(get) else None

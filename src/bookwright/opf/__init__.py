# ABOUTME: OPF package document handling: typed model, parse/serialize, extraction, and merge.
# ABOUTME: Exports the entry points used by the archive layer and the CLI.

from bookwright.opf.cover import locate_cover
from bookwright.opf.document import Document, SchemaVersion
from bookwright.opf.extractor import ExtractionResult, extract_metadata
from bookwright.opf.package import OpfParseError, parse_package, serialize_package
from bookwright.opf.writer import MergeResult, ResourceStore, merge_metadata

__all__ = [
    "Document",
    "ExtractionResult",
    "MergeResult",
    "OpfParseError",
    "ResourceStore",
    "SchemaVersion",
    "extract_metadata",
    "locate_cover",
    "merge_metadata",
    "parse_package",
    "serialize_package",
]

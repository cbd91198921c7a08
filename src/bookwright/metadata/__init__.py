# ABOUTME: Metadata package: the version-agnostic record, language/ISBN classifiers, and normalizer.
# ABOUTME: Exports the dataclasses used throughout Bookwright.

from bookwright.metadata.language import LanguageResult, normalize_language_code
from bookwright.metadata.normalizer import NormalizationResult, normalize_metadata
from bookwright.metadata.types import (
    Author,
    BookMetadata,
    Contributor,
    IdentifierRecord,
    MetadataUpdate,
    Series,
)

__all__ = [
    "Author",
    "BookMetadata",
    "Contributor",
    "IdentifierRecord",
    "LanguageResult",
    "MetadataUpdate",
    "NormalizationResult",
    "Series",
    "normalize_language_code",
    "normalize_metadata",
]

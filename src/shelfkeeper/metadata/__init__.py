# ABOUTME: Metadata package: candidate types, field resolution, merge policy, and scoring.
# ABOUTME: Exports the data types shared across providers, the merge engine, and jobs.

from shelfkeeper.metadata.options import FieldAuthority, RefreshOptions
from shelfkeeper.metadata.types import (
    BookReview,
    CandidateMetadata,
    ClearFlags,
    MetadataProvider,
    ReplaceMode,
    UnknownProviderError,
)

__all__ = [
    "BookReview",
    "CandidateMetadata",
    "ClearFlags",
    "FieldAuthority",
    "MetadataProvider",
    "RefreshOptions",
    "ReplaceMode",
    "UnknownProviderError",
]

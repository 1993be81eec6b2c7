"""Historical pronunciation annotation and derivation engine."""

from .errors import (
    AutoderiverError,
    CompilationError,
    DerivationError,
    FetchError,
    InvalidDescriptionError,
)
from .models import AnnotationGroup, AnnotationRecord, DerivationScheme, DictionaryEntry, VariantPolicy
from .phonology.position import Position

__all__ = [
    "Position",
    "DictionaryEntry",
    "AnnotationGroup",
    "AnnotationRecord",
    "DerivationScheme",
    "VariantPolicy",
    "AutoderiverError",
    "CompilationError",
    "DerivationError",
    "FetchError",
    "InvalidDescriptionError",
]

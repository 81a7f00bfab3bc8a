"""CDF object and document model."""

from .models import (
    CONFIG_ENTITY,
    CONTENT_ENTITY,
    LANGUAGE_UNDETERMINED,
    CDFAttribute,
    CDFDocument,
    CDFObject,
)

__all__ = [
    "CONFIG_ENTITY",
    "CONTENT_ENTITY",
    "LANGUAGE_UNDETERMINED",
    "CDFAttribute",
    "CDFDocument",
    "CDFObject",
]

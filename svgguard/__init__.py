"""
svgguard - Allow-list sanitizer for untrusted SVG markup.

This package provides tools to:
- Strip comments, PHP/ASP tags and processing instructions before parsing
- Parse SVG with XXE and entity-expansion protection
- Remove elements and attributes outside configurable allow-lists
- Drop script payloads, remote references and non-local <use> targets
- Report what was removed and why a candidate was rejected
"""

from .models import (
    DEFAULT_ALLOWED_ATTRIBUTES,
    DEFAULT_ALLOWED_ELEMENTS,
    # Configuration
    AllowLists,
    # Results
    FailureReason,
    SanitizeResult,
)
from .preprocess import extract_svg_span, preprocess, strip_comments, strip_script_tags
from .safe_xml import SVGDocument, parse_svg
from .sanitizer import (
    SVGSanitizer,
    has_script_value,
    is_remote_reference,
    is_remote_value,
    sanitize_svg,
)

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",

    # Configuration
    "AllowLists",
    "DEFAULT_ALLOWED_ELEMENTS",
    "DEFAULT_ALLOWED_ATTRIBUTES",

    # Results
    "FailureReason",
    "SanitizeResult",

    # Preprocessing
    "preprocess",
    "strip_comments",
    "strip_script_tags",
    "extract_svg_span",

    # Parsing
    "SVGDocument",
    "parse_svg",

    # Sanitizer
    "SVGSanitizer",
    "sanitize_svg",
    "is_remote_value",
    "is_remote_reference",
    "has_script_value",
]

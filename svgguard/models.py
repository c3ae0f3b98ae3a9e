"""
Data models for SVG sanitization.

Holds the allow-list configuration, the failure taxonomy, and the result
object returned by the reporting entry point.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, FrozenSet, Iterable, List, Optional, Tuple

# ============================================================================
# NAMESPACES
# ============================================================================

SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"
XML_NS = "http://www.w3.org/XML/1998/namespace"


# ============================================================================
# DEFAULT ALLOW-LISTS
# ============================================================================

DEFAULT_ALLOWED_ELEMENTS: Tuple[str, ...] = (
    'a',
    'circle',
    'clippath',
    'defs',
    'style',
    'desc',
    'ellipse',
    'fegaussianblur',
    'filter',
    'foreignobject',
    'g',
    'image',
    'line',
    'lineargradient',
    'marker',
    'mask',
    'metadata',
    'path',
    'pattern',
    'polygon',
    'polyline',
    'radialgradient',
    'rect',
    'stop',
    'svg',
    'switch',
    'symbol',
    'text',
    'textpath',
    'title',
    'tspan',
    'use',
)

DEFAULT_ALLOWED_ATTRIBUTES: Tuple[str, ...] = (
    # Presentation
    'class', 'clip-path', 'clip-rule', 'fill', 'fill-opacity', 'fill-rule',
    'filter', 'mask', 'opacity', 'stroke', 'stroke-dasharray',
    'stroke-dashoffset', 'stroke-linecap', 'stroke-linejoin',
    'stroke-miterlimit', 'stroke-opacity', 'stroke-width', 'style',
    'systemlanguage', 'transform',
    # References
    'href', 'xlink:href', 'xlink:title',
    # Geometry
    'cx', 'cy', 'r', 'requiredfeatures', 'clippathunits', 'type', 'rx', 'ry',
    # Filters
    'color-interpolation-filters', 'stddeviation', 'filterres', 'filterunits',
    'height', 'primitiveunits', 'width', 'x', 'y',
    # Text
    'font-size', 'display', 'font-family', 'font-style', 'font-weight',
    'text-anchor',
    # Markers and lines
    'marker-end', 'marker-mid', 'marker-start', 'x1', 'x2', 'y1', 'y2',
    # Gradients
    'gradienttransform', 'gradientunits', 'spreadmethod',
    'markerheight', 'markerunits', 'markerwidth', 'orient',
    'preserveaspectratio', 'refx', 'refy', 'viewbox',
    'maskcontentunits', 'maskunits', 'd',
    'patterncontentunits', 'patterntransform', 'patternunits', 'points',
    'fx', 'fy', 'offset', 'stop-color', 'stop-opacity',
    # Namespace declarations
    'xmlns', 'xmlns:se', 'xmlns:xlink', 'xml:space',
    # Text paths
    'method', 'spacing', 'startoffset', 'dx', 'dy', 'rotate', 'textlength',
)

# Attribute name prefixes accepted regardless of the attribute allow-list
ALWAYS_ALLOWED_ATTRIBUTE_PREFIXES: Tuple[str, ...] = ('aria-', 'data-')

AllowListFilter = Callable[[List[str]], Iterable[str]]


def _normalize(names: Iterable[str]) -> FrozenSet[str]:
    if isinstance(names, str):
        raise TypeError("Allow-list must be an iterable of names, not a single string")
    return frozenset(str(name).strip().lower() for name in names if str(name).strip())


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass(frozen=True)
class AllowLists:
    """The two allow-lists a sanitizer enforces.

    Both sets hold lowercase names and are immutable once built, so one
    instance can be shared by any number of sanitizers and threads.

    Usage:
        lists = AllowLists.default()
        lists = AllowLists.with_overrides(
            element_filter=lambda tags: [t for t in tags if t != 'foreignobject'],
        )
    """
    elements: FrozenSet[str] = field(default_factory=lambda: frozenset(DEFAULT_ALLOWED_ELEMENTS))
    attributes: FrozenSet[str] = field(default_factory=lambda: frozenset(DEFAULT_ALLOWED_ATTRIBUTES))

    def __post_init__(self):
        # Accept lists/tuples from callers, normalize for membership tests
        object.__setattr__(self, 'elements', _normalize(self.elements))
        object.__setattr__(self, 'attributes', _normalize(self.attributes))

    @classmethod
    def default(cls) -> 'AllowLists':
        return cls()

    @classmethod
    def with_overrides(
        cls,
        element_filter: Optional[AllowListFilter] = None,
        attribute_filter: Optional[AllowListFilter] = None,
    ) -> 'AllowLists':
        """Build allow-lists from the defaults passed through optional filters.

        Each filter receives the default list and returns the list to use in
        its place. Whatever it returns is applied as-is (after lowercasing).
        """
        elements = list(DEFAULT_ALLOWED_ELEMENTS)
        attributes = list(DEFAULT_ALLOWED_ATTRIBUTES)
        if element_filter is not None:
            elements = element_filter(elements)
        if attribute_filter is not None:
            attributes = attribute_filter(attributes)
        return cls(elements=elements, attributes=attributes)

    def allows_element(self, tag: str) -> bool:
        return tag.lower() in self.elements

    def allows_attribute(self, name: str) -> bool:
        lowered = name.lower()
        if lowered in self.attributes:
            return True
        return lowered.startswith(ALWAYS_ALLOWED_ATTRIBUTE_PREFIXES)


# ============================================================================
# RESULTS
# ============================================================================

class FailureReason(Enum):
    """Why a candidate could not be sanitized."""
    SCRIPT_MARKERS = "script_markers"
    MISSING_BOUNDARY = "missing_boundary"
    UNPARSABLE = "unparsable"

    @property
    def description(self) -> str:
        return {
            FailureReason.SCRIPT_MARKERS: "comment or script delimiters survived stripping",
            FailureReason.MISSING_BOUNDARY: "no <svg>...</svg> span found",
            FailureReason.UNPARSABLE: "markup could not be parsed",
        }[self]


@dataclass
class SanitizeResult:
    """Outcome of one sanitization call.

    ``output`` is ``None`` exactly when ``failure`` is set. An empty string is
    a successful result: the document was sanitized away to nothing.
    """
    output: Optional[str] = None
    failure: Optional[FailureReason] = None
    removed_elements: List[str] = field(default_factory=list)
    removed_attributes: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def changed(self) -> bool:
        return bool(self.removed_elements or self.removed_attributes)

    def summary(self) -> str:
        if self.failure is not None:
            return f"Sanitization failed: {self.failure.description}"
        parts = [
            f"{len(self.removed_elements)} element(s) removed",
            f"{len(self.removed_attributes)} attribute(s) removed",
        ]
        return ", ".join(parts)

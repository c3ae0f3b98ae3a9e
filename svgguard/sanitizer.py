"""
SVG Sanitizer - Turns untrusted SVG markup into markup safe to redistribute.

Pipeline (one synchronous pass per call, nothing shared between calls
except the read-only allow-lists):

    preprocess -> extract <svg> span -> strip DOCTYPE -> defused parse
    -> per element, deepest first: tag filter, attribute filter,
       reference checks -> serialize root element

Hostile or malformed input never raises. sanitize() returns the cleaned
string or None; sanitize_with_report() says why it failed and what it
removed.
"""

import logging
import re
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional, Tuple, Union

from .models import XLINK_NS, AllowListFilter, AllowLists, FailureReason, SanitizeResult
from .preprocess import extract_svg_span, preprocess
from .safe_xml import PARSE_ERRORS, SVGDocument, parse_svg

logger = logging.getLogger(__name__)

# ============================================================================
# VALUE HEURISTICS
# ============================================================================

_NON_PRINTABLE_RE = re.compile(r'[^ -~]')
_URL_WRAPPED_RE = re.compile(r'^url\(\s*[\'"]?\s*(.*?)\s*[\'"]?\s*\)$', re.IGNORECASE | re.DOTALL)
_REMOTE_URL_RE = re.compile(r'^((https?|ftp|file):)?//', re.IGNORECASE)
SCRIPT_RE = re.compile(r'base64|data|(?:java)?script|alert\(|window\.|document', re.IGNORECASE)

# Inline images an XLink reference may still carry
ALLOWED_DATA_URI_PREFIXES: Tuple[str, ...] = (
    'data:image/png',  # PNG
    'data:image/gif',  # GIF
    'data:image/jpg',  # JPG
    'data:image/jpe',  # JPEG
    'data:image/pjp',  # PJPEG
)

# Checked on every element, whatever the xlink prefix is bound to
_DEFAULT_XLINK_HREF = 'xlink:href'


def _printable(value: str) -> str:
    return _NON_PRINTABLE_RE.sub('', value).strip()


def is_remote_value(value: str) -> bool:
    """True for url(...) values pointing at an absolute or protocol-relative URL."""
    match = _URL_WRAPPED_RE.match(_printable(value))
    if not match:
        return False
    target = match.group(1).strip('\'"')
    return bool(_REMOTE_URL_RE.match(target))


def is_remote_reference(value: str) -> bool:
    """Like is_remote_value, but also for bare URLs as found in href attributes."""
    return is_remote_value(value) or bool(_REMOTE_URL_RE.match(_printable(value)))


def has_script_value(value: str) -> bool:
    """Broad check for script, data-URI and DOM access payloads.

    Deliberately over-matches: any value containing "data" or "document"
    is flagged, legitimate or not.
    """
    return SCRIPT_RE.search(value) is not None


# ============================================================================
# SANITIZER
# ============================================================================

class SVGSanitizer:
    """
    Allow-list driven SVG sanitizer.

    Allow-lists are fixed at construction; the instance holds no other
    state, so one sanitizer can serve any number of calls and threads.

    Usage:
        sanitizer = SVGSanitizer()
        clean = sanitizer.sanitize(untrusted)
        if clean is None:
            ...  # not a usable SVG, leave the original alone
    """

    def __init__(
        self,
        allow_lists: Optional[AllowLists] = None,
        *,
        element_filter: Optional[AllowListFilter] = None,
        attribute_filter: Optional[AllowListFilter] = None,
    ):
        if allow_lists is not None and (element_filter or attribute_filter):
            raise ValueError("Pass either allow_lists or filters, not both")
        if allow_lists is None:
            allow_lists = AllowLists.with_overrides(element_filter, attribute_filter)
        self.allow_lists = allow_lists

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def sanitize(self, content: Union[str, bytes]) -> Optional[str]:
        """Return sanitized markup, or None if the input is not usable SVG."""
        return self.sanitize_with_report(content).output

    def sanitize_with_report(self, content: Union[str, bytes]) -> SanitizeResult:
        """Run the full pipeline and record what was removed."""
        result = SanitizeResult()

        text = preprocess(content)
        if text is None:
            return self._fail(result, FailureReason.SCRIPT_MARKERS)

        span = extract_svg_span(text)
        if span is None:
            return self._fail(result, FailureReason.MISSING_BOUNDARY)

        try:
            document = parse_svg(span)
        except PARSE_ERRORS as e:
            logger.debug("SVG parse error: %s", e)
            return self._fail(result, FailureReason.UNPARSABLE)

        if not self._sanitize_elements(document, result):
            # The root itself was rejected: nothing is left to return
            logger.debug("Root <%s> rejected, output is empty", document.root.tag)
            result.output = ''
            return result

        try:
            result.output = self.serialize(document.root)
        except RecursionError:
            logger.debug("SVG too deeply nested to serialize")
            return self._fail(result, FailureReason.UNPARSABLE)
        return result

    # ------------------------------------------------------------------
    # Tree walk
    # ------------------------------------------------------------------

    def _sanitize_elements(self, document: SVGDocument, result: SanitizeResult) -> bool:
        """Filter every element, deepest first. Returns False if the root goes.

        The element list is snapshotted and walked backwards, so each
        element is handled before its ancestors and a detached subtree is
        never revisited.
        """
        root = document.root
        elements = list(root.iter())
        parents: Dict[ET.Element, ET.Element] = {
            child: parent for parent in elements for child in parent
        }
        xlink_names = [f'{prefix}:href' for prefix in document.prefixes_for(XLINK_NS)]

        for element in reversed(elements):
            keep = self.allow_lists.allows_element(element.tag)
            if keep:
                self.filter_attributes(element, result)
                keep = self.validate_references(element, result, xlink_names)
            if keep:
                continue

            logger.debug("Removed <%s>", element.tag)
            result.removed_elements.append(element.tag)
            parent = parents.get(element)
            if parent is None:
                return False
            _detach(parent, element)
        return True

    def filter_attributes(self, element: ET.Element, result: Optional[SanitizeResult] = None) -> None:
        """Drop attributes that are not allowed or carry remote/script values."""
        for name in reversed(list(element.attrib)):
            if not self.allow_lists.allows_attribute(name):
                self._remove_attribute(element, name, result, "not allowed")
                continue

            value = element.attrib[name]
            if value and (is_remote_value(value) or has_script_value(value)):
                self._remove_attribute(element, name, result, "unsafe value")

    def validate_references(
        self,
        element: ET.Element,
        result: Optional[SanitizeResult] = None,
        xlink_names: Optional[List[str]] = None,
    ) -> bool:
        """Enforce the reference rules. Returns False if the element must go.

        <use> is the one element removed whole: pointing it anywhere but a
        local fragment pulls in outside content. Every reference it carries
        is checked, since user agents differ on which one they follow.
        """
        xlink_names = list(dict.fromkeys([_DEFAULT_XLINK_HREF, *(xlink_names or ())]))

        if element.tag.lower() == 'use':
            for name in (*xlink_names, 'href'):
                reference = element.get(name)
                if reference is not None and not reference.startswith('#'):
                    logger.debug("Removing <use> with non-local %s %r", name, reference)
                    return False

        for name in xlink_names:
            value = element.get(name)
            if value and has_script_value(value) and not value.startswith(ALLOWED_DATA_URI_PREFIXES):
                self._remove_attribute(element, name, result, "unsafe xlink reference")

        for name in (*xlink_names, 'href'):
            value = element.get(name)
            if value and is_remote_reference(value):
                self._remove_attribute(element, name, result, "remote reference")
        return True

    @staticmethod
    def serialize(root: ET.Element) -> str:
        """Render the root element without prolog and without self-closing tags."""
        return ET.tostring(root, encoding='unicode', short_empty_elements=False)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _remove_attribute(
        element: ET.Element,
        name: str,
        result: Optional[SanitizeResult],
        reason: str,
    ) -> None:
        if name not in element.attrib:
            return
        del element.attrib[name]
        logger.debug("Removed %s from <%s>: %s", name, element.tag, reason)
        if result is not None:
            result.removed_attributes.append((element.tag, name))

    @staticmethod
    def _fail(result: SanitizeResult, reason: FailureReason) -> SanitizeResult:
        logger.info("SVG sanitization failed: %s", reason.description)
        result.failure = reason
        result.output = None
        return result


def _detach(parent: ET.Element, element: ET.Element) -> None:
    """Remove element and its subtree, keeping the text that followed it."""
    if element.tail:
        siblings = list(parent)
        index = siblings.index(element)
        if index > 0:
            previous = siblings[index - 1]
            previous.tail = (previous.tail or '') + element.tail
        else:
            parent.text = (parent.text or '') + element.tail
    parent.remove(element)


# ============================================================================
# CONVENIENCE FUNCTION
# ============================================================================

_default_sanitizer = SVGSanitizer()


def sanitize_svg(content: Union[str, bytes], allow_lists: Optional[AllowLists] = None) -> Optional[str]:
    """Sanitize SVG markup. Returns None when the input cannot be sanitized."""
    sanitizer = _default_sanitizer if allow_lists is None else SVGSanitizer(allow_lists)
    return sanitizer.sanitize(content)

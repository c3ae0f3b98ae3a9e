"""
Text-level preprocessing applied before any parsing.

Comments and script delimiters are stripped from the raw markup so they
cannot be used to smuggle content across tag boundaries, then the outermost
<svg>...</svg> span is cut out of whatever surrounds it.
"""

import re
from typing import Optional, Union

_XML_COMMENT_RE = re.compile(r'<!--(.*?)-->', re.DOTALL)
_BLOCK_COMMENT_RE = re.compile(r'/\*(.*?)\*/', re.DOTALL)

_PHP_TAG_RE = re.compile(r'<\?(=|php)(.+?)\?>', re.IGNORECASE)
# XML prolog, processing instructions, ASP-style tags
_PROCESSING_TAG_RE = re.compile(r'<\?(.*?)\?>', re.DOTALL)
_ASP_TAG_RE = re.compile(r'<%(.*?)%>', re.DOTALL)

_COMMENT_MARKERS = ('<!--', '/*')
_SCRIPT_MARKERS = ('<?', '<%')

SVG_OPEN = '<svg'
SVG_CLOSE = '</svg>'


def to_text(content: Union[str, bytes]) -> str:
    """Coerce caller input to text. Bytes are read as UTF-8."""
    if isinstance(content, str):
        return content
    if isinstance(content, (bytes, bytearray)):
        return bytes(content).decode('utf-8', errors='replace')
    raise TypeError(f"Expected str or bytes, got {type(content).__name__}")


def _remove_comments(text: str) -> Optional[str]:
    text = _XML_COMMENT_RE.sub('', text)
    text = _BLOCK_COMMENT_RE.sub('', text)
    if any(marker in text for marker in _COMMENT_MARKERS):
        return None
    return text


def _remove_script_tags(text: str) -> Optional[str]:
    text = _PHP_TAG_RE.sub('', text)
    text = _PROCESSING_TAG_RE.sub('', text)
    text = _ASP_TAG_RE.sub('', text)
    if any(marker in text for marker in _SCRIPT_MARKERS):
        return None
    return text


def strip_comments(text: str) -> str:
    """Remove <!-- --> and /* */ comments; '' if any opener survives."""
    return _remove_comments(text) or ''


def strip_script_tags(text: str) -> str:
    """Remove PHP, XML processing and ASP tags; '' if any opener survives."""
    return _remove_script_tags(text) or ''


def preprocess(content: Union[str, bytes]) -> Optional[str]:
    """Run both strippers, comments first.

    Returns None when a delimiter survived either pass. An empty string
    only means nothing was left, e.g. for a comment-only file.
    """
    text = _remove_comments(to_text(content))
    if text is None:
        return None
    return _remove_script_tags(text)


def extract_svg_span(text: str) -> Optional[str]:
    """Return the text from the first '<svg' through the last '</svg>'.

    Returns None when either marker is missing.
    """
    start = text.find(SVG_OPEN)
    end = text.rfind(SVG_CLOSE)
    if start == -1 or end == -1 or end < start:
        return None
    return text[start:end + len(SVG_CLOSE)]

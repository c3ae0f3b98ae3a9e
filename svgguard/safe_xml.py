"""
Safe SVG parsing — defused against XXE, billion laughs, and entity expansion.

All SVG parsing goes through parse_svg(), which always runs defusedxml's
parser with DTDs, entity declarations and external references forbidden.
There is no switch to turn this off.

Blocks:
- External entity injection (XXE): file:///etc/passwd, http:// callbacks
- Billion laughs / entity expansion: exponential DTD bombs
- DTD retrieval: remote DTD loading

Document type declarations are also cut out of the text before parsing,
so a DTD never reaches the parser in the first place. Nesting deeper than
MAX_DEPTH is refused as well: the tree is serialized recursively.
"""

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Set, Tuple

from defusedxml import DefusedXmlException
from defusedxml.ElementTree import DefusedXMLParser, ParseError

from .models import SVG_NS, XLINK_NS, XML_NS

# Everything the parser can raise for markup it refuses to build a tree from
PARSE_ERRORS = (ParseError, DefusedXmlException)

# Same element nesting limit libxml2 applies by default
MAX_DEPTH = 256

_DOCTYPE_RE = re.compile(r'<!DOCTYPE[^\[>]*(?:\[.*?\]\s*)?>', re.IGNORECASE | re.DOTALL)

# '&' not starting a predefined entity or a character reference
_UNDECLARED_ENTITY_RE = re.compile(r'&(?!(?:amp|lt|gt|quot|apos|#[0-9]+|#x[0-9a-fA-F]+);)')

_ROOT_TAG_RE = re.compile(r'<[^\s/>]+')
_ROOT_START_TAG_RE = re.compile(r'''<[^\s/>]+(?:\s+[^\s=/>]+\s*=\s*(?:"[^"]*"|'[^']*'))*\s*/?>''')
_PREFIX_USE_RE = re.compile(r'[<\s/]([A-Za-z_][\w.-]*):[A-Za-z_][\w.-]*')
_PREFIX_DECL_RE = re.compile(r'xmlns:([A-Za-z_][\w.-]*)\s*=')
_RESERVED_PREFIXES = {'xml', 'xmlns'}
_KNOWN_PREFIXES = {'xlink': XLINK_NS, 'svg': SVG_NS}
_UNDECLARED_NS = 'urn:x-undeclared:'


@dataclass
class SVGDocument:
    """A parsed SVG: the root element plus every namespace binding it made.

    A prefix may be bound to different URIs on different elements, so each
    prefix maps to all of them.
    """
    root: ET.Element
    namespaces: Dict[str, Set[str]] = field(default_factory=dict)

    def prefixes_for(self, uri: str) -> List[str]:
        """Every non-empty prefix bound to uri anywhere in the document."""
        return sorted(prefix for prefix, bound in self.namespaces.items() if uri in bound and prefix)


def bind_undeclared_prefixes(text: str) -> Tuple[str, Set[str]]:
    """Declare, on the root tag, any prefix the markup uses but the root does not bind.

    SVG in the wild often writes xlink:href without declaring xmlns:xlink.
    A declaration on a descendant only covers that subtree, so a prefix
    declared there still gets a root binding for its other uses; the
    descendant's own declaration wins inside its scope.

    Returns the patched text and the set of prefixes that were bound here;
    those bindings are not carried into the output.
    """
    start_tag = _ROOT_START_TAG_RE.match(text)
    used = set(_PREFIX_USE_RE.findall(text))
    declared = set(_PREFIX_DECL_RE.findall(start_tag.group(0) if start_tag else text))
    missing = sorted(used - declared - _RESERVED_PREFIXES)
    root = _ROOT_TAG_RE.match(text)
    if not missing or root is None:
        return text, set()

    declarations = ''.join(
        f' xmlns:{prefix}="{_KNOWN_PREFIXES.get(prefix, _UNDECLARED_NS + prefix)}"'
        for prefix in missing
    )
    return text[:root.end()] + declarations + text[root.end():], set(missing)


def strip_doctype(text: str) -> str:
    """Remove <!DOCTYPE ...> declarations, internal subset included."""
    return _DOCTYPE_RE.sub('', text)


def escape_undeclared_entities(text: str) -> str:
    """Escape '&' where it does not begin a predefined or numeric reference.

    An entity like &xxe; is left as the literal text "&xxe;" instead of
    failing the parse or being resolved.
    """
    return _UNDECLARED_ENTITY_RE.sub('&amp;', text)


class _PrefixedTreeBuilder:
    """Parser target that keeps the document's own prefixes.

    ElementTree reports names as {uri}local. This target rewrites them to
    prefix:local using the declarations in scope, gives SVG elements their
    bare local name, and records each namespace declaration as an xmlns
    attribute on the element that carried it.
    """

    def __init__(self, implicit: Iterable[str] = ()):
        self._builder = ET.TreeBuilder()
        self._implicit = set(implicit)
        self._scopes: List[Dict[str, str]] = []
        self._pending: Dict[str, str] = {}
        self.namespaces: Dict[str, Set[str]] = {}

    def start_ns(self, prefix: str, uri: str):
        self._pending[prefix] = uri
        self.namespaces.setdefault(prefix, set()).add(uri)

    def start(self, tag: str, attrib: Dict[str, str]) -> ET.Element:
        declared, self._pending = self._pending, {}
        self._scopes.append(declared)
        if len(self._scopes) > MAX_DEPTH:
            raise ParseError(f"elements nested deeper than {MAX_DEPTH} levels")

        attrs: Dict[str, str] = {}
        for prefix, uri in declared.items():
            if prefix in self._implicit and len(self._scopes) == 1:
                continue
            attrs[f'xmlns:{prefix}' if prefix else 'xmlns'] = uri
        for name, value in attrib.items():
            attrs[self._qualify(name, attribute=True)] = value
        return self._builder.start(self._qualify(tag), attrs)

    def end(self, tag: str) -> ET.Element:
        elem = self._builder.end(self._qualify(tag))
        self._scopes.pop()
        return elem

    def data(self, data: str):
        self._builder.data(data)

    def close(self) -> ET.Element:
        return self._builder.close()

    def _qualify(self, name: str, attribute: bool = False) -> str:
        if not name.startswith('{'):
            return name
        uri, local = name[1:].split('}', 1)
        if uri == XML_NS:
            return f'xml:{local}'
        if uri == SVG_NS and not attribute:
            return local
        for scope in reversed(self._scopes):
            for prefix, bound in scope.items():
                # Unprefixed attributes never take the default namespace
                if bound == uri and (prefix or not attribute):
                    return f'{prefix}:{local}' if prefix else local
        return local


def parse_svg(text: str) -> SVGDocument:
    """Parse SVG markup with XXE and entity-expansion protection.

    Raises ParseError for malformed markup and a DefusedXmlException
    subclass if a DTD or entity declaration is still present.
    """
    text = escape_undeclared_entities(strip_doctype(text))
    text, implicit = bind_undeclared_prefixes(text)
    target = _PrefixedTreeBuilder(implicit)
    parser = DefusedXMLParser(
        target=target,
        forbid_dtd=True,
        forbid_entities=True,
        forbid_external=True,
    )
    parser.feed(text)
    root = parser.close()
    return SVGDocument(root=root, namespaces=target.namespaces)

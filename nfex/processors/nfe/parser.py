"""
NF-e XML Parser

Turns raw XML bytes into a generic nested key/value tree:

- attributes are merged into the element's dictionary beside its children
- an element that appears once stays a single value; a repeated one becomes a list
- an element with text only becomes a string; text next to attributes lands under ``_``
- namespaces are dropped from tag names

This mirrors the shape most NF-e tooling works with, so paths such as
``nfeProc.NFe.infNFe.emit.CNPJ`` can be resolved with plain dictionary lookups.
"""

import logging
from typing import Any, Dict, Optional

from lxml import etree

from nfex.exceptions import DocumentParseError

logger = logging.getLogger(__name__)

TEXT_KEY = '_'


def _make_parser() -> etree.XMLParser:
    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        remove_comments=True,
        remove_pis=True,
        remove_blank_text=True,
    )


def _element_to_value(element: etree._Element) -> Any:
    node: Dict[str, Any] = {}

    for name, value in element.attrib.items():
        node[etree.QName(name).localname] = value

    for child in element:
        if not isinstance(child.tag, str):
            continue
        key = etree.QName(child).localname
        value = _element_to_value(child)
        if key in node:
            existing = node[key]
            if isinstance(existing, list):
                existing.append(value)
            else:
                node[key] = [existing, value]
        else:
            node[key] = value

    text = (element.text or '').strip()
    if not node:
        return text
    if text:
        node[TEXT_KEY] = text
    return node


def parse_document(content: bytes, filename: Optional[str] = None) -> Dict[str, Any]:
    """
    Parse XML bytes into a nested dictionary keyed by the root element name.

    Args:
        content: Raw XML document
        filename: Original filename, used in error details only

    Returns:
        ``{root_tag: tree}``

    Raises:
        DocumentParseError: If the bytes are not well-formed XML
    """
    try:
        root = etree.fromstring(content, parser=_make_parser())
    except etree.XMLSyntaxError as e:
        logger.warning(f"Rejected malformed XML document {filename or ''}: {e}")
        raise DocumentParseError(str(e), filename) from e
    except ValueError as e:
        raise DocumentParseError(str(e), filename) from e

    if root is None:
        raise DocumentParseError("document has no root element", filename)

    return {etree.QName(root).localname: _element_to_value(root)}

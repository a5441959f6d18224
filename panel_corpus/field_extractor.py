"""
Selector-driven field extraction.
Thin, stateless helpers over BeautifulSoup CSS selection used by the
harvesters and the record parser.
"""

from typing import Dict, List, Optional
from urllib.parse import urljoin
from bs4 import BeautifulSoup, Tag


def select(doc: BeautifulSoup, css_selector: str) -> List[Tag]:
    """Return the nodes matching a CSS selector, in document order."""
    return doc.select(css_selector)


def text(node: Tag) -> str:
    """Text content of a node with whitespace runs collapsed."""
    return ' '.join(node.get_text().split())


def attribute(node: Tag, name: str) -> Optional[str]:
    """Attribute value of a node, or None when absent."""
    value = node.get(name)
    if value is None:
        return None
    if isinstance(value, list):
        return ' '.join(value)
    return value


def select_text(doc: BeautifulSoup, css_selector: str) -> List[str]:
    return [text(node) for node in select(doc, css_selector)]


def extract_fields(doc: BeautifulSoup, rules: Dict[str, str]) -> Dict[str, List[str]]:
    """
    Apply a set of selector rules to a document.

    Args:
        doc: Parsed document
        rules: Mapping of field name to CSS selector

    Returns:
        Mapping of field name to the texts of all matches, in document order
    """
    return {name: select_text(doc, selector) for name, selector in rules.items()}


def extract_detail_fields(doc: BeautifulSoup, css_selector: str) -> List[str]:
    """
    Raw positional fields of a detail page.

    A single selector group is evaluated so that matches come back in
    document order; empty matches are kept so positions stay stable.
    """
    return select_text(doc, css_selector)


def next_page_url(doc: BeautifulSoup, css_selector: Optional[str], page_url: Optional[str] = None) -> Optional[str]:
    """Absolute URL of the first pagination link matching the selector."""
    if not css_selector:
        return None
    for node in select(doc, css_selector):
        href = attribute(node, 'href')
        if href and href.strip():
            return urljoin(page_url or '', href.strip())
    return None

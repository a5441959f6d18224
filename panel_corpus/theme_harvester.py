"""
Theme harvester: walks the theme taxonomy to map panel ids onto theme labels.
"""

import re
import logging
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urljoin, urldefrag
from bs4 import BeautifulSoup

from .field_extractor import select, text, attribute, next_page_url
from .models import ThemeLink, ThemeRow
from .record_parser import split_title

logger = logging.getLogger(__name__)


class ThemeHarvester:
    """Reads the theme menu and the panel entries listed on each theme page."""

    def __init__(self, site_config: Dict[str, Any]):
        self.site_config = site_config
        self.selectors = site_config['selectors']
        pattern = site_config.get('theme_url_pattern')
        self.theme_pattern = re.compile(pattern) if pattern else None
        self.logger = logging.getLogger(__name__)

    def harvest_themes(self, menu_doc: BeautifulSoup, page_url: Optional[str] = None) -> List[ThemeLink]:
        """
        Theme links from the menu, in document order, one per URL.

        Args:
            menu_doc: Parsed page carrying the theme menu
            page_url: URL of that page, for resolving relative links

        Returns:
            List of ThemeLink(url, label)
        """
        themes = []
        seen = set()
        for anchor in select(menu_doc, self.selectors['theme_menu']):
            href = (attribute(anchor, 'href') or '').strip()
            label = text(anchor)
            if not href or not label:
                continue
            url = urldefrag(urljoin(page_url or '', href))[0]
            if self.theme_pattern and not self.theme_pattern.search(url):
                continue
            if url in seen:
                continue
            seen.add(url)
            themes.append(ThemeLink(url=url, label=label))

        self.logger.info(f"Found {len(themes)} themes")
        return themes

    def harvest_theme_members(self, theme_doc: BeautifulSoup, label: str) -> List[ThemeRow]:
        """Panels listed on one theme page, tagged with the theme label."""
        rows = []
        for node in select(theme_doc, self.selectors['entry_title']):
            panel_id, title = split_title(text(node))
            rows.append(ThemeRow(id=panel_id, title=title, theme=label))
        self.logger.debug(f"Theme {label!r}: {len(rows)} entries")
        return rows

    def next_page_url(self, doc: BeautifulSoup, page_url: Optional[str] = None) -> Optional[str]:
        return next_page_url(doc, self.selectors.get('next_page'), page_url)


def build_theme_membership(rows: Iterable[ThemeRow]) -> Dict[str, List[str]]:
    """
    Map each panel id onto its theme labels.

    Labels keep first-seen order and a repeated (id, label) pair counts
    once. Rows without an id cannot be joined and are left out.
    """
    membership: Dict[str, List[str]] = {}
    for row in rows:
        if not row.id:
            logger.warning(f"Theme {row.theme!r} lists an entry without numeric id: {row.title!r}")
            continue
        labels = membership.setdefault(row.id, [])
        if row.theme not in labels:
            labels.append(row.theme)
    return membership

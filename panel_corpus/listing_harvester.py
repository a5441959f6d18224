"""
Listing harvester: walks the index pages to produce panel summaries and
the seed list of detail-page URLs.
"""

import re
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin, urldefrag
from bs4 import BeautifulSoup

from .exceptions import MalformedPageError
from .field_extractor import select, text, attribute, next_page_url
from .models import PanelSummary
from .record_parser import split_title


class ListingHarvester:
    """
    Extracts entry summaries and detail links from listing pages.
    Output order always follows document order.
    """

    def __init__(self, site_config: Dict[str, Any]):
        self.site_config = site_config
        self.selectors = site_config['selectors']
        self.article_pattern = re.compile(site_config['article_url_pattern'])
        self.logger = logging.getLogger(__name__)

    def harvest_listing(self, doc: BeautifulSoup, page_url: Optional[str] = None) -> List[PanelSummary]:
        """
        Pair entry titles with their snippets.

        Args:
            doc: Parsed listing page
            page_url: URL of the page, used for error reports and link resolution

        Returns:
            One PanelSummary per entry, in document order

        Raises:
            MalformedPageError: If titles and snippets differ in number
        """
        titles = select(doc, self.selectors['entry_title'])
        snippets = select(doc, self.selectors['post_content'])

        if len(titles) != len(snippets):
            raise MalformedPageError(
                page_url, f"{len(titles)} entry titles but {len(snippets)} snippets"
            )

        summaries = []
        for title_node, snippet_node in zip(titles, snippets):
            panel_id, title = split_title(text(title_node))
            summary = PanelSummary(
                id=panel_id,
                title=title,
                snippet=text(snippet_node),
                url=self._title_link(title_node, page_url),
            )
            if summary.is_malformed:
                self.logger.warning(f"Listing entry without numeric id on {page_url}: {title!r}")
            summaries.append(summary)

        self.logger.info(f"Harvested {len(summaries)} entries from {page_url or 'listing page'}")
        return summaries

    def _title_link(self, title_node, page_url: Optional[str]) -> Optional[str]:
        anchor = title_node if title_node.name == 'a' else title_node.select_one('a[href]')
        if anchor is None:
            return None
        href = attribute(anchor, 'href')
        if not href:
            return None
        return urldefrag(urljoin(page_url or '', href.strip()))[0]

    def extract_detail_urls(self, doc: BeautifulSoup, page_url: Optional[str] = None) -> List[str]:
        """
        Detail-page URLs under the listing container.

        Only links matching the dated-article pattern are kept; navigation,
        social and unrelated links are discarded. Duplicates keep their
        first position.
        """
        urls = []
        seen = set()
        for container in select(doc, self.selectors['listing_container']):
            for anchor in container.select('a[href]'):
                href = (attribute(anchor, 'href') or '').strip()
                if not href or href.startswith('#'):
                    continue
                absolute_url = urldefrag(urljoin(page_url or '', href))[0]
                if not self.article_pattern.match(absolute_url):
                    continue
                if absolute_url not in seen:
                    seen.add(absolute_url)
                    urls.append(absolute_url)

        self.logger.info(f"Found {len(urls)} detail URLs on {page_url or 'listing page'}")
        return urls

    def next_page_url(self, doc: BeautifulSoup, page_url: Optional[str] = None) -> Optional[str]:
        """URL of the next listing page, if the page links one."""
        return next_page_url(doc, self.selectors.get('next_page'), page_url)

"""
Central orchestrator that coordinates all pipeline components.
Walks the listing, detail and theme pages, builds the Wide/Long datasets
and collects per-URL failures into a structured report.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Set, Tuple

import pandas as pd
from bs4 import BeautifulSoup

from .config_manager import ConfigManager
from .dataset_builder import build_wide, to_long
from .dataset_saver import DatasetSaver
from .exceptions import FetchError, HarvestExhaustedError, IdMismatchError, MalformedPageError
from .field_extractor import extract_detail_fields
from .listing_harvester import ListingHarvester
from .models import HarvestReport, PageError, PanelRecord, PanelSummary, RawPage
from .record_parser import parse_detail, split_compound_fields
from .scraper import Scraper
from .theme_harvester import ThemeHarvester, build_theme_membership


@dataclass
class HarvestResult:
    """Everything a harvest run produced."""
    wide: pd.DataFrame
    long: pd.DataFrame
    report: HarvestReport
    summaries: List[PanelSummary] = field(default_factory=list)
    themes: Dict[str, List[str]] = field(default_factory=dict)
    paths: Dict[str, str] = field(default_factory=dict)


class Orchestrator:
    """
    Central controller that manages the harvest workflow.

    Retrieval is sequential. A page's result is folded into the
    accumulating records only once it has been fetched and parsed
    completely; per-page errors are recorded and the batch continues.
    """

    def __init__(self, config_manager: ConfigManager, scraper=None, saver: Optional[DatasetSaver] = None):
        """
        Args:
            config_manager: Loaded configuration
            scraper: Anything with fetch_document(url) -> BeautifulSoup;
                defaults to an HTTP Scraper built from the politeness config
            saver: Where to persist the datasets; nothing is written when None
        """
        self.logger = logging.getLogger(__name__)
        self.config_manager = config_manager
        self.site_config = config_manager.get_site_config()
        self.scraper = scraper or Scraper(config_manager.get_politeness_config())
        self.saver = saver

        self.listing_harvester = ListingHarvester(self.site_config)
        self.theme_harvester = ThemeHarvester(self.site_config)
        self.positions = self.site_config['detail_positions']
        self.detail_selector = self.site_config['selectors']['detail_fields']
        self.max_pages = self.site_config['max_listing_pages']

        self.logger.info("Orchestrator initialized successfully")

    def _fetch(self, url: str, report: HarvestReport) -> Optional[BeautifulSoup]:
        """Fetch one document, recording the failure instead of raising."""
        try:
            document = self.scraper.fetch_document(url)
        except FetchError as e:
            self.logger.error(f"Giving up on {url}: {e}")
            report.failed.append(PageError.from_exception(url, e))
            return None
        report.documents_fetched += 1
        return document

    def _walk_pages(self, start_url: str, harvester, report: HarvestReport,
                    visited: Set[str]) -> Iterator[RawPage]:
        """Yield a paginated series of pages starting at start_url."""
        url = start_url
        pages = 0
        while url and url not in visited and pages < self.max_pages:
            visited.add(url)
            document = self._fetch(url, report)
            if document is None:
                return
            pages += 1
            yield RawPage(url=url, document=document)
            url = harvester.next_page_url(document, url)

    def harvest_listing_pages(self, report: HarvestReport) -> Tuple[List[PanelSummary], List[str]]:
        """Summaries and detail URLs from every listing page, in page order."""
        summaries = []
        detail_urls = []
        seen_urls = set()
        visited = set()

        for start_url in self.config_manager.get_listing_urls():
            for page in self._walk_pages(start_url, self.listing_harvester, report, visited):
                # Detail links do not depend on title/snippet pairing
                for url in self.listing_harvester.extract_detail_urls(page.document, page.url):
                    if url not in seen_urls:
                        seen_urls.add(url)
                        detail_urls.append(url)

                try:
                    page_summaries = self.listing_harvester.harvest_listing(page.document, page.url)
                except MalformedPageError as e:
                    self.logger.error(f"Listing entries skipped, detail links kept: {e}")
                    report.skipped.append(PageError.from_exception(page.url, e))
                    continue

                for summary in page_summaries:
                    if summary.is_malformed:
                        report.malformed_entries.append(PageError(
                            url=summary.url or page.url,
                            error_type='MalformedEntry',
                            message=f"listing entry without numeric id: {summary.title!r}",
                        ))
                summaries.extend(page_summaries)

        self.logger.info(f"Listing pass: {len(summaries)} entries, {len(detail_urls)} detail URLs")
        return summaries, detail_urls

    def parse_detail_page(self, page: RawPage, expected_id: Optional[str] = None) -> PanelRecord:
        """
        Normalize one detail page.

        Raises:
            MalformedPageError: If the page does not carry the expected fields
            IdMismatchError: If the page id differs from the listing id
        """
        fields = extract_detail_fields(page.document, self.detail_selector)
        detail = parse_detail(fields, self.positions, page.url)
        record = split_compound_fields(detail)
        if expected_id and record.id != expected_id:
            raise IdMismatchError(page.url, expected_id, record.id)
        return record

    def harvest_details(self, urls: List[str], summaries: List[PanelSummary],
                        report: HarvestReport) -> List[PanelRecord]:
        """Fetch and normalize every detail page; failures go to the report."""
        expected_ids = {summary.url: summary.id for summary in summaries if summary.url and summary.id}
        records = []

        for index, url in enumerate(urls, start=1):
            document = self._fetch(url, report)
            if document is None:
                continue
            try:
                record = self.parse_detail_page(RawPage(url=url, document=document), expected_ids.get(url))
            except MalformedPageError as e:
                self.logger.error(f"Skipping detail page: {e}")
                report.skipped.append(PageError.from_exception(url, e))
                continue
            except IdMismatchError as e:
                self.logger.error(str(e))
                report.mismatched.append(PageError.from_exception(url, e))
                continue

            records.append(record)
            self.logger.debug(f"[{index}/{len(urls)}] Parsed panel {record.id} from {url}")

        self.logger.info(f"Detail pass: {len(records)} of {len(urls)} pages parsed")
        return records

    def harvest_theme_membership(self, report: HarvestReport) -> Dict[str, List[str]]:
        """Theme labels per panel id; empty when no theme menu is configured."""
        menu_url = self.site_config.get('theme_menu_url')
        if not menu_url:
            self.logger.info("No theme menu configured, skipping theme pass")
            return {}

        menu_document = self._fetch(menu_url, report)
        if menu_document is None:
            return {}

        rows = []
        visited = set()
        for theme in self.theme_harvester.harvest_themes(menu_document, menu_url):
            for page in self._walk_pages(theme.url, self.theme_harvester, report, visited):
                page_rows = self.theme_harvester.harvest_theme_members(page.document, theme.label)
                for row in page_rows:
                    if not row.id:
                        report.malformed_entries.append(PageError(
                            url=page.url,
                            error_type='MalformedEntry',
                            message=f"theme entry without numeric id: {row.title!r}",
                        ))
                rows.extend(page_rows)

        membership = build_theme_membership(rows)
        self.logger.info(f"Theme pass: {len(membership)} panels carry at least one theme")
        return membership

    def run(self) -> HarvestResult:
        """
        Execute the full harvest and build the datasets.

        Raises:
            HarvestExhaustedError: If not a single document could be fetched
        """
        report = HarvestReport()

        summaries, detail_urls = self.harvest_listing_pages(report)
        records = self.harvest_details(detail_urls, summaries, report)
        themes = self.harvest_theme_membership(report)

        if report.documents_fetched == 0:
            raise HarvestExhaustedError(
                f"No documents could be retrieved ({len(report.failed)} fetches failed)"
            )

        wide = build_wide(records, themes)
        long = to_long(wide)
        report.records_built = len(wide)

        paths = {}
        if self.saver is not None:
            paths = {key: str(path) for key, path in self.saver.save_datasets(wide, long, report).items()}

        self.logger.info(
            f"Harvest complete: {report.records_built} panels, {report.error_count} page errors, "
            f"{len(report.malformed_entries)} malformed entries"
        )
        return HarvestResult(wide=wide, long=long, report=report,
                             summaries=summaries, themes=themes, paths=paths)

    def close(self):
        close = getattr(self.scraper, 'close', None)
        if close:
            close()

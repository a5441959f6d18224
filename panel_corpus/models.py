"""
Data model for scraped panels.
Scrape-time transients (RawPage, PanelSummary, PanelDetail) and the
normalized PanelRecord, plus the run report that collects per-URL errors.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup


@dataclass
class RawPage:
    """A parsed document together with the URL it was fetched from."""
    url: str
    document: BeautifulSoup


@dataclass
class PanelSummary:
    """One listing entry."""
    id: Optional[str]
    title: str
    snippet: str
    url: Optional[str] = None

    @property
    def is_malformed(self) -> bool:
        return not self.id


@dataclass
class PanelDetail:
    """Raw, not yet split fields of one detail page."""
    raw_title: str
    raw_organizer_block: str
    raw_posted_date: str
    raw_desc_block: str
    url: Optional[str] = None


@dataclass
class PanelRecord:
    """Normalized panel: the canonical unit of the datasets."""
    id: str
    title: str
    organizers: List[str] = field(default_factory=list)
    posted: Optional[str] = None
    description: str = ''
    keywords: List[str] = field(default_factory=list)
    has_unseparated_suffix: bool = False


@dataclass
class ThemeLink:
    """Theme menu entry."""
    url: str
    label: str


@dataclass
class ThemeRow:
    """One panel as listed on a theme page."""
    id: Optional[str]
    title: str
    theme: str


@dataclass
class PageError:
    """A per-URL failure collected into the run report."""
    url: Optional[str]
    error_type: str
    message: str

    @classmethod
    def from_exception(cls, url: Optional[str], error: Exception) -> 'PageError':
        return cls(url=url, error_type=type(error).__name__, message=str(error))


@dataclass
class HarvestReport:
    """
    Structured error report for a harvest run.

    skipped: pages with unexpected structure (MalformedPageError)
    failed: pages that could not be fetched after retries (FetchError)
    mismatched: detail pages whose id disagreed with the listing (IdMismatchError)
    malformed_entries: listing or theme entries without a numeric id
    """
    documents_fetched: int = 0
    records_built: int = 0
    skipped: List[PageError] = field(default_factory=list)
    failed: List[PageError] = field(default_factory=list)
    mismatched: List[PageError] = field(default_factory=list)
    malformed_entries: List[PageError] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.skipped) + len(self.failed) + len(self.mismatched)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['error_count'] = self.error_count
        return data

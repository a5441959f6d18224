"""
Record parsing: turns the raw positional fields of a detail page into a
normalized PanelRecord by splitting its compound fields.
"""

import re
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .exceptions import MalformedPageError
from .models import PanelDetail, PanelRecord

logger = logging.getLogger(__name__)

# Leading numeric id followed by a punctuation separator, e.g. "042. Title".
# A bare number ("2030 Agenda", "3.5 Degrees") is part of the title.
TITLE_PATTERN = re.compile(r'^\s*(\d+)\s*[.:)\-–—](?!\d)[\s.:)\-–—]*(.*)$', re.DOTALL)

CONTACT_MARKER = '\n\nContact'
KEYWORDS_MARKER = 'Keywords: '


@dataclass(frozen=True)
class SplitRule:
    """How one compound field is split into an ordered list of values."""
    delimiter: str
    trim: bool = True
    drop_empty: bool = True

    def apply(self, block: Optional[str]) -> List[str]:
        if not block:
            return []
        values = re.split(self.delimiter, block)
        if self.trim:
            values = [value.strip() for value in values]
        if self.drop_empty:
            values = [value for value in values if value]
        return values


SPLIT_RULES: Dict[str, SplitRule] = {
    'organizers': SplitRule(delimiter=re.escape('; ')),
    'keywords': SplitRule(delimiter=r'[,;]'),
}


def split_title(raw_title: str) -> Tuple[Optional[str], str]:
    """
    Split a raw title into its numeric id and the bare title.

    Returns:
        (id, title); id is None when the title carries no numeric prefix,
        in which case the title is returned trimmed but otherwise unchanged.
    """
    raw_title = raw_title or ''
    match = TITLE_PATTERN.match(raw_title)
    if match:
        return match.group(1), match.group(2).strip()
    return None, raw_title.strip()


def strip_id_prefix(raw_title: str) -> str:
    """Title without its numeric prefix; a no-op on an already stripped title."""
    return split_title(raw_title)[1]


def parse_detail(raw_fields: Sequence[str], positions: Dict[str, int],
                 url: Optional[str] = None) -> PanelDetail:
    """
    Assign raw detail-page fields to their positions.

    The description position is open-ended: every field from it to the end
    is joined with blank lines, so trailing contact and keyword paragraphs
    stay part of the description block.

    Raises:
        MalformedPageError: If there are fewer fields than the positions need
    """
    required = max(positions.values()) + 1
    if len(raw_fields) < required:
        raise MalformedPageError(
            url, f"expected at least {required} detail fields, found {len(raw_fields)}"
        )

    desc_start = positions['desc']
    return PanelDetail(
        raw_title=raw_fields[positions['title']],
        raw_organizer_block=raw_fields[positions['organizer']],
        raw_posted_date=raw_fields[positions['posted']],
        raw_desc_block='\n\n'.join(raw_fields[desc_start:]),
        url=url,
    )


def split_description_block(block: str) -> Tuple[str, List[str], bool]:
    """
    Separate description text from the contact and keyword suffix.

    Returns:
        (description, keywords, has_unseparated_suffix)
    """
    keywords = []
    keyword_index = block.rfind(KEYWORDS_MARKER)
    if keyword_index >= 0:
        keywords = SPLIT_RULES['keywords'].apply(block[keyword_index + len(KEYWORDS_MARKER):])

    contact_index = block.find(CONTACT_MARKER)
    if contact_index >= 0:
        return block[:contact_index].strip(), keywords, False
    return block.strip(), keywords, True


def split_compound_fields(detail: PanelDetail) -> PanelRecord:
    """
    Normalize a PanelDetail into a PanelRecord.

    Raises:
        MalformedPageError: If the title carries no numeric id
    """
    panel_id, title = split_title(detail.raw_title)
    if not panel_id:
        raise MalformedPageError(detail.url, f"title has no numeric id: {detail.raw_title!r}")

    description, keywords, unseparated = split_description_block(detail.raw_desc_block)
    if unseparated:
        logger.debug(f"Panel {panel_id}: no contact marker, description kept whole")

    return PanelRecord(
        id=panel_id,
        title=title,
        organizers=SPLIT_RULES['organizers'].apply(detail.raw_organizer_block),
        posted=detail.raw_posted_date.strip() or None,
        description=description,
        keywords=keywords,
        has_unseparated_suffix=unseparated,
    )

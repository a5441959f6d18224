"""
Dataset builder: joins panel records with theme membership and reshapes
them into the Wide (one row per panel) and Long (one row per
organizer x keyword x theme combination) datasets.

Each multi-valued family is modelled as an (id, order, value) relation;
the Wide shape is a projection of those relations with numbered columns
whose width is derived from the data at build time.
"""

import re
import logging
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .exceptions import SchemaWidthError
from .models import PanelRecord

logger = logging.getLogger(__name__)

FAMILIES = ('organizer', 'keyword', 'theme')
SUFFIX_COLUMN = 'hasUnseparatedSuffix'

LONG_COLUMNS = [
    'id', 'title',
    'organizer_order', 'organizer',
    'keyword_order', 'keyword',
    'theme_order', 'theme',
    'description', 'posted', SUFFIX_COLUMN,
]


def _family_values(record: PanelRecord, themes: Dict[str, Sequence[str]], family: str) -> List[str]:
    if family == 'organizer':
        return list(record.organizers)
    if family == 'keyword':
        return list(record.keywords)
    return list(themes.get(record.id, []))


def _is_null(value) -> bool:
    return value is None or (not isinstance(value, (list, tuple)) and pd.isna(value))


def _none_if_null(value):
    return None if _is_null(value) else value


def _nullify(series: pd.Series) -> pd.Series:
    """Object series with every missing value as None."""
    return pd.Series([_none_if_null(value) for value in series], index=series.index, dtype=object)


def _require_ordered(themes: Dict[str, Sequence[str]]):
    """Reject set-valued theme membership; label order becomes theme_1..theme_k."""
    for panel_id, labels in themes.items():
        if isinstance(labels, (set, frozenset)):
            raise TypeError(f"Themes for panel {panel_id} must be an ordered list, not a set")


def dedupe_records(records: Sequence[PanelRecord]) -> List[PanelRecord]:
    """Keep the first record per id, in input order."""
    unique: Dict[str, PanelRecord] = {}
    for record in records:
        existing = unique.get(record.id)
        if existing is None:
            unique[record.id] = record
        elif existing != record:
            logger.warning(f"Conflicting duplicate record for panel {record.id}, keeping the first")
    return list(unique.values())


def family_relation(records: Sequence[PanelRecord], themes: Dict[str, Sequence[str]],
                    family: str) -> pd.DataFrame:
    """The (id, order, value) relation of one multi-valued family; order is 1-based."""
    _require_ordered(themes)
    rows = [
        {'id': record.id, 'order': order, 'value': value}
        for record in records
        for order, value in enumerate(_family_values(record, themes, family), start=1)
    ]
    return pd.DataFrame(rows, columns=['id', 'order', 'value'])


def family_columns(frame: pd.DataFrame, family: str) -> List[str]:
    """Numbered columns of a family in numeric order (organizer_1, organizer_2, ...)."""
    pattern = re.compile(rf'^{family}_(\d+)$')
    numbered = [(int(match.group(1)), column)
                for column in frame.columns
                for match in [pattern.match(column)] if match]
    return [column for _, column in sorted(numbered)]


def wide_columns(widths: Dict[str, int]) -> List[str]:
    columns = ['id', 'title']
    columns += [f'organizer_{i}' for i in range(1, widths['organizer'] + 1)]
    columns += ['posted', 'description']
    columns += [f'keyword_{i}' for i in range(1, widths['keyword'] + 1)]
    columns += [f'theme_{i}' for i in range(1, widths['theme'] + 1)]
    columns.append(SUFFIX_COLUMN)
    return columns


def _flatten(family: str, values: List[str], width: int) -> Dict[str, Optional[str]]:
    if len(values) > width:
        raise SchemaWidthError(f"{len(values)} {family} values do not fit {width} columns")
    padded = values + [None] * (width - len(values))
    return {f'{family}_{i}': value for i, value in enumerate(padded, start=1)}


def build_wide(records: Sequence[PanelRecord], themes: Dict[str, Sequence[str]]) -> pd.DataFrame:
    """
    Left-join records with theme membership into the Wide dataset.

    Records without themes keep all-null theme columns. Column width per
    family is the largest list seen across all records (at least one
    column), so no value is ever truncated.
    """
    _require_ordered(themes)
    records = dedupe_records(records)
    widths = {
        family: max([len(_family_values(record, themes, family)) for record in records] + [1])
        for family in FAMILIES
    }

    unmatched = set(themes) - {record.id for record in records}
    if unmatched:
        logger.info(f"{len(unmatched)} themed ids have no matching record and are left out")

    rows = []
    for record in records:
        row = {'id': record.id, 'title': record.title}
        row.update(_flatten('organizer', record.organizers, widths['organizer']))
        row['posted'] = record.posted
        row['description'] = record.description
        row.update(_flatten('keyword', record.keywords, widths['keyword']))
        row.update(_flatten('theme', list(themes.get(record.id, [])), widths['theme']))
        row[SUFFIX_COLUMN] = record.has_unseparated_suffix
        rows.append(row)

    wide = pd.DataFrame(rows, columns=wide_columns(widths))
    if not rows:
        wide[SUFFIX_COLUMN] = wide[SUFFIX_COLUMN].astype(bool)
    logger.info(f"Built wide dataset: {len(wide)} rows, widths {widths}")
    return wide


def _unpivot(wide: pd.DataFrame, family: str) -> pd.DataFrame:
    order_column = f'{family}_order'
    columns = family_columns(wide, family)
    if not columns:
        return pd.DataFrame({'id': pd.Series(dtype=object),
                             order_column: pd.Series(dtype='Int64'),
                             family: pd.Series(dtype=object)})

    melted = wide[['id'] + columns].melt(id_vars='id', var_name=order_column, value_name=family)
    melted = melted[melted[family].notna()].copy()
    melted[order_column] = melted[order_column].str.rsplit('_', n=1).str[1].astype('int64')
    return melted


def to_long(wide: pd.DataFrame) -> pd.DataFrame:
    """
    Unpivot each family independently and cross them per id.

    An id with 2 organizers, 3 keywords and 2 themes yields 12 rows. A
    family with no values for an id contributes a single null slot so the
    panel is never dropped. Rows follow Wide row order, then organizer,
    keyword and theme order.
    """
    base = wide[['id', 'title', 'posted', 'description', SUFFIX_COLUMN]].copy()
    base['_position'] = range(len(base))

    long = base
    for family in FAMILIES:
        long = long.merge(_unpivot(wide, family), on='id', how='left')

    sort_columns = ['_position'] + [f'{family}_order' for family in FAMILIES]
    long = long.sort_values(sort_columns, kind='mergesort', na_position='first')

    for family in FAMILIES:
        order_column = f'{family}_order'
        long[order_column] = long[order_column].astype('Int64')
        long[family] = _nullify(long[family])
    long['posted'] = _nullify(long['posted'])

    long = long[LONG_COLUMNS].reset_index(drop=True)
    logger.info(f"Built long dataset: {len(long)} rows from {len(wide)} panels")
    return long


def _ordered_values(group: pd.DataFrame, family: str) -> List[str]:
    order_column = f'{family}_order'
    pairs = group[[order_column, family]].dropna().drop_duplicates()
    return pairs.sort_values(order_column, kind='mergesort')[family].tolist()


def records_from_long(long: pd.DataFrame) -> Tuple[List[PanelRecord], Dict[str, List[str]]]:
    """Re-pivot the Long dataset back into records and theme membership."""
    records = []
    themes = {}
    for panel_id, group in long.groupby('id', sort=False):
        first = group.iloc[0]
        records.append(PanelRecord(
            id=panel_id,
            title=first['title'],
            organizers=_ordered_values(group, 'organizer'),
            posted=_none_if_null(first['posted']),
            description=first['description'],
            keywords=_ordered_values(group, 'keyword'),
            has_unseparated_suffix=bool(first[SUFFIX_COLUMN]),
        ))
        labels = _ordered_values(group, 'theme')
        if labels:
            themes[panel_id] = labels
    return records, themes


def records_from_wide(wide: pd.DataFrame) -> Tuple[List[PanelRecord], Dict[str, List[str]]]:
    """Read records and theme membership back out of the Wide dataset."""
    columns = {family: family_columns(wide, family) for family in FAMILIES}
    records = []
    themes = {}
    for row in wide.to_dict('records'):
        values = {
            family: [row[column] for column in columns[family] if not _is_null(row[column])]
            for family in FAMILIES
        }
        records.append(PanelRecord(
            id=row['id'],
            title=row['title'],
            organizers=values['organizer'],
            posted=_none_if_null(row['posted']),
            description=row['description'],
            keywords=values['keyword'],
            has_unseparated_suffix=bool(row[SUFFIX_COLUMN]),
        ))
        if values['theme']:
            themes[row['id']] = values['theme']
    return records, themes


def family_frequencies(long: pd.DataFrame, family: str) -> pd.DataFrame:
    """
    Number of distinct panels per organizer, keyword or theme value.

    Sorted by count descending; ties keep first-seen order.
    """
    if family not in FAMILIES:
        raise ValueError(f"Unknown family {family!r}; expected one of {', '.join(FAMILIES)}")
    pairs = long[['id', family]].dropna().drop_duplicates()
    counts = pairs.groupby(family, sort=False).size().reset_index(name='panels')
    return counts.sort_values('panels', ascending=False, kind='mergesort').reset_index(drop=True)

"""
N-gram statistics engine.

Tokenizes panel descriptions into n-grams, filters stop words, counts
them and scores them with tf-idf, either over the whole corpus or
independently per theme (or organizer) partition of the Long dataset.

Stop-word policy for n > 1 is a caller decision. ANY_CONSTITUENT drops an
n-gram when any of its words is a stop word, which also removes real
phrases whose inner word is a stop word ("women in science"). NONE keeps
every n-gram and leaves the stop words in the counts.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional

import numpy as np
import pandas as pd
import spacy

from .exceptions import ConfigurationError, UnseenNgramError

logger = logging.getLogger(__name__)


class StopwordMode(Enum):
    """Stop-word filtering policy for n-grams."""
    NONE = "none"
    ANY_CONSTITUENT = "any-constituent"


@lru_cache(maxsize=None)
def _load_tokenizer(language: str):
    return spacy.blank(language).tokenizer


@lru_cache(maxsize=None)
def default_stopwords(language: str = 'en') -> FrozenSet[str]:
    """spaCy's stop-word list for a language."""
    return frozenset(spacy.blank(language).Defaults.stop_words)


def _normalize_ngram(ngram: str) -> str:
    return ' '.join(ngram.lower().split())


@dataclass(frozen=True)
class StatisticsConfig:
    """Parameters recognized by the statistics engine."""
    n: int = 1
    stopword_mode: StopwordMode = StopwordMode.ANY_CONSTITUENT
    group_by: Optional[str] = None
    min_count: int = 1
    top_n: Optional[int] = 25
    language: str = 'en'
    use_default_stopwords: bool = True
    custom_stopwords: FrozenSet[str] = field(default_factory=frozenset)
    custom_stop_ngrams: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'StatisticsConfig':
        """Build from the 'statistics' configuration section."""
        try:
            mode = StopwordMode(data.get('stopword_mode', StopwordMode.ANY_CONSTITUENT.value))
        except ValueError as e:
            raise ConfigurationError(f"Unknown stopword_mode: {e}")
        group_by = data.get('group_by')
        return cls(
            n=int(data.get('n', 1)),
            stopword_mode=mode,
            group_by=None if group_by in (None, 'none') else group_by,
            min_count=int(data.get('min_count', 1)),
            top_n=data.get('top_n', 25),
            language=data.get('language', 'en'),
            use_default_stopwords=bool(data.get('default_stopwords', True)),
            custom_stopwords=frozenset(word.lower() for word in data.get('custom_stopwords') or []),
            custom_stop_ngrams=frozenset(
                _normalize_ngram(ngram) for ngram in data.get('custom_stop_ngrams') or []
            ),
        )

    @property
    def stopwords(self) -> FrozenSet[str]:
        base = default_stopwords(self.language) if self.use_default_stopwords else frozenset()
        return base | self.custom_stopwords


def words(text: str, language: str = 'en') -> List[str]:
    """Lower-cased word tokens; punctuation and whitespace tokens are dropped."""
    tokenizer = _load_tokenizer(language)
    return [
        token.lower_ for token in tokenizer(text or '')
        if any(char.isalnum() for char in token.text)
    ]


def tokenize(text: str, n: int = 1, language: str = 'en') -> Iterator[str]:
    """
    Overlapping n-grams of consecutive words.

    Each call tokenizes afresh and returns a new lazy iterator, so the
    result can be recomputed any number of times.
    """
    if n < 1:
        raise ValueError(f"n-gram size must be positive, got {n}")
    tokens = words(text, language)
    return (' '.join(tokens[i:i + n]) for i in range(len(tokens) - n + 1))


def filter_stopwords(ngram: str, stopwords: Iterable[str],
                     mode: StopwordMode = StopwordMode.ANY_CONSTITUENT) -> bool:
    """True when the n-gram should be kept under the given policy."""
    if mode is StopwordMode.NONE:
        return True
    return not any(word in stopwords for word in ngram.split(' '))


def count(ngrams: Iterable[str]) -> Dict[str, int]:
    """Counts by descending frequency; ties keep first-seen order."""
    return dict(Counter(ngrams).most_common())


class NgramStatistics:
    """
    Frequency and tf-idf statistics over one corpus of documents.

    tf   = count of the n-gram in the document / n-grams kept in the document
    idf  = ln(documents in corpus / documents containing the n-gram)
    tf-idf = tf * idf

    Only n-grams observed at least once are scored; asking about any other
    n-gram raises UnseenNgramError.
    """

    def __init__(self, documents: Mapping[str, str], config: StatisticsConfig = None):
        self.config = config or StatisticsConfig()
        self.documents = dict(documents)
        self.logger = logging.getLogger(__name__)
        self._stopwords = self.config.stopwords
        self.table = self._build_table()
        self._idf = dict(zip(self.table['ngram'], self.table['idf']))
        self._lookup = {
            (document, ngram): (n, tf)
            for document, ngram, n, tf in zip(
                self.table['document'], self.table['ngram'], self.table['n'], self.table['tf'])
        }

    def _keep(self, ngram: str) -> bool:
        if ngram in self.config.custom_stop_ngrams:
            return False
        return filter_stopwords(ngram, self._stopwords, self.config.stopword_mode)

    def document_ngrams(self, document_id: str) -> List[str]:
        """Kept n-grams of one document, in text order."""
        text = self.documents[document_id]
        return [gram for gram in tokenize(text, self.config.n, self.config.language) if self._keep(gram)]

    def _build_table(self) -> pd.DataFrame:
        rows = []
        for document_id in self.documents:
            # Counter keeps first-seen order, which frequency_table relies on
            for ngram, n in Counter(self.document_ngrams(document_id)).items():
                rows.append((document_id, ngram, n))

        table = pd.DataFrame(rows, columns=['document', 'ngram', 'n'])
        total_documents = len(self.documents)
        if table.empty:
            for column in ('tf', 'idf', 'tf_idf'):
                table[column] = pd.Series(dtype='float64')
            return table

        table['tf'] = table['n'] / table.groupby('document')['n'].transform('sum')
        containing = table.groupby('ngram')['document'].transform('size')
        table['idf'] = np.log(total_documents / containing)
        table['tf_idf'] = table['tf'] * table['idf']

        self.logger.debug(f"Scored {table['ngram'].nunique()} distinct {self.config.n}-grams "
                          f"over {total_documents} documents")
        return table

    @property
    def document_count(self) -> int:
        return len(self.documents)

    def _require_seen(self, ngram: str):
        if ngram not in self._idf:
            raise UnseenNgramError(f"n-gram never observed in corpus: {ngram!r}")

    def _require_document(self, document_id: str):
        if document_id not in self.documents:
            raise KeyError(f"Unknown document: {document_id!r}")

    def raw_count(self, document_id: str, ngram: str) -> int:
        self._require_seen(ngram)
        self._require_document(document_id)
        return int(self._lookup.get((document_id, ngram), (0, 0.0))[0])

    def term_frequency(self, document_id: str, ngram: str) -> float:
        self._require_seen(ngram)
        self._require_document(document_id)
        return float(self._lookup.get((document_id, ngram), (0, 0.0))[1])

    def inverse_document_frequency(self, ngram: str) -> float:
        self._require_seen(ngram)
        return float(self._idf[ngram])

    def tfidf(self, document_id: str, ngram: str) -> float:
        return self.term_frequency(document_id, ngram) * self.inverse_document_frequency(ngram)

    def frequency_table(self, min_count: int = None, top_n: int = None) -> pd.DataFrame:
        """
        Corpus-wide n-gram counts.

        Sorted by count descending with ties in first-seen order; rows
        under min_count are dropped and at most top_n rows are kept.
        """
        min_count = self.config.min_count if min_count is None else min_count
        totals = self.table.groupby('ngram', sort=False)['n'].sum().reset_index()
        totals = totals.sort_values('n', ascending=False, kind='mergesort')
        totals = totals[totals['n'] >= min_count]
        if top_n is not None:
            totals = totals.head(top_n)
        return totals.reset_index(drop=True)

    def tfidf_table(self, top_n: int = None) -> pd.DataFrame:
        """Per-document scores ordered by document, then tf-idf descending."""
        table = self.table.copy()
        table['_position'] = table['document'].map({doc: i for i, doc in enumerate(self.documents)})
        table = table.sort_values(['_position', 'tf_idf'], ascending=[True, False], kind='mergesort')
        if top_n is not None:
            table = table.groupby('document', sort=False).head(top_n)
        return table.drop(columns='_position').reset_index(drop=True)


def corpus_documents(long: pd.DataFrame) -> Dict[str, str]:
    """One document per panel: its description, keyed by id."""
    panels = long.drop_duplicates('id')
    return {panel_id: description or '' for panel_id, description in zip(panels['id'], panels['description'])}


def grouped_statistics(long: pd.DataFrame, config: StatisticsConfig,
                       group_by: str = 'theme') -> Dict[str, NgramStatistics]:
    """
    Statistics computed independently per partition of the Long dataset.

    A document is one (id, group value) pair's description, so a panel
    listed under several themes is scored separately within each theme.
    Rows without a group value belong to no partition.
    """
    if group_by not in long.columns:
        raise ConfigurationError(f"Cannot group by {group_by!r}: no such column")
    pairs = long[['id', group_by, 'description']].dropna(subset=[group_by])
    pairs = pairs.drop_duplicates(['id', group_by])
    ungrouped = long.loc[long[group_by].isna(), 'id'].nunique()
    if ungrouped:
        logger.info(f"{ungrouped} panels have no {group_by} and are left out of grouped statistics")

    grouped = {}
    for label, group in pairs.groupby(group_by, sort=False):
        documents = {panel_id: description or ''
                     for panel_id, description in zip(group['id'], group['description'])}
        grouped[label] = NgramStatistics(documents, config)
    return grouped


def run_statistics(long: pd.DataFrame, config: StatisticsConfig) -> Dict[str, pd.DataFrame]:
    """
    Frequency and tf-idf tables for the configured analysis.

    Grouped tables carry the group value in a leading column named after
    the grouping family.
    """
    if config.group_by is None:
        stats = NgramStatistics(corpus_documents(long), config)
        return {
            'frequency': stats.frequency_table(top_n=config.top_n),
            'tfidf': stats.tfidf_table(top_n=config.top_n),
        }

    frequency_frames = []
    tfidf_frames = []
    for label, stats in grouped_statistics(long, config, config.group_by).items():
        frequency_frames.append(stats.frequency_table(top_n=config.top_n).assign(**{config.group_by: label}))
        tfidf_frames.append(stats.tfidf_table(top_n=config.top_n).assign(**{config.group_by: label}))

    def combine(frames: List[pd.DataFrame], columns: List[str]) -> pd.DataFrame:
        if not frames:
            return pd.DataFrame(columns=[config.group_by] + columns)
        combined = pd.concat(frames, ignore_index=True)
        return combined[[config.group_by] + columns]

    return {
        'frequency': combine(frequency_frames, ['ngram', 'n']),
        'tfidf': combine(tfidf_frames, ['document', 'ngram', 'n', 'tf', 'idf', 'tf_idf']),
    }

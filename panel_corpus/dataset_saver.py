"""
Persistence for the derived datasets.
Writes Wide/Long as CSV (text) and pandas pickle (exact types, null vs
empty string preserved), statistics tables as CSV, and the run report
as JSON. Every write goes through a temporary file and an atomic rename.
"""

import os
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict

import numpy as np
import pandas as pd

from .dataset_builder import FAMILIES, SUFFIX_COLUMN
from .exceptions import ScrapingError
from .models import HarvestReport

DATASET_NAMES = ('wide', 'long')


class DatasetSaver:
    """Writes and reads the pipeline's immutable output artifacts."""

    def __init__(self, storage_config: Dict[str, Any]):
        self.storage_config = storage_config
        self.output_dir = Path(storage_config['output_dir'])
        self.logger = logging.getLogger(__name__)
        self._ensure_directories()

    def _ensure_directories(self):
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ScrapingError(f"Failed to create directory {self.output_dir}: {e}")

    def _atomic_write(self, file_path: Path, writer: Callable[[Path], None]) -> Path:
        """Run writer against a temp path, then rename over the target."""
        temp_path = file_path.with_suffix(file_path.suffix + '.tmp')
        try:
            writer(temp_path)
            os.replace(temp_path, file_path)
        except Exception as e:
            if temp_path.exists():
                temp_path.unlink()
            raise ScrapingError(f"Failed to write {file_path}: {e}") from e
        self.logger.info(f"Wrote {file_path}")
        return file_path

    def save_frame(self, frame: pd.DataFrame, name: str) -> Dict[str, Path]:
        """Save one frame as both <name>.csv and <name>.pkl."""
        csv_path = self._atomic_write(
            self.output_dir / f"{name}.csv",
            lambda path: frame.to_csv(path, index=False, encoding='utf-8', lineterminator='\n'),
        )
        pickle_path = self._atomic_write(
            self.output_dir / f"{name}.pkl",
            lambda path: frame.to_pickle(path, compression=None),
        )
        return {'csv': csv_path, 'pickle': pickle_path}

    def save_table(self, frame: pd.DataFrame, name: str) -> Path:
        """Save a statistics table as CSV only."""
        return self._atomic_write(
            self.output_dir / f"{name}.csv",
            lambda path: frame.to_csv(path, index=False, encoding='utf-8', lineterminator='\n'),
        )

    def save_report(self, report: HarvestReport) -> Path:
        def write(path: Path):
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(report.to_dict(), f, indent=2, ensure_ascii=False)
                f.write('\n')

        return self._atomic_write(self.output_dir / 'report.json', write)

    def save_datasets(self, wide: pd.DataFrame, long: pd.DataFrame,
                      report: HarvestReport = None) -> Dict[str, Path]:
        """Persist both datasets and, when given, the run report."""
        paths = {}
        for name, frame in (('wide', wide), ('long', long)):
            for fmt, path in self.save_frame(frame, name).items():
                paths[f"{name}_{fmt}"] = path
        if report is not None:
            paths['report'] = self.save_report(report)
        return paths

    def load_dataset(self, name: str, fmt: str = 'pickle') -> pd.DataFrame:
        """
        Load a saved dataset.

        Args:
            name: 'wide' or 'long'
            fmt: 'pickle' for exact types, 'csv' for the text export

        Returns:
            The dataset as a DataFrame
        """
        if name not in DATASET_NAMES:
            raise ValueError(f"Unknown dataset {name!r}")
        if fmt == 'pickle':
            path = self.output_dir / f"{name}.pkl"
            if not path.exists():
                raise ScrapingError(f"Dataset not found: {path}")
            return pd.read_pickle(path, compression=None)
        if fmt == 'csv':
            path = self.output_dir / f"{name}.csv"
            if not path.exists():
                raise ScrapingError(f"Dataset not found: {path}")
            return self._read_csv(path, name)
        raise ValueError(f"Unknown format {fmt!r}")

    def _read_csv(self, path: Path, name: str) -> pd.DataFrame:
        # CSV cannot tell null from empty string: empty cells load as null
        frame = pd.read_csv(path, dtype=str, keep_default_na=False, na_values=[''], encoding='utf-8')
        frame = frame.astype(object).replace({np.nan: None})
        frame[SUFFIX_COLUMN] = frame[SUFFIX_COLUMN].map(lambda value: value == 'True')
        if name == 'long':
            for family in FAMILIES:
                frame[f'{family}_order'] = pd.to_numeric(frame[f'{family}_order']).astype('Int64')
        return frame

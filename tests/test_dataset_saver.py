import json

import pytest

from panel_corpus.dataset_builder import build_wide, records_from_long, to_long
from panel_corpus.dataset_saver import DatasetSaver
from panel_corpus.exceptions import ScrapingError
from panel_corpus.models import HarvestReport, PageError


@pytest.fixture
def saver(tmp_path):
    return DatasetSaver({'output_dir': str(tmp_path / 'output')})


def test_pickle_round_trip_keeps_null_and_empty_string(saver, records, themes):
    wide = build_wide(records, themes)
    long = to_long(wide)
    saver.save_datasets(wide, long)

    loaded_wide = saver.load_dataset('wide')
    loaded_long = saver.load_dataset('long')
    assert loaded_wide.equals(wide)
    assert loaded_long.equals(long)
    assert loaded_wide.iloc[1]['description'] == ''
    assert loaded_wide.iloc[1]['posted'] is None


def test_csv_export_is_self_describing(saver, records, themes, tmp_path):
    wide = build_wide(records, themes)
    saver.save_datasets(wide, to_long(wide))
    header = (tmp_path / 'output' / 'wide.csv').read_text(encoding='utf-8').splitlines()[0]
    assert header == ('id,title,organizer_1,organizer_2,posted,description,'
                      'keyword_1,keyword_2,keyword_3,theme_1,theme_2,hasUnseparatedSuffix')


def test_csv_load_keeps_ids_and_types(saver, records, themes):
    wide = build_wide(records, themes)
    saver.save_datasets(wide, to_long(wide))

    long = saver.load_dataset('long', fmt='csv')
    assert str(long['keyword_order'].dtype) == 'Int64'
    rebuilt, rebuilt_themes = records_from_long(long)
    assert [record.id for record in rebuilt] == ['042', '043']
    assert rebuilt[0] == records[0]
    assert rebuilt_themes == {'042': ['Gender', 'Data Justice']}


def test_report_is_written_as_json(saver, tmp_path):
    report = HarvestReport(documents_fetched=3, records_built=1)
    report.skipped.append(PageError(url='https://x.org/1', error_type='MalformedPageError', message='m'))
    saver.save_report(report)

    data = json.loads((tmp_path / 'output' / 'report.json').read_text(encoding='utf-8'))
    assert data['documents_fetched'] == 3
    assert data['error_count'] == 1
    assert data['skipped'][0]['url'] == 'https://x.org/1'


def test_no_temp_files_left_behind(saver, records, themes, tmp_path):
    wide = build_wide(records, themes)
    saver.save_datasets(wide, to_long(wide))
    assert not list((tmp_path / 'output').glob('*.tmp'))


def test_load_missing_dataset(saver):
    with pytest.raises(ScrapingError):
        saver.load_dataset('wide')


def test_load_unknown_format(saver):
    with pytest.raises(ValueError):
        saver.load_dataset('wide', fmt='parquet')

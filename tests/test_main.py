import yaml

import main
from panel_corpus.config_manager import ConfigManager
from panel_corpus.dataset_builder import build_wide, to_long
from panel_corpus.dataset_saver import DatasetSaver
from panel_corpus.ngram_stats import StatisticsConfig, StopwordMode


def write_config(tmp_path):
    config = {
        'site': {'base_url': "https://panels.example.org", 'listing_urls': ["https://panels.example.org/panels/"]},
        'storage': {'output_dir': str(tmp_path / 'output'), 'log_dir': str(tmp_path / 'logs')},
        'statistics': {'n': 1, 'stopword_mode': 'any-constituent', 'top_n': 5},
    }
    path = tmp_path / 'config.yaml'
    path.write_text(yaml.safe_dump(config), encoding='utf-8')
    return str(path)


def test_command_line_overrides_statistics(tmp_path):
    manager = ConfigManager(write_config(tmp_path))
    args = main.parse_args(['--ngram', '2', '--stopword-mode', 'none', '--group-by', 'theme'])

    config = main.statistics_config(manager, args)
    assert config.n == 2
    assert config.stopword_mode is StopwordMode.NONE
    assert config.group_by == 'theme'
    assert config.top_n == 5
    assert main.table_name('frequency', config) == 'frequency_2gram_by_theme'


def test_table_name_without_grouping():
    assert main.table_name('tfidf', StatisticsConfig(n=3)) == 'tfidf_3gram'


def test_stats_only_reads_saved_long_dataset(tmp_path, records, themes):
    config_path = write_config(tmp_path)
    wide = build_wide(records, themes)
    DatasetSaver({'output_dir': str(tmp_path / 'output')}).save_datasets(wide, to_long(wide))

    assert main.main(['--config', config_path, '--stats-only']) == 0
    assert (tmp_path / 'output' / 'frequency_1gram.csv').exists()
    assert (tmp_path / 'output' / 'tfidf_1gram.csv').exists()


def test_stats_only_without_saved_dataset_fails(tmp_path):
    assert main.main(['--config', write_config(tmp_path), '--stats-only']) == 1


def test_missing_config_fails(tmp_path):
    assert main.main(['--config', str(tmp_path / 'absent.yaml')]) == 1

import pytest
from bs4 import BeautifulSoup

from panel_corpus.config_manager import ConfigManager
from panel_corpus.exceptions import FetchError
from panel_corpus.models import PanelRecord
from tests.pages import BASE_URL, LISTING_URL, site_pages


class FakeScraper:
    """Serves documents from an in-memory url -> html mapping."""

    def __init__(self, pages):
        self.pages = pages
        self.requested = []

    def fetch_document(self, url):
        self.requested.append(url)
        if url not in self.pages:
            raise FetchError(url, "HTTP 404", retryable=False)
        return BeautifulSoup(self.pages[url], 'lxml')


def make_config(tmp_path, **site_overrides):
    site = {
        'base_url': BASE_URL,
        'listing_urls': [LISTING_URL],
        'theme_menu_url': LISTING_URL,
        'theme_url_pattern': '/category/',
    }
    site.update(site_overrides)
    return ConfigManager.from_dict({
        'site': site,
        'politeness': {'request_delay': 0, 'jitter': 0, 'backoff': 0, 'check_robots': False},
        'storage': {'output_dir': str(tmp_path / 'output'), 'log_dir': str(tmp_path / 'logs')},
    })


@pytest.fixture
def config_manager(tmp_path):
    return make_config(tmp_path)


@pytest.fixture
def site_config(config_manager):
    return config_manager.get_site_config()


@pytest.fixture
def fake_scraper():
    return FakeScraper(site_pages())


@pytest.fixture
def soup():
    def parse(html):
        return BeautifulSoup(html, 'lxml')
    return parse


@pytest.fixture
def records():
    return [
        PanelRecord(
            id='042',
            title='Gender and Technology',
            organizers=['Jane Doe', 'John Smith'],
            posted='March 3, 2021',
            description='Technology shapes gender relations.',
            keywords=['gender', 'technology', 'feminism'],
        ),
        PanelRecord(
            id='043',
            title='Decolonizing Data',
            organizers=['Ana Lima'],
            posted=None,
            description='',
            keywords=[],
            has_unseparated_suffix=True,
        ),
    ]


@pytest.fixture
def themes():
    return {'042': ['Gender', 'Data Justice'], '999': ['Orphan']}

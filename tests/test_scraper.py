import pytest
import requests

from panel_corpus.exceptions import FetchError, RobotsBlockedError
from panel_corpus.scraper import Scraper

URL = "https://panels.example.org/2021/03/gender-and-technology/"
ROBOTS_URL = "https://panels.example.org/robots.txt"


class FakeResponse:
    def __init__(self, status_code=200, text="<html><body><h1>042. Title</h1></body></html>"):
        self.status_code = status_code
        self.text = text
        self.content = text.encode('utf-8')
        self.encoding = 'utf-8'
        self.apparent_encoding = 'utf-8'

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(str(self.status_code))


class FakeSession:
    """Replays a scripted sequence of responses or exceptions per URL."""

    def __init__(self, script):
        self.script = {url: list(outcomes) for url, outcomes in script.items()}
        self.headers = {}
        self.calls = []
        self.closed = False

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        outcome = self.script[url].pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self):
        self.closed = True


def make_scraper(script, **politeness):
    config = {'request_delay': 0, 'jitter': 0, 'backoff': 0, 'retry_attempts': 3,
              'check_robots': False, 'timeout': 5}
    config.update(politeness)
    session = FakeSession(script)
    return Scraper(config, session=session), session


def test_fetch_document_parses_html():
    scraper, _ = make_scraper({URL: [FakeResponse()]})
    doc = scraper.fetch_document(URL)
    assert doc.select_one('h1').get_text() == "042. Title"


def test_fetch_retries_server_errors():
    scraper, session = make_scraper({URL: [FakeResponse(503), FakeResponse(500), FakeResponse()]})
    assert scraper.fetch(URL).status_code == 200
    assert len(session.calls) == 3


def test_fetch_gives_up_after_retry_attempts():
    scraper, session = make_scraper({URL: [FakeResponse(503)] * 3})
    with pytest.raises(FetchError) as excinfo:
        scraper.fetch(URL)
    assert excinfo.value.url == URL
    assert len(session.calls) == 3


def test_fetch_does_not_retry_client_errors():
    scraper, session = make_scraper({URL: [FakeResponse(404), FakeResponse()]})
    with pytest.raises(FetchError) as excinfo:
        scraper.fetch(URL)
    assert excinfo.value.retryable is False
    assert len(session.calls) == 1


def test_timeout_is_retryable_and_bounded():
    timeout = requests.exceptions.Timeout("read timed out")
    scraper, session = make_scraper({URL: [timeout, FakeResponse()]})
    assert scraper.fetch(URL).status_code == 200
    assert session.calls == [(URL, 5), (URL, 5)]


def test_default_timeout_is_thirty_seconds():
    scraper = Scraper({}, session=FakeSession({}))
    assert scraper.timeout == 30


def test_robots_txt_blocks_disallowed_urls():
    robots = FakeResponse(text="User-agent: *\nDisallow: /2021/\n")
    scraper, session = make_scraper({ROBOTS_URL: [robots]}, check_robots=True)
    with pytest.raises(RobotsBlockedError):
        scraper.fetch(URL)
    assert session.calls == [(ROBOTS_URL, 5)]


def test_unreachable_robots_txt_is_permissive():
    scraper, _ = make_scraper(
        {ROBOTS_URL: [requests.exceptions.ConnectionError("down")], URL: [FakeResponse()]},
        check_robots=True,
    )
    assert scraper.fetch(URL).status_code == 200


def test_close_closes_session():
    scraper, session = make_scraper({})
    scraper.close()
    assert session.closed

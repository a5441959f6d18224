"""
HTTP retrieval component with politeness protocols.
Handles requests, robots.txt compliance, rate limiting and retries,
and hands back parsed documents ready for CSS-selector queries.
"""

import time
import random
import logging
import requests
from urllib.parse import urlparse
from typing import Dict, Optional
from bs4 import BeautifulSoup
from protego import Protego
from tenacity import Retrying, stop_after_attempt, wait_exponential, retry_if_exception, before_sleep_log
from .exceptions import FetchError, RobotsBlockedError


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, FetchError) and error.retryable


class Scraper:
    """
    Network-facing component responsible for all HTTP/S interactions.
    Every fetch is independently retryable; no state is shared between
    in-flight fetches other than the per-domain politeness clock.
    """

    def __init__(self, politeness_config: Dict = None, session: Optional[requests.Session] = None):
        """Initialize the scraper with politeness settings."""
        self.politeness_config = politeness_config or {}
        self.session = session or requests.Session()
        self.robots_parsers = {}
        self.last_request_times = {}
        self.logger = logging.getLogger(__name__)

        self.timeout = self.politeness_config.get('timeout', 30)
        self.retry_attempts = self.politeness_config.get('retry_attempts', 3)
        self.check_robots = self.politeness_config.get('check_robots', True)

        self._setup_session()

    def _setup_session(self):
        """Configure the requests session headers."""
        self.session.headers.update({
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.9',
        })
        user_agent = self.politeness_config.get('user_agent')
        if user_agent:
            self.session.headers['User-Agent'] = user_agent

    def _get_robot_parser(self, url: str) -> Protego:
        """Get or create a robots.txt parser for the given URL's domain."""
        parsed = urlparse(url)
        domain = parsed.netloc

        if domain not in self.robots_parsers:
            robots_url = f"{parsed.scheme or 'https'}://{domain}/robots.txt"
            try:
                self.logger.info(f"Fetching robots.txt from {robots_url}")
                response = self.session.get(robots_url, timeout=self.timeout)
                response.raise_for_status()
                self.robots_parsers[domain] = Protego.parse(response.text)
            except requests.RequestException as e:
                self.logger.warning(f"Could not fetch robots.txt from {robots_url}: {e}")
                # Permissive parser when robots.txt is inaccessible
                self.robots_parsers[domain] = Protego.parse("")

        return self.robots_parsers[domain]

    def can_fetch(self, url: str) -> bool:
        """Check if the URL can be fetched according to robots.txt rules."""
        user_agent = self.session.headers.get('User-Agent', '*')
        return self._get_robot_parser(url).can_fetch(url, user_agent)

    def _enforce_rate_limit(self, domain: str):
        """Enforce politeness delay between requests to the same domain."""
        base_delay = self.politeness_config.get('request_delay', 1.0)
        jitter = self.politeness_config.get('jitter', 0.5)
        required_delay = base_delay + random.uniform(0, jitter) if jitter else base_delay

        if domain in self.last_request_times:
            time_since_last = time.time() - self.last_request_times[domain]
            if time_since_last < required_delay:
                sleep_time = required_delay - time_since_last
                self.logger.debug(f"Rate limiting: waiting {sleep_time:.2f}s before accessing {domain}")
                time.sleep(sleep_time)

        self.last_request_times[domain] = time.time()

    def _get(self, url: str) -> requests.Response:
        """Single HTTP attempt, mapping failures onto FetchError."""
        self._enforce_rate_limit(urlparse(url).netloc)

        try:
            self.logger.info(f"Fetching: {url}")
            response = self.session.get(url, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise FetchError(url, f"Timed out after {self.timeout}s: {e}")
        except requests.exceptions.RequestException as e:
            raise FetchError(url, f"Network error: {e}")

        if response.status_code == 429 or response.status_code >= 500:
            self.logger.warning(f"HTTP {response.status_code} for {url}, will retry")
            raise FetchError(url, f"HTTP {response.status_code}")
        if response.status_code >= 400:
            self.logger.warning(f"HTTP {response.status_code} for {url}, not retrying")
            raise FetchError(url, f"HTTP {response.status_code}", retryable=False)

        if not response.encoding:
            response.encoding = response.apparent_encoding or 'utf-8'

        self.logger.debug(f"Fetched {url} ({len(response.content)} bytes), encoding: {response.encoding}")
        return response

    def fetch(self, url: str) -> requests.Response:
        """
        Fetch a URL with politeness protocol and bounded retries.

        Args:
            url: The URL to fetch

        Returns:
            requests.Response object

        Raises:
            RobotsBlockedError: If robots.txt blocks the URL
            FetchError: If the request fails after all retry attempts
        """
        if self.check_robots and not self.can_fetch(url):
            raise RobotsBlockedError(url)

        retrying = Retrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(
                multiplier=self.politeness_config.get('backoff', 1.0),
                max=self.politeness_config.get('backoff_max', 8.0),
            ),
            retry=retry_if_exception(_is_retryable),
            before_sleep=before_sleep_log(self.logger, logging.WARNING),
            reraise=True,
        )
        return retrying(self._get, url)

    def fetch_document(self, url: str) -> BeautifulSoup:
        """Fetch a URL and parse it into a navigable document."""
        response = self.fetch(url)
        return BeautifulSoup(response.text, 'lxml')

    def close(self):
        """Clean up resources."""
        self.session.close()

"""
Configuration management for the panel pipeline.
Handles loading and validation of the YAML configuration file.
"""

import os
import re
import yaml
from typing import Dict, Any, List
from urllib.parse import urlparse
from .exceptions import ConfigurationError


DEFAULT_SELECTORS = {
    'entry_title': '.entry-title',
    'post_content': '.post-inner .entry-content',
    'listing_container': '#content',
    'detail_fields': '.entry-title, .entry-content p',
    'theme_menu': '#menu-themes a',
    'next_page': 'a.next',
}

DEFAULT_POSITIONS = {'title': 0, 'organizer': 1, 'posted': 2, 'desc': 3}

DEFAULT_POLITENESS = {
    'request_delay': 1.0,
    'jitter': 0.5,
    'timeout': 30,
    'retry_attempts': 3,
    'backoff': 1.0,
    'backoff_max': 8.0,
    'check_robots': True,
    'user_agent': 'panel-corpus/1.0 (+research scraper)',
}

DEFAULT_STORAGE = {
    'output_dir': 'data/output',
    'log_dir': 'data/logs',
}

DEFAULT_STATISTICS = {
    'n': 1,
    'stopword_mode': 'any-constituent',
    'group_by': 'none',
    'min_count': 1,
    'top_n': 25,
    'language': 'en',
    'default_stopwords': True,
    'custom_stopwords': [],
    'custom_stop_ngrams': [],
}

STOPWORD_MODES = ('none', 'any-constituent')
GROUP_BY_OPTIONS = ('none', 'theme', 'organizer')


def default_article_pattern(base_url: str) -> str:
    """Canonical dated-article URL pattern: scheme + host + path starting with digits."""
    host = urlparse(base_url).netloc
    return rf'^https?://{re.escape(host)}/\d+'


class ConfigManager:
    """Manages loading and validation of the pipeline configuration."""
    
    def __init__(self, config_path: str = "config.yaml"):
        self.config_path = config_path
        self.config = {}
        self._load_configuration()
    
    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'ConfigManager':
        """Build a manager from an in-memory mapping instead of a file."""
        manager = cls.__new__(cls)
        manager.config_path = None
        manager.config = dict(config)
        manager._apply_defaults()
        manager._validate_config()
        return manager
    
    def _load_configuration(self):
        """Load the configuration file, fill defaults and validate."""
        self.config = self._load_yaml_file(self.config_path)
        self._apply_defaults()
        self._validate_config()
    
    def _load_yaml_file(self, file_path: str) -> Dict[str, Any]:
        """Load and parse a YAML file."""
        if not os.path.exists(file_path):
            raise ConfigurationError(f"Configuration file not found: {file_path}")
        
        try:
            with open(file_path, 'r', encoding='utf-8') as file:
                return yaml.safe_load(file) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {file_path}: {e}")
        except OSError as e:
            raise ConfigurationError(f"Error reading {file_path}: {e}")
    
    def _apply_defaults(self):
        """Merge each section over its defaults."""
        site = dict(self.config.get('site') or {})
        site['selectors'] = {**DEFAULT_SELECTORS, **(site.get('selectors') or {})}
        site['detail_positions'] = {**DEFAULT_POSITIONS, **(site.get('detail_positions') or {})}
        site.setdefault('max_listing_pages', 50)
        site.setdefault('theme_menu_url', None)
        site.setdefault('theme_url_pattern', None)
        if site.get('base_url') and not site.get('article_url_pattern'):
            site['article_url_pattern'] = default_article_pattern(site['base_url'])
        self.config['site'] = site
        
        self.config['politeness'] = {**DEFAULT_POLITENESS, **(self.config.get('politeness') or {})}
        user_agent = os.getenv('PANEL_CORPUS_USER_AGENT')
        if user_agent:
            self.config['politeness']['user_agent'] = user_agent
        
        self.config['storage'] = {**DEFAULT_STORAGE, **(self.config.get('storage') or {})}
        self.config['statistics'] = {**DEFAULT_STATISTICS, **(self.config.get('statistics') or {})}
    
    def _validate_config(self):
        """Validate the configuration schema."""
        site = self.config['site']
        if not site.get('base_url'):
            raise ConfigurationError("Missing site setting: base_url")
        
        listing_urls = site.get('listing_urls')
        if not listing_urls or not isinstance(listing_urls, list):
            raise ConfigurationError("Site setting 'listing_urls' must be a non-empty list")
        
        for pattern_key in ('article_url_pattern', 'theme_url_pattern'):
            pattern = site.get(pattern_key)
            if pattern:
                try:
                    re.compile(pattern)
                except re.error as e:
                    raise ConfigurationError(f"Invalid regex in site.{pattern_key}: {e}")
        
        positions = site['detail_positions']
        for key in DEFAULT_POSITIONS:
            value = positions.get(key)
            if not isinstance(value, int) or value < 0:
                raise ConfigurationError(f"detail_positions.{key} must be a non-negative integer")
        if positions['desc'] != max(positions.values()):
            raise ConfigurationError("detail_positions.desc must be the last position")
        
        politeness = self.config['politeness']
        if politeness['retry_attempts'] < 1:
            raise ConfigurationError("politeness.retry_attempts must be at least 1")
        if politeness['timeout'] <= 0:
            raise ConfigurationError("politeness.timeout must be positive")
        
        statistics = self.config['statistics']
        if not isinstance(statistics['n'], int) or statistics['n'] < 1:
            raise ConfigurationError("statistics.n must be a positive integer")
        if statistics['stopword_mode'] not in STOPWORD_MODES:
            raise ConfigurationError(
                f"statistics.stopword_mode must be one of {', '.join(STOPWORD_MODES)}"
            )
        if statistics['group_by'] not in GROUP_BY_OPTIONS:
            raise ConfigurationError(
                f"statistics.group_by must be one of {', '.join(GROUP_BY_OPTIONS)}"
            )
    
    def get_config(self) -> Dict[str, Any]:
        """Get the complete configuration."""
        return self.config.copy()
    
    def get_site_config(self) -> Dict[str, Any]:
        """Get site layout and selector configuration."""
        return self.config['site'].copy()
    
    def get_listing_urls(self) -> List[str]:
        """Get the listing page URLs to start from."""
        return list(self.config['site']['listing_urls'])
    
    def get_politeness_config(self) -> Dict[str, Any]:
        """Get politeness-related configuration."""
        return self.config['politeness'].copy()
    
    def get_storage_config(self) -> Dict[str, Any]:
        """Get storage-related configuration."""
        return self.config['storage'].copy()
    
    def get_statistics_config(self) -> Dict[str, Any]:
        """Get statistics engine configuration."""
        return self.config['statistics'].copy()

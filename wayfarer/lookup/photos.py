"""
Aircraft photo lookup via JetPhotos keyword search.

Returns the URL of the first result photo for a registration (or ICAO24
address), upgraded from the 200px thumbnail to the 640px rendition.
Both hits and misses are remembered for a day.
"""

import logging
import re
from typing import Optional

import requests
from bs4 import BeautifulSoup

from wayfarer.config import config
from wayfarer.memo import MISSING, MemoCache

logger = logging.getLogger(__name__)


PHOTO_HEADERS = {
    'User-Agent': (
        'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
        '(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36'
    ),
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.5',
}

_CDN_IMAGE = re.compile(r'((?:https:)?//cdn\.jetphotos\.com/[^"\'\s]+\.jpg)', re.IGNORECASE)


def normalize_registration(term: Optional[str]) -> str:
    """'N-12345 ' -> 'N12345'."""
    return re.sub(r'[-\s]', '', term or '').upper()


def upgrade_photo_url(url: str) -> str:
    """Swap the thumbnail size for the large one and force https."""
    if '/200/' in url:
        url = url.replace('/200/', '/640/', 1)
    if url.startswith('//'):
        url = 'https:' + url
    return url


def extract_photo_url(html: str) -> Optional[str]:
    """Find the first result photo on a JetPhotos search page."""
    soup = BeautifulSoup(html, 'html.parser')

    for img in soup.select('img.result__photo__img, .result__photoLink img'):
        src = img.get('src') or img.get('data-lazy-src') or img.get('data-src')
        if src:
            return upgrade_photo_url(src)

    # Markup fallback: any CDN image reference
    match = _CDN_IMAGE.search(html)
    if match:
        return upgrade_photo_url(match.group(1))
    return None


class PhotoClient:
    """JetPhotos scraper with a day-long memo of results."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        cache: Optional[MemoCache] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or config.photos.base_url).rstrip('/')
        self.timeout = timeout or config.photos.timeout_seconds
        self.session = session or requests.Session()
        self.cache = cache if cache is not None else MemoCache(
            'jetphotos', ttl_seconds=config.photos.cache_seconds, max_entries=2000,
        )

    def search_url(self, term: Optional[str]) -> str:
        return f'{self.base_url}/{normalize_registration(term)}'

    def is_cached(self, term: Optional[str]) -> bool:
        return self.cache.get(normalize_registration(term)) is not MISSING

    def lookup_photo(self, term: Optional[str]) -> Optional[str]:
        """Return a photo URL for a registration, or None."""
        key = normalize_registration(term)
        if not key:
            return None

        cached = self.cache.get(key)
        if cached is not MISSING:
            return cached

        logger.info(f'Searching JetPhotos for {key}')
        try:
            response = self.session.get(self.search_url(key), headers=PHOTO_HEADERS, timeout=self.timeout)
        except requests.RequestException as e:
            # Not remembered, the next request may succeed
            logger.warning(f'JetPhotos request failed for {key}: {e}')
            return None

        if not 200 <= response.status_code < 300:
            logger.warning(f'JetPhotos returned {response.status_code} for {key}')
            self.cache.set(key, None)
            return None

        photo_url = extract_photo_url(response.text or '')
        if photo_url:
            logger.debug(f'Found JetPhotos image for {key}: {photo_url}')
        else:
            logger.debug(f'No JetPhotos image for {key}')

        self.cache.set(key, photo_url)
        return photo_url

    @property
    def stats(self) -> dict:
        return {'cache': self.cache.stats}

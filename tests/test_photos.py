"""Tests for the JetPhotos photo client (with mocked HTTP)."""

import requests

from tests.conftest import fake_response
from wayfarer.lookup.photos import (
    PhotoClient,
    extract_photo_url,
    normalize_registration,
    upgrade_photo_url,
)
from wayfarer.memo import MemoCache


def _client(http_session, monotonic=None):
    kwargs = {} if monotonic is None else {'clock': monotonic}
    return PhotoClient(
        base_url='https://jetphotos.test/photo/keyword',
        cache=MemoCache('jetphotos', ttl_seconds=86400, **kwargs),
        session=http_session,
    )


class TestHelpers:
    def test_normalize_registration(self):
        assert normalize_registration(' n-123 aa') == 'N123AA'

    def test_upgrade_thumbnail(self):
        assert upgrade_photo_url('//cdn.jetphotos.com/200/5/1.jpg') == 'https://cdn.jetphotos.com/640/5/1.jpg'

    def test_extract_lazy_src(self):
        html = '<img class="result__photo__img" data-lazy-src="https://cdn.jetphotos.com/200/1/2.jpg">'
        assert extract_photo_url(html) == 'https://cdn.jetphotos.com/640/1/2.jpg'

    def test_extract_cdn_fallback(self):
        html = '<div data-bg="//cdn.jetphotos.com/400/9/abc.jpg"></div>'
        assert extract_photo_url(html) == 'https://cdn.jetphotos.com/400/9/abc.jpg'

    def test_extract_nothing(self):
        assert extract_photo_url('<html><p>No photos found</p></html>') is None


class TestLookupPhoto:
    def test_miss_is_remembered_for_a_day(self, http_session, monotonic):
        http_session.get.return_value = fake_response(text='<html></html>')
        client = _client(http_session, monotonic)

        assert client.lookup_photo('N1') is None
        monotonic.advance(86399)
        assert client.lookup_photo('N1') is None
        assert http_session.get.call_count == 1

        monotonic.advance(2)
        client.lookup_photo('N1')
        assert http_session.get.call_count == 2

    def test_transport_error_not_remembered(self, http_session):
        http_session.get.side_effect = [
            requests.ConnectionError('down'),
            fake_response(text='<img class="result__photo__img" src="https://cdn.jetphotos.com/200/1/x.jpg">'),
        ]
        client = _client(http_session)

        assert client.lookup_photo('N1') is None
        assert client.lookup_photo('N1') == 'https://cdn.jetphotos.com/640/1/x.jpg'

    def test_http_error_remembered(self, http_session):
        http_session.get.return_value = fake_response(status_code=500)
        client = _client(http_session)

        assert client.lookup_photo('N1') is None
        assert client.is_cached('N1')

    def test_blank_term(self, http_session):
        assert _client(http_session).lookup_photo('  ') is None
        http_session.get.assert_not_called()

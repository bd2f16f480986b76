"""Tests for WebSource."""

import io
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
import requests

from conftest import make_response
from webfilecache.entry import TRANSPORT_FAILURE, CacheEntry
from webfilecache.sources import WebSource


@pytest.fixture
def session():
    session = MagicMock()
    session.get.return_value = make_response(200, [b"hello ", b"world"])
    return session


@pytest.fixture
def web_source(session):
    return WebSource("https://example.com/maps/", timedelta(hours=2), session=session)


class TestFetch:
    """Test HTTP fetch behaviour."""

    def test_unconditional_fetch_writes_body(self, web_source, session):
        sink = io.BytesIO()

        outcome = web_source.fetch(CacheEntry("map.png"), sink)

        assert outcome.status == 200
        assert outcome.is_success
        assert outcome.bytes_written == 11
        assert sink.getvalue() == b"hello world"

        args, kwargs = session.get.call_args
        assert args[0] == "https://example.com/maps/map.png"
        assert "If-Modified-Since" not in kwargs["headers"]
        assert kwargs["stream"] is True
        assert kwargs["timeout"] == 30.0

    def test_conditional_fetch_sends_http_date(self, web_source, session):
        session.get.return_value = make_response(304)
        last_good = datetime(2021, 3, 27, 14, 5, 9, 500, tzinfo=timezone.utc)

        outcome = web_source.fetch(CacheEntry("map.png"), io.BytesIO(), last_good)

        headers = session.get.call_args.kwargs["headers"]
        assert headers["If-Modified-Since"] == "Sat, 27 Mar 2021 14:05:09 GMT"
        assert outcome.is_not_modified

    def test_not_modified_writes_nothing(self, web_source, session):
        response = make_response(304, [b"ignored"])
        session.get.return_value = response
        sink = io.BytesIO()

        outcome = web_source.fetch(CacheEntry("map.png"), sink, datetime.now(timezone.utc))

        assert sink.getvalue() == b""
        assert outcome.bytes_written == 0
        response.iter_content.assert_not_called()

    def test_error_status_writes_nothing(self, web_source, session):
        session.get.return_value = make_response(404, [b"not found page"])
        sink = io.BytesIO()

        outcome = web_source.fetch(CacheEntry("missing.png"), sink)

        assert outcome.status == 404
        assert outcome.is_failure
        assert sink.getvalue() == b""

    @pytest.mark.parametrize(
        "error",
        [
            requests.ConnectionError("refused"),
            requests.Timeout("timed out"),
            requests.exceptions.ChunkedEncodingError("broken"),
        ],
    )
    def test_transport_errors_map_to_sentinel(self, web_source, session, error):
        session.get.side_effect = error

        outcome = web_source.fetch(CacheEntry("map.png"), io.BytesIO())

        assert outcome.status == TRANSPORT_FAILURE
        assert outcome.is_failure
        assert str(error) in outcome.error

    def test_sink_error_maps_to_sentinel(self, web_source):
        sink = MagicMock()
        sink.write.side_effect = OSError("disk full")

        outcome = web_source.fetch(CacheEntry("map.png"), sink)

        assert outcome.status == TRANSPORT_FAILURE
        assert "disk full" in outcome.error


class TestConfiguration:
    """Test source construction and hooks."""

    def test_validity_window(self, web_source):
        assert web_source.validity_window() == timedelta(hours=2)

    def test_default_validity_is_one_hour(self, session):
        assert WebSource("https://x/", session=session).validity_window() == timedelta(
            hours=1
        )

    def test_negative_validity_rejected(self, session):
        with pytest.raises(ValueError):
            WebSource("https://x/", timedelta(seconds=-1), session=session)

    def test_construct_url_override(self, session):
        class SuffixSource(WebSource):
            def construct_url(self, entry):
                return f"{self.source_uri}{entry.source_key}.txt"

        source = SuffixSource("https://example.com/", session=session)
        source.fetch(CacheEntry("moon"), io.BytesIO())

        assert session.get.call_args.args[0] == "https://example.com/moon.txt"

    def test_close_leaves_shared_session_open(self, web_source, session):
        web_source.close()

        session.close.assert_not_called()

    def test_close_owned_session(self, monkeypatch):
        owned = MagicMock()
        monkeypatch.setattr(requests, "Session", lambda: owned)

        WebSource("https://example.com/").close()

        owned.close.assert_called_once()

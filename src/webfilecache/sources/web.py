"""HTTP remote source backed by requests."""

import logging
from datetime import datetime, timedelta
from typing import BinaryIO, Dict, Optional

import requests

from webfilecache.base.source import DEFAULT_VALIDITY, FetchOutcome, RemoteSource
from webfilecache.cache.validation import format_http_date
from webfilecache.entry import CacheEntry, TRANSPORT_FAILURE, is_success

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024
_DEFAULT_TIMEOUT = 30.0
_USER_AGENT = "webfilecache"


class WebSource(RemoteSource):
    """RemoteSource that fetches entries over HTTP(S).

    The URL of an entry is the source URI with the entry's source key
    appended. When a last-known-good timestamp is given the request carries an
    ``If-Modified-Since`` header, so the server may answer 304.

    Examples:
        >>> source = WebSource("https://example.com/maps/", timedelta(hours=2))
        >>> with open("/tmp/map.png", "wb") as sink:
        ...     outcome = source.fetch(CacheEntry("map.png"), sink)
        >>> outcome.status
        200
    """

    def __init__(
        self,
        source_uri: str,
        validity: timedelta = DEFAULT_VALIDITY,
        timeout: float = _DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """Initialize web source.

        Args:
            source_uri: Base URI prepended to every source key
            validity: Validity window asserted for all entries
            timeout: Transport timeout in seconds (connect and read)
            session: Session to use; one is created and owned if None
        """
        super().__init__(validity)
        self.source_uri = source_uri
        self.timeout = timeout
        self._owns_session = session is None
        self.session = session if session is not None else requests.Session()

    def construct_url(self, entry: CacheEntry) -> str:
        """Build the URL of an entry. Subclasses may override."""
        return self.source_uri + entry.source_key

    def _headers(self, last_known_good: Optional[datetime]) -> Dict[str, str]:
        headers = {"User-Agent": _USER_AGENT}
        if last_known_good is not None:
            headers["If-Modified-Since"] = format_http_date(last_known_good)
        return headers

    def fetch(
        self,
        entry: CacheEntry,
        sink: BinaryIO,
        last_known_good: Optional[datetime] = None,
    ) -> FetchOutcome:
        url = self.construct_url(entry)
        written = 0
        try:
            with self.session.get(
                url,
                headers=self._headers(last_known_good),
                timeout=self.timeout,
                stream=True,
            ) as resp:
                status = resp.status_code
                if is_success(status):
                    for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
                        if chunk:
                            sink.write(chunk)
                            written += len(chunk)
        except (requests.RequestException, OSError) as e:
            logger.warning(f"Fetch of {url} failed: {e}")
            return FetchOutcome(TRANSPORT_FAILURE, written, str(e))

        logger.debug(f"GET {url} -> {status} ({written} bytes)")
        return FetchOutcome(status, written)

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

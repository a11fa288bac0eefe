"""HTTP client for the NFJS show feed."""
import logging
from typing import Any, Dict, Optional

import requests

from sync.errors import FetchError

logger = logging.getLogger(__name__)


class NFJSFeedClient:
    """Client fetching show documents from the NFJS data feed."""

    DEFAULT_BASE_URL = "https://springone2gx.com"
    SHOW_PATH = "/m/data/show_short.json"

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: int = 30,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the feed client.

        Args:
            base_url: Scheme and host of the feed
            timeout: HTTP request timeout in seconds (default: 30)
            session: Optional requests session to reuse connections
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def show_url(self) -> str:
        return f"{self.base_url}{self.SHOW_PATH}"

    def fetch_show(self, show_id: int) -> Dict[str, Any]:
        """
        Fetch and decode one show document.

        A failed request is not retried; the caller owns retry policy.

        Args:
            show_id: Upstream show id

        Returns:
            Decoded show document

        Raises:
            FetchError: On timeout, connection failure, non-success status
                or a body that is not a JSON object
        """
        logger.info(f"Fetching show {show_id} from {self.show_url}")

        try:
            response = self.session.get(
                self.show_url,
                params={'showId': show_id},
                timeout=self.timeout
            )
            response.raise_for_status()
        except requests.Timeout as e:
            raise FetchError(
                f"Timed out after {self.timeout}s fetching show: {e}",
                show_id=show_id
            ) from e
        except requests.RequestException as e:
            raise FetchError(f"Failed to fetch show: {e}", show_id=show_id) from e

        try:
            document = response.json()
        except ValueError as e:
            raise FetchError(f"Show feed is not valid JSON: {e}", show_id=show_id) from e

        if not isinstance(document, dict):
            raise FetchError(
                f"Show feed returned {type(document).__name__}, expected an object",
                show_id=show_id
            )

        logger.info(
            f"Fetched show {show_id}: {len(document.get('speakers') or [])} speakers, "
            f"{len(document.get('sessions') or [])} sessions"
        )
        return document

"""Readwise highlights API client.

This module provides a thin HTTP client for the Readwise v2 API: creating
highlights in bulk and checking an access token. Status codes are translated
into the Readwise exception hierarchy; retry decisions are left to the caller.
"""

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
import json
import logging
from typing import Any

import requests

from ..domain.config import ReadwiseConfig
from .exceptions import (
    ReadwiseAPIError,
    ReadwiseAuthError,
    ReadwiseClientError,
    ReadwiseRateLimitError,
)

logger = logging.getLogger(__name__)


def mask_token(token: str) -> str:
    """Return the token with everything after the first 4 characters hidden."""
    if not token:
        return "<empty>"
    return f"{token[:4]}{'*' * max(len(token) - 4, 4)}"


def attribute_book_ids(
    books: list[Any], highlights: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """Turn a book-grouped create response into per-highlight records.

    Readwise may answer with one object per book listing the ids in
    ``modified_highlights``. Books come back in no particular order, so ids
    are attributed per title: the n-th id of a book goes to the n-th
    submitted highlight with that title. A book whose id count differs from
    the number of submitted highlights with its title cannot be attributed;
    its ids are left out with a warning.

    Returns:
        Records with ``id``, ``text`` and ``note`` in submission order.
    """
    indexes_by_title: dict[str, list[int]] = {}
    for index, highlight in enumerate(highlights):
        indexes_by_title.setdefault(highlight.get("title", ""), []).append(index)

    ids_by_index: dict[int, Any] = {}
    for book in books:
        if not isinstance(book, dict):
            continue
        ids = book.get("modified_highlights") or []
        indexes = indexes_by_title.get(book.get("title", ""), [])
        if len(ids) != len(indexes) or any(i in ids_by_index for i in indexes):
            logger.warning(
                f"Cannot attribute {len(ids)} highlight ids of book "
                f"'{book.get('title', '')}' to submitted highlights: {ids}"
            )
            continue
        ids_by_index.update(zip(indexes, ids))

    return [
        {
            "id": ids_by_index[index],
            "text": highlights[index].get("text"),
            "note": highlights[index].get("note"),
        }
        for index in sorted(ids_by_index)
    ]


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header into seconds.

    Accepts either delta-seconds or an HTTP date. Returns None when the header
    is missing or unparseable.
    """
    if value is None or not value.strip():
        return None
    value = value.strip()
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        logger.warning(f"Unparseable Retry-After header: {value!r}")
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max((retry_at - datetime.now(timezone.utc)).total_seconds(), 0.0)


class ReadwiseClient:
    """Client for the Readwise highlights API.

    The access token is passed per call rather than stored, so one client can
    serve runs triggered with different tokens.

    Example:
        >>> client = ReadwiseClient(ReadwiseConfig())
        >>> created = client.post_highlights(
        ...     [{"text": "...", "title": "...", "source_url": "zotero://..."}],
        ...     token="your-token",
        ... )
    """

    HIGHLIGHTS_ENDPOINT = "/highlights/"
    AUTH_ENDPOINT = "/auth/"

    def __init__(
        self, config: ReadwiseConfig, session: requests.Session | None = None
    ) -> None:
        """Initialize the Readwise client.

        Args:
            config: Readwise configuration (base URL and timeout).
            session: Optional pre-built session, mainly for tests.
        """
        self.config = config
        self._session = session if session is not None else requests.Session()

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self._session.close()

    def _make_request(
        self, method: str, endpoint: str, token: str, **kwargs: Any
    ) -> requests.Response:
        """Send a request with the token header and translate error statuses.

        Raises:
            ReadwiseRateLimitError: On 429 Too Many Requests.
            ReadwiseAuthError: On 401 or 403.
            ReadwiseAPIError: On any other non-2xx status or a network error.
        """
        url = f"{self.config.base_url.rstrip('/')}{endpoint}"
        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Token {token}"
        kwargs.setdefault("timeout", self.config.timeout)

        try:
            response = self._session.request(method, url, headers=headers, **kwargs)
        except requests.RequestException as e:
            error_msg = f"Request failed: {method} {endpoint} - {str(e)}"
            logger.error(error_msg)
            raise ReadwiseAPIError(error_msg, original_exception=e) from e

        logger.debug(f"API request: {method} {endpoint} -> {response.status_code}")

        if response.status_code == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            error_msg = f"Rate limited by Readwise (Retry-After: {retry_after})"
            logger.warning(error_msg)
            raise ReadwiseRateLimitError(error_msg, retry_after=retry_after)
        if response.status_code in (401, 403):
            error_msg = (
                f"Authentication failed for token {mask_token(token)}: "
                f"{response.status_code} {response.reason}"
            )
            logger.error(error_msg)
            raise ReadwiseAuthError(error_msg, status_code=response.status_code)
        if not 200 <= response.status_code < 300:
            error_msg = (
                f"Readwise API error: {response.status_code} {response.reason} "
                f"- {response.text[:200]}"
            )
            logger.error(error_msg)
            raise ReadwiseAPIError(error_msg, status_code=response.status_code)

        return response

    def post_highlights(
        self, highlights: list[dict[str, Any]], token: str
    ) -> list[dict[str, Any]]:
        """Create highlights in one request.

        Args:
            highlights: Highlight payloads in the Readwise wire format.
            token: Readwise access token.

        Returns:
            Created highlight records. A book-grouped response is converted
            with attribute_book_ids. Empty if the response carries neither
            shape.

        Raises:
            ReadwiseRateLimitError: On 429 Too Many Requests.
            ReadwiseAuthError: If the token is rejected.
            ReadwiseAPIError: On other failures or an unparseable body.
        """
        response = self._make_request(
            "POST",
            self.HIGHLIGHTS_ENDPOINT,
            token,
            json={"highlights": highlights},
        )

        try:
            body = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            error_msg = f"Failed to parse Readwise response: {str(e)}"
            logger.error(error_msg)
            raise ReadwiseAPIError(
                error_msg, status_code=response.status_code, original_exception=e
            ) from e

        created = body.get("highlights") if isinstance(body, dict) else None
        if not isinstance(created, list):
            if isinstance(body, list):
                created = attribute_book_ids(body, highlights)
            else:
                created = []
        if not created:
            logger.warning(
                f"Readwise accepted {len(highlights)} highlights but returned "
                f"no created records"
            )
        return [
            record if isinstance(record, dict) else {"id": record}
            for record in created
        ]

    def validate_token(self, token: str) -> bool:
        """Check whether Readwise accepts the token.

        Returns:
            True if /auth/ answers 204, False if the token is rejected.

        Raises:
            ReadwiseClientError: If the check itself fails (network error,
                rate limit, unexpected status).
        """
        try:
            response = self._make_request("GET", self.AUTH_ENDPOINT, token)
        except ReadwiseAuthError:
            logger.warning(f"Readwise rejected token {mask_token(token)}")
            return False

        if response.status_code != 204:
            error_msg = f"Unexpected token check status: {response.status_code}"
            logger.error(error_msg)
            raise ReadwiseClientError(error_msg)
        logger.info(f"Readwise token {mask_token(token)} is valid")
        return True

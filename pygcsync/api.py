"""API client for Google Cloud Storage."""

from __future__ import annotations

import asyncio
import binascii
import hashlib
import logging
import random
from collections.abc import AsyncIterable, AsyncIterator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from urllib.parse import quote, urlsplit

import google.auth
import google.auth.credentials
import google.auth.exceptions
import google.auth.transport.requests
import httpx
from google.oauth2 import service_account

from .config import config
from .exceptions import (
    ConfigError,
    ObjectNotFoundError,
    StorageAuthenticationError,
    StorageNetworkError,
    StorageOp,
    StorageOperationError,
    StoragePermissionError,
    StorageRateLimitError,
    TransportError,
)
from .models import ObjectEntry
from .utils import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONTENT_TYPE,
    DEFAULT_MAX_RETRIES,
    DEFAULT_PAGE_SIZE,
    DEFAULT_RETRY_DELAY,
)

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/devstorage.read_write"]

# V4 signed URLs may be valid for at most 7 days
MAX_SIGNED_URL_TTL = 7 * 24 * 60 * 60


class GcsClient:
    """Async client for the Cloud Storage JSON API."""

    def __init__(
        self,
        credentials: google.auth.credentials.Credentials | None = None,
        credentials_path: Path | None = None,
        api_url: str | None = None,
        anonymous: bool = False,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the storage client.

        Args:
            credentials: Explicit google-auth credentials
            credentials_path: Service account JSON file (uses config if not
                provided, then application default credentials)
            api_url: Optional API base URL (uses config if not provided)
            anonymous: Send no credentials at all (emulators, public buckets)
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 60.0)
            transport: Optional httpx transport, mainly for tests
        """
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.anonymous = anonymous
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._transport = transport

        if credentials is None and not anonymous:
            credentials = self._load_credentials(
                credentials_path or config.credentials_path
            )
        self.credentials = credentials

        self._client: httpx.AsyncClient | None = None
        self._refresh_lock: asyncio.Lock | None = None

    @staticmethod
    def _load_credentials(
        credentials_path: Path | None,
    ) -> google.auth.credentials.Credentials:
        try:
            if credentials_path:
                return service_account.Credentials.from_service_account_file(
                    str(credentials_path), scopes=SCOPES
                )
            credentials, _ = google.auth.default(scopes=SCOPES)
            return credentials
        except (google.auth.exceptions.DefaultCredentialsError, OSError, ValueError) as e:
            raise ConfigError(
                "Google Cloud credentials not configured. Please set "
                f"GOOGLE_APPLICATION_CREDENTIALS or pass a credentials file: {e}"
            ) from e

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> GcsClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _auth_headers(self) -> dict[str, str]:
        """Bearer token header, refreshing the token when it expired."""
        if self.anonymous or self.credentials is None:
            return {}
        if not self.credentials.valid:
            if self._refresh_lock is None:
                self._refresh_lock = asyncio.Lock()
            async with self._refresh_lock:
                if not self.credentials.valid:
                    logger.debug("Refreshing access token")
                    request = google.auth.transport.requests.Request()
                    try:
                        await asyncio.to_thread(self.credentials.refresh, request)
                    except google.auth.exceptions.RefreshError as e:
                        raise StorageAuthenticationError(
                            f"Failed to refresh access token: {e}"
                        ) from e
        return {"Authorization": f"Bearer {self.credentials.token}"}

    def _should_retry(self, exception: Exception, attempt: int) -> bool:
        """Determine if a request should be retried.

        Args:
            exception: The exception that occurred
            attempt: Current attempt number (0-based)

        Returns:
            True if the request should be retried, False otherwise
        """
        if attempt >= self.max_retries:
            return False

        # Transient failures
        if isinstance(exception, (StorageNetworkError, StorageRateLimitError)):
            return True

        if isinstance(exception, httpx.HTTPStatusError):
            return 500 <= exception.response.status_code < 600

        return False

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # +/- 25% jitter
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _map_http_error(
        self, e: httpx.HTTPStatusError, op: StorageOp, key: str
    ) -> StorageOperationError:
        """Translate an HTTP error response into a storage error."""
        status_code = e.response.status_code

        if status_code == 404:
            return ObjectNotFoundError("Not found", op=op, key=key)
        if status_code == 401:
            return StorageAuthenticationError(
                "Invalid credentials or unauthorized access", op=op, key=key
            )
        if status_code == 403:
            return StoragePermissionError(
                "Access forbidden - check your permissions", op=op, key=key
            )
        if status_code == 429:
            return StorageRateLimitError(
                "Rate limit exceeded - please try again later", op=op, key=key
            )

        error_msg = f"API request failed with status {status_code}"
        try:
            if e.response.content:
                error_data = e.response.json()
                if isinstance(error_data, dict):
                    error = error_data.get("error")
                    msg = error.get("message") if isinstance(error, dict) else error
                    if msg:
                        error_msg = f"{error_msg}: {msg}"
        except ValueError:
            # Body is not JSON, keep the status-based message
            pass
        return StorageOperationError(error_msg, op=op, key=key)

    async def _request(
        self,
        method: str,
        url: str,
        op: StorageOp,
        key: str,
        retry: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        """Make an API request with retry logic.

        Args:
            method: HTTP method
            url: Absolute request URL
            op: Storage operation, for error reporting
            key: Object key or prefix, for error reporting
            retry: Whether transient failures may be retried (streamed
                bodies cannot be replayed)
            **kwargs: Additional arguments passed to httpx

        Returns:
            The successful response

        Raises:
            StorageOperationError: If the request fails after all retries
        """
        client = self._get_client()
        max_attempts = self.max_retries + 1 if retry else 1

        for attempt in range(max_attempts):
            headers = dict(kwargs.pop("headers", None) or {})
            headers.update(await self._auth_headers())
            try:
                response = await client.request(method, url, headers=headers, **kwargs)
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as e:
                error = self._map_http_error(e, op, key)
                if retry and (
                    self._should_retry(error, attempt) or self._should_retry(e, attempt)
                ):
                    retry_after = e.response.headers.get("Retry-After")
                    if retry_after and retry_after.isdigit():
                        delay = float(retry_after)
                    else:
                        delay = self._calculate_retry_delay(attempt)
                    logger.debug(
                        "Retrying %s %s in %.1fs after status %d",
                        method,
                        key,
                        delay,
                        e.response.status_code,
                    )
                    kwargs["headers"] = headers
                    await asyncio.sleep(delay)
                    continue
                raise error from e
            except httpx.RequestError as e:
                error = StorageNetworkError(f"Network error: {e}", op=op, key=key)
                if retry and self._should_retry(error, attempt):
                    delay = self._calculate_retry_delay(attempt)
                    logger.debug("Retrying %s %s in %.1fs: %s", method, key, delay, e)
                    kwargs["headers"] = headers
                    await asyncio.sleep(delay)
                    continue
                raise error from e

        # Unreachable: the last attempt either returns or raises
        raise StorageOperationError("Request failed after all retry attempts", op, key)

    def _object_url(self, bucket: str, key: str) -> str:
        return f"{self.api_url}/storage/v1/b/{quote(bucket, safe='')}/o/{quote(key, safe='')}"

    # =========================
    # Listing and metadata
    # =========================

    async def list_objects(
        self, bucket: str, prefix: str, page_size: int = DEFAULT_PAGE_SIZE
    ) -> AsyncIterator[list[ObjectEntry]]:
        """List objects under a prefix, one page at a time.

        Args:
            bucket: Bucket name
            prefix: Key prefix to list (empty for the whole bucket)
            page_size: Maximum number of objects per page

        Yields:
            Lists of ObjectEntry, in API order
        """
        url = f"{self.api_url}/storage/v1/b/{quote(bucket, safe='')}/o"
        params: dict[str, Any] = {"maxResults": page_size}
        if prefix:
            params["prefix"] = prefix

        while True:
            response = await self._request(
                "GET", url, StorageOp.LIST_PREFIX, prefix, params=params
            )
            data = response.json()
            items = [ObjectEntry.from_dict(item) for item in data.get("items", [])]
            logger.debug(
                "Listed %d object(s) in gs://%s/%s", len(items), bucket, prefix
            )
            yield items

            page_token = data.get("nextPageToken")
            if not page_token:
                break
            params["pageToken"] = page_token

    async def read_object(self, bucket: str, key: str) -> ObjectEntry:
        """Read object metadata.

        Raises:
            ObjectNotFoundError: If the object does not exist
        """
        response = await self._request(
            "GET", self._object_url(bucket, key), StorageOp.READ_OBJECT, key
        )
        return ObjectEntry.from_dict(response.json())

    # =========================
    # Object mutations
    # =========================

    async def create_object_streamed(
        self,
        bucket: str,
        key: str,
        body: AsyncIterable[bytes],
        length: int,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> ObjectEntry:
        """Create (or replace) an object from a byte stream.

        The body is streamed, so the request is never retried here.
        """
        url = f"{self.api_url}/upload/storage/v1/b/{quote(bucket, safe='')}/o"
        response = await self._request(
            "POST",
            url,
            StorageOp.CREATE_OBJECT,
            key,
            retry=False,
            params={"uploadType": "media", "name": key},
            headers={"Content-Type": content_type, "Content-Length": str(length)},
            content=body,
        )
        return ObjectEntry.from_dict(response.json())

    async def create_object_empty(self, bucket: str, key: str) -> ObjectEntry:
        """Create a zero-length object, used for directory markers."""
        url = f"{self.api_url}/upload/storage/v1/b/{quote(bucket, safe='')}/o"
        response = await self._request(
            "POST",
            url,
            StorageOp.CREATE_OBJECT,
            key,
            params={"uploadType": "media", "name": key},
            headers={"Content-Type": DEFAULT_CONTENT_TYPE},
            content=b"",
        )
        return ObjectEntry.from_dict(response.json())

    async def copy_object(
        self, bucket: str, key: str, dest_bucket: str, dest_key: str
    ) -> ObjectEntry:
        """Server-side copy of an object."""
        url = (
            f"{self._object_url(bucket, key)}/copyTo"
            f"/b/{quote(dest_bucket, safe='')}/o/{quote(dest_key, safe='')}"
        )
        response = await self._request(
            "POST", url, StorageOp.COPY_OBJECT, dest_key, json={}
        )
        return ObjectEntry.from_dict(response.json())

    async def delete_object(self, bucket: str, key: str) -> None:
        """Delete an object."""
        await self._request(
            "DELETE", self._object_url(bucket, key), StorageOp.DELETE_OBJECT, key
        )

    # =========================
    # Download Operations
    # =========================

    def signed_download_url(self, bucket: str, key: str, ttl: int) -> str:
        """Generate a V4 signed GET URL for an object.

        Args:
            bucket: Bucket name
            key: Object key
            ttl: Validity in seconds

        Returns:
            Time-limited URL that needs no further credentials

        Raises:
            ConfigError: If the credentials cannot sign (e.g. user credentials)
            StorageOperationError: If the TTL is out of range or signing fails
        """
        credentials = self.credentials
        if not isinstance(credentials, google.auth.credentials.Signing):
            raise ConfigError(
                "Signed URLs require service account credentials "
                "(set GOOGLE_APPLICATION_CREDENTIALS to a key file)"
            )
        if not 1 <= ttl <= MAX_SIGNED_URL_TTL:
            raise StorageOperationError(
                f"TTL must be between 1 and {MAX_SIGNED_URL_TTL} seconds, got {ttl}",
                op=StorageOp.DOWNLOAD_URL,
                key=key,
            )

        now = datetime.now(timezone.utc)
        request_timestamp = now.strftime("%Y%m%dT%H%M%SZ")
        credential_scope = f"{now.strftime('%Y%m%d')}/auto/storage/goog4_request"

        parts = urlsplit(self.api_url)
        host = parts.netloc
        canonical_uri = f"/{quote(bucket, safe='')}/{quote(key, safe='/~')}"
        query = {
            "X-Goog-Algorithm": "GOOG4-RSA-SHA256",
            "X-Goog-Credential": f"{credentials.signer_email}/{credential_scope}",
            "X-Goog-Date": request_timestamp,
            "X-Goog-Expires": str(ttl),
            "X-Goog-SignedHeaders": "host",
        }
        canonical_query = "&".join(
            f"{quote(name, safe='~')}={quote(value, safe='~')}"
            for name, value in sorted(query.items())
        )
        canonical_request = "\n".join(
            [
                "GET",
                canonical_uri,
                canonical_query,
                f"host:{host}\n",
                "host",
                "UNSIGNED-PAYLOAD",
            ]
        )
        string_to_sign = "\n".join(
            [
                "GOOG4-RSA-SHA256",
                request_timestamp,
                credential_scope,
                hashlib.sha256(canonical_request.encode("utf-8")).hexdigest(),
            ]
        )
        try:
            signature = credentials.sign_bytes(string_to_sign.encode("utf-8"))
        except (google.auth.exceptions.GoogleAuthError, ValueError) as e:
            raise StorageOperationError(
                f"Failed to sign URL: {e}", op=StorageOp.DOWNLOAD_URL, key=key
            ) from e

        signature_hex = binascii.hexlify(signature).decode("ascii")
        return (
            f"{parts.scheme}://{host}{canonical_uri}"
            f"?{canonical_query}&X-Goog-Signature={signature_hex}"
        )

    async def http_get(
        self, url: str, chunk_size: int = DEFAULT_CHUNK_SIZE
    ) -> AsyncIterator[bytes]:
        """Stream the body of a (signed) URL.

        No credentials are sent; the URL has to carry its own authorization.

        Raises:
            TransportError: If the request fails
        """
        client = self._get_client()
        try:
            async with client.stream("GET", url) as response:
                response.raise_for_status()
                async for chunk in response.aiter_bytes(chunk_size):
                    if chunk:
                        yield chunk
        except httpx.HTTPStatusError as e:
            raise TransportError(
                url, f"Download failed with status {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise TransportError(url, f"Network error during download: {e}") from e

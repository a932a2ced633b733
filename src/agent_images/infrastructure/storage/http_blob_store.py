"""HTTP blob store adapter speaking the upload-url/storage-id protocol."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncGenerator, AsyncIterator
from dataclasses import dataclass
from typing import BinaryIO, Protocol, cast
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from agent_images.application.ports.blob_store_port import (
    BlobMetadata,
    BlobStoreError,
    BlobStorePort,
)

DOWNLOAD_CHUNK_BYTES = 64 * 1024


@dataclass(frozen=True)
class BlobHttpResponse:
    """Normalized HTTP response data returned by transport implementations."""

    status_code: int
    body_bytes: bytes


@dataclass(frozen=True)
class BlobHttpStream:
    """Status code plus lazily read body chunks of one streamed response."""

    status_code: int
    chunks: AsyncGenerator[bytes, None]


class BlobHttpTransportPort(Protocol):
    """Transport protocol used by the HTTP blob store adapter."""

    async def request(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> BlobHttpResponse:
        """Execute one HTTP request and return normalized response data."""

    async def open_stream(
        self,
        *,
        url: str,
        headers: dict[str, str],
        timeout_seconds: float,
    ) -> BlobHttpStream:
        """Issue a GET and return the response body as a chunk stream."""


class UrllibBlobHttpTransport:
    """urllib-based async transport implementation for blob store calls."""

    async def request(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> BlobHttpResponse:
        """Execute HTTP request in a worker thread and normalize HTTP errors."""

        return await asyncio.to_thread(
            self._request_sync,
            method=method,
            url=url,
            headers=headers,
            body=body,
            timeout_seconds=timeout_seconds,
        )

    def _request_sync(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> BlobHttpResponse:
        request = Request(url=url, data=body, headers=headers, method=method)
        try:
            with urlopen(request, timeout=timeout_seconds) as response:
                return BlobHttpResponse(
                    status_code=int(response.getcode()),
                    body_bytes=response.read(),
                )
        except HTTPError as error:
            return BlobHttpResponse(status_code=int(error.code), body_bytes=error.read())
        except URLError as error:
            raise BlobStoreError(f"transport connection failure: {error}") from error

    async def open_stream(
        self,
        *,
        url: str,
        headers: dict[str, str],
        timeout_seconds: float,
    ) -> BlobHttpStream:
        """Open the response in a worker thread; chunks are read on demand."""

        status_code, handle = await asyncio.to_thread(
            self._open_sync,
            url=url,
            headers=headers,
            timeout_seconds=timeout_seconds,
        )
        return BlobHttpStream(status_code=status_code, chunks=_read_chunks(handle))

    def _open_sync(
        self,
        *,
        url: str,
        headers: dict[str, str],
        timeout_seconds: float,
    ) -> tuple[int, BinaryIO]:
        request = Request(url=url, headers=headers, method="GET")
        try:
            response = urlopen(request, timeout=timeout_seconds)
        except HTTPError as error:
            return int(error.code), cast(BinaryIO, error)
        except URLError as error:
            raise BlobStoreError(f"transport connection failure: {error}") from error
        return int(response.status), cast(BinaryIO, response)


class HttpBlobStoreClient(BlobStorePort):
    """Remote blob store adapter.

    Upload handles are one-shot upload URLs issued by the store. Writing POSTs the
    bytes to that URL and yields a storage id. Download references are short-lived
    URLs minted per request.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str | None = None,
        transport: BlobHttpTransportPort | None = None,
        timeout_seconds: float = 5.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._transport = transport or UrllibBlobHttpTransport()
        self._timeout_seconds = timeout_seconds

    async def create_upload_handle(self) -> str:
        """Ask the store for a fresh single-use upload URL."""

        response = await self._request_json(
            operation="create_upload_handle",
            method="POST",
            url=f"{self._base_url}/upload-urls",
            payload={},
        )
        return _extract_string(response, key="uploadUrl", operation="create_upload_handle")

    async def write(self, *, upload_handle: str, body: bytes, content_type: str) -> str:
        """POST raw bytes to the upload URL and return the storage id."""

        response = await self._request(
            operation="write",
            method="POST",
            url=upload_handle,
            body=body,
            content_type=content_type,
            authorize=False,
        )
        payload = _decode_json_object(response.body_bytes, operation="write")
        return _extract_string(payload, key="storageId", operation="write")

    async def get_metadata(self, *, blob_id: str) -> BlobMetadata | None:
        """Return stored blob metadata, or None when the store reports 404."""

        response = await self._send(
            operation="get_metadata",
            method="GET",
            url=f"{self._base_url}/blobs/{quote(blob_id, safe='')}/metadata",
            body=None,
            content_type=None,
        )
        if response.status_code == 404:
            return None
        _ensure_success(response, operation="get_metadata")
        payload = _decode_json_object(response.body_bytes, operation="get_metadata")
        size = payload.get("size")
        if not isinstance(size, int) or isinstance(size, bool):
            raise BlobStoreError("get_metadata response missing integer size")
        raw_content_type = payload.get("contentType")
        return BlobMetadata(
            blob_id=blob_id,
            size=size,
            content_type=raw_content_type if isinstance(raw_content_type, str) else None,
        )

    async def create_download_reference(self, *, blob_id: str) -> str | None:
        """Mint a short-lived download URL, or None when the blob is unknown."""

        response = await self._send(
            operation="create_download_reference",
            method="POST",
            url=f"{self._base_url}/blobs/{quote(blob_id, safe='')}/download-urls",
            body=b"{}",
            content_type="application/json",
        )
        if response.status_code == 404:
            return None
        _ensure_success(response, operation="create_download_reference")
        payload = _decode_json_object(response.body_bytes, operation="create_download_reference")
        return _extract_string(payload, key="url", operation="create_download_reference")

    async def open_download(self, *, reference: str) -> AsyncIterator[bytes]:
        """Open the download URL and return its body as a chunk stream."""

        try:
            stream = await self._transport.open_stream(
                url=reference,
                headers={},
                timeout_seconds=self._timeout_seconds,
            )
        except BlobStoreError:
            raise
        except Exception as error:  # noqa: BLE001
            raise BlobStoreError("open_download transport failure") from error

        if stream.status_code < 200 or stream.status_code >= 300:
            details = b""
            async for chunk in stream.chunks:
                details = chunk
                break
            await stream.chunks.aclose()
            _ensure_success(
                BlobHttpResponse(status_code=stream.status_code, body_bytes=details),
                operation="open_download",
            )
        return stream.chunks

    async def _request_json(
        self,
        *,
        operation: str,
        method: str,
        url: str,
        payload: dict[str, object],
    ) -> dict[str, object]:
        response = await self._request(
            operation=operation,
            method=method,
            url=url,
            body=json.dumps(payload).encode("utf-8"),
            content_type="application/json",
        )
        return _decode_json_object(response.body_bytes, operation=operation)

    async def _request(
        self,
        *,
        operation: str,
        method: str,
        url: str,
        body: bytes | None,
        content_type: str | None,
        authorize: bool = True,
    ) -> BlobHttpResponse:
        response = await self._send(
            operation=operation,
            method=method,
            url=url,
            body=body,
            content_type=content_type,
            authorize=authorize,
        )
        _ensure_success(response, operation=operation)
        return response

    async def _send(
        self,
        *,
        operation: str,
        method: str,
        url: str,
        body: bytes | None,
        content_type: str | None,
        authorize: bool = True,
    ) -> BlobHttpResponse:
        headers: dict[str, str] = {}
        if authorize and self._api_key is not None:
            headers["Authorization"] = f"Bearer {self._api_key}"
        if content_type is not None:
            headers["Content-Type"] = content_type

        try:
            return await self._transport.request(
                method=method,
                url=url,
                headers=headers,
                body=body,
                timeout_seconds=self._timeout_seconds,
            )
        except BlobStoreError:
            raise
        except Exception as error:  # noqa: BLE001
            raise BlobStoreError(f"{operation} transport failure") from error


def _ensure_success(response: BlobHttpResponse, *, operation: str) -> None:
    if response.status_code < 200 or response.status_code >= 300:
        details = _decode_error_payload(response.body_bytes)
        raise BlobStoreError(
            f"{operation} failed with status {response.status_code}: {details}"
        )


async def _read_chunks(handle: BinaryIO) -> AsyncGenerator[bytes, None]:
    try:
        while True:
            try:
                chunk = await asyncio.to_thread(handle.read, DOWNLOAD_CHUNK_BYTES)
            except OSError as error:
                raise BlobStoreError(f"download stream interrupted: {error}") from error
            if not chunk:
                break
            yield chunk
    finally:
        handle.close()


def _decode_json_object(payload: bytes, *, operation: str) -> dict[str, object]:
    try:
        decoded = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as error:
        raise BlobStoreError(f"{operation} returned invalid JSON payload") from error
    if not isinstance(decoded, dict):
        raise BlobStoreError(f"{operation} returned non-object JSON payload")
    return decoded


def _extract_string(payload: dict[str, object], *, key: str, operation: str) -> str:
    value = payload.get(key)
    if isinstance(value, str) and value:
        return value
    raise BlobStoreError(f"{operation} response missing {key}")


def _decode_error_payload(payload: bytes) -> str:
    if not payload:
        return "empty response body"
    try:
        decoded = payload.decode("utf-8")
    except UnicodeDecodeError:
        return "<binary>"
    return decoded[:200]

"""Conditional fetches of the catalog database from object storage.

``s3://bucket/key`` URIs go through an S3 client that signs requests with the
default AWS credential chain; plain ``http(s)://`` URLs are fetched with
requests. Either way the "only if modified since" precondition is sent with
the last known timestamp and the store answers 304 when the object is
unchanged.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timezone
from email.utils import format_datetime, parsedate_to_datetime
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Union
from urllib.parse import urlparse

import boto3
import requests
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError, PartialCredentialsError

from weblibri.catalog.errors import (
    AmbiguousTransportError,
    MirrorCredentialsError,
    MirrorKeyNotFoundError,
    MirrorTransportError,
)
from weblibri.core.logger import setup_logger

logger = setup_logger(__name__)

DOWNLOAD_CHUNK_SIZE = 1024 * 256

# S3 error codes that mean the key is absent or our identity was refused.
S3_NOT_FOUND_CODES = ("NoSuchKey", "NotFound", "404")
S3_CREDENTIAL_CODES = (
    "AccessDenied",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "ExpiredToken",
    "InvalidToken",
    "403",
)


@dataclass(frozen=True)
class ObjectLocation:
    scheme: str
    bucket: str
    key: str
    url: str

    def __str__(self) -> str:
        return self.url


def parse_object_uri(uri: str) -> ObjectLocation:
    """Split a metadata URI into bucket (or host) and key (or path).

    Raises:
        ValueError: if the URI has no bucket/host or no key/path.
    """
    parsed = urlparse(uri.strip())
    scheme = parsed.scheme.lower()
    bucket = parsed.netloc
    key = parsed.path.lstrip("/")

    if scheme not in ("s3", "http", "https"):
        raise ValueError(f"Unsupported metadata URI scheme: {uri}")
    if not bucket or not key:
        raise ValueError(f"Metadata URI must include a bucket and a key: {uri}")

    if scheme == "s3":
        url = f"s3://{bucket}/{key}"
    else:
        url = uri.strip()
    return ObjectLocation(scheme=scheme, bucket=bucket, key=key, url=url)


class FetchStatus(str, Enum):
    NOT_MODIFIED = "not_modified"
    OK = "ok"


@dataclass(frozen=True)
class FetchResult:
    status: FetchStatus
    last_modified: Optional[str] = None


def _temp_path_for(dest_path: Path) -> Path:
    return dest_path.parent / f".{dest_path.name}.tmp"


def write_atomically(chunks: Iterable[bytes], dest_path: Path) -> None:
    """Write ``chunks`` to a temp file beside ``dest_path`` and rename it into place.

    Readers only ever see a complete file; the temp file is removed when the
    stream fails.
    """
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = _temp_path_for(dest_path)
    logger.info(f"Downloading metadata to {dest_path}...")
    try:
        with open(temp_path, "wb") as handle:
            for chunk in chunks:
                if chunk:
                    handle.write(chunk)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, dest_path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


class HttpObjectStore:
    """Fetches objects over HTTP(S) with requests.

    No timeout is set on requests: a hung fetch blocks whoever holds the
    mirror lock.
    """

    def __init__(self, session: Optional[requests.Session] = None, chunk_size: int = DOWNLOAD_CHUNK_SIZE):
        self._session = session or requests.Session()
        self._chunk_size = chunk_size

    def fetch(
        self,
        location: ObjectLocation,
        dest_path: Path,
        if_modified_since: Optional[str] = None,
    ) -> FetchResult:
        """Fetch ``location`` into ``dest_path`` unless unchanged.

        Raises:
            MirrorKeyNotFoundError: 404 from the store.
            MirrorCredentialsError: 401 or 403 from the store.
            MirrorTransportError: any other 4xx, or no response at all
                (connection refused, timeout, truncated body).
            AmbiguousTransportError: the store answered with a 5xx.
        """
        headers = {}
        if if_modified_since:
            headers["If-Modified-Since"] = if_modified_since

        try:
            with self._session.get(location.url, headers=headers, stream=True) as response:
                status = response.status_code
                if status == 304:
                    return FetchResult(FetchStatus.NOT_MODIFIED, if_modified_since)
                if status == 404:
                    raise MirrorKeyNotFoundError(f"No such key: {location.key}", location=str(location))
                if status in (401, 403):
                    raise MirrorCredentialsError(
                        f"Access to {location} denied (HTTP {status})", location=str(location)
                    )
                if status >= 500:
                    raise AmbiguousTransportError(f"Object store returned HTTP {status} for {location}")
                if status != 200:
                    raise MirrorTransportError(
                        f"Unexpected HTTP {status} fetching {location}", location=str(location)
                    )

                write_atomically(response.iter_content(chunk_size=self._chunk_size), dest_path)
                return FetchResult(FetchStatus.OK, response.headers.get("Last-Modified"))
        except requests.RequestException as e:
            raise MirrorTransportError(f"Fetching {location} failed: {e}", location=str(location), cause=e) from e


def _to_http_date(value) -> Optional[str]:
    if value is None:
        return None
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


class S3ObjectStore:
    """Fetches objects from S3 with a boto3 client.

    The client resolves credentials the usual AWS way (environment, shared
    config, instance role) and signs every request.
    """

    def __init__(self, client=None, region: str = "us-east-1", chunk_size: int = DOWNLOAD_CHUNK_SIZE):
        self._client = client or boto3.client("s3", region_name=region)
        self._chunk_size = chunk_size

    @property
    def client(self):
        return self._client

    def fetch(
        self,
        location: ObjectLocation,
        dest_path: Path,
        if_modified_since: Optional[str] = None,
    ) -> FetchResult:
        """Fetch ``location`` into ``dest_path`` unless unchanged.

        Raises:
            MirrorKeyNotFoundError: NoSuchKey / 404.
            MirrorCredentialsError: no credentials found, or the store
                refused them.
            MirrorTransportError: any other client error, an unreachable
                endpoint, or a body that stopped short.
            AmbiguousTransportError: the store answered with a 5xx.
        """
        params = {"Bucket": location.bucket, "Key": location.key}
        if if_modified_since:
            try:
                params["IfModifiedSince"] = parsedate_to_datetime(if_modified_since)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring unparseable timestamp {if_modified_since!r}, fetching {location} in full")

        try:
            response = self._client.get_object(**params)
        except ClientError as e:
            if self._is_not_modified(e):
                return FetchResult(FetchStatus.NOT_MODIFIED, if_modified_since)
            raise self._translate_client_error(e, location) from e
        except (NoCredentialsError, PartialCredentialsError) as e:
            raise MirrorCredentialsError(
                f"No usable AWS credentials to read {location}: {e}", location=str(location), cause=e
            ) from e
        except BotoCoreError as e:
            raise MirrorTransportError(f"Fetching {location} failed: {e}", location=str(location), cause=e) from e

        body = response["Body"]
        try:
            write_atomically(body.iter_chunks(chunk_size=self._chunk_size), dest_path)
        except BotoCoreError as e:
            raise MirrorTransportError(
                f"Download of {location} stopped short: {e}", location=str(location), cause=e
            ) from e
        finally:
            body.close()

        return FetchResult(FetchStatus.OK, _to_http_date(response.get("LastModified")))

    @staticmethod
    def _is_not_modified(error: ClientError) -> bool:
        status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        code = error.response.get("Error", {}).get("Code", "")
        return status == 304 or code in ("304", "NotModified")

    @staticmethod
    def _translate_client_error(
        error: ClientError, location: ObjectLocation
    ) -> Union[MirrorKeyNotFoundError, MirrorCredentialsError, MirrorTransportError, AmbiguousTransportError]:
        status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        code = error.response.get("Error", {}).get("Code", "")

        if code in S3_NOT_FOUND_CODES or status == 404:
            return MirrorKeyNotFoundError(f"No such key: {location.key}", location=str(location), cause=error)
        if code in S3_CREDENTIAL_CODES or status in (401, 403):
            return MirrorCredentialsError(
                f"Access to {location} denied ({code or status})", location=str(location), cause=error
            )
        if status is not None and status >= 500:
            return AmbiguousTransportError(f"Object store returned {code or status} for {location}", cause=error)
        return MirrorTransportError(
            f"Unexpected {code or status} fetching {location}", location=str(location), cause=error
        )


def create_object_store(location: ObjectLocation, region: str = "us-east-1"):
    """Pick the store able to fetch ``location``."""
    if location.scheme == "s3":
        return S3ObjectStore(region=region)
    return HttpObjectStore()

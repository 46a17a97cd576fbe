"""Locating table data and reading it into partitions."""

from __future__ import annotations

import io
import logging
import os
import urllib.error
import urllib.request
from collections.abc import Callable, Iterable
from enum import Enum
from typing import BinaryIO, TypeVar
from urllib.parse import urlsplit

from .error import FileStoreError, HttpStoreError, InvalidUriError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BlobStoreType(Enum):
    """Kind of storage a table URI points at."""

    HTTP = "http"
    S3 = "s3"
    GCS = "gcs"
    AZURE = "azure"
    FILE_SYSTEM = "filesystem"
    MEMORY = "memory"

    @classmethod
    def from_scheme(cls, scheme: str | None) -> "BlobStoreType":
        """Storage type for a URI scheme; no scheme means the local file system."""
        if scheme is None or scheme == "":
            return cls.FILE_SYSTEM
        lowered = scheme.lower()
        if lowered in ("file", "filesystem"):
            return cls.FILE_SYSTEM
        if lowered in ("http", "https"):
            return cls.HTTP
        try:
            return _SCHEMES[scheme]
        except KeyError:
            raise InvalidUriError(f'Unsupported scheme: "{scheme}"') from None


_SCHEMES = {
    "s3": BlobStoreType.S3,
    "gs": BlobStoreType.GCS,
    "az": BlobStoreType.AZURE,
    "adl": BlobStoreType.AZURE,
    "adfs": BlobStoreType.AZURE,
    "adfss": BlobStoreType.AZURE,
    "azure": BlobStoreType.AZURE,
    "memory": BlobStoreType.MEMORY,
}


def blob_store_type_for_uri(uri: str) -> BlobStoreType:
    """Storage type for a table URI."""
    return BlobStoreType.from_scheme(urlsplit(uri).scheme or None)


def _collect(path: str, extension: str, found: list[str]) -> None:
    if os.path.isfile(path):
        if path.endswith(extension):
            found.append(path)
        return
    with os.scandir(path) as entries:
        for entry in sorted(entries, key=lambda e: e.name):
            if entry.is_dir():
                _collect(entry.path, extension, found)
            elif entry.name.endswith(extension):
                found.append(entry.path)


def build_file_list(path: str, extension: str) -> list[str]:
    """Files under ``path`` (or ``path`` itself) whose names end with ``extension``."""
    found: list[str] = []
    try:
        _collect(os.fspath(path), extension, found)
    except OSError as exc:
        raise FileStoreError(f"Failed to build file list from path `{path}`: {exc}") from exc
    return found


def partitions_from_paths(
    paths: Iterable[str], partition_reader: Callable[[BinaryIO], T]
) -> list[T]:
    """Open each file and read it into one partition."""
    partitions = []
    for path in paths:
        logger.debug("loading file from path: %s", path)
        try:
            handle = open(path, "rb")
        except OSError as exc:
            raise FileStoreError(f"open file error: {exc}") from exc
        with handle:
            partitions.append(partition_reader(handle))
    return partitions


def partitions_from_fs(
    path: str, extension: str, partition_reader: Callable[[BinaryIO], T]
) -> list[T]:
    """Read every file with the given extension (without dot) under ``path``."""
    logger.debug("building file list from path %s...", path)
    files = build_file_list(path, f".{extension}")
    logger.debug("loading file partitions: %s", files)
    return partitions_from_paths(files, partition_reader)


def partitions_from_http(uri: str, partition_reader: Callable[[BinaryIO], T]) -> list[T]:
    """Fetch ``uri`` and read the body as a single partition."""
    try:
        with urllib.request.urlopen(uri) as response:
            status = response.status
            try:
                body = response.read()
            except OSError as exc:
                raise HttpStoreError(f"Failed to decode server response: {exc}") from exc
    except urllib.error.HTTPError as exc:
        raise HttpStoreError(f"Invalid response from server: {exc.code} {exc.reason}") from exc
    except urllib.error.URLError as exc:
        raise HttpStoreError(str(exc.reason)) from exc
    if status // 100 != 2:
        raise HttpStoreError(f"Invalid response from server: {status}")
    # no directory listing over HTTP, so there is always a single partition
    return [partition_reader(io.BytesIO(body))]


def partitions_from_memory(
    data: bytes | bytearray | memoryview, partition_reader: Callable[[BinaryIO], T]
) -> list[T]:
    """Read in-memory data as a single partition."""
    return [partition_reader(io.BytesIO(bytes(data)))]
"""
File Management Utilities

This module maps archived URLs onto the local output tree and writes the
downloaded bytes:

    <output_dir>/<host>/<timestamp>/<mapped path>

Keeping the timestamp as a directory lets several captures of the same URL
live side by side.
"""

import os
import logging
import tempfile
from pathlib import Path
from typing import Iterable, Optional, Union
from urllib.parse import urlparse

from waybackdl.core.errors import PathSafetyError, StorageError


HTML_EXTENSION = ".html"
INDEX_FILE = "index.html"

CONTENT_TYPE_EXTENSIONS = {
    "text/html": ".html",
    "application/xhtml+xml": ".html",
    "text/css": ".css",
    "application/javascript": ".js",
    "text/javascript": ".js",
    "application/x-javascript": ".js",
    "application/ecmascript": ".js",
    "text/ecmascript": ".js",
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/gif": ".gif",
    "image/svg+xml": ".svg",
    "image/webp": ".webp",
    "image/x-icon": ".ico",
    "image/vnd.microsoft.icon": ".ico",
    "image/bmp": ".bmp",
    "application/json": ".json",
    "application/xml": ".xml",
    "text/xml": ".xml",
    "text/plain": ".txt",
    "application/pdf": ".pdf",
}


def media_type(content_type: Optional[str]) -> str:
    """Return the bare, lowercased media type of a Content-Type header value."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def is_html(content_type: Optional[str]) -> bool:
    return CONTENT_TYPE_EXTENSIONS.get(media_type(content_type)) == HTML_EXTENSION


def extension_for(content_type: Optional[str]) -> str:
    """
    Map a declared content type to a file extension.

    Args:
        content_type: Content-Type header value, possibly with parameters

    Returns:
        Extension including the dot; '.html' when absent or unrecognized
    """
    return CONTENT_TYPE_EXTENSIONS.get(media_type(content_type), HTML_EXTENSION)


def _safe_segment(segment: str) -> Optional[str]:
    segment = segment.replace("\\", "_").replace("\x00", "_")
    if segment in ("", ".", ".."):
        return None
    return segment


def _safe_host(host: str) -> str:
    host = host.lower().replace(":", "_").replace("/", "_")
    return _safe_segment(host) or "_"


def map_path(output_dir: Union[str, Path],
             host: str,
             timestamp: str,
             remote_path: str,
             content_type: Optional[str] = None) -> Path:
    """
    Compute the local file path for one archived resource.

    Pure and total: the same inputs always give the same path, and no
    component of the result is '..'.

    Args:
        output_dir: Root of the output tree
        host: Host of the original URL (a port becomes host_port)
        timestamp: Capture timestamp
        remote_path: Path of the original URL; any query or fragment is dropped
        content_type: Declared Content-Type of the capture, if known

    Returns:
        Path of the form output_dir/host/timestamp/...
    """
    path = remote_path.split("#", 1)[0].split("?", 1)[0]
    directory = not path or path.endswith("/")

    segments = [s for s in (_safe_segment(part) for part in path.split("/")) if s]

    if directory or not segments:
        segments.append(INDEX_FILE)
    elif "." not in segments[-1]:
        extension = extension_for(content_type)
        if extension == HTML_EXTENSION:
            segments.append(INDEX_FILE)
        else:
            segments[-1] += extension

    stamp = _safe_segment(timestamp.replace("/", "_")) or "_"
    return Path(output_dir).joinpath(_safe_host(host), stamp, *segments)


def ensure_within(root: Union[str, Path], path: Union[str, Path]) -> Path:
    """
    Verify that path resolves to a location under root.

    Raises:
        PathSafetyError: If the resolved path escapes root
    """
    resolved_root = Path(root).resolve()
    resolved = Path(path).resolve()
    if resolved != resolved_root and resolved_root not in resolved.parents:
        raise PathSafetyError(f"Refusing to write outside {resolved_root}: {resolved}")
    return resolved


class FileManager:
    """
    Owns the output directory: resolves local paths for snapshots and
    streams response bodies into them.
    """

    def __init__(self, base_output_dir: Union[str, Path] = "websites"):
        self.base_output_dir = Path(base_output_dir)
        self.logger = logging.getLogger(__name__)

    def get_file_path(self, host: str, timestamp: str, url: str,
                      content_type: Optional[str] = None) -> Path:
        """
        Resolve and validate the local path for an archived URL.

        Raises:
            PathSafetyError: If the mapped path would escape the output directory
        """
        path = map_path(self.base_output_dir, host, timestamp, urlparse(url).path, content_type)
        ensure_within(self.base_output_dir, path)
        return path

    def save_stream(self, path: Path, chunks: Iterable[bytes],
                    expected_size: Optional[int] = None) -> int:
        """
        Write chunks to path, creating parent directories and overwriting any
        existing file.

        The body is streamed into a temporary file beside path and moved into
        place only once complete, so concurrent writers to one path never mix
        bytes: the last complete write wins.

        Args:
            path: Destination file
            chunks: Iterable of byte chunks (e.g. Response.iter_content())
            expected_size: Byte count the body should have, if known

        Returns:
            Number of bytes written

        Raises:
            StorageError: On directory/file creation failure, write failure,
                an error raised by the chunk iterator, or a short body
        """
        written = 0
        tmp_name = None
        try:
            os.makedirs(path.parent, exist_ok=True)
            with tempfile.NamedTemporaryFile(dir=path.parent, prefix=f".{path.name}.",
                                             suffix=".part", delete=False) as f:
                tmp_name = f.name
                for chunk in chunks:
                    if not chunk:
                        continue
                    count = f.write(chunk)
                    if count != len(chunk):
                        raise StorageError(f"Short write to {path}: {count} of {len(chunk)} bytes")
                    written += count

            if expected_size is not None and written != expected_size:
                raise StorageError(f"Incomplete body for {path}: wrote {written} of {expected_size} bytes")

            os.replace(tmp_name, path)
            tmp_name = None
        except StorageError:
            raise
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}") from e
        except Exception as e:
            raise StorageError(f"Stream error while writing {path}: {e}") from e
        finally:
            if tmp_name is not None:
                self._discard(tmp_name)

        self.logger.debug(f"Saved {written} bytes: {path}")
        return written

    def _discard(self, tmp_name: str):
        try:
            os.remove(tmp_name)
        except OSError as e:
            self.logger.warning(f"Could not remove partial file {tmp_name}: {e}")

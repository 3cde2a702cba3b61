"""
Shared fixtures: offline stand-ins for the Internet Archive.
"""

import io
import lzma
import threading
import zipfile
from pathlib import Path

import pytest

from urlhunter.core.errors import DecompressionError, DownloadError


IDENTIFIER = "urlteam_2020-11-20-11-17-04"


def manifest_xml(*members):
    """Build a files.xml document; members are (name, format) pairs."""
    files = "".join(
        f'<file name="{name}" source="original"><format>{fmt}</format><size>1</size></file>'
        for name, fmt in members
    )
    return f'<?xml version="1.0" encoding="UTF-8"?><files>{files}</files>'.encode("utf-8")


def payload_zip(dump_type, dump_text, inner_name="2020-11-20-11-17-04.txt.xz"):
    """Build a URLTeam-style payload zip holding one xz-compressed dump."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr(f"{dump_type}/{inner_name}", lzma.compress(dump_text.encode("utf-8")))
    return buf.getvalue()


class LzmaDecompressor:
    """Decompresses like ``xz --decompress``: file.xz is replaced by file."""

    def __init__(self):
        self.calls = []

    def __call__(self, container):
        container = Path(container)
        self.calls.append(container)
        try:
            data = lzma.decompress(container.read_bytes())
        except lzma.LZMAError as e:
            raise DecompressionError(str(e)) from e
        output = container.with_suffix("")
        output.write_bytes(data)
        container.unlink()
        return output


class FakeDownloader:
    """Serves registered URLs from memory and records every request."""

    def __init__(self, files=None, catalog=None):
        self.files = dict(files or {})
        self.catalog = catalog
        self.requested = []
        self._lock = threading.Lock()

    def download(self, url, destination, cancel_event=None):
        with self._lock:
            self.requested.append(url)
        if url not in self.files:
            raise DownloadError(f"failed to download {url}: 404 Not Found")
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(self.files[url])
        return destination

    def fetch(self, job, cancel_event=None):
        return self.download(job.url, job.path, cancel_event=cancel_event)

    def get_json(self, url, params=None):
        with self._lock:
            self.requested.append(url)
        if self.catalog is None:
            raise DownloadError(f"request to {url} failed: connection refused")
        return self.catalog

    def close(self):
        pass


@pytest.fixture
def decompressor():
    return LzmaDecompressor()


@pytest.fixture
def archives(tmp_path):
    root = tmp_path / "archives"
    root.mkdir()
    return root

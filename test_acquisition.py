import threading

import pytest

from conftest import IDENTIFIER, FakeDownloader, payload_zip
from urlhunter.core.acquisition import AcquisitionOrchestrator
from urlhunter.core.errors import AcquisitionError, DownloadCancelled, DownloadError
from urlhunter.core.extractor import Extractor
from urlhunter.utils.file_manager import ArchiveStore
from urlhunter.utils.manifest import DumpMetadataEntry, ManifestResolver


BASE = "https://archive.test/download"
BITLY = DumpMetadataEntry(name="bitly_6.zip", format="ZIP", dump_type="bitly_6")
GOOGL = DumpMetadataEntry(name="googl.zip", format="ZIP", dump_type="googl")


def url_for(entry):
    return f"{BASE}/{IDENTIFIER}/{entry.name}"


def make_orchestrator(archives, downloader, decompressor):
    store = ArchiveStore(archives)
    resolver = ManifestResolver(store, downloader, download_base_url=BASE)
    return store, AcquisitionOrchestrator(store, downloader, Extractor(store, decompressor), resolver)


def test_missing_payloads_are_downloaded_and_extracted(archives, decompressor):
    downloader = FakeDownloader({
        url_for(BITLY): payload_zip("bitly_6", "a|http://one.example/\n"),
        url_for(GOOGL): payload_zip("googl", "b|http://two.example/\n"),
    })
    store, orchestrator = make_orchestrator(archives, downloader, decompressor)

    results = orchestrator.acquire(IDENTIFIER, [BITLY, GOOGL])

    assert sorted(downloader.requested) == sorted([url_for(BITLY), url_for(GOOGL)])
    assert len(decompressor.calls) == 2
    paths = sorted(p.parent.name for r in results for p in r.dump_paths)
    assert paths == ["bitly_6", "googl"]
    assert not store.has_payload(IDENTIFIER, BITLY.name)


def test_local_payload_is_extracted_without_download(archives, decompressor):
    downloader = FakeDownloader()
    store, orchestrator = make_orchestrator(archives, downloader, decompressor)
    payload = store.payload_path(IDENTIFIER, BITLY.name)
    payload.parent.mkdir(parents=True)
    payload.write_bytes(payload_zip("bitly_6", "a|http://one.example/\n"))

    results = orchestrator.acquire(IDENTIFIER, [BITLY])

    assert downloader.requested == []
    assert len(results) == 1 and results[0].dump_paths


def test_extracted_entry_is_not_downloaded_again(archives, decompressor):
    downloader = FakeDownloader({url_for(GOOGL): payload_zip("googl", "b|http://two.example/\n")})
    store, orchestrator = make_orchestrator(archives, downloader, decompressor)
    done = store.dump_dir(IDENTIFIER, "bitly_6") / "dump.txt"
    done.parent.mkdir(parents=True)
    done.write_text("a|http://one.example/\n")

    results = orchestrator.acquire(IDENTIFIER, [BITLY, GOOGL])

    assert downloader.requested == [url_for(GOOGL)]
    assert len(decompressor.calls) == 1
    assert done.exists()
    assert len(results) == 2


def test_download_failure_aborts_acquisition(archives, decompressor):
    downloader = FakeDownloader({url_for(GOOGL): payload_zip("googl", "b|http://two.example/\n")})
    _, orchestrator = make_orchestrator(archives, downloader, decompressor)

    with pytest.raises(AcquisitionError, match="bitly_6.zip"):
        orchestrator.acquire(IDENTIFIER, [BITLY, GOOGL])


class BlockingDownloader(FakeDownloader):
    """Fails one URL immediately and holds the others until cancelled."""

    def __init__(self, failing_url):
        super().__init__()
        self.failing_url = failing_url
        self.cancelled = threading.Event()

    def download(self, url, destination, cancel_event=None):
        with self._lock:
            self.requested.append(url)
        if url == self.failing_url:
            raise DownloadError(f"failed to download {url}: connection reset")
        if cancel_event is not None and cancel_event.wait(timeout=5):
            self.cancelled.set()
            raise DownloadCancelled(f"download of {url} cancelled")
        raise AssertionError("sibling download was never cancelled")


def test_first_failure_cancels_siblings(archives, decompressor):
    downloader = BlockingDownloader(url_for(BITLY))
    _, orchestrator = make_orchestrator(archives, downloader, decompressor)

    with pytest.raises(AcquisitionError) as excinfo:
        orchestrator.acquire(IDENTIFIER, [BITLY, GOOGL])

    assert "connection reset" in str(excinfo.value)
    assert downloader.cancelled.is_set()
    assert decompressor.calls == []


def test_empty_manifest_acquires_nothing(archives, decompressor):
    downloader = FakeDownloader()
    _, orchestrator = make_orchestrator(archives, downloader, decompressor)
    assert orchestrator.acquire(IDENTIFIER, []) == []
    assert downloader.requested == []

"""
Acquisition of an archive's dump files.

For one archive identifier, every payload entry gets its own task:
entries whose dump text is already on disk are reused, entries whose
zip is on disk are extracted, and the rest are downloaded and extracted
in the same task. The first failure cancels the remaining work.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterable, List, Optional

from urlhunter.core.downloader import Downloader, DownloadJob
from urlhunter.core.errors import AcquisitionError, DownloadCancelled, DownloadError
from urlhunter.core.extractor import Extractor, ProcessResult
from urlhunter.utils.file_manager import ArchiveStore
from urlhunter.utils.manifest import DumpMetadataEntry, ManifestResolver


class AcquisitionOrchestrator:
    """
    Downloads and extracts the payloads of one archive in parallel.

    Concurrency is one thread per manifest entry; the outer job pool is
    what bounds the total.
    """

    def __init__(self, store: ArchiveStore, downloader: Downloader,
                 extractor: Extractor, resolver: ManifestResolver):
        self.store = store
        self.downloader = downloader
        self.extractor = extractor
        self.resolver = resolver
        self.logger = logging.getLogger(__name__)

    def acquire(self, identifier: str, entries: Iterable[DumpMetadataEntry]) -> List[ProcessResult]:
        """
        Make every payload entry's dump text available locally.

        Returns:
            One ProcessResult per entry, in completion order

        Raises:
            AcquisitionError: On the first entry that fails; sibling tasks
            are cancelled and the pool is drained before raising
        """
        entries = list(entries)
        if not entries:
            return []

        self.store.ensure_archive_dir(identifier)
        cancel = threading.Event()
        results: List[ProcessResult] = []
        failure: Optional[Exception] = None

        with ThreadPoolExecutor(max_workers=len(entries),
                                thread_name_prefix=f"acquire-{identifier}") as ex:
            futures = [ex.submit(self._plan(identifier, entry), identifier, entry, cancel)
                       for entry in entries]
            for fut in as_completed(futures):
                try:
                    result = fut.result()
                except Exception as e:
                    # Tasks report failures in their result; anything raised is unexpected
                    result = ProcessResult(directory=self.store.archive_dir(identifier), error=e)
                if result.error is None:
                    results.append(result)
                    continue
                if failure is None:
                    failure = result.error
                    cancel.set()
                    self.logger.error(f"{identifier}: {failure}; cancelling remaining tasks")
                elif not isinstance(result.error, DownloadCancelled):
                    self.logger.debug(f"{identifier}: discarded later failure: {result.error}")

        if failure is not None:
            raise AcquisitionError(str(failure)) from failure
        return results

    def _plan(self, identifier: str, entry: DumpMetadataEntry):
        dumps = self.store.find_dumps(identifier, entry.dump_type)
        if dumps and not self.store.has_payload(identifier, entry.name):
            self.logger.info(f"{entry.dump_type} already extracted. Skipping download..")
            return self._reuse
        if self.store.has_payload(identifier, entry.name):
            return self._extract_only
        self.logger.info(f"{entry.name} doesn't exist locally. Will be downloaded.")
        return self._download_and_extract

    def _reuse(self, identifier: str, entry: DumpMetadataEntry, cancel: threading.Event) -> ProcessResult:
        return ProcessResult(directory=self.store.archive_dir(identifier),
                             dump_paths=self.store.find_dumps(identifier, entry.dump_type))

    def _extract_only(self, identifier: str, entry: DumpMetadataEntry, cancel: threading.Event) -> ProcessResult:
        if cancel.is_set():
            return self._cancelled(identifier, entry)
        return self.extractor.extract(identifier, entry)

    def _download_and_extract(self, identifier: str, entry: DumpMetadataEntry,
                              cancel: threading.Event) -> ProcessResult:
        job = DownloadJob(url=self.resolver.remote_url(identifier, entry.name),
                          directory=self.store.archive_dir(identifier),
                          filename=entry.name)
        if cancel.is_set():
            return self._cancelled(identifier, entry)
        try:
            self.downloader.fetch(job, cancel_event=cancel)
        except DownloadError as e:
            return ProcessResult(directory=job.directory, error=e)
        return self._extract_only(identifier, entry, cancel)

    def _cancelled(self, identifier: str, entry: DumpMetadataEntry) -> ProcessResult:
        return ProcessResult(directory=self.store.archive_dir(identifier),
                             error=DownloadCancelled(f"{entry.name} skipped after an earlier failure"))

"""
urlhunter Orchestrator: runs the search for one date or a range of dates.

A range is expanded into one ArchiveJob per calendar day and fanned out
over a fixed-size worker pool; a single date runs synchronously.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence

from .acquisition import AcquisitionOrchestrator
from .catalog_client import ArchiveCatalog
from .downloader import Downloader
from .errors import ConfigurationError
from .extractor import DEFAULT_DECOMPRESS_COMMAND, Extractor, XZDecompressor
from .search import ArchiveJob, MatchSink, SearchDriver
from urlhunter.utils.file_manager import ArchiveStore
from urlhunter.utils.manifest import DOWNLOAD_BASE_URL, PAYLOAD_FORMAT, ManifestResolver
from urlhunter.utils.validators import DATE_FORMAT, DateSelection, LATEST, parse_date_param


STATUS_SUCCESS = "Success"
STATUS_FAILED = "Failed"


@dataclass
class RunConfig:
    keywords_path: str
    date_param: str
    output_path: Optional[str] = None
    archives_root: str = "archives"
    remove_after: bool = False
    workers: int = 3
    log_dir: Optional[str] = None
    verbose: bool = False
    catalog_url: str = ArchiveCatalog.CATALOG_URL
    download_base_url: str = DOWNLOAD_BASE_URL
    payload_format: str = PAYLOAD_FORMAT
    decompress_command: Sequence[str] = DEFAULT_DECOMPRESS_COMMAND
    request_timeout: float = 60

    def validate(self) -> DateSelection:
        """
        Check the configuration before any work starts.

        Returns:
            The parsed date selection

        Raises:
            ConfigurationError: On missing or invalid values
        """
        if not self.keywords_path or not self.date_param:
            raise ConfigurationError("Missing required arguments")
        if not Path(self.keywords_path).is_file():
            raise ConfigurationError(f"Keyword file not found: {self.keywords_path}")
        if self.workers < 1:
            raise ConfigurationError("workers must be at least 1")
        if not self.decompress_command:
            raise ConfigurationError("decompress command cannot be empty")
        return parse_date_param(self.date_param)


@dataclass(frozen=True)
class ProcessSummary:
    date: str
    status: str
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS


def expand_dates(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day from start to end, inclusive."""
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def build_jobs(config: RunConfig, selection: DateSelection) -> List[ArchiveJob]:
    if selection.latest:
        days = [LATEST]
    else:
        days = [d.strftime(DATE_FORMAT) for d in expand_dates(selection.start, selection.end)]
    return [ArchiveJob(date=d, keywords_path=config.keywords_path,
                       output_path=config.output_path, remove_after=config.remove_after)
            for d in days]


class JobScheduler:
    """
    Fans ArchiveJobs out over a fixed pool of workers.

    Each worker runs one job to completion before taking the next. A
    failing job becomes a Failed summary and never affects its siblings.
    """

    def __init__(self, run_job: Callable[[ArchiveJob], object], workers: int = 3,
                 logger: Optional[logging.Logger] = None):
        self.run_job = run_job
        self.workers = workers
        self.logger = logger or logging.getLogger(__name__)

    def run_single(self, job: ArchiveJob) -> ProcessSummary:
        try:
            self.run_job(job)
        except Exception as e:
            self.logger.debug(f"Job {job.date} failed", exc_info=True)
            return ProcessSummary(date=job.date, status=STATUS_FAILED, error=e)
        return ProcessSummary(date=job.date, status=STATUS_SUCCESS)

    def run(self, jobs: Sequence[ArchiveJob]) -> List[ProcessSummary]:
        """Run every job; summaries come back in completion order."""
        summaries: List[ProcessSummary] = []
        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="job") as ex:
            futures = [ex.submit(self.run_single, job) for job in jobs]
            for fut in as_completed(futures):
                summary = fut.result()
                summaries.append(summary)
                if summary.ok:
                    self.logger.info(f"[SUCCESS] Date {summary.date} processed successfully")
                else:
                    self.logger.error(f"[FAILED] Date {summary.date}: {summary.error}")
        return summaries

    def report(self, summaries: Sequence[ProcessSummary]) -> None:
        succeeded = [s for s in summaries if s.ok]
        failed = [s for s in summaries if not s.ok]

        self.logger.info("=== Final Summary ===")
        self.logger.info(f"Successfully processed dates: {len(succeeded)}")
        if failed:
            self.logger.error(f"Failed dates: {len(failed)}")
            self.logger.warning("Failed dates details:")
            for summary in failed:
                self.logger.warning(f"- {summary.date}: {summary.error}")


class HunterController:
    """Builds the pipeline from a RunConfig and runs it."""

    def __init__(self, config: RunConfig, logger: Optional[logging.Logger] = None,
                 progress=None, stream=None):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.sink = MatchSink(config.output_path, stream=stream)
        self.store = ArchiveStore(config.archives_root)
        self.downloader = Downloader(timeout=config.request_timeout, progress=progress)
        self.catalog = ArchiveCatalog(self.downloader, catalog_url=config.catalog_url)
        self.resolver = ManifestResolver(self.store, self.downloader,
                                         download_base_url=config.download_base_url,
                                         payload_format=config.payload_format)
        self.extractor = Extractor(self.store, XZDecompressor(config.decompress_command))
        self.orchestrator = AcquisitionOrchestrator(self.store, self.downloader,
                                                    self.extractor, self.resolver)
        self.driver = SearchDriver(self.catalog, self.resolver, self.orchestrator,
                                   self.store, sink=self.sink)
        self.scheduler = JobScheduler(self.driver.run, workers=config.workers, logger=self.logger)

    def run(self, selection: DateSelection) -> List[ProcessSummary]:
        """
        Run the search for the selected dates.

        A single date runs synchronously and its failure propagates; a
        range runs on the worker pool and failures end up in the summaries.
        """
        try:
            self.store.ensure_root()
        except OSError as e:
            self.sink.close()
            raise ConfigurationError(f"cannot use archives folder {self.config.archives_root}: {e}") from e
        jobs = build_jobs(self.config, selection)
        try:
            if not selection.ranged:
                self.driver.run(jobs[0])
                return [ProcessSummary(date=jobs[0].date, status=STATUS_SUCCESS)]
            summaries = self.scheduler.run(jobs)
            self.scheduler.report(summaries)
            return summaries
        finally:
            self.sink.close()

    def close(self):
        self.downloader.close()

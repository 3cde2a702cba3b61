"""
Search driver: one date, one keyword file, one output sink.

Resolves the release for the date, makes sure its dumps are on disk,
then streams every dump through a matcher per keyword and writes each
match as ``source,target``.
"""

from __future__ import annotations

import logging
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, TextIO

from urlhunter.core.acquisition import AcquisitionOrchestrator
from urlhunter.core.beacon import BeaconLine, parse_line, read_metadata
from urlhunter.core.catalog_client import ArchiveCatalog
from urlhunter.core.errors import BeaconParseError, ConfigurationError, HunterError, MatcherError
from urlhunter.core.matcher import Matcher, build_matcher
from urlhunter.utils.file_manager import ArchiveStore
from urlhunter.utils.manifest import ManifestResolver


@dataclass(frozen=True)
class ArchiveJob:
    date: str
    keywords_path: str
    output_path: Optional[str] = None
    remove_after: bool = False


def read_keywords(path) -> List[str]:
    """Read keyword specifications, one per non-blank line."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return [line.rstrip('\r\n') for line in f if line.strip()]
    except OSError as e:
        raise HunterError(f"failed to read keyword file: {e}") from e


class MatchSink:
    """
    Destination for match lines.

    Appends to a file when a path is given, otherwise writes to stdout.
    The file is created up front, so it exists even when nothing matches.
    Each line is written under a lock so concurrent jobs never interleave
    partial lines.
    """

    def __init__(self, output_path: Optional[str] = None, stream: Optional[TextIO] = None):
        self.output_path = output_path
        self.stream = stream
        self._file: Optional[TextIO] = None
        self._lock = threading.Lock()
        if output_path:
            try:
                self._file = open(output_path, 'a', encoding='utf-8')
            except OSError as e:
                raise ConfigurationError(f"cannot open output file {output_path}: {e}") from e

    def _target(self) -> TextIO:
        if not self.output_path:
            return self.stream or sys.stdout
        if self._file is None:
            raise HunterError(f"output file {self.output_path} is closed")
        return self._file

    def write(self, match: BeaconLine) -> None:
        with self._lock:
            target = self._target()
            target.write(match.render() + "\n")
            target.flush()

    def close(self) -> None:
        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class SearchDriver:
    """Runs one ArchiveJob end to end."""

    def __init__(self, catalog: ArchiveCatalog, resolver: ManifestResolver,
                 orchestrator: AcquisitionOrchestrator, store: ArchiveStore,
                 sink: Optional[MatchSink] = None):
        self.catalog = catalog
        self.resolver = resolver
        self.orchestrator = orchestrator
        self.store = store
        self.sink = sink
        self.logger = logging.getLogger(__name__)

    def run(self, job: ArchiveJob) -> int:
        """
        Search one date's release.

        Returns:
            Number of matches written

        Raises:
            HunterError: On catalog, transport, extraction or input failures
        """
        self.logger.info(f"Search starting for: {job.date}")
        identifier = self.catalog.resolve(job.date)
        entries = self.resolver.resolve(identifier)

        dump_types = [e.dump_type for e in entries]
        if self.store.is_materialized(identifier, dump_types):
            self.logger.info(f"{identifier} already exists locally. Skipping download..")
            dump_paths = [p for t in dump_types for p in self.store.find_dumps(identifier, t)]
        else:
            results = self.orchestrator.acquire(identifier, entries)
            dump_paths = [p for r in results for p in r.dump_paths]

        keywords = read_keywords(job.keywords_path)
        owned = self.sink is None
        sink = self.sink or MatchSink(job.output_path)
        total = 0
        try:
            for keyword in keywords:
                try:
                    matcher = build_matcher(keyword)
                except MatcherError as e:
                    self.logger.warning(f"Skipping keyword {keyword!r}: {e}")
                    continue
                for dump_path in dump_paths:
                    try:
                        total += self.search_file(dump_path, keyword, matcher, sink)
                    except OSError as e:
                        raise HunterError(f"search failed in {dump_path}: {e}") from e
        finally:
            if owned:
                sink.close()

        if job.remove_after:
            try:
                self.store.remove_archive(identifier)
            except OSError as e:
                self.logger.warning(f"Failed to remove archive folder: {e}")

        return total

    def search_file(self, path: Path, keyword: str, matcher: Matcher, sink: MatchSink) -> int:
        """
        Stream one dump file and write every matching line.

        The leading header block is not searched. Lines that match but
        cannot be parsed are logged and skipped.
        """
        path = Path(path)
        self.logger.info(f"Searching: \"{keyword}\" in {path.parent.name}/{path.name}")
        metadata = read_metadata(path)

        count = 0
        with open(path, 'rb') as f:
            in_header = True
            for raw in f:
                line = raw.rstrip(b'\r\n')
                if in_header:
                    if line.startswith(b'#'):
                        continue
                    in_header = False
                if not matcher(line):
                    continue
                try:
                    match = parse_line(line.decode('utf-8', errors='replace'), metadata)
                except BeaconParseError as e:
                    self.logger.warning(f"{e} ({path.name})")
                    continue
                sink.write(match)
                count += 1
        self.logger.debug(f"{count} matches for \"{keyword}\" in {path.name}")
        return count

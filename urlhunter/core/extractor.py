"""
Payload extraction.

A URLTeam payload is a zip holding one ``<dump-type>/<name>.txt.xz``
container per dump. Extraction unzips the payload into the archive
directory, decompresses the container with the external ``xz`` tool
and removes the zip afterwards to bound disk usage.
"""

from __future__ import annotations

import logging
import os
import subprocess
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from urlhunter.core.errors import (
    CorruptArchiveError,
    DecompressionError,
    ExtractionError,
    UnsafeArchiveError,
)
from urlhunter.utils.file_manager import CONTAINER_SUFFIX, ArchiveStore
from urlhunter.utils.manifest import DumpMetadataEntry


DEFAULT_DECOMPRESS_COMMAND = ("xz", "--decompress", "--force")


@dataclass
class ProcessResult:
    directory: Path
    dump_paths: List[Path] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def safe_unzip(source: Path, destination: Path) -> List[Path]:
    """
    Extract a zip archive, refusing members that escape the destination.

    All member paths are validated before anything is written. If a
    member fails mid-extraction, every file written so far is removed
    before the error propagates.

    Returns:
        Paths of the extracted files (directories excluded)

    Raises:
        UnsafeArchiveError: If a member resolves outside destination
        zipfile.BadZipFile: If the archive is corrupt
    """
    destination = Path(destination)
    root = destination.resolve()
    with zipfile.ZipFile(source) as zf:
        members = zf.infolist()
        targets = []
        for info in members:
            target = (root / info.filename).resolve()
            if target != root and root not in target.parents:
                raise UnsafeArchiveError(f"{info.filename}: illegal file path")
            targets.append((info, target))

        extracted = []
        try:
            for info, target in targets:
                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                extracted.append(target)
                with zf.open(info) as src, open(target, 'wb') as dst:
                    while True:
                        chunk = src.read(1024 * 1024)
                        if not chunk:
                            break
                        dst.write(chunk)
        except Exception:
            for path in extracted:
                _remove(path)
            raise
    return extracted


class XZDecompressor:
    """Runs the external xz command, which replaces file.xz with file."""

    def __init__(self, command: Sequence[str] = DEFAULT_DECOMPRESS_COMMAND):
        self.command = list(command)

    def __call__(self, container: Path) -> Path:
        container = Path(container)
        try:
            proc = subprocess.run(self.command + [str(container)],
                                  stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        except OSError as e:
            raise DecompressionError(f"cannot run {self.command[0]}: {e}") from e
        if proc.returncode != 0:
            detail = proc.stderr.decode('utf-8', errors='ignore').strip()
            raise DecompressionError(f"{self.command[0]} exited with {proc.returncode}: {detail}")
        output = container.with_suffix('')
        if not output.is_file():
            raise DecompressionError(f"{output.name} missing after decompression")
        return output


class Extractor:
    """
    Turns a downloaded payload into plain-text dump files.

    Per-entry failures are returned in the ProcessResult rather than
    raised, so that concurrent callers can collect them.
    """

    def __init__(self, store: ArchiveStore, decompressor=None):
        self.store = store
        self.decompress = decompressor or XZDecompressor()
        self.logger = logging.getLogger(__name__)

    def extract(self, identifier: str, entry: DumpMetadataEntry) -> ProcessResult:
        archive_dir = self.store.archive_dir(identifier)
        payload = self.store.payload_path(identifier, entry.name)
        result = ProcessResult(directory=archive_dir)

        try:
            self._remove_stale_dumps(identifier, entry.dump_type)
        except OSError as e:
            result.error = ExtractionError(f"failed to reset {entry.dump_type}: {e}")
            return result

        self.logger.info(f"Unzipping: {entry.name}")
        try:
            members = safe_unzip(payload, archive_dir)
        except (zipfile.BadZipFile, UnsafeArchiveError, OSError) as e:
            _remove(payload)
            result.error = CorruptArchiveError(f"failed to unzip {entry.name}: {e}")
            return result

        try:
            result.dump_paths = self._decompress(identifier, entry, members)
        except DecompressionError as e:
            result.error = DecompressionError(f"failed to decompress {entry.name}: {e}")
        finally:
            _remove(payload)

        return result

    def _remove_stale_dumps(self, identifier: str, dump_type: str) -> None:
        for stale in self.store.find_dumps(identifier, dump_type):
            self.logger.debug(f"Removing stale dump: {stale}")
            stale.unlink()

    def _containers(self, identifier: str, entry: DumpMetadataEntry, members: List[Path]) -> List[Path]:
        dump_dir = self.store.dump_dir(identifier, entry.dump_type).resolve()
        containers = [m for m in members
                      if m.name.endswith(CONTAINER_SUFFIX) and m.parent == dump_dir]
        if not containers:
            # Unusual member layout; look for containers on disk instead
            containers = self.store.find_containers(identifier, entry.dump_type)
        return containers

    def _decompress(self, identifier: str, entry: DumpMetadataEntry, members: List[Path]) -> List[Path]:
        self.logger.info(f"Decompressing: {entry.name}")
        dumps = [self.decompress(c) for c in self._containers(identifier, entry, members)]
        if not dumps:
            dumps = self.store.find_dumps(identifier, entry.dump_type)
        if not dumps:
            self.logger.warning(f"No dump text produced by {entry.name}")
        return dumps


def _remove(path: Path) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass

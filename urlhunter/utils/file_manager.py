"""
Archive Store

This module owns the on-disk layout that later runs consult to avoid
downloading or extracting an archive twice:

    <archives-root>/<identifier>/<payload>.zip
    <archives-root>/<identifier>/<dump-type>/<dump>.txt
    <archives-root>/<identifier>/<identifier>_files.xml
"""

import logging
import shutil
from pathlib import Path
from typing import List, Union


DUMP_SUFFIX = ".txt"
CONTAINER_SUFFIX = ".txt.xz"
MANIFEST_SUFFIX = "_files.xml"


class ArchiveStore:
    """
    Resolves and manages local paths for downloaded archives.

    The archives root is passed in explicitly; every path the pipeline
    touches is derived from it.
    """

    def __init__(self, archives_root: Union[str, Path] = "archives"):
        """
        Initialize the archive store.

        Args:
            archives_root: Base directory for all downloaded archives
        """
        self.root = Path(archives_root)
        self.logger = logging.getLogger(__name__)

    def ensure_root(self) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    def archive_dir(self, identifier: str) -> Path:
        return self.root / identifier

    def ensure_archive_dir(self, identifier: str) -> Path:
        path = self.archive_dir(identifier)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def manifest_name(self, identifier: str) -> str:
        return f"{identifier}{MANIFEST_SUFFIX}"

    def manifest_path(self, identifier: str) -> Path:
        return self.archive_dir(identifier) / self.manifest_name(identifier)

    def payload_path(self, identifier: str, name: str) -> Path:
        return self.archive_dir(identifier) / name

    def dump_dir(self, identifier: str, dump_type: str) -> Path:
        return self.archive_dir(identifier) / dump_type

    def has_payload(self, identifier: str, name: str) -> bool:
        return self.payload_path(identifier, name).is_file()

    def find_dumps(self, identifier: str, dump_type: str) -> List[Path]:
        """Return the decompressed text files present for a dump type."""
        directory = self.dump_dir(identifier, dump_type)
        if not directory.is_dir():
            return []
        return sorted(p for p in directory.glob(f"*{DUMP_SUFFIX}") if p.is_file())

    def find_containers(self, identifier: str, dump_type: str) -> List[Path]:
        """Return compressed containers left in a dump directory."""
        directory = self.dump_dir(identifier, dump_type)
        if not directory.is_dir():
            return []
        return sorted(p for p in directory.glob(f"*{CONTAINER_SUFFIX}") if p.is_file())

    def is_materialized(self, identifier: str, dump_types) -> bool:
        """
        Check whether every dump type already has a decompressed text file.

        An archive with no dump types is never considered materialized.
        """
        dump_types = list(dump_types)
        if not dump_types:
            return False
        return all(self.find_dumps(identifier, t) for t in dump_types)

    def remove_archive(self, identifier: str) -> None:
        """
        Delete an archive's local directory.

        Raises:
            OSError: If the directory cannot be removed
        """
        directory = self.archive_dir(identifier)
        if directory.exists():
            shutil.rmtree(directory)
            self.logger.info(f"Removed archive folder: {directory}")

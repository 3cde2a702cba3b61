"""
Archive manifest utilities.

Every archive item ships a ``<identifier>_files.xml`` manifest listing its
member files. The manifest is cached next to the archive's payloads and
filtered down to the zip payloads that hold the URL dumps.
"""

import logging
from dataclasses import dataclass
from typing import List

from bs4 import BeautifulSoup

from urlhunter.core.downloader import Downloader
from urlhunter.core.errors import ManifestError
from urlhunter.utils.file_manager import ArchiveStore


PAYLOAD_FORMAT = "ZIP"
DOWNLOAD_BASE_URL = "https://archive.org/download"


@dataclass(frozen=True)
class DumpMetadataEntry:
    name: str
    format: str
    dump_type: str


def dump_type_for(name: str) -> str:
    """Dump type is the member name up to its first dot."""
    return name.split(".", 1)[0]


def parse_manifest(xml_text, payload_format: str = PAYLOAD_FORMAT) -> List[DumpMetadataEntry]:
    """
    Parse a files.xml document and keep only payload entries.

    Entries whose <format> differs from payload_format are dropped, as
    are entries without a name.
    """
    soup = BeautifulSoup(xml_text, 'xml')
    entries = []
    for node in soup.find_all('file'):
        name = node.get('name')
        fmt = node.find('format')
        fmt_text = fmt.get_text(strip=True) if fmt else ""
        if not name or fmt_text != payload_format:
            continue
        entries.append(DumpMetadataEntry(name=name, format=fmt_text, dump_type=dump_type_for(name)))
    return entries


class ManifestResolver:
    """
    Obtains and filters archive manifests.

    The manifest is downloaded only when it is absent from the archive
    directory; payload entries are recomputed from it on every call.
    """

    def __init__(self, store: ArchiveStore, downloader: Downloader,
                 download_base_url: str = DOWNLOAD_BASE_URL,
                 payload_format: str = PAYLOAD_FORMAT):
        self.store = store
        self.downloader = downloader
        self.download_base_url = download_base_url.rstrip('/')
        self.payload_format = payload_format
        self.logger = logging.getLogger(__name__)

    def remote_url(self, identifier: str, name: str) -> str:
        return f"{self.download_base_url}/{identifier}/{name}"

    def resolve(self, identifier: str) -> List[DumpMetadataEntry]:
        """
        Return the payload entries of an archive.

        Raises:
            DownloadError: If the manifest has to be fetched and cannot be
            ManifestError: If the manifest cannot be stored or read locally
        """
        path = self.store.manifest_path(identifier)
        if not path.is_file():
            name = self.store.manifest_name(identifier)
            self.logger.info(f"{name} doesn't exist locally. The file will be downloaded.")
            try:
                self.store.ensure_archive_dir(identifier)
            except OSError as e:
                raise ManifestError(f"cannot create archive folder for {identifier}: {e}") from e
            self.downloader.download(self.remote_url(identifier, name), path)

        try:
            data = path.read_bytes()
        except OSError as e:
            raise ManifestError(f"cannot read manifest {path.name}: {e}") from e

        entries = parse_manifest(data, self.payload_format)
        self.logger.debug(f"{identifier}: {len(entries)} payload entries in manifest")
        if not entries:
            self.logger.warning(f"No {self.payload_format} payloads listed for {identifier}")
        return entries

"""
Archive Download Module

This module streams remote archive files (manifests and dump payloads)
to local paths, reporting progress as bytes arrive.
"""

import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

import requests

from urlhunter.core.errors import DownloadCancelled, DownloadError


USER_AGENT = 'urlhunter/1.0 (URLTeam dump search)'
CHUNK_SIZE = 1024 * 1024
PART_SUFFIX = ".part"

ProgressCallback = Callable[[str, int, Optional[int]], None]


@dataclass
class DownloadJob:
    url: str
    directory: Path
    filename: str

    @property
    def path(self) -> Path:
        return Path(self.directory) / self.filename


class Downloader:
    """
    Streams remote files to disk.

    Transport failures are raised as DownloadError and never retried.
    Content is written to a temporary ``.part`` file and moved into place
    only once complete, so a failed transfer never leaves a file that a
    later run would mistake for a finished download.
    """

    def __init__(self, timeout: float = 60, session: Optional[requests.Session] = None,
                 progress: Optional[ProgressCallback] = None):
        """
        Initialize the downloader.

        Args:
            timeout: Connect/read timeout in seconds for each request
            session: Optional preconfigured requests session
            progress: Optional callback receiving (name, bytes_done, total)
        """
        self.timeout = timeout
        self.progress = progress
        self.logger = logging.getLogger(__name__)
        self.session = session or requests.Session()
        self.session.headers.update({'User-Agent': USER_AGENT})

    def download(self, url: str, destination: Union[str, Path],
                 cancel_event: Optional[threading.Event] = None) -> Path:
        """
        Download a URL to a local file.

        Args:
            url: Remote locator
            destination: Local file path
            cancel_event: When set, the transfer stops at the next chunk

        Returns:
            The destination path

        Raises:
            DownloadCancelled: If cancel_event was set mid-transfer
            DownloadError: On any transport or HTTP error
        """
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        partial = destination.with_name(destination.name + PART_SUFFIX)

        self.logger.info(f"Downloading: {url}")
        try:
            with self.session.get(url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()
                total = _content_length(response)
                done = 0
                with open(partial, 'wb') as f:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if cancel_event is not None and cancel_event.is_set():
                            raise DownloadCancelled(f"download of {destination.name} cancelled")
                        if not chunk:
                            continue
                        f.write(chunk)
                        done += len(chunk)
                        if self.progress:
                            self.progress(destination.name, done, total)
            os.replace(partial, destination)
        except requests.RequestException as e:
            _discard(partial)
            raise DownloadError(f"failed to download {url}: {e}") from e
        except OSError as e:
            _discard(partial)
            raise DownloadError(f"failed to write {destination}: {e}") from e
        except DownloadError:
            _discard(partial)
            raise

        self.logger.info(f"Download finished: {destination.name}")
        return destination

    def fetch(self, job: DownloadJob, cancel_event: Optional[threading.Event] = None) -> Path:
        return self.download(job.url, job.path, cancel_event=cancel_event)

    def get_json(self, url: str, params: Optional[dict] = None):
        """
        Fetch a JSON document.

        Raises:
            DownloadError: On transport errors or an undecodable body
        """
        self.logger.debug(f"Requesting {url} with params: {params}")
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise DownloadError(f"request to {url} failed: {e}") from e
        except ValueError as e:
            raise DownloadError(f"invalid JSON from {url}: {e}") from e

    def close(self):
        """Close the HTTP session."""
        self.session.close()


def _content_length(response) -> Optional[int]:
    value = response.headers.get('Content-Length')
    if value and value.isdigit():
        return int(value)
    return None


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass

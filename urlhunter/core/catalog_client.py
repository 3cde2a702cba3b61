"""
Archive Catalog Client for the Internet Archive

This module queries the Internet Archive scrape API for URLTeam release
items and resolves a calendar day (or "latest") to the identifier of the
matching release.
"""

import logging
from typing import Dict, List, Optional

from urlhunter.core.downloader import Downloader
from urlhunter.core.errors import ArchiveNotFoundError, CatalogError, DownloadError
from urlhunter.utils.validators import LATEST


class ArchiveCatalog:
    """
    Client for the Internet Archive item catalog.

    Every URLTeam release is one archive item whose identifier embeds the
    day it was published, e.g. ``urlteam_2020-11-20-11-17-04``.
    """

    CATALOG_URL = "https://archive.org/services/search/v1/scrape"
    QUERY = "Urlteam Release"

    def __init__(self, downloader: Downloader, catalog_url: Optional[str] = None):
        """
        Initialize the catalog client.

        Args:
            downloader: Transport used for the catalog request
            catalog_url: Override for the scrape API endpoint
        """
        self.downloader = downloader
        self.catalog_url = catalog_url or self.CATALOG_URL
        self.logger = logging.getLogger(__name__)

    def list_items(self) -> List[Dict]:
        """
        Fetch every release item from the catalog.

        Raises:
            CatalogError: If the request fails or the response is malformed
        """
        params = {
            'debug': 'false',
            'xvar': 'production',
            'total_only': 'false',
            'count': 10000,
            'fields': 'identifier,item_size',
            'q': self.QUERY,
        }
        try:
            data = self.downloader.get_json(self.catalog_url, params=params)
        except DownloadError as e:
            raise CatalogError(f"failed to fetch archive list: {e}") from e

        items = data.get('items') if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise CatalogError("failed to parse response: no 'items' list")
        return [item for item in items if isinstance(item, dict) and item.get('identifier')]

    def resolve(self, date: str) -> str:
        """
        Resolve a YYYY-MM-DD day or "latest" to an archive identifier.

        Raises:
            ArchiveNotFoundError: If no release exists for the day
            CatalogError: If the catalog cannot be queried
        """
        items = self.list_items()
        if date == LATEST:
            if not items:
                raise ArchiveNotFoundError("no archive found for date latest")
            return items[-1]['identifier']

        for item in items:
            if date in item['identifier']:
                return item['identifier']
        raise ArchiveNotFoundError(f"no archive found for date {date}")

import io

import pytest

from conftest import IDENTIFIER, FakeDownloader, manifest_xml, payload_zip
from urlhunter.core.acquisition import AcquisitionOrchestrator
from urlhunter.core.catalog_client import ArchiveCatalog
from urlhunter.core.errors import ArchiveNotFoundError
from urlhunter.core.extractor import Extractor
from urlhunter.core.search import ArchiveJob, MatchSink, SearchDriver, read_keywords
from urlhunter.utils.file_manager import ArchiveStore
from urlhunter.utils.manifest import ManifestResolver


BASE = "https://archive.test/download"
CATALOG_URL = "https://archive.test/scrape"
CATALOG = {"items": [
    {"identifier": "urlteam_2020-11-13-11-17-04", "item_size": 1},
    {"identifier": IDENTIFIER, "item_size": 2},
]}

BITLY_DUMP = (
    "#FORMAT: BEACON\n"
    "#PREFIX: https://bit.ly/\n"
    "#MESSAGE: example.com appears in the header\n"
    "abc|http://example.com/first\n"
    "abd|http://unrelated.org/\n"
    "abe|2020-11-20|https://example.com/second\n"
)
GOOGL_DUMP = (
    "#PREFIX: https://goo.gl/\n"
    "xyz|http://www.example.com/third\n"
    "q|w|e|example.com\n"
    "zzz|http://nothing.here/\n"
)


def remote_files():
    return {
        f"{BASE}/{IDENTIFIER}/{IDENTIFIER}_files.xml": manifest_xml(
            ("bitly_6.zip", "ZIP"),
            ("googl.zip", "ZIP"),
            (f"{IDENTIFIER}_meta.xml", "Metadata"),
        ),
        f"{BASE}/{IDENTIFIER}/bitly_6.zip": payload_zip("bitly_6", BITLY_DUMP),
        f"{BASE}/{IDENTIFIER}/googl.zip": payload_zip("googl", GOOGL_DUMP),
    }


def make_driver(archives, downloader, decompressor, sink):
    store = ArchiveStore(archives)
    resolver = ManifestResolver(store, downloader, download_base_url=BASE)
    orchestrator = AcquisitionOrchestrator(store, downloader, Extractor(store, decompressor), resolver)
    catalog = ArchiveCatalog(downloader, catalog_url=CATALOG_URL)
    return store, SearchDriver(catalog, resolver, orchestrator, store, sink=sink)


@pytest.fixture
def keywords(tmp_path):
    path = tmp_path / "keywords.txt"
    path.write_text("example.com\n\n", encoding="utf-8")
    return path


def test_end_to_end_single_date(archives, decompressor, keywords):
    downloader = FakeDownloader(remote_files(), catalog=CATALOG)
    out = io.StringIO()
    store, driver = make_driver(archives, downloader, decompressor, MatchSink(stream=out))

    count = driver.run(ArchiveJob(date="2020-11-20", keywords_path=str(keywords)))

    payload_downloads = [u for u in downloader.requested if u.endswith(".zip")]
    assert len(payload_downloads) == 2
    assert len(decompressor.calls) == 2
    lines = sorted(out.getvalue().splitlines())
    assert lines == sorted([
        "https://bit.ly/abc,http://example.com/first",
        "https://bit.ly/abe,https://example.com/second",
        "https://goo.gl/xyz,http://www.example.com/third",
    ])
    assert count == 3
    assert store.is_materialized(IDENTIFIER, ["bitly_6", "googl"])


def test_materialized_archive_issues_no_downloads(archives, decompressor, keywords):
    downloader = FakeDownloader(remote_files(), catalog=CATALOG)
    _, driver = make_driver(archives, downloader, decompressor, MatchSink(stream=io.StringIO()))
    driver.run(ArchiveJob(date="2020-11-20", keywords_path=str(keywords)))

    downloader.requested.clear()
    decompressor.calls.clear()
    out = io.StringIO()
    driver.sink = MatchSink(stream=out)
    driver.run(ArchiveJob(date="2020-11-20", keywords_path=str(keywords)))

    assert downloader.requested == [CATALOG_URL]
    assert decompressor.calls == []
    assert len(out.getvalue().splitlines()) == 3


def test_output_file_is_appended(archives, decompressor, keywords, tmp_path):
    output = tmp_path / "results.txt"
    output.write_text("existing\n", encoding="utf-8")
    downloader = FakeDownloader(remote_files(), catalog=CATALOG)
    _, driver = make_driver(archives, downloader, decompressor, sink=None)

    driver.run(ArchiveJob(date="2020-11-20", keywords_path=str(keywords), output_path=str(output)))

    lines = output.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "existing"
    assert len(lines) == 4


def test_invalid_keyword_is_skipped(archives, decompressor, tmp_path):
    path = tmp_path / "keywords.txt"
    path.write_text("regex (broken\nunrelated.org\n", encoding="utf-8")
    downloader = FakeDownloader(remote_files(), catalog=CATALOG)
    out = io.StringIO()
    _, driver = make_driver(archives, downloader, decompressor, MatchSink(stream=out))

    driver.run(ArchiveJob(date="2020-11-20", keywords_path=str(path)))

    assert out.getvalue() == "https://bit.ly/abd,http://unrelated.org/\n"


def test_multi_keyword_requires_all(archives, decompressor, tmp_path):
    path = tmp_path / "keywords.txt"
    path.write_text("example.com,third\n", encoding="utf-8")
    downloader = FakeDownloader(remote_files(), catalog=CATALOG)
    out = io.StringIO()
    _, driver = make_driver(archives, downloader, decompressor, MatchSink(stream=out))

    driver.run(ArchiveJob(date="2020-11-20", keywords_path=str(path)))

    assert out.getvalue() == "https://goo.gl/xyz,http://www.example.com/third\n"


def test_remove_after_deletes_archive(archives, decompressor, keywords):
    downloader = FakeDownloader(remote_files(), catalog=CATALOG)
    store, driver = make_driver(archives, downloader, decompressor, MatchSink(stream=io.StringIO()))

    driver.run(ArchiveJob(date="2020-11-20", keywords_path=str(keywords), remove_after=True))

    assert not store.archive_dir(IDENTIFIER).exists()


def test_unknown_date_fails(archives, decompressor, keywords):
    downloader = FakeDownloader(remote_files(), catalog=CATALOG)
    _, driver = make_driver(archives, downloader, decompressor, MatchSink(stream=io.StringIO()))

    with pytest.raises(ArchiveNotFoundError):
        driver.run(ArchiveJob(date="2019-01-01", keywords_path=str(keywords)))


def test_latest_resolves_to_last_item(archives, decompressor, keywords):
    downloader = FakeDownloader(remote_files(), catalog=CATALOG)
    _, driver = make_driver(archives, downloader, decompressor, MatchSink(stream=io.StringIO()))

    assert driver.run(ArchiveJob(date="latest", keywords_path=str(keywords))) == 3


def test_read_keywords_ignores_blank_lines(tmp_path):
    path = tmp_path / "k.txt"
    path.write_text("one\n\n  \ntwo,three\r\nregex ^http\n", encoding="utf-8")
    assert read_keywords(path) == ["one", "two,three", "regex ^http"]


def test_output_file_created_without_matches(archives, decompressor, tmp_path):
    path = tmp_path / "keywords.txt"
    path.write_text("nothing-matches-this\n", encoding="utf-8")
    output = tmp_path / "results.txt"
    downloader = FakeDownloader(remote_files(), catalog=CATALOG)
    _, driver = make_driver(archives, downloader, decompressor, sink=None)

    assert driver.run(ArchiveJob(date="2020-11-20", keywords_path=str(path), output_path=str(output))) == 0

    assert output.exists()
    assert output.read_text(encoding="utf-8") == ""


def test_sink_creates_output_file_up_front(tmp_path):
    output = tmp_path / "results.txt"
    with MatchSink(str(output)):
        assert output.exists()

"""Tests for the web-scraping task kinds, driven through the queue with a fake fetcher."""
import pytest

from crawlq import scraping
from crawlq.models import Task, TaskStatus
from crawlq.queue import CommandQueue

GENRE_A = "https://www.imdb.com/search/title?genres=sci-fi"
GENRE_B = "https://www.imdb.com/search/title?genres=drama"

PAGES = {
    scraping.GENRES_URL: (
        f'<a href="{GENRE_A}">Sci-Fi</a><a href="{GENRE_B}">Drama</a><a href="{GENRE_A}">again</a>'
    ),
    GENRE_A + "&page=1": (
        '<a href="/title/tt0001/?ref_=adv_li_tt">One</a>'
        '<a href="/title/tt0002/?ref_=adv_li_tt">Two</a>'
        '<a href="#">Next &#187;</a>'
    ),
    GENRE_A + "&page=2": '<a href="/title/tt0003/?ref_=adv_li_tt">Three</a>',
    GENRE_B + "&page=1": "<p>no results</p>",
    "https://www.imdb.com/title/tt0001/": '<h1 itemprop="name" class="">Movie One</h1>',
    "https://www.imdb.com/title/tt0002/": '<h1 itemprop="name" class="">Movie Two</h1>',
    "https://www.imdb.com/title/tt0003/": "<h1>unexpected markup</h1>",
}


class FakeFetch:
    def __init__(self, pages, broken=()):
        self.pages = pages
        self.broken = set(broken)
        self.requested = []

    def __call__(self, url):
        self.requested.append(url)
        if url in self.broken or url not in self.pages:
            raise ConnectionError(f"cannot reach {url}")
        return self.pages[url]


@pytest.fixture
def fetch():
    return FakeFetch(PAGES)


@pytest.fixture
def crawl_queue(store, fetch):
    return CommandQueue(store, scraping.build_registry(), fetch=fetch)


class TestCrawl:
    """End-to-end crawl over canned pages."""

    def test_full_crawl(self, crawl_queue, fetch):
        crawl_queue.enqueue(Task(kind="genre_list"))
        report = crawl_queue.drain()

        assert crawl_queue.is_empty() is True
        by_kind = {}
        for t in crawl_queue.list():
            by_kind.setdefault(t.kind, []).append(t)
        assert len(by_kind["genre_list"]) == 1
        # two genres, plus the second page of sci-fi
        assert len(by_kind["genre_page"]) == 3
        assert len(by_kind["detail"]) == 3
        assert sorted(r["title"] for r in report.results) == ["Movie One", "Movie Two"]
        assert len(fetch.requested) == 7

    def test_outcomes_distinguish_empty_pages(self, crawl_queue):
        crawl_queue.enqueue(Task(kind="genre_list"))
        report = crawl_queue.drain()
        # drama listing and the tt0003 page yield nothing
        assert report.outcomes["empty"] == 2
        assert report.outcomes["complete"] == 5

    def test_fetch_error_marks_task_failed(self, store):
        fetch = FakeFetch(PAGES, broken={scraping.GENRES_URL})
        q = CommandQueue(store, scraping.build_registry(), fetch=fetch)
        task_id = q.enqueue(Task(kind="genre_list"))
        report = q.drain()
        task = q.get(task_id)
        assert task.status == TaskStatus.FAILED
        assert "cannot reach" in task.last_error
        assert report.outcomes["failed"] == 1

    def test_genre_page_params_validated(self, crawl_queue):
        with pytest.raises(ValueError):
            crawl_queue.enqueue(Task(kind="genre_page", params={"url": GENRE_A, "page": 0}))
        with pytest.raises(ValueError):
            crawl_queue.enqueue(Task(kind="detail", params={}))

    def test_genre_page_defaults_to_first_page(self, crawl_queue):
        task_id = crawl_queue.enqueue(Task(kind="genre_page", params={"url": GENRE_A}))
        assert crawl_queue.get(task_id).params == {"url": GENRE_A, "page": 1}


class TestHelpers:
    def test_page_url(self):
        assert scraping.page_url("https://x/list", 2) == "https://x/list?page=2"
        assert scraping.page_url("https://x/list?genres=a", 3) == "https://x/list?genres=a&page=3"

    def test_http_fetch_uses_requests(self, monkeypatch):
        seen = {}

        class Resp:
            text = "<html></html>"

            def raise_for_status(self):
                pass

        def fake_get(url, headers=None, timeout=None):
            seen.update(url=url, headers=headers, timeout=timeout)
            return Resp()

        monkeypatch.setattr(scraping.requests, "get", fake_get)
        assert scraping.http_fetch("https://example.test/") == "<html></html>"
        assert seen["headers"]["User-Agent"] == scraping.USER_AGENT
        assert seen["timeout"] == 30.0

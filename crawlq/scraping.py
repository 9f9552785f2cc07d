"""
Web-scraping task kinds: the genre index, one listing page of a genre, and
a single title page. Each handler fetches its page through the context and
enqueues whatever follow-up work it discovers.
"""
import logging
import re

import requests
from pydantic import BaseModel, Field

from .models import TaskStatus
from .registry import TaskContext, TaskRegistry

logger = logging.getLogger(__name__)

BASE_URL = "https://www.imdb.com"
GENRES_URL = BASE_URL + "/feature/genre/"
USER_AGENT = "crawlq/0.1"

GENRE_LINK_RE = re.compile(r'href="(https://www\.imdb\.com/search/title\?genres=.*?)"')
TITLE_LINK_RE = re.compile(r'href="(/title/.*?/)\?ref_=adv_li_tt"')
NEXT_PAGE_RE = re.compile(r"Next &#187;</a>")
TITLE_RE = re.compile(r'<h1 itemprop="name" class="">(.*?)</h1>', re.S)


def http_fetch(url: str, timeout: float = 30.0) -> str:
    resp = requests.get(url, headers={"User-Agent": USER_AGENT}, timeout=timeout)
    resp.raise_for_status()
    logger.info("Downloaded %s", url)
    return resp.text


def page_url(url: str, page: int) -> str:
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}page={page}"


class GenreListParams(BaseModel):
    url: str = GENRES_URL


class GenrePageParams(BaseModel):
    url: str
    page: int = Field(default=1, ge=1)


class DetailParams(BaseModel):
    url: str


def scrape_genre_list(ctx: TaskContext, params):
    html = ctx.get(params["url"])
    genres = list(dict.fromkeys(GENRE_LINK_RE.findall(html)))
    logger.info("Discovered %d genres.", len(genres))
    for url in genres:
        ctx.enqueue("genre_page", url=url, page=1)
    return TaskStatus.COMPLETE if genres else TaskStatus.EMPTY


def scrape_genre_page(ctx: TaskContext, params):
    html = ctx.get(page_url(params["url"], params["page"]))
    paths = list(dict.fromkeys(TITLE_LINK_RE.findall(html)))
    logger.info("Discovered %d titles on %s page %d.", len(paths), params["url"], params["page"])
    for path in paths:
        ctx.enqueue("detail", url=BASE_URL + path)
    if NEXT_PAGE_RE.search(html):
        ctx.enqueue("genre_page", url=params["url"], page=params["page"] + 1)
    return TaskStatus.COMPLETE if paths else TaskStatus.EMPTY


def scrape_detail(ctx: TaskContext, params):
    html = ctx.get(params["url"])
    m = TITLE_RE.search(html)
    if not m:
        logger.info("No title found on %s", params["url"])
        return TaskStatus.EMPTY
    title = m.group(1).strip()
    logger.info("Parsed title %s.", title)
    ctx.results.append({"url": params["url"], "title": title})
    return TaskStatus.COMPLETE


def build_registry() -> TaskRegistry:
    registry = TaskRegistry()
    registry.add("genre_list", scrape_genre_list, GenreListParams)
    registry.add("genre_page", scrape_genre_page, GenrePageParams)
    registry.add("detail", scrape_detail, DetailParams)
    return registry

"""Shared fixtures: a file-backed store per test and a small registry of toy kinds."""
import pytest

from crawlq.models import TaskStatus
from crawlq.queue import CommandQueue
from crawlq.registry import TaskRegistry
from crawlq.storage import Store


def make_registry(log=None):
    """seed -> two children; echo records its params; boom always raises."""
    log = log if log is not None else []
    registry = TaskRegistry()

    @registry.register("seed")
    def seed(ctx, params):
        log.append(("seed", params.get("payload")))
        ctx.enqueue("child", payload="a")
        ctx.enqueue("child", payload="b")

    @registry.register("child")
    def child(ctx, params):
        log.append(("child", params.get("payload")))

    @registry.register("echo")
    def echo(ctx, params):
        log.append(("echo", params.get("n")))
        return TaskStatus.COMPLETE

    @registry.register("nothing")
    def nothing(ctx, params):
        return TaskStatus.EMPTY

    @registry.register("boom")
    def boom(ctx, params):
        log.append(("boom", params.get("n")))
        raise RuntimeError("fetch failed")

    return registry


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "queue.db"


@pytest.fixture
def store(db_path):
    s = Store.open(db_path)
    yield s
    s.close()


@pytest.fixture
def calls():
    return []


@pytest.fixture
def queue(store, calls):
    return CommandQueue(store, make_registry(calls))

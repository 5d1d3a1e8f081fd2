"""Shared fixtures: a manual clock, an in-memory channel, and small trees."""

import itertools
from concurrent.futures import Executor, Future
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from mindmesh.config import Settings
from mindmesh.engine import MutationEngine
from mindmesh.errors import NetworkDeliveryFailure
from mindmesh.tree import Node, Position, Tree


class FakeScheduler:
    """Scheduler driven by hand: ``advance`` moves the clock, ``run_idle`` drains idles."""

    def __init__(self):
        self.now = 0
        self._timers: Dict[int, Tuple[int, Callable[[], None]]] = {}
        self._idle: List[Callable[[], None]] = []
        self._ids = itertools.count(1)

    def timeout_add(self, delay_ms: int, callback: Callable[[], None]) -> int:
        source_id = next(self._ids)
        self._timers[source_id] = (self.now + delay_ms, callback)
        return source_id

    def source_remove(self, source_id: int) -> None:
        self._timers.pop(source_id, None)

    def idle_add(self, callback: Callable[[], None]) -> int:
        self._idle.append(callback)
        return next(self._ids)

    @property
    def pending_timers(self) -> int:
        return len(self._timers)

    def advance(self, ms: int):
        target = self.now + ms
        while True:
            due = [(when, sid) for sid, (when, _) in self._timers.items() if when <= target]
            if not due:
                break
            when, source_id = min(due)
            self.now = when
            _, callback = self._timers.pop(source_id)
            callback()
        self.now = target

    def run_idle(self):
        while self._idle:
            self._idle.pop(0)()


class FakeChannel:
    """In-memory channel that records what it is asked to send."""

    def __init__(self, connected: bool = False):
        self._connected = connected
        self.sent: List[Tuple[str, Dict[str, Any]]] = []
        self.handlers: Dict[str, Callable[[Any], None]] = {}
        self.credentials: List[Optional[str]] = []
        self.fail_connect = False
        self.fail_emit = False
        self.on_connected: Optional[Callable[[], None]] = None
        self.on_disconnected: Optional[Callable[[], None]] = None

    @property
    def connected(self) -> bool:
        return self._connected

    def connect(self, credential: Optional[str]):
        self.credentials.append(credential)
        if self.fail_connect:
            raise NetworkDeliveryFailure("connection refused")
        self._connected = True

    def disconnect(self):
        self._connected = False

    def emit(self, event: str, payload: Dict[str, Any]):
        if self.fail_emit:
            raise NetworkDeliveryFailure(f"Could not send {event}")
        self.sent.append((event, payload))

    def on(self, event: str, handler: Callable[[Any], None]):
        self.handlers[event] = handler

    def deliver(self, event: str, payload: Any):
        """Simulate a message arriving from the server."""
        self.handlers[event](payload)

    def drop(self):
        self._connected = False
        if self.on_disconnected:
            self.on_disconnected()

    def reconnect(self):
        self._connected = True
        if self.on_connected:
            self.on_connected()

    def names(self) -> List[str]:
        return [name for name, _ in self.sent]


class ImmediateExecutor(Executor):
    """Runs submitted work inline."""

    def submit(self, fn, *args, **kwargs):
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:  # pylint: disable=broad-except
            future.set_exception(exc)
        return future


def counter_ids(prefix: str = "n") -> Callable[[], str]:
    counter = itertools.count(1)
    return lambda: f"{prefix}{next(counter)}"


def node(node_id: str, parent_id: Optional[str] = None, order: int = 0,
         content: str = "", x: float = 0.0, y: float = 0.0) -> Node:
    return Node(id=node_id, content=content, parent_id=parent_id,
                position=Position(x, y), order=order)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def root_tree() -> Tree:
    return Tree.from_nodes([node("r", content="Root")])


@pytest.fixture
def sample_tree() -> Tree:
    """r -> (a -> (a1, a2), b)"""
    return Tree.from_nodes([
        node("r", content="Root"),
        node("a", "r", 0, "A", y=100),
        node("b", "r", 1, "B", y=160),
        node("a1", "a", 0, "A1", y=200),
        node("a2", "a", 1, "A2", y=260),
    ])


@pytest.fixture
def engine(sample_tree) -> MutationEngine:
    return MutationEngine("map-1", sample_tree, id_factory=counter_ids())

import pytest

from mindmesh.config import Settings
from mindmesh.errors import MapNotFound
from mindmesh.session import MindMapSession
from mindmesh.store import MindMapRecord
from mindmesh.sync import SyncState
from mindmesh.tree import Tree
from tests.conftest import ImmediateExecutor, counter_ids, node


class MemoryStore:
    def __init__(self, records):
        self.records = {r.id: r for r in records}
        self.saved = []

    def load_tree(self, map_id):
        try:
            return self.records[map_id]
        except KeyError:
            raise MapNotFound(map_id) from None

    def save_tree(self, map_id, tree):
        self.saved.append(tree)
        record = self.records[map_id]
        self.records[map_id] = MindMapRecord(id=record.id, name=record.name,
                                             permission=record.permission, tree=tree)


@pytest.fixture
def store(sample_tree):
    return MemoryStore([
        MindMapRecord(id="map-1", name="Plans", tree=sample_tree),
        MindMapRecord(id="shared", name="Shared", permission="read", tree=sample_tree),
    ])


@pytest.fixture
def session(store, scheduler, channel):
    session = MindMapSession.open(
        "map-1", store, scheduler,
        settings=Settings(), channel=channel,
        executor=ImmediateExecutor(), id_factory=counter_ids(),
    )
    session.sync.client_id = "me"
    session.notices = []
    session.on_notice = session.notices.append
    return session


def test_open_missing_map(store, scheduler):
    with pytest.raises(MapNotFound):
        MindMapSession.open("nope", store, scheduler)


def test_start_joins_room(session, channel):
    session.start()
    assert session.sync.state is SyncState.JOINED
    assert channel.sent[0] == ("join:mindmap", {"mindMapId": "map-1"})


def test_local_change_is_broadcast_and_saved(session, store, channel, scheduler):
    session.start()
    created = session.engine.add_child("a")

    assert channel.sent[-1][0] == "node:create"
    assert store.saved == []
    scheduler.advance(1000)
    scheduler.run_idle()
    assert len(store.saved) == 1
    assert created.node_id in store.saved[0]


def test_remote_change_is_not_saved_here(session, store, scheduler):
    session.start()
    session.sync.apply_message("node:update",
                               {"mindMapId": "map-1", "nodeId": "a", "content": "X", "origin": "peer"})
    scheduler.advance(5000)
    assert session.tree.node("a").content == "X"
    assert store.saved == []


def test_remote_change_is_reported_once(session):
    changes = []
    session.on_changed = changes.append
    session.start()
    session.sync.apply_message("node:update",
                               {"mindMapId": "map-1", "nodeId": "a", "content": "X", "origin": "peer"})
    assert [c.node_id for c in changes] == ["a"]


def test_end_edit_flushes_pending_update(session, channel):
    session.start()
    created = session.engine.add_child("b")
    session.engine.edit_content(created.node_id, "done")

    assert session.end_edit() is None
    assert channel.sent[-1] == ("node:update", {
        "mindMapId": "map-1", "nodeId": created.node_id, "content": "done", "origin": "me",
    })


def test_end_edit_on_empty_node_deletes_it(session, channel):
    session.start()
    created = session.engine.add_child("b")
    session.engine.edit_content(created.node_id, "")

    deleted = session.end_edit()

    assert deleted.node_id == created.node_id
    assert created.node_id not in session.tree
    assert channel.names()[-1] == "node:delete"
    assert "node:update" not in channel.names()


def test_deleted_nodes_are_unmounted(session):
    changes = []
    session.on_changed = changes.append
    for n in session.tree:
        session.anchors.mount(n.id, 100, 40)

    session.engine.delete_node("a")

    assert "a1" not in session.anchors
    assert "b" in session.anchors
    assert changes[-1].node_id == "a"


def test_read_only_permission(store, scheduler):
    session = MindMapSession.open("shared", store, scheduler, executor=ImmediateExecutor())
    assert session.read_only
    assert session.engine.add_child("r") is None


def test_reload_drops_local_divergence(session, store, sample_tree):
    session.anchors.mount("ghost", 1, 1)
    session.engine.edit_content("a", "diverged")
    store.records["map-1"] = MindMapRecord(id="map-1", tree=sample_tree)

    session.reload()

    assert session.tree.node("a").content == "A"
    assert "ghost" not in session.anchors


def test_close_leaves_and_flushes_save(session, store, channel):
    session.start()
    session.engine.edit_content("a", "final")
    session.close()

    assert "leave:mindmap" in channel.names()
    assert len(store.saved) == 1
    assert store.saved[0].node("a").content == "final"


def test_offline_session_has_no_sync(store, scheduler):
    session = MindMapSession.open("map-1", store, scheduler, executor=ImmediateExecutor())
    assert session.sync is None
    session.start()
    session.engine.edit_content("a", "local only")
    assert session.end_edit() is None


def test_view_state_is_per_session(store, scheduler):
    one = MindMapSession.open("map-1", store, scheduler, executor=ImmediateExecutor())
    two = MindMapSession.open("map-1", store, scheduler, executor=ImmediateExecutor())
    one.viewport.zoom_in()
    one.selection.activate("a")
    assert two.viewport.zoom == 1.0
    assert two.selection.active_id is None


def test_problems_in_loaded_tree_are_logged(scheduler, caplog):
    broken = Tree({"r": node("r"), "a": node("a", "r", 0), "b": node("b", "r", 0)})
    store = MemoryStore([MindMapRecord(id="m", tree=broken)])
    MindMapSession.open("m", store, scheduler, executor=ImmediateExecutor())
    assert "duplicate order" in caplog.text

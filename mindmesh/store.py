"""Persistence collaborators.

Both stores load and save whole tree snapshots. ``HttpStore`` talks to the
collaboration server; ``SQLiteStore`` is the local store used offline.
"""

import logging
import sqlite3
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Protocol

import httpx

from mindmesh.config import get_data_dir
from mindmesh.errors import MapNotFound, NetworkDeliveryFailure, ProtocolError
from mindmesh.tree import EMPTY_TREE, Node, Position, Tree

logger = logging.getLogger(__name__)


def get_db_path() -> Path:
    """Get the database file path."""
    return get_data_dir() / "mindmesh.db"


@dataclass
class MindMapRecord:
    """A mind map as loaded from persistence."""
    id: str
    name: str = "Untitled Map"
    description: Optional[str] = None
    is_public: bool = False
    permission: str = "owner"  # owner, admin, write, read
    tree: Tree = field(default_factory=lambda: EMPTY_TREE)

    @property
    def read_only(self) -> bool:
        return self.permission == "read"


class MindMapStore(Protocol):
    def load_tree(self, map_id: str) -> MindMapRecord: ...

    def save_tree(self, map_id: str, tree: Tree) -> None: ...


class HttpStore:
    """REST persistence against the collaboration server."""

    def __init__(self, base_url: str, credential: Optional[str] = None,
                 timeout: float = 10.0, transport: Optional[httpx.BaseTransport] = None):
        headers = {"Accept": "application/json"}
        if credential:
            headers["Authorization"] = f"Bearer {credential}"
        self.client = httpx.Client(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    def close(self):
        self.client.close()

    def load_tree(self, map_id: str) -> MindMapRecord:
        try:
            response = self.client.get(f"/api/mindmap/{map_id}")
        except httpx.HTTPError as exc:
            raise NetworkDeliveryFailure(f"Could not load mind map {map_id}", exc) from exc
        if response.status_code == 404:
            raise MapNotFound(map_id)
        if response.status_code >= 400:
            raise NetworkDeliveryFailure(
                f"Loading mind map {map_id} failed: HTTP {response.status_code}"
            )
        try:
            data = response.json()
            return MindMapRecord(
                id=str(data.get("id", map_id)),
                name=data.get("name") or "Untitled Map",
                description=data.get("description"),
                is_public=bool(data.get("isPublic", False)),
                permission=data.get("permission") or "owner",
                tree=Tree.from_nodes(Node.from_dict(n) for n in data.get("nodes", [])),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ProtocolError(f"Mind map {map_id}: malformed response ({exc})") from exc

    def save_tree(self, map_id: str, tree: Tree):
        body = {"id": map_id, "nodes": [n.to_dict() for n in tree.to_list()]}
        try:
            response = self.client.put(f"/api/mindmap/{map_id}", json=body)
        except httpx.HTTPError as exc:
            raise NetworkDeliveryFailure(f"Could not save mind map {map_id}", exc) from exc
        if response.status_code >= 400:
            raise NetworkDeliveryFailure(
                f"Saving mind map {map_id} failed: HTTP {response.status_code}"
            )


class SQLiteStore:
    """Local SQLite persistence."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path or get_db_path()
        self._conn: Optional[sqlite3.Connection] = None
        # Saves run on a worker thread.
        self._lock = threading.Lock()
        self._init_db()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.execute("PRAGMA journal_mode = WAL")
        return self._conn

    def _init_db(self):
        """Initialize the database schema."""
        with self._lock:
            self.conn.executescript("""
                CREATE TABLE IF NOT EXISTS maps (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    description TEXT,
                    is_public BOOLEAN DEFAULT 0,
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                    modified_at DATETIME DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS nodes (
                    id TEXT NOT NULL,
                    map_id TEXT NOT NULL,
                    parent_id TEXT,
                    content TEXT NOT NULL DEFAULT '',
                    position_x REAL,
                    position_y REAL,
                    sort_order INTEGER DEFAULT 0,
                    PRIMARY KEY (map_id, id),
                    FOREIGN KEY (map_id) REFERENCES maps(id) ON DELETE CASCADE
                );

                CREATE INDEX IF NOT EXISTS idx_nodes_map_id ON nodes(map_id);
            """)
            self.conn.commit()

    def close(self):
        """Close the database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    # ==================== Map Operations ====================

    def create_map(self, name: str = "Untitled Map", map_id: Optional[str] = None,
                   root_text: str = "Central Topic") -> MindMapRecord:
        """Create a new mind map with a root node."""
        map_id = map_id or str(uuid.uuid4())
        now = datetime.now().isoformat()
        root = Node(id=str(uuid.uuid4()), content=root_text, position=Position(0.0, 0.0))
        with self._lock:
            self.conn.execute(
                "INSERT INTO maps (id, name, created_at, modified_at) VALUES (?, ?, ?, ?)",
                (map_id, name, now, now)
            )
            self._insert_nodes(map_id, [root])
            self.conn.commit()
        return MindMapRecord(id=map_id, name=name, tree=Tree.from_nodes([root]))

    def list_maps(self) -> List[MindMapRecord]:
        """All maps, most recently modified first, without their trees."""
        with self._lock:
            rows = self.conn.execute(
                "SELECT * FROM maps ORDER BY modified_at DESC"
            ).fetchall()
        return [
            MindMapRecord(
                id=row["id"],
                name=row["name"],
                description=row["description"],
                is_public=bool(row["is_public"]),
            )
            for row in rows
        ]

    def delete_map(self, map_id: str):
        with self._lock:
            self.conn.execute("DELETE FROM maps WHERE id = ?", (map_id,))
            self.conn.commit()

    def load_tree(self, map_id: str) -> MindMapRecord:
        with self._lock:
            row = self.conn.execute("SELECT * FROM maps WHERE id = ?", (map_id,)).fetchone()
            if not row:
                raise MapNotFound(map_id)
            node_rows = self.conn.execute(
                "SELECT * FROM nodes WHERE map_id = ? ORDER BY sort_order", (map_id,)
            ).fetchall()

        nodes = [
            Node(
                id=r["id"],
                content=r["content"],
                parent_id=r["parent_id"],
                position=Position(r["position_x"] or 0.0, r["position_y"] or 0.0),
                order=r["sort_order"],
            )
            for r in node_rows
        ]
        return MindMapRecord(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            is_public=bool(row["is_public"]),
            tree=Tree.from_nodes(nodes),
        )

    def save_tree(self, map_id: str, tree: Tree):
        """Replace the stored snapshot of ``map_id`` with ``tree``."""
        now = datetime.now().isoformat()
        with self._lock:
            try:
                cursor = self.conn.execute(
                    "UPDATE maps SET modified_at = ? WHERE id = ?", (now, map_id)
                )
                if cursor.rowcount == 0:
                    self.conn.execute(
                        "INSERT INTO maps (id, name, created_at, modified_at) VALUES (?, ?, ?, ?)",
                        (map_id, "Untitled Map", now, now)
                    )
                self.conn.execute("DELETE FROM nodes WHERE map_id = ?", (map_id,))
                self._insert_nodes(map_id, tree.to_list())
                self.conn.commit()
            except sqlite3.Error as exc:
                self.conn.rollback()
                raise NetworkDeliveryFailure(f"Could not save mind map {map_id}", exc) from exc

    def _insert_nodes(self, map_id: str, nodes: List[Node]):
        self.conn.executemany(
            """INSERT INTO nodes (id, map_id, parent_id, content, position_x, position_y, sort_order)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            [
                (n.id, map_id, n.parent_id, n.content, n.position.x, n.position.y, n.order)
                for n in nodes
            ]
        )

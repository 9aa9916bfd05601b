"""
RingStore: path-keyed document store with layered namespaces.

Values are JSON documents compressed with zlib and kept in SQLite, one
table per ring. Reads cascade through the rings in order; writes always go
to the first (most specific) ring, so a desk ring can override values held
in a shared ``default`` ring.

Keys are path-like: ``/Config/barrier_paths``, ``/Instruments/HDG-1``.
"""

import json
import sqlite3
import threading
import zlib

_ABSENT = object()


class Ring:
    """One namespace of the store, backed by its own table."""

    def __init__(self, conn, name, lock):
        self._conn = conn
        self._lock = lock
        self.name = name
        self._table = f"ring_{name}"
        with self._lock:
            self._conn.execute(
                f'CREATE TABLE IF NOT EXISTS "{self._table}" (key TEXT PRIMARY KEY, doc BLOB NOT NULL)'
            )

    def lookup(self, key):
        """Stored document for ``key``, or ``_ABSENT`` (a stored None is a value)."""
        with self._lock:
            row = self._conn.execute(
                f'SELECT doc FROM "{self._table}" WHERE key = ?', (key,)
            ).fetchone()
        if row is None:
            return _ABSENT
        return json.loads(zlib.decompress(row[0]).decode("utf-8"))

    def write(self, key, value):
        doc = zlib.compress(json.dumps(value).encode("utf-8"))
        with self._lock, self._conn:
            self._conn.execute(
                f'INSERT OR REPLACE INTO "{self._table}" (key, doc) VALUES (?, ?)', (key, doc)
            )

    def remove(self, key):
        with self._lock, self._conn:
            self._conn.execute(f'DELETE FROM "{self._table}" WHERE key = ?', (key,))

    def keys(self, prefix):
        with self._lock:
            cur = self._conn.execute(
                f'SELECT key FROM "{self._table}" WHERE key LIKE ?', (prefix + "%",)
            )
            return [row[0] for row in cur]


class RingStore:
    """
    Layered key-value store.

    Usage:
        store = RingStore.open("hedge_desk;default", db_path="book.db")
        store["/Config/barrier_paths"] = 5000
        store.keys("/Instruments/")
    """

    def __init__(self, rings, conn):
        self._rings = rings  # most specific first
        self._conn = conn

    @classmethod
    def open(cls, rings, db_path=":memory:"):
        """``rings``: semicolon-separated ring names; the first one takes writes."""
        conn = sqlite3.connect(db_path, check_same_thread=False)
        lock = threading.RLock()
        names = [r.strip() for r in rings.split(";") if r.strip()]
        return cls([Ring(conn, name, lock) for name in names], conn)

    @property
    def ring_names(self):
        return [r.name for r in self._rings]

    def _find(self, key):
        for ring in self._rings:
            value = ring.lookup(key)
            if value is not _ABSENT:
                return value
        return _ABSENT

    def __getitem__(self, key):
        value = self._find(key)
        if value is _ABSENT:
            raise KeyError(key)
        return value

    def __setitem__(self, key, value):
        self._rings[0].write(key, value)

    def __delitem__(self, key):
        self._rings[0].remove(key)

    def __contains__(self, key):
        return self._find(key) is not _ABSENT

    def get(self, key, default=None):
        value = self._find(key)
        return default if value is _ABSENT else value

    def keys(self, prefix=""):
        """Keys under ``prefix`` across all rings, sorted."""
        return sorted({k for ring in self._rings for k in ring.keys(prefix)})

    def close(self):
        self._conn.close()

    def __repr__(self):
        return f"RingStore({';'.join(self.ring_names)})"

"""
Tests for zkwallet_core.storage — in-memory and SQLite key-value stores.
"""

import os
import tempfile
import unittest

from zkwallet_core.storage import (
    LOCAL_SCOPE,
    SESSION_SCOPE,
    MemoryStore,
    SqliteStore,
    open_stores,
)


class _StoreContract:
    """Behaviour both backends share."""

    def make(self, scope=LOCAL_SCOPE):
        raise NotImplementedError

    def test_get_missing_returns_default(self):
        s = self.make()
        self.assertIsNone(s.get("nope"))
        self.assertEqual(s.get("nope", 5), 5)

    def test_set_get_json_values(self):
        s = self.make()
        s.set("k", {"a": [1, 2], "b": None})
        self.assertEqual(s.get("k"), {"a": [1, 2], "b": None})

    def test_values_are_copies(self):
        s = self.make()
        value = {"n": 1}
        s.set("k", value)
        value["n"] = 2
        self.assertEqual(s.get("k"), {"n": 1})

    def test_overwrite(self):
        s = self.make()
        s.set("k", "one")
        s.set("k", "two")
        self.assertEqual(s.get("k"), "two")

    def test_delete(self):
        s = self.make()
        s.set("k", 1)
        s.delete("k")
        s.delete("k")
        self.assertIsNone(s.get("k"))

    def test_clear_and_keys(self):
        s = self.make()
        s.set("b", 1)
        s.set("a", 2)
        self.assertEqual(sorted(s.keys()), ["a", "b"])
        s.clear()
        self.assertEqual(list(s.keys()), [])


class TestMemoryStore(_StoreContract, unittest.TestCase):

    def make(self, scope=LOCAL_SCOPE):
        return MemoryStore(scope)

    def test_contains_and_len(self):
        s = self.make()
        s.set("x", 0)
        self.assertIn("x", s)
        self.assertEqual(len(s), 1)


class TestSqliteStore(_StoreContract, unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.tmpdir.name, "sub", "w.db")
        self.opened = []

    def tearDown(self):
        for s in self.opened:
            s.close()
        self.tmpdir.cleanup()

    def make(self, scope=LOCAL_SCOPE):
        s = SqliteStore(self.db_path, scope)
        self.opened.append(s)
        return s

    def test_scopes_are_isolated(self):
        local = self.make(LOCAL_SCOPE)
        session = self.make(SESSION_SCOPE)
        local.set("k", "durable")
        session.set("k", "ephemeral")
        session.clear()
        self.assertEqual(local.get("k"), "durable")
        self.assertIsNone(session.get("k"))

    def test_persists_across_reopen(self):
        s = self.make()
        s.set("salt:github:42", "123")
        s.close()
        self.opened.remove(s)
        self.assertEqual(self.make().get("salt:github:42"), "123")

    def test_newer_schema_rejected(self):
        s = self.make()
        s._conn.execute("UPDATE schema_version SET version = 99 WHERE id = 1")
        s._conn.commit()
        with self.assertRaises(RuntimeError):
            SqliteStore(self.db_path)

    def test_context_manager(self):
        with SqliteStore(self.db_path) as s:
            s.set("k", 1)
        self.assertEqual(self.make().get("k"), 1)


class TestOpenStores(unittest.TestCase):

    def test_memory(self):
        local, session = open_stores("memory")
        self.assertEqual((local.scope, session.scope), (LOCAL_SCOPE, SESSION_SCOPE))

    def test_unknown_backend(self):
        with self.assertRaises(ValueError):
            open_stores("redis")

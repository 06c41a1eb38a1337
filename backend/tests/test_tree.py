"""
Tests for the Watch Tree.

Requires Python 3.11+.
"""

import pytest

from syncwatch import DuplicateWatchError, UnknownWatchError, WatchTree


@pytest.fixture
def tree() -> WatchTree:
    """Create a tree holding /w -> a -> b and /w -> c, rooted at /w."""
    tree = WatchTree()
    tree.add_root("/w")
    for path in ("/w", "/w/a", "/w/a/b", "/w/c"):
        tree.insert(path)
    return tree


class TestInsert:
    """Test cases for WatchTree.insert."""

    def test_insert_links_parent(self, tree: WatchTree):
        """Test that inserting a directory adds it to its parent's children."""
        assert tree.snapshot() == {
            "/w": {"a", "c"},
            "/w/a": {"b"},
            "/w/a/b": set(),
            "/w/c": set(),
        }

    def test_insert_without_watched_parent(self):
        """Test that an orphan entry is created with no links."""
        tree = WatchTree()
        assert tree.insert("/x/y") is True
        assert tree.snapshot() == {"/x/y": set()}

    def test_insert_keeps_existing_children(self, tree: WatchTree):
        """Test that re-inserting never overwrites a child set."""
        assert tree.insert("/w/a") is False
        assert tree.children("/w/a") == {"b"}

    def test_insert_filesystem_root(self):
        """Test that '/' does not link to itself."""
        tree = WatchTree()
        tree.insert("/")
        assert tree.snapshot() == {"/": set()}


class TestInvalidateSubtree:
    """Test cases for WatchTree.invalidate_subtree."""

    def test_invalidate_non_root(self, tree: WatchTree):
        """Test that a non-root subtree is removed and unlinked."""
        removed = tree.invalidate_subtree("/w/a")

        assert sorted(removed) == ["/w/a", "/w/a/b"]
        assert tree.snapshot() == {"/w": {"c"}, "/w/c": set()}

    def test_invalidate_root_keeps_root(self, tree: WatchTree):
        """Test that a root's own entry survives implicit invalidation."""
        removed = tree.invalidate_subtree("/w")

        assert sorted(removed) == ["/w/a", "/w/a/b", "/w/c"]
        assert tree.snapshot() == {"/w": set()}
        assert tree.is_root("/w")

    def test_invalidate_root_with_include_target(self, tree: WatchTree):
        """Test that the explicit variant removes the root too."""
        removed = tree.invalidate_subtree("/w", include_target=True)

        assert len(removed) == 4
        assert tree.snapshot() == {}

    def test_nested_root_keeps_only_its_entry(self, tree: WatchTree):
        """Test that a root below the target survives but loses its subtree."""
        tree.add_root("/w/a")

        removed = tree.invalidate_subtree("/w")

        assert sorted(removed) == ["/w/a/b", "/w/c"]
        assert tree.snapshot() == {"/w": {"a"}, "/w/a": set()}
        assert tree.is_root("/w/a")

    def test_include_target_keeps_nested_root(self, tree: WatchTree):
        """Test that dropping an outer root leaves a nested root's entry."""
        tree.add_root("/w/a")

        removed = tree.invalidate_subtree("/w", include_target=True)

        assert sorted(removed) == ["/w", "/w/a/b", "/w/c"]
        assert tree.snapshot() == {"/w/a": set()}

    def test_invalidate_unknown(self, tree: WatchTree):
        """Test that invalidating an unknown path raises."""
        with pytest.raises(UnknownWatchError):
            tree.invalidate_subtree("/nope")

    def test_deep_tree(self):
        """Test that deep trees are handled without recursion."""
        tree = WatchTree()
        path = "/deep"
        tree.insert(path)
        for i in range(5000):
            path = f"{path}/{i}"
            tree.insert(path)

        removed = tree.invalidate_subtree("/deep")

        assert len(removed) == 5001
        assert len(tree) == 0


class TestRoots:
    """Test cases for root bookkeeping."""

    def test_claim_root(self):
        """Test that claiming a new path marks it as root."""
        tree = WatchTree()
        tree.claim_root("/r")
        assert tree.is_root("/r")
        assert tree.roots == {"/r"}

    def test_claim_watched_path(self, tree: WatchTree):
        """Test that claiming a watched path raises without changes."""
        with pytest.raises(DuplicateWatchError):
            tree.claim_root("/w/a")
        assert not tree.is_root("/w/a")

    def test_claim_pending_root(self):
        """Test that a root still being walked cannot be claimed twice."""
        tree = WatchTree()
        tree.claim_root("/r")
        with pytest.raises(DuplicateWatchError):
            tree.claim_root("/r")

    def test_drop_root(self, tree: WatchTree):
        """Test that dropping a root reports whether it was one."""
        assert tree.drop_root("/w") is True
        assert tree.drop_root("/w") is False
        assert "/w" in tree


class TestDiagnostics:
    """Test cases for snapshot and render."""

    def test_snapshot_is_detached(self, tree: WatchTree):
        """Test that later changes do not leak into a snapshot."""
        snapshot = tree.snapshot()
        tree.invalidate_subtree("/w/a")
        assert "/w/a" in snapshot

    def test_render(self, tree: WatchTree):
        """Test the one-line rendering."""
        assert tree.render() == (
            "SyncWatch: /w {a, c} /w/a {b} /w/a/b {} /w/c {}"
        )

    def test_discard(self, tree: WatchTree):
        """Test that discard unlinks entries and ignores unknown paths."""
        tree.discard(["/w/c", "/nope"])
        assert tree.children("/w") == {"a"}

"""Tests for the Git LFS lock cache and lockable types."""

import os
import stat

import pytest

from git_lfs_state.git.locks import LockableTypes, LockCache, parse_lock_line, set_read_only


def is_read_only(path) -> bool:
    return not (os.stat(path).st_mode & stat.S_IWUSR)


class TestParseLockLine:
    """Test lock listing lines."""

    def test_other_user(self, root):
        """Test an explicit owner is kept."""
        line = "Content/Hero.uasset\tbob\tID:891"

        assert parse_lock_line(line, root, "alice") == (f"{root}/Content/Hero.uasset", "bob")

    def test_empty_owner_means_current_user(self, root):
        """Test an empty owner column belongs to the current identity."""
        assert parse_lock_line("Content/Hero.uasset\t\tID:891", root, "alice")[1] == "alice"

    def test_id_only_means_current_user(self, root):
        """Test an owner column holding only the lock ID belongs to the current identity."""
        assert parse_lock_line("Content/Hero.uasset\tID:891", root, "alice")[1] == "alice"

    def test_path_only(self, root):
        assert parse_lock_line("Content/Hero.uasset", root, "alice")[1] == "alice"

    def test_relative_paths(self, root):
        """Test paths can stay relative to the repository."""
        parsed = parse_lock_line("Content/Hero.uasset\tbob\tID:1", root, "alice", absolute_paths=False)
        assert parsed == ("Content/Hero.uasset", "bob")

    def test_blank_line(self, root):
        assert parse_lock_line("   ", root, "alice") is None


class TestLockableTypes:
    """Test lockable extension discovery."""

    def test_check_lfs_lockable(self, runner, gateway):
        """Test only patterns whose attribute is set are recorded."""
        gateway.on(
            "check-attr",
            "lockable",
            stdout="*.uasset: lockable: set\n*.umap: lockable: set\n*.ini: lockable: unset\n*.txt: lockable: unspecified\n",
        )
        lockable_types = LockableTypes([".old"])

        result = lockable_types.check_lfs_lockable(runner, ["*.uasset", "*.umap", "*.ini", "*.txt"])

        assert result.success
        assert lockable_types.types == [".uasset", ".umap"]
        assert lockable_types.is_lockable("/repo/Content/Hero.uasset")
        assert not lockable_types.is_lockable("/repo/Config/DefaultGame.ini")

    def test_reset(self):
        lockable_types = LockableTypes([".uasset"])
        lockable_types.reset()
        assert not lockable_types.is_lockable("Hero.uasset")


class TestLockCache:
    """Test the lock cache refresh policy."""

    LOCKS = "Content/Hero.uasset\tbob\tID:1\nContent/Maps/Level.umap\t\tID:2\n"

    @pytest.fixture
    def cache(self, runner, clock):
        return LockCache(runner, "alice", clock=clock)

    def test_refresh_within_window_does_not_query(self, cache, gateway, clock, root):
        """Test two refreshes within 30 seconds run at most one query."""
        gateway.on("lfs locks", stdout=self.LOCKS)

        first = cache.refresh()
        clock.advance(29)
        second = cache.refresh()

        assert len(gateway.calls_for("lfs locks")) == 1
        assert first.locks == second.locks == {
            f"{root}/Content/Hero.uasset": "bob",
            f"{root}/Content/Maps/Level.umap": "alice",
        }

    def test_refresh_after_window_queries_again(self, cache, gateway, clock):
        """Test a refresh after 31 seconds queries the server again."""
        gateway.on("lfs locks", stdout=self.LOCKS)

        cache.refresh()
        clock.advance(31)
        cache.refresh()

        assert len(gateway.calls_for("lfs locks")) == 2

    def test_refresh_exactly_at_window_uses_cache(self, cache, gateway, clock):
        gateway.on("lfs locks", stdout=self.LOCKS)

        cache.refresh()
        clock.advance(30)
        cache.refresh()

        assert len(gateway.calls_for("lfs locks")) == 1

    def test_force_invalidate(self, cache, gateway):
        """Test a forced refresh always queries."""
        gateway.on("lfs locks", stdout=self.LOCKS)

        cache.refresh()
        cache.refresh(force_invalidate=True)

        assert len(gateway.calls_for("lfs locks")) == 2

    def test_success_replaces_whole_cache(self, cache, gateway, clock, root):
        """Test a successful query drops locks that disappeared remotely."""
        gateway.on("lfs locks", stdout=self.LOCKS, once=True)
        gateway.on("lfs locks", stdout="Content/Maps/Level.umap\tcarol\tID:3\n")

        cache.refresh()
        clock.advance(60)
        result = cache.refresh()

        assert result.locks == {f"{root}/Content/Maps/Level.umap": "carol"}
        assert cache.locked_files == result.locks

    def test_fallback_to_cached_and_local_locks(self, cache, gateway, root):
        """Test others' locks come from --cached and our own from --local."""
        gateway.on("lfs locks", "--cached", stdout="Content/Hero.uasset\tbob\tID:1\nContent/Old.uasset\tID:5\n")
        gateway.on("lfs locks", "--local", stdout="Content/Maps/Level.umap\tID:2\nContent/Other.uasset\tbob\tID:9\n")
        gateway.on("lfs locks", stderr="connection refused", return_code=2)

        result = cache.refresh()

        assert result.success
        assert result.locks == {
            f"{root}/Content/Hero.uasset": "bob",
            f"{root}/Content/Maps/Level.umap": "alice",
        }
        assert "connection refused" in result.errors
        # The degraded view does not stamp the cache
        assert cache.is_expired()

    def test_last_resort_returns_in_memory_cache(self, cache, gateway, root, clock):
        """Test the in-memory cache is returned, still as a success, when everything fails."""
        gateway.on("lfs locks", stdout=self.LOCKS, once=True)
        gateway.on("lfs locks", stderr="offline", return_code=2)

        cache.refresh()
        clock.advance(31)
        result = cache.refresh()

        assert result.success
        assert result.locks[f"{root}/Content/Hero.uasset"] == "bob"
        assert result.errors

    def test_is_expired_without_refresh(self, cache):
        assert cache.is_expired()

    def test_reset(self, cache, gateway):
        gateway.on("lfs locks", stdout=self.LOCKS)
        cache.refresh()

        cache.reset()

        assert cache.locked_files == {}
        assert cache.is_expired()


class TestReadOnlyToggle:
    """Test the read-only side effect of local lock actions."""

    def test_add_and_remove_own_lock(self, runner, clock, repo_root):
        """Test our own lock makes the file writable and unlocking makes it read-only."""
        path = repo_root / "Content" / "Hero.uasset"
        set_read_only(str(path), True)
        cache = LockCache(runner, "alice", clock=clock)

        cache.add_locked_file(path.as_posix(), "alice")
        assert not is_read_only(path)
        assert cache.locked_files == {path.as_posix(): "alice"}

        cache.remove_locked_file(path.as_posix())
        assert is_read_only(path)
        assert cache.locked_files == {}

    def test_other_users_lock_does_not_touch_file(self, runner, clock, repo_root):
        """Test locks of other users leave the permission bits alone."""
        path = repo_root / "Content" / "Hero.uasset"
        before = os.stat(path).st_mode
        cache = LockCache(runner, "alice", clock=clock)

        cache.add_locked_file(path.as_posix(), "bob")
        cache.remove_locked_file(path.as_posix())

        assert os.stat(path).st_mode == before

    def test_missing_file(self, tmp_path):
        assert not set_read_only(str(tmp_path / "missing.uasset"), True)

"""Test the scheduler single-instance lock."""

import os


class TestJobLock:
    """Tests for JobLock context manager."""

    def test_acquires_lock(self, tmp_path):
        from formsweep.utils.locks import JobLock

        lock_file = tmp_path / "test.lock"

        with JobLock(lock_file) as acquired:
            assert acquired is True
            assert lock_file.read_text() == str(os.getpid())

    def test_releases_lock_on_exit(self, tmp_path):
        from formsweep.utils.locks import JobLock

        lock_file = tmp_path / "test.lock"

        with JobLock(lock_file):
            pass

        assert not lock_file.exists()

    def test_releases_lock_on_error(self, tmp_path):
        from formsweep.utils.locks import JobLock

        lock_file = tmp_path / "test.lock"

        try:
            with JobLock(lock_file):
                raise RuntimeError("boom")
        except RuntimeError:
            pass

        assert not lock_file.exists()

    def test_fails_when_lock_held(self, tmp_path):
        from formsweep.utils.locks import JobLock

        lock_file = tmp_path / "test.lock"

        with JobLock(lock_file):
            with JobLock(lock_file, timeout=0.1) as acquired:
                assert acquired is False
            # Failed attempt must not release the holder's lock
            assert lock_file.exists()

    def test_cleans_stale_locks(self, tmp_path):
        from formsweep.utils.locks import JobLock

        lock_file = tmp_path / "test.lock"
        lock_file.write_text("999999999")  # Very unlikely to exist

        with JobLock(lock_file) as acquired:
            assert acquired is True

    def test_unreadable_lock_is_stale(self, tmp_path):
        from formsweep.utils.locks import JobLock

        lock_file = tmp_path / "test.lock"
        lock_file.write_text("not-a-pid")

        with JobLock(lock_file) as acquired:
            assert acquired is True

    def test_creates_parent_directory(self, tmp_path):
        from formsweep.utils.locks import JobLock

        lock_file = tmp_path / "nested" / "dir" / "test.lock"

        with JobLock(lock_file) as acquired:
            assert acquired is True

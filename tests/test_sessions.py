import os
import time

from app.storage.sessions import SessionState


def _wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


class TestSessionLifecycle:
    def test_create_allocates_output_directory(self, session_store):
        session = session_store.create()

        assert session.state == SessionState.created
        assert session.output_dir.is_dir()
        assert session.output_dir.parent == session_store.outputs_root
        assert session_store.active() == [session]

    def test_session_ids_are_unique(self, session_store):
        ids = {session_store.create().session_id for _ in range(20)}
        assert len(ids) == 20
        assert all(session_id.startswith("session_") for session_id in ids)

    def test_retire_removes_everything(self, session_store):
        session = session_store.create()
        (session.output_dir / "For_Alice.pdf").write_bytes(b"x")
        (session.output_dir / "watermarked_pdfs_1.zip").write_bytes(b"zip")

        session_store.retire(session)

        assert session.state == SessionState.retired
        assert not session.output_dir.exists()
        assert list(session_store.outputs_root.iterdir()) == []
        assert session_store.active() == []

    def test_retire_leaves_other_sessions_alone(self, session_store):
        first = session_store.create()
        second = session_store.create()
        (second.output_dir / "For_Bob.pdf").write_bytes(b"x")

        session_store.retire(first)

        assert (second.output_dir / "For_Bob.pdf").exists()
        assert session_store.active() == [second]

    def test_retire_is_idempotent(self, session_store):
        session = session_store.create()
        session_store.retire(session)
        session_store.retire(session)
        assert session.state == SessionState.retired

    def test_schedule_retire_without_delay(self, session_store):
        session = session_store.create()
        session_store.schedule_retire(session, 0)
        assert not session.output_dir.exists()

    def test_schedule_retire_after_delay(self, session_store):
        session = session_store.create()
        session_store.schedule_retire(session, 0.05)

        assert _wait_until(lambda: not session.output_dir.exists())
        assert session.state == SessionState.retired


class TestSweep:
    def test_fresh_entries_are_not_expired(self, session_store):
        session_store.create()
        assert session_store.list_expired() == []

    def test_list_expired_reports_old_session_directories(self, session_store):
        session = session_store.create()
        later = time.time() + session_store.retention_seconds + 10

        expired = session_store.list_expired(now=later)
        assert expired == [session.output_dir]

    def test_sweep_removes_old_entries_only(self, session_store):
        old = session_store.create()
        stray = session_store.outputs_root / "watermarked_pdfs_0.zip"
        stray.write_bytes(b"zip")
        past = time.time() - session_store.retention_seconds - 60
        for path in (old.output_dir, stray):
            os.utime(path, (past, past))
        fresh = session_store.create()

        removed = session_store.sweep()

        assert removed == 2
        assert not old.output_dir.exists()
        assert not stray.exists()
        assert fresh.output_dir.exists()
        assert session_store.active() == [fresh]
        assert old.state == SessionState.retired

"""Tests for version-based reconciliation"""

import logging

from models.session import SessionState
from services.reconciler import parse_snapshot, reconcile
from services.session_store import SessionStore


class TestReconcile:
    """Test last-writer-wins by version"""

    def test_strictly_newer_wins(self):
        """Test the higher version is adopted"""
        local, incoming = SessionState(version=3), SessionState(version=4)
        assert reconcile(local, incoming) is incoming

    def test_equal_or_older_keeps_local(self):
        """Test ties and stale snapshots keep local state"""
        local = SessionState(version=4)
        assert reconcile(local, SessionState(version=4)) is local
        assert reconcile(local, SessionState(version=2)) is local


class TestParseSnapshot:
    """Test snapshot validation at the boundary"""

    def test_valid_payload(self):
        """Test a wire dict validates"""
        state = parse_snapshot(SessionState, SessionState(version=2).to_wire())
        assert state.version == 2

    def test_malformed_payload_dropped(self, caplog):
        """Test invalid payloads are dropped with a warning"""
        with caplog.at_level(logging.WARNING):
            assert parse_snapshot(SessionState, {"version": "not a number"}) is None
            assert parse_snapshot(SessionState, ["not", "an", "object"]) is None
        assert "Dropping" in caplog.text


class TestApplyIncoming:
    """Test store adoption of received snapshots"""

    def test_adopts_newer_without_republishing(self, clock, recorder):
        """Test adoption replaces state wholesale and is not echoed"""
        source = SessionStore(clock=clock)
        source.enqueue_direct("Ola")
        source.start_next()

        replica = SessionStore(clock=clock)
        replica.attach(recorder)
        seen = []
        replica.subscribe(lambda state: seen.append(state.version))

        assert replica.apply_incoming(source.snapshot())
        assert replica.state == source.state
        assert seen == [2]
        assert recorder.published == []

    def test_idempotent(self, clock):
        """Test applying the same snapshot twice changes nothing the second time"""
        source = SessionStore(clock=clock)
        source.enqueue_direct("Ola")
        replica = SessionStore(clock=clock)

        assert replica.apply_incoming(source.snapshot())
        state = replica.state
        assert not replica.apply_incoming(source.snapshot())
        assert replica.state is state

    def test_malformed_snapshot_leaves_state_untouched(self, store: SessionStore):
        """Test a bad payload is never partially applied"""
        store.enqueue_direct("Ola")
        before = store.state

        payload = store.snapshot()
        payload["version"] = 10
        payload["queue"][0]["type"] = "SPEECH"

        assert not store.apply_incoming(payload)
        assert store.state is before

    def test_two_surface_scenario(self, clock):
        """Test concurrent edits resolve to the higher version on both sides"""
        a = SessionStore(clock=clock)
        b = SessionStore(clock=clock)
        a.enqueue_direct("Ola")
        b.apply_incoming(a.snapshot())

        # Both edit from version 1; A makes two changes, B one
        a.enqueue_direct("Kari")
        a.enqueue_direct("Per")
        b.enqueue_direct("Lise")

        snapshot_a, snapshot_b = a.snapshot(), b.snapshot()
        assert not a.apply_incoming(snapshot_b)
        assert b.apply_incoming(snapshot_a)

        assert a.state == b.state
        assert [e.name for e in b.state.queue] == ["Ola", "Kari", "Per"]

    def test_local_edit_after_adoption_continues_version(self, clock, store: SessionStore):
        """Test local versions keep counting from an adopted snapshot"""
        assert store.apply_incoming(SessionState(version=7).to_wire())
        store.enqueue_direct("Ola")
        assert store.version == 8

    def test_concurrent_edit_is_discarded_without_regression(self, clock):
        """Test a replica's edit from a stale base loses to the snapshot it raced"""
        x = SessionStore(clock=clock)
        for name in ("A", "B", "C", "D", "E"):
            x.enqueue_direct(name)
        y = SessionStore(clock=clock)
        y.apply_incoming(x.snapshot())
        assert x.version == y.version == 5

        x.dequeue(x.state.queue[0].id)
        y.enqueue_direct("F")
        from_x, from_y = x.snapshot(), y.snapshot()

        assert not x.apply_incoming(from_y)
        assert x.version == 6
        assert [e.name for e in x.state.queue] == ["B", "C", "D", "E"]

        # Y's own version 6 ties with X's, so Y keeps its edit until X moves on
        assert not y.apply_incoming(from_x)
        x.enqueue_direct("G")
        assert y.apply_incoming(x.snapshot())
        assert y.state == x.state

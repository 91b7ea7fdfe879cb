"""Tests for the membership tracker and roster derivation."""
from codesync.gateway.connections import ConnectionManager
from codesync.membership.tracker import MembershipTracker


class DummySocket:
    async def send_json(self, message: dict) -> None:
        pass


def _wired():
    transport = ConnectionManager()
    return transport, MembershipTracker(transport)


def test_register_and_lookup():
    _, tracker = _wired()
    tracker.register("c1", "alice")
    assert tracker.lookup("c1") == "alice"
    assert tracker.lookup("c2") is None


def test_register_overwrites_name():
    _, tracker = _wired()
    tracker.register("c1", "alice")
    tracker.register("c1", "alicia")
    assert tracker.lookup("c1") == "alicia"


def test_unregister_is_idempotent():
    _, tracker = _wired()
    tracker.register("c1", "alice")
    tracker.unregister("c1")
    tracker.unregister("c1")
    tracker.unregister("never-seen")
    assert tracker.lookup("c1") is None


def test_roster_in_join_order():
    transport, tracker = _wired()
    for cid, name in [("c3", "carol"), ("c1", "alice"), ("c2", "bob")]:
        transport.register(DummySocket(), cid)
        tracker.register(cid, name)
        transport.join(cid, "r1")

    roster = tracker.roster_for("r1")
    assert [p.socketId for p in roster] == ["c3", "c1", "c2"]
    assert [p.username for p in roster] == ["carol", "alice", "bob"]


def test_roster_only_lists_registered_members_of_that_room():
    transport, tracker = _wired()
    for cid in ("c1", "c2", "c3"):
        transport.register(DummySocket(), cid)
    tracker.register("c1", "alice")
    tracker.register("c3", "carol")
    transport.join("c1", "r1")
    # c2 is in the room at transport level but never registered a name
    transport.join("c2", "r1")
    # c3 is registered but in another room
    transport.join("c3", "r2")

    assert [p.socketId for p in tracker.roster_for("r1")] == ["c1"]
    assert [p.socketId for p in tracker.roster_for("r2")] == ["c3"]
    assert tracker.roster_for("empty") == []


def test_roster_follows_transport_after_discard():
    transport, tracker = _wired()
    for cid, name in [("c1", "alice"), ("c2", "bob")]:
        transport.register(DummySocket(), cid)
        tracker.register(cid, name)
        transport.join(cid, "r1")

    transport.discard("c1")
    assert [p.username for p in tracker.roster_for("r1")] == ["bob"]


def test_duplicate_names_are_separate_entries():
    transport, tracker = _wired()
    for cid in ("c1", "c2"):
        transport.register(DummySocket(), cid)
        tracker.register(cid, "sam")
        transport.join(cid, "r1")

    roster = tracker.roster_for("r1")
    assert len(roster) == 2
    assert {p.socketId for p in roster} == {"c1", "c2"}

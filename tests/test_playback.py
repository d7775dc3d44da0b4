import dataclasses

import pytest

from jamsync.clock import current_position
from jamsync.membership import MembershipManager
from jamsync.playback import Applied, PlaybackProcessor, RejectReason, Rejected
from jamsync.protocol import Event
from jamsync.state import RoomRegistry


@pytest.fixture
def registry() -> RoomRegistry:
    return RoomRegistry()


@pytest.fixture
def membership(registry: RoomRegistry) -> MembershipManager:
    return MembershipManager(registry)


@pytest.fixture
def processor(registry: RoomRegistry) -> PlaybackProcessor:
    return PlaybackProcessor(registry)


@pytest.fixture
def room(registry, membership):
    membership.join("leader", "r1", now=0.0)
    membership.join("follower", "r1", now=0.0)
    return registry.get("r1")


def test_non_leader_pause_changes_nothing(room, processor) -> None:
    before = dataclasses.replace(room, members=set(room.members))

    result = processor.pause("follower", {"roomId": "r1", "currentTime": 30}, now=5.0)

    assert result == Rejected(RejectReason.UNAUTHORIZED)
    assert room == before


@pytest.mark.parametrize("event", [Event.PLAY, Event.PAUSE, Event.SEEK])
def test_non_leader_commands_are_rejected(room, processor, event) -> None:
    result = processor.handle(event, "follower", {"roomId": "r1", "currentTime": 3, "trackUrl": "x.mp3"}, now=1.0)

    assert isinstance(result, Rejected)
    assert result.reason is RejectReason.UNAUTHORIZED
    assert room.track_url is None
    assert room.is_playing is False


def test_command_for_unknown_room_does_not_create_it(registry, processor) -> None:
    result = processor.play("someone", {"roomId": "nowhere"}, now=0.0)

    assert result == Rejected(RejectReason.UNAUTHORIZED)
    assert "nowhere" not in registry


def test_play_sets_track_and_position_and_excludes_sender(room, processor) -> None:
    result = processor.play("leader", {"roomId": "r1", "trackUrl": "t.mp3", "currentTime": 4}, now=10.0)

    assert isinstance(result, Applied)
    assert result.room_id == "r1"
    assert result.delivery.event is Event.PLAY
    assert result.delivery.data == {"trackUrl": "t.mp3", "currentTime": 4.0}
    assert result.delivery.recipients == ("follower",)
    assert room.is_playing is True
    assert room.track_url == "t.mp3"
    assert room.stored_position == 4.0
    assert room.last_update == 10.0


def test_play_without_fields_resumes_from_stored_position(room, processor) -> None:
    room.track_url = "t.mp3"
    room.stored_position = 42.0

    result = processor.play("leader", {"roomId": "r1"}, now=3.0)

    assert result.delivery.data == {"trackUrl": "t.mp3", "currentTime": 42.0}
    assert room.is_playing is True
    assert room.last_update == 3.0


def test_play_while_playing_keeps_clock_continuous(room, processor) -> None:
    processor.play("leader", {"roomId": "r1", "trackUrl": "t.mp3", "currentTime": 0}, now=100.0)

    processor.play("leader", {"roomId": "r1"}, now=110.0)

    assert current_position(room, 115.0) == pytest.approx(15.0)


def test_pause_freezes_position(room, processor) -> None:
    processor.play("leader", {"roomId": "r1", "currentTime": 0}, now=0.0)

    result = processor.pause("leader", {"roomId": "r1", "currentTime": 17.25}, now=20.0)

    assert result.delivery.event is Event.PAUSE
    assert result.delivery.data == {"currentTime": 17.25}
    assert room.is_playing is False
    assert current_position(room, 999.0) == 17.25


def test_seek_keeps_play_state(room, processor) -> None:
    processor.play("leader", {"roomId": "r1", "currentTime": 0}, now=0.0)

    result = processor.seek("leader", {"roomId": "r1", "currentTime": 60}, now=5.0)

    assert result.delivery.event is Event.SEEK
    assert result.delivery.data == {"currentTime": 60.0}
    assert result.delivery.recipients == ("follower",)
    assert room.is_playing is True
    assert current_position(room, 7.0) == pytest.approx(62.0)


def test_last_command_wins(room, processor) -> None:
    processor.seek("leader", {"roomId": "r1", "currentTime": 50}, now=1.0)
    processor.pause("leader", {"roomId": "r1", "currentTime": 10}, now=1.0)

    assert room.stored_position == 10
    assert room.is_playing is False


@pytest.mark.parametrize(
    "payload",
    [
        {"roomId": "r1"},
        {"roomId": "r1", "currentTime": None},
        {"roomId": "r1", "currentTime": "12"},
        {"roomId": "r1", "currentTime": -1},
        {"roomId": "r1", "currentTime": True},
        {"roomId": "r1", "currentTime": float("nan")},
    ],
)
def test_pause_and_seek_need_valid_current_time(room, processor, payload) -> None:
    for command in (processor.pause, processor.seek):
        result = command("leader", payload, now=1.0)
        assert result.reason is RejectReason.MALFORMED
    assert room.stored_position == 0.0
    assert room.last_update == 0.0


@pytest.mark.parametrize(
    "payload",
    [
        None,
        "r1",
        {},
        {"roomId": 5},
        {"roomId": "r1", "trackUrl": 3},
        {"roomId": "r1", "currentTime": "soon"},
    ],
)
def test_malformed_play_is_rejected(room, processor, payload) -> None:
    result = processor.play("leader", payload, now=1.0)

    assert isinstance(result, Rejected)
    assert result.reason is RejectReason.MALFORMED
    assert room.is_playing is False


def test_stale_leader_is_rejected_after_failover(room, membership, processor) -> None:
    membership.leave("leader")

    result = processor.seek("leader", {"roomId": "r1", "currentTime": 9}, now=1.0)

    assert result == Rejected(RejectReason.UNAUTHORIZED)
    assert processor.seek("follower", {"roomId": "r1", "currentTime": 9}, now=1.0).delivery.recipients == ()


def test_jam_session_scenario(registry, membership, processor) -> None:
    state, _, _ = membership.join("u1", "jam", now=0.0)
    assert state.data == {
        "isPlaying": False,
        "currentTime": 0.0,
        "trackUrl": None,
        "userCount": 1,
        "isLeader": True,
    }

    processor.play("u1", {"roomId": "jam", "trackUrl": "t.mp3", "currentTime": 0}, now=100.0)
    room = registry.get("jam")
    assert (room.is_playing, room.track_url, room.stored_position) == (True, "t.mp3", 0.0)

    state, count = membership.join("u2", "jam", now=102.5)
    assert state.recipients == ("u2",)
    assert state.data["isPlaying"] is True
    assert state.data["currentTime"] == pytest.approx(2.5)
    assert state.data["trackUrl"] == "t.mp3"
    assert state.data["userCount"] == 2
    assert state.data["isLeader"] is False
    assert count.data == 2
    assert set(count.recipients) == {"u1", "u2"}

"""Tests for the mic stage: seat transitions, concurrent writers and rendering."""

import pytest

from airchat.core.config import STAGE_SEAT_COUNT
from airchat.core.exceptions import (
    AlreadySeated,
    NotSeated,
    SeatNotAuthorized,
    StageConflict,
    StageFull,
)
from airchat.services.event_bus import EventBus, stage_channel
from airchat.services.stage_service import (
    Occupant,
    SeatStore,
    StageCoordinator,
    StageSnapshot,
    find_seat,
    plan_request,
    render_stage,
)

STAGE = "public_chat_room"


def occupant(name: str) -> Occupant:
    return Occupant(id=f"id-{name}", display_name=name, avatar=f"https://avatars.test/{name}.svg")


def seated_ids(snapshot: StageSnapshot) -> list:
    return [seat["occupant_id"] if seat else None for seat in snapshot.seats]


@pytest.fixture
def store(session_factory):
    return SeatStore(session_factory)


@pytest.fixture
def coordinator(store, fake_redis):
    return StageCoordinator(store, EventBus(fake_redis), max_retries=3, clock=lambda: 1_700_000_000_000)


class RacingStore(SeatStore):
    """Lets a rival client commit between our read and our first write."""

    def __init__(self, session_factory, rival):
        super().__init__(session_factory)
        self.rival = rival
        self.raced = False

    async def write(self, key, seats, expected_version):
        if not self.raced:
            self.raced = True
            await self.rival()
        return await super().write(key, seats, expected_version)


class AlwaysStaleStore(SeatStore):
    """Every conditional write loses to some other writer."""

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.reads = 0

    async def read(self, key):
        self.reads += 1
        return await super().read(key)

    async def write(self, key, seats, expected_version):
        return None


async def test_stage_created_empty_on_first_read(coordinator):
    snapshot = await coordinator.get_stage(STAGE)

    assert snapshot.key == STAGE
    assert snapshot.version == 0
    assert snapshot.seats == [None] * STAGE_SEAT_COUNT


async def test_request_takes_first_empty_seat_left_to_right(coordinator, store):
    await coordinator.request_seat(STAGE, occupant("x"), authorized=True)
    await coordinator.request_seat(STAGE, occupant("y"), authorized=True)
    await coordinator.leave_seat(STAGE, "id-x")

    snapshot = await coordinator.request_seat(STAGE, occupant("z"), authorized=True)

    assert seated_ids(snapshot) == ["id-z", "id-y", None, None]
    seat = snapshot.seats[0]
    assert seat["display_name"] == "z"
    assert seat["muted"] is False
    assert seat["joined_at"] == 1_700_000_000_000
    assert (await store.read(STAGE)).seats == snapshot.seats


async def test_at_most_four_seated(coordinator):
    names = ["a", "b", "c", "d", "e", "f"]
    rejected = []
    for name in names:
        try:
            await coordinator.request_seat(STAGE, occupant(name), authorized=True)
        except StageFull:
            rejected.append(name)

    snapshot = await coordinator.get_stage(STAGE)
    assert seated_ids(snapshot) == ["id-a", "id-b", "id-c", "id-d"]
    assert rejected == ["e", "f"]


async def test_occupant_never_holds_two_seats(coordinator):
    await coordinator.request_seat(STAGE, occupant("x"), authorized=True)

    with pytest.raises(AlreadySeated):
        await coordinator.request_seat(STAGE, occupant("x"), authorized=True)

    snapshot = await coordinator.get_stage(STAGE)
    assert seated_ids(snapshot).count("id-x") == 1
    assert snapshot.version == 1


async def test_leave_then_rejoin(coordinator):
    await coordinator.request_seat(STAGE, occupant("x"), authorized=True)
    await coordinator.leave_seat(STAGE, "id-x")
    snapshot = await coordinator.request_seat(STAGE, occupant("x"), authorized=True)

    assert find_seat(snapshot.seats, "id-x") == 0
    assert snapshot.version == 3


async def test_leave_and_mute_require_a_seat(coordinator):
    with pytest.raises(NotSeated):
        await coordinator.leave_seat(STAGE, "id-ghost")
    with pytest.raises(NotSeated):
        await coordinator.toggle_mute(STAGE, "id-ghost")

    assert (await coordinator.get_stage(STAGE)).version == 0


async def test_toggle_mute_twice_restores_seat(coordinator):
    seated = await coordinator.request_seat(STAGE, occupant("x"), authorized=True)

    muted = await coordinator.toggle_mute(STAGE, "id-x")
    assert muted.seats[0]["muted"] is True

    restored = await coordinator.toggle_mute(STAGE, "id-x")
    assert restored.seats == seated.seats


async def test_unauthorized_request_is_rejected_without_writing(coordinator):
    with pytest.raises(SeatNotAuthorized):
        await coordinator.request_seat(STAGE, occupant("x"), authorized=False)

    snapshot = await coordinator.get_stage(STAGE)
    assert snapshot.version == 0
    assert seated_ids(snapshot) == [None] * STAGE_SEAT_COUNT


async def test_transitions_are_published(coordinator, fake_redis):
    await coordinator.request_seat(STAGE, occupant("x"), authorized=True)
    await coordinator.toggle_mute(STAGE, "id-x")

    events = fake_redis.events(stage_channel(STAGE))
    assert [e["type"] for e in events] == ["modified", "modified"]
    assert [e["data"]["version"] for e in events] == [1, 2]
    assert events[-1]["data"]["seats"][0]["muted"] is True


async def test_last_writer_wins_overwrites_a_concurrent_seat(coordinator, store):
    """Two clients read [Empty, X, Empty, Empty]; plain overwrites lose Y's seat."""
    await coordinator.request_seat(STAGE, occupant("w"), authorized=True)
    await coordinator.request_seat(STAGE, occupant("x"), authorized=True)
    await coordinator.leave_seat(STAGE, "id-w")

    seen_by_y = await store.read(STAGE)
    seen_by_z = await store.read(STAGE)
    assert seated_ids(seen_by_y) == [None, "id-x", None, None]

    await store.force_write(STAGE, plan_request(seen_by_y.seats, occupant("y"), 1))
    await store.force_write(STAGE, plan_request(seen_by_z.seats, occupant("z"), 2))

    assert seated_ids(await store.read(STAGE)) == ["id-z", "id-x", None, None]


async def test_conditional_write_rejects_the_stale_writer(coordinator, store):
    """Same interleaving as above, but the second write is refused."""
    await coordinator.request_seat(STAGE, occupant("w"), authorized=True)
    await coordinator.request_seat(STAGE, occupant("x"), authorized=True)
    await coordinator.leave_seat(STAGE, "id-w")

    seen_by_y = await store.read(STAGE)
    seen_by_z = await store.read(STAGE)

    version = await store.write(
        STAGE, plan_request(seen_by_y.seats, occupant("y"), 1), seen_by_y.version)
    assert version == seen_by_y.version + 1
    stale = await store.write(
        STAGE, plan_request(seen_by_z.seats, occupant("z"), 2), seen_by_z.version)
    assert stale is None

    assert seated_ids(await store.read(STAGE)) == ["id-y", "id-x", None, None]


async def test_retry_after_conflict_takes_next_empty_seat(session_factory, coordinator, fake_redis):
    await coordinator.request_seat(STAGE, occupant("w"), authorized=True)
    await coordinator.request_seat(STAGE, occupant("x"), authorized=True)
    await coordinator.leave_seat(STAGE, "id-w")

    async def rival():
        await coordinator.request_seat(STAGE, occupant("y"), authorized=True)

    racing = StageCoordinator(
        RacingStore(session_factory, rival), EventBus(fake_redis), max_retries=3)
    snapshot = await racing.request_seat(STAGE, occupant("z"), authorized=True)

    assert seated_ids(snapshot) == ["id-y", "id-x", "id-z", None]
    assert seated_ids(await coordinator.get_stage(STAGE)) == ["id-y", "id-x", "id-z", None]


async def test_gives_up_after_bounded_retries(session_factory):
    store = AlwaysStaleStore(session_factory)
    coordinator = StageCoordinator(store, max_retries=3)

    with pytest.raises(StageConflict):
        await coordinator.request_seat(STAGE, occupant("x"), authorized=True)

    assert store.reads == 3


async def test_rejection_after_conflict_is_reported(session_factory, coordinator, fake_redis):
    """A retry re-plans against fresh seats, so it can end in a rejection."""
    for name in ["a", "b", "c"]:
        await coordinator.request_seat(STAGE, occupant(name), authorized=True)

    async def rival():
        await coordinator.request_seat(STAGE, occupant("d"), authorized=True)

    racing = StageCoordinator(
        RacingStore(session_factory, rival), EventBus(fake_redis), max_retries=3)
    with pytest.raises(StageFull):
        await racing.request_seat(STAGE, occupant("e"), authorized=True)


def test_render_covers_every_seat_and_flags_self():
    snapshot = StageSnapshot(
        key=STAGE,
        version=7,
        seats=[
            None,
            {
                "occupant_id": "id-x",
                "display_name": "x",
                "avatar": "https://avatars.test/x.svg",
                "muted": True,
                "joined_at": 5,
            },
            None,
            None,
        ],
    )

    view = render_stage(snapshot, viewer_id="id-x")
    assert [seat.index for seat in view.seats] == [0, 1, 2, 3]
    assert [seat.occupied for seat in view.seats] == [False, True, False, False]
    assert view.seats[1].is_self is True
    assert view.seats[1].muted is True

    other = render_stage(snapshot, viewer_id="id-y")
    assert not any(seat.is_self for seat in other.seats)
    assert other.version == 7

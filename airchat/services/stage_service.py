"""Mic stage: a fixed row of speaker seats shared by everyone in a room."""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from airchat.core.clock import now_ms
from airchat.core.config import STAGE_SEAT_COUNT, settings
from airchat.core.exceptions import (
    AlreadySeated,
    NotSeated,
    SeatNotAuthorized,
    StageConflict,
    StageFull,
)
from airchat.models.stage import Stage
from airchat.schemas.stage import SeatView, StageView
from airchat.services.event_bus import MODIFIED, EventBus, stage_channel

logger = logging.getLogger(__name__)

# A seat is either None (empty) or a dict with the keys below.
Seat = Optional[dict]


@dataclass(frozen=True)
class Occupant:
    id: str
    display_name: str
    avatar: str


@dataclass(frozen=True)
class StageSnapshot:
    key: str
    seats: list
    version: int


def empty_seats() -> list:
    return [None] * STAGE_SEAT_COUNT


def find_seat(seats: list, occupant_id: str) -> Optional[int]:
    """Index of the seat held by ``occupant_id``, or None."""
    for index, seat in enumerate(seats):
        if seat is not None and seat["occupant_id"] == occupant_id:
            return index
    return None


def plan_request(seats: list, occupant: Occupant, joined_at: int) -> list:
    """Seat the occupant in the first empty seat, scanning left to right."""
    if find_seat(seats, occupant.id) is not None:
        raise AlreadySeated()
    for index, seat in enumerate(seats):
        if seat is None:
            planned = list(seats)
            planned[index] = {
                "occupant_id": occupant.id,
                "display_name": occupant.display_name,
                "avatar": occupant.avatar,
                "muted": False,
                "joined_at": joined_at,
            }
            return planned
    raise StageFull()


def plan_leave(seats: list, occupant_id: str) -> list:
    index = find_seat(seats, occupant_id)
    if index is None:
        raise NotSeated()
    planned = list(seats)
    planned[index] = None
    return planned


def plan_toggle_mute(seats: list, occupant_id: str) -> list:
    index = find_seat(seats, occupant_id)
    if index is None:
        raise NotSeated()
    planned = list(seats)
    planned[index] = {**seats[index], "muted": not seats[index]["muted"]}
    return planned


def render_stage(snapshot: StageSnapshot, viewer_id: Optional[str] = None) -> StageView:
    """Build the full view of every seat; the viewer's own seat is flagged."""
    views = []
    for index, seat in enumerate(snapshot.seats):
        if seat is None:
            views.append(SeatView(index=index, occupied=False))
            continue
        views.append(
            SeatView(
                index=index,
                occupied=True,
                occupant_id=seat["occupant_id"],
                display_name=seat["display_name"],
                avatar=seat["avatar"],
                muted=seat["muted"],
                joined_at=seat["joined_at"],
                is_self=seat["occupant_id"] == viewer_id,
            )
        )
    return StageView(key=snapshot.key, version=snapshot.version, seats=views)


class SeatStore:
    """
    Stage rows in the SQL database, read and written as whole seat arrays.

    ``write`` is a compare-and-swap on the row version. ``force_write`` is the
    plain last-writer-wins overwrite: two clients that read the same empty seat
    and both force their copy back will each believe they hold it, and only the
    later write survives. The coordinator never calls it.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def read(self, key: str) -> StageSnapshot:
        """Read a stage, creating it with every seat empty on first access."""
        async with self._session_factory() as db:
            stage = await db.get(Stage, key)
            if stage is None:
                db.add(Stage(key=key, seats=empty_seats(), version=0))
                try:
                    await db.commit()
                except IntegrityError:
                    # Another client created it first
                    await db.rollback()
                stage = (
                    await db.execute(select(Stage).where(Stage.key == key))
                ).scalar_one()
            return StageSnapshot(key=stage.key, seats=list(stage.seats), version=stage.version)

    async def write(self, key: str, seats: list, expected_version: int) -> Optional[int]:
        """Store ``seats`` only if the stage is still at ``expected_version``.

        Returns the new version, or None when another writer got there first.
        """
        async with self._session_factory() as db:
            result = await db.execute(
                update(Stage)
                .where(Stage.key == key, Stage.version == expected_version)
                .values(seats=seats, version=expected_version + 1)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            if result.rowcount != 1:
                return None
            return expected_version + 1

    async def force_write(self, key: str, seats: list) -> int:
        """Overwrite the seat array regardless of what is stored."""
        async with self._session_factory() as db:
            await db.execute(
                update(Stage)
                .where(Stage.key == key)
                .values(seats=seats, version=Stage.version + 1)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            stage = (await db.execute(select(Stage).where(Stage.key == key))).scalar_one()
            return stage.version


class StageCoordinator:
    """Applies seat transitions with optimistic concurrency and bounded retries."""

    def __init__(
        self,
        store: SeatStore,
        bus: Optional[EventBus] = None,
        max_retries: int = settings.STAGE_MAX_RETRIES,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.bus = bus
        self.max_retries = max_retries
        self._clock = clock

    async def get_stage(self, key: str) -> StageSnapshot:
        return await self.store.read(key)

    async def request_seat(self, key: str, occupant: Occupant, authorized: bool) -> StageSnapshot:
        """Take the first empty seat. ``authorized`` comes from the caller's role check."""
        if not authorized:
            raise SeatNotAuthorized()
        return await self._transition(
            key, lambda seats: plan_request(seats, occupant, self._clock())
        )

    async def leave_seat(self, key: str, occupant_id: str) -> StageSnapshot:
        return await self._transition(key, lambda seats: plan_leave(seats, occupant_id))

    async def toggle_mute(self, key: str, occupant_id: str) -> StageSnapshot:
        return await self._transition(key, lambda seats: plan_toggle_mute(seats, occupant_id))

    async def _transition(self, key: str, plan: Callable[[list], list]) -> StageSnapshot:
        for attempt in range(1, self.max_retries + 1):
            snapshot = await self.store.read(key)
            # Rejections raise here, before anything is written
            seats = plan(snapshot.seats)
            version = await self.store.write(key, seats, expected_version=snapshot.version)
            if version is not None:
                updated = StageSnapshot(key=key, seats=seats, version=version)
                await self._publish(updated)
                return updated
            logger.info(
                f"Stage {key} changed since version {snapshot.version} "
                f"(attempt {attempt}/{self.max_retries})"
            )
        logger.warning(f"Giving up on stage {key} after {self.max_retries} conflicting writes")
        raise StageConflict()

    async def _publish(self, snapshot: StageSnapshot) -> None:
        if self.bus is None:
            return
        await self.bus.publish(
            stage_channel(snapshot.key),
            MODIFIED,
            {"key": snapshot.key, "version": snapshot.version, "seats": snapshot.seats},
        )

"""
Hold Manager

The only component that moves seats Free -> Held and Held -> Free.

Every mutation runs under the showtime's keyed lock: load the seat map,
compare-and-swap, persist seats and the hold row in one transaction, then
publish seat events. The keyed lock only serializes one process; seat writes
are conditional on the state that was loaded, so processes sharing the
database cannot both win a seat. Expiry deadlines live in a DeadlineQueue that the
HoldExpiryScheduler drains; hold rows keep `expires_at`, so deadlines are
re-armed from storage after a restart.
"""

from datetime import datetime, timedelta
import time
from typing import Optional

from opentelemetry import trace

from src.platform.clock import Clock, utc_now
from src.platform.database.unit_of_work import AbstractUnitOfWork, UnitOfWorkFactory
from src.platform.exception.exceptions import (
    ConflictError,
    DomainError,
    ForbiddenError,
    NotFoundError,
)
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.reservation_metrics import metrics
from src.platform.observability.tracing import reservation_span_attributes
from src.platform.state.deadline_queue import DeadlineQueue
from src.platform.state.keyed_lock import KeyedLock
from src.service.reservation.app.interface.i_seat_event_broadcaster import ISeatEventBroadcaster
from src.service.reservation.domain.aggregate.seat_map_aggregate import SeatMap
from src.service.reservation.domain.domain_event.seat_events import SeatHeld, SeatReleased
from src.service.reservation.domain.entity.hold_entity import Hold
from src.service.reservation.domain.enum import SeatState, TransitionOutcome
from src.service.reservation.domain.reservation_errors import (
    ConcurrencyConflict,
    SeatUnavailableError,
)
from src.service.reservation.domain.value_object.seat_id import SeatId


class HoldManager:
    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        keyed_lock: KeyedLock,
        broadcaster: ISeatEventBroadcaster,
        expiry_queue: DeadlineQueue,
        clock: Clock = utc_now,
    ) -> None:
        self.uow_factory = uow_factory
        self.keyed_lock = keyed_lock
        self.broadcaster = broadcaster
        self.expiry_queue = expiry_queue
        self.clock = clock
        self.tracer = trace.get_tracer(__name__)

    # ========== Create ==========

    @Logger.io
    async def create_hold(
        self,
        *,
        showtime_id: str,
        user_id: int,
        seat_ids: list[SeatId],
        ttl: timedelta,
    ) -> Hold:
        """
        Hold every requested seat or none of them.

        A conflict on a seat held by an overdue hold reaps that hold and
        retries once, and so does a seat write that storage rejects because
        another process changed the seat first. Any remaining conflict raises
        SeatUnavailableError carrying the unavailable seat ids.
        """
        if not seat_ids:
            raise DomainError('At least one seat is required')

        started = time.perf_counter()
        with self.tracer.start_as_current_span(
            'hold_manager.create_hold',
            attributes=reservation_span_attributes(
                showtime_id=showtime_id, user_id=user_id, seat_count=len(seat_ids)
            ),
        ):
            try:
                async with self.keyed_lock.hold(key=showtime_id):
                    hold = await self._hold_with_retry(
                        showtime_id=showtime_id, user_id=user_id, seat_ids=seat_ids, ttl=ttl
                    )
                    self.expiry_queue.arm(key=hold.id, deadline=hold.expires_at)
                    metrics.active_holds.set(len(self.expiry_queue))
                    for seat_id in hold.seats:
                        self.broadcaster.publish(
                            showtime_id=showtime_id,
                            event=SeatHeld(
                                seat_id=str(seat_id), holder_id=user_id, expires_at=hold.expires_at
                            ),
                        )
            except SeatUnavailableError as e:
                metrics.record_hold_request(
                    result='unavailable', duration=time.perf_counter() - started
                )
                Logger.base.warning(
                    f'⛔ [HOLD] user {user_id} could not hold {e.seat_ids} on showtime {showtime_id}'
                )
                raise

        metrics.record_hold_request(result='success', duration=time.perf_counter() - started)
        Logger.base.info(
            f'🎟️ [HOLD] {hold.id} user={user_id} showtime={showtime_id} '
            f'seats={hold.seat_labels} expires_at={hold.expires_at.isoformat()}'
        )
        return hold

    async def _hold_with_retry(
        self,
        *,
        showtime_id: str,
        user_id: int,
        seat_ids: list[SeatId],
        ttl: timedelta,
    ) -> Hold:
        conflicts: list[SeatId] = []
        for attempt in (1, 2):
            try:
                hold, conflicts = await self._attempt_hold(
                    showtime_id=showtime_id, user_id=user_id, seat_ids=seat_ids, ttl=ttl
                )
            except ConcurrencyConflict as e:
                # Another writer got to the seats after the map was loaded
                Logger.base.warning(f'🔁 [HOLD] Attempt {attempt} on showtime {showtime_id}: {e}')
                conflicts = [SeatId.from_str(label) for label in e.seat_ids]
                continue
            if hold is not None:
                return hold
            if attempt == 2 or not await self._reap_overdue_holds(
                showtime_id=showtime_id, seat_ids=conflicts
            ):
                break
        raise SeatUnavailableError([str(seat_id) for seat_id in conflicts])

    async def _attempt_hold(
        self,
        *,
        showtime_id: str,
        user_id: int,
        seat_ids: list[SeatId],
        ttl: timedelta,
    ) -> tuple[Optional[Hold], list[SeatId]]:
        async with self.uow_factory() as uow:
            showtime = await uow.showtime_repo.get(showtime_id=showtime_id)
            seat_map = await uow.showtime_repo.get_seat_map(showtime_id=showtime_id)
            if showtime is None or seat_map is None:
                raise NotFoundError('Showtime not found')

            now = self.clock()
            if not showtime.is_active or showtime.has_started(now=now):
                raise DomainError('Showtime is no longer open for booking')

            # Unknown seats fail the request before any seat is touched
            seats = [seat_map.get_seat(seat_id) for seat_id in seat_ids]
            hold = Hold.create(
                user_id=user_id,
                showtime_id=showtime_id,
                seats=seat_ids,
                total_amount=sum(seat.price for seat in seats),
                now=now,
                ttl=ttl,
            )

            conflicts = [
                seat_id
                for seat_id in hold.seats
                if seat_map.apply_transition(
                    seat_id,
                    expected_state=SeatState.FREE,
                    new_state=SeatState.HELD,
                    owner_id=hold.id,
                )
                == TransitionOutcome.CONFLICT
            ]
            if conflicts:
                self._undo_partial_hold(seat_map=seat_map, hold=hold)
                return None, conflicts

            await uow.showtime_repo.save_seats(
                showtime_id=showtime_id, changes=seat_map.pending_changes()
            )
            await uow.hold_repo.add(hold=hold)
            await uow.commit()
            return hold, []

    @staticmethod
    def _undo_partial_hold(*, seat_map: SeatMap, hold: Hold) -> None:
        for seat in seat_map.changed_seats():
            seat_map.apply_transition(
                seat.seat_id,
                expected_state=SeatState.HELD,
                new_state=SeatState.FREE,
                expected_owner_id=hold.id,
            )
        seat_map.clear_changes()

    async def _reap_overdue_holds(self, *, showtime_id: str, seat_ids: list[SeatId]) -> bool:
        """Release overdue holds blocking the given seats. Caller holds the showtime lock."""
        async with self.uow_factory() as uow:
            seat_map = await uow.showtime_repo.get_seat_map(showtime_id=showtime_id)
            if seat_map is None:
                raise NotFoundError('Showtime not found')
            blocking = {
                seat.owner_id
                for seat in (seat_map.get_seat(seat_id) for seat_id in seat_ids)
                if seat.state == SeatState.HELD and seat.owner_id
            }

        reaped = False
        for hold_id in sorted(blocking):
            released = await self._release_locked(
                showtime_id=showtime_id, hold_id=hold_id, reason='expired', require_overdue=True
            )
            reaped = reaped or released is not None
        return reaped

    # ========== Release / Expire ==========

    @Logger.io
    async def get_hold(self, *, hold_id: str) -> Optional[Hold]:
        async with self.uow_factory() as uow:
            return await uow.hold_repo.get(hold_id=hold_id)

    @Logger.io
    async def release_hold(self, *, hold_id: str, user_id: Optional[int] = None) -> bool:
        """
        Release every seat of the hold and disarm its timer.

        Idempotent: returns False when the hold is already gone (released,
        expired or converted). With user_id, only the holder may release.
        """
        hold = await self.get_hold(hold_id=hold_id)
        if hold is None:
            self.disarm(hold_id=hold_id)
            return False
        if user_id is not None and hold.user_id != user_id:
            raise ForbiddenError('Only the holder can release this hold')

        async with self.keyed_lock.hold(key=hold.showtime_id):
            released = await self._release_locked(
                showtime_id=hold.showtime_id, hold_id=hold_id, reason='explicit'
            )
        return released is not None

    @Logger.io
    async def expire_hold(self, *, hold_id: str) -> bool:
        """Release the hold only if it still exists and is overdue."""
        hold = await self.get_hold(hold_id=hold_id)
        if hold is None:
            self.disarm(hold_id=hold_id)
            return False

        async with self.keyed_lock.hold(key=hold.showtime_id):
            released = await self._release_locked(
                showtime_id=hold.showtime_id,
                hold_id=hold_id,
                reason='expired',
                require_overdue=True,
            )
        return released is not None

    async def _release_locked(
        self,
        *,
        showtime_id: str,
        hold_id: str,
        reason: str,
        require_overdue: bool = False,
    ) -> Optional[Hold]:
        outcome: Optional[tuple[Hold, list[SeatId]]] = None
        for attempt in (1, 2):
            try:
                outcome = await self._release_once(hold_id=hold_id, require_overdue=require_overdue)
                break
            except ConcurrencyConflict as e:
                Logger.base.warning(f'🔁 [HOLD] Release attempt {attempt} for {hold_id}: {e}')
        else:
            raise ConflictError('Hold was modified concurrently, please try again')
        if outcome is None:
            return None
        hold, released = outcome

        self.disarm(hold_id=hold_id)
        for seat_id in released:
            self.broadcaster.publish(
                showtime_id=showtime_id, event=SeatReleased(seat_id=str(seat_id))
            )
        metrics.record_hold_release(reason=reason)
        Logger.base.info(
            f'🔓 [HOLD] {hold_id} released ({reason}) seats={[str(s) for s in released]}'
        )
        return hold

    async def _release_once(
        self, *, hold_id: str, require_overdue: bool
    ) -> Optional[tuple[Hold, list[SeatId]]]:
        async with self.uow_factory() as uow:
            hold = await uow.hold_repo.get(hold_id=hold_id)
            if hold is None:
                self.disarm(hold_id=hold_id)
                return None
            if require_overdue and not hold.is_expired(now=self.clock()):
                return None

            released = await self._free_seats(uow=uow, hold=hold)
            if not await uow.hold_repo.delete(hold_id=hold_id):
                raise ConcurrencyConflict([str(seat_id) for seat_id in hold.seats])
            await uow.commit()
        return hold, released

    @staticmethod
    async def _free_seats(*, uow: AbstractUnitOfWork, hold: Hold) -> list[SeatId]:
        seat_map = await uow.showtime_repo.get_seat_map(showtime_id=hold.showtime_id)
        if seat_map is None:
            return []

        # Seats already moved on (booked by this hold) are left alone
        released = [
            seat_id
            for seat_id in hold.seats
            if seat_map.apply_transition(
                seat_id,
                expected_state=SeatState.HELD,
                new_state=SeatState.FREE,
                expected_owner_id=hold.id,
            )
            == TransitionOutcome.SUCCESS
        ]
        await uow.showtime_repo.save_seats(
            showtime_id=hold.showtime_id, changes=seat_map.pending_changes()
        )
        return released

    # ========== Timers ==========

    def disarm(self, *, hold_id: str) -> bool:
        disarmed = self.expiry_queue.disarm(key=hold_id)
        metrics.active_holds.set(len(self.expiry_queue))
        return disarmed

    async def restore_expiry(self, *, hold_id: str) -> None:
        """
        Put a disarmed hold back under expiry after a failed confirmation.

        Overdue holds are released right away, live ones are re-armed.
        """
        hold = await self.get_hold(hold_id=hold_id)
        if hold is None:
            return
        if hold.is_expired(now=self.clock()):
            await self.expire_hold(hold_id=hold_id)
        else:
            self.expiry_queue.arm(key=hold_id, deadline=hold.expires_at)
            metrics.active_holds.set(len(self.expiry_queue))

    async def expire_due_holds(self, *, now: Optional[datetime] = None) -> int:
        """Fire every armed deadline that has passed."""
        due = self.expiry_queue.pop_due(now=now or self.clock())
        expired = 0
        for hold_id in due:
            if await self.expire_hold(hold_id=hold_id):
                expired += 1
        metrics.active_holds.set(len(self.expiry_queue))
        return expired

    async def sweep_expired_holds(self) -> int:
        """Release overdue holds found in storage, armed or not."""
        async with self.uow_factory() as uow:
            overdue = await uow.hold_repo.list_expired(now=self.clock())
        expired = 0
        for hold in overdue:
            if await self.expire_hold(hold_id=hold.id):
                expired += 1
        if expired:
            Logger.base.info(f'🧹 [HOLD] Sweep released {expired} overdue hold(s)')
        return expired

    @Logger.io
    async def rearm_from_storage(self) -> int:
        """
        Re-arm the deadline of every stored hold (process restart).

        Holds already overdue are released immediately. Returns the number of
        holds left armed.
        """
        async with self.uow_factory() as uow:
            holds = await uow.hold_repo.list_all()

        now = self.clock()
        armed = 0
        for hold in holds:
            if hold.is_expired(now=now):
                await self.expire_hold(hold_id=hold.id)
            else:
                self.expiry_queue.arm(key=hold.id, deadline=hold.expires_at)
                armed += 1
        metrics.active_holds.set(len(self.expiry_queue))
        Logger.base.info(f'⏰ [HOLD] Re-armed {armed} hold(s) from storage')
        return armed

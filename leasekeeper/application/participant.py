"""Lease election participant.

A participant competes for ownership of one namespace through a shared,
non-atomic lease store. Timer ticks, foreign-change notifications and
broadcast messages all funnel into one reconciliation routine that applies
``LeaseAcquisitionPolicy`` and updates local leadership state.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

from ..domain.enums import BusMessageKind, LeaseDecision, TriggerSource, Visibility
from ..domain.exceptions import SerializationError
from ..domain.models import BusMessage, LeaseRecord
from ..domain.services import LeaseAcquisitionPolicy
from ..domain.value_objects import ParticipantId
from ..infrastructure.asyncio_scheduler import AsyncioScheduler
from ..infrastructure.config import ParticipantConfig
from ..infrastructure.in_memory_metrics import InMemoryMetrics
from ..infrastructure.serialization import decode_bus_message, encode_bus_message
from ..infrastructure.simple_logger import SimpleLogger
from ..infrastructure.system_clock import SystemClock
from ..ports.broadcast_bus import BroadcastBusPort
from ..ports.change_listener import ChangeListenerPort, Subscription
from ..ports.clock import ClockPort
from ..ports.lease_store import LeaseStorePort
from ..ports.logger import LoggerPort
from ..ports.metrics import MetricsPort
from ..ports.scheduler import SchedulerPort, TimerHandle

_BECAME_LEADER = "on_become_leader"
_LOST_LEADERSHIP = "on_lose_leadership"
_OTHER_DETECTED = "on_other_detected"


class Participant:
    """Election actor for a single namespace.

    Leadership is eventually, not instantly, exclusive: two participants
    that read the same absent or expired record in one tick both claim and
    both report ``is_leader`` until the one whose write was overwritten
    reconciles again. When the store fails, the participant assumes
    leadership rather than locking itself out.

    Example:
        >>> medium = InMemoryLeaseMedium()
        >>> async with Participant(medium.view(), ParticipantConfig(namespace="jobs")) as p:
        ...     if p.is_leader:
        ...         run_jobs()
    """

    def __init__(
        self,
        store: LeaseStorePort,
        config: ParticipantConfig | None = None,
        *,
        change_listener: ChangeListenerPort | None = None,
        broadcast_bus: BroadcastBusPort | None = None,
        scheduler: SchedulerPort | None = None,
        clock: ClockPort | None = None,
        logger: LoggerPort | None = None,
        metrics: MetricsPort | None = None,
        participant_id: ParticipantId | str | None = None,
    ) -> None:
        """Initialize a participant.

        Args:
            store: Shared lease store view for this execution context
            config: Election options; defaults to ``ParticipantConfig()``
            change_listener: Source of foreign-write notifications. Defaults
                to the store when it also implements ``ChangeListenerPort``
            broadcast_bus: Optional bus; ignored when ``use_broadcast_bus`` is off
            scheduler: Timer source; defaults to ``AsyncioScheduler``
            clock: Wall clock; defaults to ``SystemClock``
            logger: Logger; defaults to ``SimpleLogger`` (DEBUG when ``config.debug``)
            metrics: Metrics sink; defaults to ``InMemoryMetrics``
            participant_id: Fixed identity; generated when omitted
        """
        self._config = config or ParticipantConfig()
        self._lease_key = self._config.lease_key()
        self._store = store
        if change_listener is None and isinstance(store, ChangeListenerPort):
            change_listener = store
        self._change_listener = change_listener
        self._bus = broadcast_bus if self._config.use_broadcast_bus else None
        self._logger = logger or SimpleLogger(
            "leasekeeper.participant", logging.DEBUG if self._config.debug else logging.INFO
        )
        self._scheduler = scheduler or AsyncioScheduler(logger=self._logger)
        self._clock = clock or SystemClock()
        self._metrics = metrics or InMemoryMetrics()
        if isinstance(participant_id, str):
            participant_id = ParticipantId(value=participant_id)
        self._id = participant_id or ParticipantId.generate()

        self._is_leader = False
        self._last_known_record: LeaseRecord | None = None
        self._reconcile_lock = asyncio.Lock()
        self._pending_rerun: TriggerSource | None = None
        self._started = False
        self._closed = False

        self._tick_handle: TimerHandle | None = None
        self._debounce_handle: TimerHandle | None = None
        self._change_subscription: Subscription | None = None
        self._bus_subscription: Subscription | None = None

    # State

    @property
    def id(self) -> str:
        return self._id.value

    @property
    def participant_id(self) -> ParticipantId:
        return self._id

    @property
    def config(self) -> ParticipantConfig:
        return self._config

    @property
    def namespace(self) -> str:
        return self._config.namespace

    @property
    def key(self) -> str:
        return self._lease_key.key

    @property
    def is_leader(self) -> bool:
        return self._is_leader

    @property
    def is_reconciling(self) -> bool:
        return self._reconcile_lock.locked()

    @property
    def participant_count_estimate(self) -> int:
        """1 when leader, 2 otherwise; not an actual count of live participants."""
        return LeaseAcquisitionPolicy.estimate_participant_count(self._is_leader)

    @property
    def last_known_record(self) -> LeaseRecord | None:
        return self._last_known_record

    @property
    def broadcast_enabled(self) -> bool:
        return self._bus is not None

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def is_closed(self) -> bool:
        return self._closed

    # Lifecycle

    async def __aenter__(self) -> Participant:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def start(self) -> None:
        """Run the first reconciliation and register every trigger source."""
        if self._started or self._closed:
            return
        self._started = True

        self._logger.info(
            "Starting lease participant",
            namespace=self.namespace,
            participant_id=self.id,
            timeout_ms=self._config.timeout_ms,
            interval_ms=self._config.interval_ms,
        )

        await self._request_reconcile(TriggerSource.INITIAL, wait=True)

        self._tick_handle = self._scheduler.call_every(self._config.interval_seconds, self._on_tick)

        if self._change_listener is not None:
            try:
                self._change_subscription = await self._change_listener.subscribe(
                    self.key, self._on_foreign_change
                )
            except Exception as e:
                self._logger.error(
                    f"Change listener unavailable, relying on polling: {e}",
                    namespace=self.namespace,
                )

        if self._bus is not None:
            try:
                self._bus_subscription = await self._bus.subscribe(
                    self._lease_key.topic, self._on_bus_message
                )
            except Exception as e:
                self._logger.warning(
                    f"Broadcast bus unavailable, relying on polling: {e}",
                    namespace=self.namespace,
                )
                self._bus = None

    async def close(self) -> None:
        """Deregister every trigger, then release the lease if still owned.

        Only a record owned by this participant is deleted; a record that
        already belongs to someone else is left untouched.
        """
        if self._closed:
            return
        self._closed = True
        self._cancel_debounce()

        events: list[str] = []
        async with self._reconcile_lock:
            self._pending_rerun = None
            if self._tick_handle is not None:
                self._tick_handle.cancel()
                self._tick_handle = None
            await self._unsubscribe("change", self._change_subscription)
            self._change_subscription = None
            await self._unsubscribe("broadcast", self._bus_subscription)
            self._bus_subscription = None

            released = await self._release_if_owner()
            if released:
                await self._publish(BusMessageKind.CLOSING)
            if self._bus is not None:
                try:
                    await self._bus.close()
                except Exception as e:
                    self._logger.debug(f"Ignoring bus close failure: {e}")
            self._set_leader(False, events)

        self._logger.info(
            "Closed lease participant",
            namespace=self.namespace,
            participant_id=self.id,
            released=released,
        )
        await self._dispatch(events)

    async def _unsubscribe(self, label: str, subscription: Subscription | None) -> None:
        if subscription is None:
            return
        try:
            await subscription.unsubscribe()
        except Exception as e:
            self._logger.warning(f"Failed to remove {label} subscription: {e}")

    async def _release_if_owner(self) -> bool:
        try:
            record = await self._store.get(self.key)
        except Exception as e:
            self._metrics.increment("lease.store_errors")
            self._logger.error(
                f"Could not read lease during shutdown: {e}", namespace=self.namespace
            )
            return False

        if not LeaseAcquisitionPolicy.should_release(record, self.id):
            return False

        try:
            await self._store.delete(self.key)
        except Exception as e:
            self._metrics.increment("lease.store_errors")
            self._logger.error(
                f"Could not delete lease during shutdown: {e}", namespace=self.namespace
            )
            return False

        self._last_known_record = None
        self._metrics.increment("lease.releases")
        return True

    async def handle_visibility_change(self, visibility: Visibility) -> None:
        """React to the host backgrounding or foregrounding this participant.

        A hidden leader heartbeats immediately instead of releasing, so an
        inactive but alive owner is not taken over. Becoming visible again
        re-evaluates ownership.
        """
        if self._closed:
            return
        if visibility is Visibility.HIDDEN and not self._is_leader:
            return
        await self._request_reconcile(TriggerSource.VISIBILITY, wait=True)

    # Operations

    async def reconcile_now(self) -> bool:
        """Run a reconciliation pass and return the resulting leadership."""
        return await self._request_reconcile(TriggerSource.MANUAL, wait=True)

    async def force_acquire(self) -> None:
        """Claim the lease unconditionally, usurping any current owner."""
        if self._closed:
            self._logger.warning(
                "Ignoring force_acquire on a closed participant", participant_id=self.id
            )
            return
        events: list[str] = []
        async with self._reconcile_lock:
            record = LeaseAcquisitionPolicy.claim(self.id, self._clock.now_ms())
            try:
                await self._store.set(self.key, record)
            except Exception as e:
                self._handle_store_failure("set", e)
            self._last_known_record = record
            self._metrics.increment("lease.force_acquires")
            self._logger.warning(
                "Forcing leadership", namespace=self.namespace, participant_id=self.id
            )
            self._set_leader(True, events)
            await self._run_pending_reruns(events)
        if _BECAME_LEADER not in events:
            await self._publish(BusMessageKind.LEADERSHIP_CHANGED)
        await self._dispatch(events)

    async def read_current_record(self) -> LeaseRecord | None:
        """Read the stored record; a store failure is logged and reads as None."""
        try:
            return await self._store.get(self.key)
        except Exception as e:
            self._metrics.increment("lease.store_errors")
            self._logger.error(f"Failed to read lease record: {e}", namespace=self.namespace)
            return None

    # Triggers

    async def _on_tick(self) -> None:
        await self._request_reconcile(TriggerSource.TICK)

    def _on_foreign_change(self, key: str) -> None:
        if key == self.key:
            self._schedule_debounced(TriggerSource.CHANGE)

    def _on_bus_message(self, data: bytes) -> None:
        try:
            message = decode_bus_message(data)
        except SerializationError as e:
            self._logger.debug(f"Dropping undecodable bus message: {e}")
            return
        if message.sender_id == self.id or message.namespace != self.namespace:
            return
        self._metrics.increment("lease.bus_messages")
        self._logger.debug(
            f"Bus message {message.kind.value} from {message.sender_id}",
            namespace=self.namespace,
        )
        self._schedule_debounced(TriggerSource.BROADCAST)

    def _schedule_debounced(self, source: TriggerSource) -> None:
        # A pending pass already covers this trigger
        if self._closed or self._debounce_handle is not None:
            return
        self._debounce_handle = self._scheduler.call_later(
            self._config.debounce_seconds, lambda: self._run_debounced(source)
        )

    async def _run_debounced(self, source: TriggerSource) -> None:
        self._debounce_handle = None
        await self._request_reconcile(source)

    def _cancel_debounce(self) -> None:
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None

    # Reconciliation

    async def _request_reconcile(self, source: TriggerSource, wait: bool = False) -> bool:
        """Run a pass, or fold the request into the pass already running.

        A request arriving mid-pass marks one trailing pass; with ``wait`` the
        caller also blocks until that work is done.
        """
        if self._closed:
            return self._is_leader

        events: list[str] = []
        if self._reconcile_lock.locked():
            self._pending_rerun = source
            if not wait:
                return self._is_leader
            async with self._reconcile_lock:
                # Whoever held the lock may not have run our pass
                await self._run_pending_reruns(events)
        else:
            async with self._reconcile_lock:
                await self._reconcile_pass(source, events)
                await self._run_pending_reruns(events)
        await self._dispatch(events)
        return self._is_leader

    async def _run_pending_reruns(self, events: list[str]) -> None:
        """Run the trailing pass requested while the lock was held. Lock must be held."""
        while self._pending_rerun is not None and not self._closed:
            source, self._pending_rerun = self._pending_rerun, None
            await self._reconcile_pass(source, events)

    async def _reconcile_pass(self, source: TriggerSource, events: list[str]) -> None:
        now_ms = self._clock.now_ms()
        with self._metrics.timer("lease.reconcile"):
            try:
                record = await self._store.get(self.key)
            except Exception as e:
                self._handle_store_failure("get", e)
                self._set_leader(True, events)
                return

            self._last_known_record = record
            decision = LeaseAcquisitionPolicy.decide(
                record, self.id, now_ms, self._config.timeout_ms
            )
            self._logger.debug(
                f"Reconciled ({source.value}): {decision.value}",
                namespace=self.namespace,
                participant_id=self.id,
                owner_id=record.owner_id if record else None,
                now_ms=now_ms,
            )

            if decision is LeaseDecision.FOLLOW:
                self._metrics.increment("lease.follows")
                self._set_leader(False, events)
                events.append(_OTHER_DETECTED)
                return

            claimed = LeaseAcquisitionPolicy.claim(self.id, now_ms)
            try:
                await self._store.set(self.key, claimed)
                self._last_known_record = claimed
            except Exception as e:
                self._handle_store_failure("set", e)

            if decision is LeaseDecision.RENEW:
                self._metrics.increment("lease.renewals")
            else:
                self._metrics.increment("lease.claims")
                if decision is LeaseDecision.CLAIM_EXPIRED and record is not None:
                    self._logger.info(
                        f"Taking over stale lease from {record.owner_id}",
                        namespace=self.namespace,
                        participant_id=self.id,
                        age_ms=record.age_ms(now_ms),
                    )
            self._set_leader(True, events)

    def _handle_store_failure(self, operation: str, error: Exception) -> None:
        # Fail safe to leader: unverifiable ownership must not lock everyone out
        self._metrics.increment("lease.store_errors")
        self._metrics.increment("lease.failsafe_leader")
        self._logger.error(
            f"Lease store {operation} failed, assuming leadership: {error}",
            namespace=self.namespace,
            participant_id=self.id,
            operation=operation,
        )

    def _set_leader(self, value: bool, events: list[str]) -> None:
        if value == self._is_leader:
            return
        self._is_leader = value
        self._metrics.gauge("lease.is_leader", 1 if value else 0)
        events.append(_BECAME_LEADER if value else _LOST_LEADERSHIP)
        self._logger.info(
            "Became leader" if value else "Lost leadership",
            namespace=self.namespace,
            participant_id=self.id,
        )

    # Notifications

    async def _dispatch(self, events: list[str]) -> None:
        """Fire callbacks outside the reconciliation lock, in order."""
        for event in events:
            if event == _BECAME_LEADER and not self._closed:
                await self._publish(BusMessageKind.LEADERSHIP_CHANGED)
            await self._invoke_callback(event, getattr(self._config, event))

    async def _invoke_callback(self, name: str, callback: Callable[[], Any] | None) -> None:
        if callback is None:
            return
        try:
            result = callback()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self._logger.error(
                f"Error in {name} callback: {e}",
                namespace=self.namespace,
                participant_id=self.id,
            )

    async def _publish(self, kind: BusMessageKind) -> None:
        if self._bus is None:
            return
        message = BusMessage(
            kind=kind,
            sender_id=self.id,
            namespace=self.namespace,
            sent_at=self._clock.now_ms(),
        )
        try:
            await self._bus.publish(self._lease_key.topic, encode_bus_message(message))
        except Exception as e:
            self._logger.debug(f"Best-effort {kind.value} publish failed: {e}")

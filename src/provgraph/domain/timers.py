"""Unit timer providers.

Per-unit providers are families keyed by unit id; mutating one unit's timers
only invalidates that unit's members plus the global views.
"""

from __future__ import annotations

import logging

from provgraph.config import config_provider
from provgraph.domain.management import Management
from provgraph.domain.models import UnitTimer, UnitTimerWithDetails
from provgraph.domain.repositories import UnitTimerRepository, dependency
from provgraph.provider import FutureProvider, Provider
from provgraph.timer import PeriodicTimer

logger = logging.getLogger("provgraph.domain.timers")

unit_timer_repository: Provider[UnitTimerRepository] = dependency("unit_timer_repository")


async def _unit_timers(ref, unit_id: str) -> list[UnitTimer]:
    return await ref.watch(unit_timer_repository).get_timers_for_unit(unit_id)


async def _active_unit_timers(ref, unit_id: str) -> list[UnitTimer]:
    return await ref.watch(unit_timer_repository).get_active_timers_for_unit(unit_id)


async def _active_unit_timers_with_details(ref, unit_id: str) -> list[UnitTimerWithDetails]:
    repository = ref.watch(unit_timer_repository)
    return await repository.get_active_timers_with_details_for_unit(unit_id)


async def _all_active_timers(ref) -> list[UnitTimer]:
    return await ref.watch(unit_timer_repository).get_all_active_timers()


async def _expired_active_timers(ref) -> list[UnitTimer]:
    return await ref.watch(unit_timer_repository).get_expired_active_timers()


unit_timers = FutureProvider.family(_unit_timers, name="unit_timers")
active_unit_timers = FutureProvider.family(_active_unit_timers, name="active_unit_timers")
active_unit_timers_with_details = FutureProvider.family(
    _active_unit_timers_with_details, name="active_unit_timers_with_details"
)
all_active_timers: FutureProvider[list[UnitTimer]] = FutureProvider(
    _all_active_timers, name="all_active_timers"
)
expired_active_timers: FutureProvider[list[UnitTimer]] = FutureProvider(
    _expired_active_timers, name="expired_active_timers"
)


def _expired_timer_poller(ref) -> PeriodicTimer:
    interval = ref.watch(config_provider).timer_check_interval

    def _check() -> None:
        logger.debug("Checking for expired unit timers")
        ref.invalidate(expired_active_timers)

    return ref.periodic(interval, _check)


# Listen to this provider to keep expired_active_timers fresh. The timer
# stops when the poller is disposed.
expired_timer_poller: Provider[PeriodicTimer] = Provider(
    _expired_timer_poller, name="expired_timer_poller", auto_dispose=True
)


class UnitTimerManagement(Management):
    logger = logging.getLogger("provgraph.domain.timers")

    def __init__(self, container, repository: UnitTimerRepository) -> None:
        super().__init__(container)
        self._repository = repository

    @staticmethod
    def _unit_views(unit_id: str) -> list:
        return [
            unit_timers(unit_id),
            active_unit_timers(unit_id),
            active_unit_timers_with_details(unit_id),
            all_active_timers,
        ]

    @classmethod
    def _leaving_views(cls, unit_id: str) -> list:
        # A timer leaving the active set may have been in the expired list.
        return cls._unit_views(unit_id) + [expired_active_timers]

    async def start_timer(
        self, *, unit_id: str, step_timer_id: str, duration_minutes: int
    ) -> UnitTimer:
        return await self._mutate(
            f"start timer {step_timer_id} on unit {unit_id}",
            self._repository.start_timer(
                unit_id=unit_id, step_timer_id=step_timer_id, duration_minutes=duration_minutes
            ),
            self._unit_views(unit_id),
        )

    async def complete_timer(self, timer_id: str, unit_id: str) -> UnitTimer:
        return await self._mutate(
            f"complete timer {timer_id}",
            self._repository.complete_timer(timer_id),
            self._leaving_views(unit_id),
        )

    async def cancel_timer(self, timer_id: str, unit_id: str) -> UnitTimer:
        return await self._mutate(
            f"cancel timer {timer_id}",
            self._repository.cancel_timer(timer_id),
            self._leaving_views(unit_id),
        )

    async def delete_timer(self, timer_id: str, unit_id: str) -> None:
        await self._mutate(
            f"delete timer {timer_id}",
            self._repository.delete_timer(timer_id),
            self._leaving_views(unit_id),
        )

    async def get_expired_active_timers(self) -> list[UnitTimer]:
        return await self._repository.get_expired_active_timers()


unit_timer_management: Provider[UnitTimerManagement] = Provider(
    lambda ref: UnitTimerManagement(ref.container, ref.watch(unit_timer_repository)),
    name="unit_timer_management",
)

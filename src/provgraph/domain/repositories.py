"""Interfaces of the external collaborators the providers consume.

Repositories perform the actual I/O against the backend and are supplied to
a container through overrides:

    container = ProviderContainer(overrides=[
        macro_repository.override_with_value(SupabaseMacroRepository(client)),
    ])

A repository that was never overridden fails its first read with
MissingOverrideError. Absent entities are returned as None, never raised.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Mapping, Protocol, Sequence

from provgraph._errors import MissingOverrideError
from provgraph.domain.models import (
    Album,
    AlbumFilters,
    Device,
    DeviceStatus,
    LibraryAlbum,
    MachineMacro,
    PrinterSettings,
    ProductionStep,
    UnitTimer,
    UnitTimerWithDetails,
)
from provgraph.provider import Provider
from provgraph.stream import EventStream


def dependency(name: str) -> Provider:
    """Provider for an injected collaborator; must be overridden."""

    def _missing(ref):
        raise MissingOverrideError(f"{name} must be overridden in the container")

    return Provider(_missing, name=name)


class AlbumRepository(Protocol):
    async def get_album(self, album_id: str) -> Album | None: ...

    async def get_album_by_discogs_id(self, discogs_id: int) -> Album | None: ...

    async def create_album(self, album: Album) -> Album: ...

    async def search_albums(self, query: str) -> list[Album]: ...

    async def get_library_albums(
        self, library_id: str, *, filters: AlbumFilters | None = None
    ) -> list[LibraryAlbum]: ...

    async def get_library_album(self, library_album_id: str) -> LibraryAlbum | None: ...

    async def get_library_album_count(self, library_id: str) -> int: ...

    async def add_album_to_library(
        self, library_id: str, album_id: str, user_id: str
    ) -> LibraryAlbum: ...

    async def remove_album_from_library(self, library_album_id: str) -> None: ...

    async def update_library_album(self, library_album: LibraryAlbum) -> LibraryAlbum: ...

    async def toggle_favorite(self, library_album_id: str) -> LibraryAlbum: ...


class PreferencesStore(Protocol):
    """Small key-value store persisted on the device."""

    def get_int(self, key: str) -> int | None: ...

    async def set_int(self, key: str, value: int) -> None: ...

    async def remove(self, key: str) -> None: ...


class MachineMacroRepository(Protocol):
    async def get_macros_by_machine_type(self, machine_type: str) -> list[MachineMacro]: ...

    async def get_macros_by_machine_type_all(self, machine_type: str) -> list[MachineMacro]: ...

    async def get_all_macros(self) -> list[MachineMacro]: ...

    async def get_macro_by_id(self, macro_id: str) -> MachineMacro | None: ...

    async def create_macro(self, macro: MachineMacro) -> MachineMacro: ...

    async def update_macro(self, macro: MachineMacro) -> MachineMacro: ...

    async def delete_macro(self, macro_id: str) -> None: ...

    async def reorder_macros(self, machine_type: str, macro_ids: Sequence[str]) -> None: ...


class ProductionStepRepository(Protocol):
    async def get_steps_for_product(self, product_id: str) -> list[ProductionStep]: ...

    async def create_step(self, step: ProductionStep, *, file: Any = None) -> ProductionStep: ...

    async def update_step(
        self, step: ProductionStep, *, file: Any = None, old_step: ProductionStep | None = None
    ) -> None: ...

    async def delete_step(self, step_id: str) -> None: ...

    async def reorder_steps(self, product_id: str, step_ids: Sequence[str]) -> None: ...

    async def get_next_step_order(self, product_id: str) -> int: ...


class UnitTimerRepository(Protocol):
    async def get_timers_for_unit(self, unit_id: str) -> list[UnitTimer]: ...

    async def get_active_timers_for_unit(self, unit_id: str) -> list[UnitTimer]: ...

    async def get_active_timers_with_details_for_unit(
        self, unit_id: str
    ) -> list[UnitTimerWithDetails]: ...

    async def get_all_active_timers(self) -> list[UnitTimer]: ...

    async def get_expired_active_timers(self) -> list[UnitTimer]: ...

    async def start_timer(
        self, *, unit_id: str, step_timer_id: str, duration_minutes: int
    ) -> UnitTimer: ...

    async def complete_timer(self, timer_id: str) -> UnitTimer: ...

    async def cancel_timer(self, timer_id: str) -> UnitTimer: ...

    async def delete_timer(self, timer_id: str) -> None: ...


class DeviceRepository(Protocol):
    async def get_devices_for_unit(self, unit_id: str) -> list[Device]: ...

    async def get_devices_by_type(self, device_type_slug: str) -> list[Device]: ...

    async def get_devices_by_status(self, status: DeviceStatus) -> list[Device]: ...

    async def get_online_devices(self) -> list[Device]: ...

    async def get_device_by_id(self, device_id: str) -> Device: ...

    async def get_device_by_mac_address(self, mac_address: str) -> Device | None: ...

    async def get_devices_with_firmware(self, firmware_id: str) -> list[Device]: ...

    async def create_device(
        self,
        *,
        mac_address: str,
        device_type_slug: str,
        unit_id: str | None = None,
        firmware_version: str | None = None,
        firmware_id: str | None = None,
    ) -> Device: ...

    async def upsert_device(
        self,
        *,
        mac_address: str,
        device_type_slug: str,
        unit_id: str | None = None,
        firmware_version: str | None = None,
        firmware_id: str | None = None,
        factory_provisioned_at: datetime | None = None,
        factory_provisioned_by: str | None = None,
        provision_data: Mapping[str, Any] | None = None,
        status: DeviceStatus | None = None,
    ) -> Device: ...

    async def mark_factory_provisioned(
        self, *, device_id: str, user_id: str, provision_data: Mapping[str, Any] | None = None
    ) -> Device: ...

    async def update_provision_data(
        self, *, device_id: str, provision_data: Mapping[str, Any]
    ) -> Device: ...

    async def merge_provision_data(
        self, *, device_id: str, new_data: Mapping[str, Any]
    ) -> Device: ...

    async def update_firmware(
        self, *, device_id: str, firmware_version: str, firmware_id: str | None = None
    ) -> Device: ...

    async def update_last_seen(self, device_id: str) -> Device: ...

    async def update_last_seen_by_mac(self, mac_address: str) -> Device | None: ...

    async def assign_to_unit(self, *, device_id: str, unit_id: str) -> Device: ...

    async def assign_to_unit_by_mac(self, *, mac_address: str, unit_id: str) -> Device | None: ...

    async def unassign_from_unit(self, device_id: str) -> Device: ...

    async def delete_device(self, device_id: str) -> None: ...

    async def delete_device_by_mac(self, mac_address: str) -> None: ...


class DeviceRealtimeSource(Protocol):
    """Backend change feed for single devices."""

    def device_updates(self, device_id: str) -> EventStream[Device]: ...


class SettingsRepository(Protocol):
    async def load_printer_settings(self) -> PrinterSettings: ...

    async def save_printer_settings(self, settings: PrinterSettings) -> None: ...

    async def clear_printer_settings(self) -> None: ...


class AuthService(Protocol):
    @property
    def is_signed_in(self) -> bool: ...

    def session_expiry(self) -> datetime | None: ...

    def time_until_expiry(self) -> timedelta | None: ...

    def should_refresh_session(self) -> bool: ...

    async def refresh_session(self) -> bool: ...

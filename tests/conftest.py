"""In-memory repositories shared by the domain tests."""

from collections import Counter
from datetime import datetime, timedelta, timezone

from provgraph import RepositoryFailure
from provgraph.domain.models import (
    Album,
    Device,
    DeviceStatus,
    LibraryAlbum,
    MachineMacro,
    PrinterSettings,
    UnitTimer,
    UnitTimerStatus,
    UnitTimerWithDetails,
)
from provgraph.stream import EventStream


class FakeRepository:
    """Counts calls per method; set fail_with to make the next calls raise."""

    def __init__(self):
        self.calls = Counter()
        self.fail_with = None

    def _record(self, name):
        self.calls[name] += 1
        if self.fail_with is not None:
            raise self.fail_with


def macro(id, machine_type="cnc", order=1, active=True, name=None):
    return MachineMacro(
        id=id,
        name=name or f"Macro {id}",
        machine_type=machine_type,
        icon_name="bolt",
        gcode_commands="G28",
        execution_order=order,
        is_active=active,
    )


class FakeMacroRepository(FakeRepository):
    def __init__(self, macros=()):
        super().__init__()
        self.macros = {m.id: m for m in macros}

    async def get_macros_by_machine_type(self, machine_type):
        self._record("get_macros_by_machine_type")
        return [m for m in self.macros.values() if m.machine_type == machine_type and m.is_active]

    async def get_macros_by_machine_type_all(self, machine_type):
        self._record("get_macros_by_machine_type_all")
        return [m for m in self.macros.values() if m.machine_type == machine_type]

    async def get_all_macros(self):
        self._record("get_all_macros")
        return list(self.macros.values())

    async def get_macro_by_id(self, macro_id):
        self._record("get_macro_by_id")
        return self.macros.get(macro_id)

    async def create_macro(self, macro):
        self._record("create_macro")
        self.macros[macro.id] = macro
        return macro

    async def update_macro(self, macro):
        self._record("update_macro")
        self.macros[macro.id] = macro
        return macro

    async def delete_macro(self, macro_id):
        self._record("delete_macro")
        self.macros.pop(macro_id, None)

    async def reorder_macros(self, machine_type, macro_ids):
        self._record("reorder_macros")
        self.reordered = (machine_type, list(macro_ids))


def library_album(id, year=None, artist="Artist", title="Title", genres=(), favorite=False, added=None):
    return LibraryAlbum(
        id=id,
        library_id="lib-1",
        album_id=f"album-{id}",
        album=Album(id=f"album-{id}", title=title, artist=artist, year=year, genres=tuple(genres)),
        date_added=added or datetime(2024, 1, 1, tzinfo=timezone.utc),
        is_favorite=favorite,
    )


class FakeAlbumRepository(FakeRepository):
    def __init__(self, library=()):
        super().__init__()
        self.library = {la.id: la for la in library}
        self.albums = {la.album.id: la.album for la in library if la.album is not None}
        self._next = 100

    async def get_album(self, album_id):
        self._record("get_album")
        return self.albums.get(album_id)

    async def get_album_by_discogs_id(self, discogs_id):
        self._record("get_album_by_discogs_id")
        for album in self.albums.values():
            if album.discogs_id == discogs_id:
                return album
        return None

    async def create_album(self, album):
        self._record("create_album")
        self.albums[album.id] = album
        return album

    async def search_albums(self, query):
        self._record("search_albums")
        return [a for a in self.albums.values() if query.lower() in a.title.lower()]

    async def get_library_albums(self, library_id, *, filters=None):
        self._record("get_library_albums")
        albums = [la for la in self.library.values() if la.library_id == library_id]
        if filters is not None:
            albums = [la for la in albums if filters.matches(la)]
        return albums

    async def get_library_album(self, library_album_id):
        self._record("get_library_album")
        return self.library.get(library_album_id)

    async def get_library_album_count(self, library_id):
        self._record("get_library_album_count")
        return sum(1 for la in self.library.values() if la.library_id == library_id)

    async def add_album_to_library(self, library_id, album_id, user_id):
        self._record("add_album_to_library")
        self._next += 1
        la = LibraryAlbum(
            id=f"la-{self._next}",
            library_id=library_id,
            album_id=album_id,
            album=self.albums.get(album_id),
        )
        self.library[la.id] = la
        return la

    async def remove_album_from_library(self, library_album_id):
        self._record("remove_album_from_library")
        self.library.pop(library_album_id, None)

    async def update_library_album(self, library_album):
        self._record("update_library_album")
        self.library[library_album.id] = library_album
        return library_album

    async def toggle_favorite(self, library_album_id):
        self._record("toggle_favorite")
        current = self.library[library_album_id]
        updated = LibraryAlbum(
            id=current.id,
            library_id=current.library_id,
            album_id=current.album_id,
            album=current.album,
            date_added=current.date_added,
            is_favorite=not current.is_favorite,
        )
        self.library[library_album_id] = updated
        return updated


class FakePreferences:
    def __init__(self, values=None):
        self.values = dict(values or {})

    def get_int(self, key):
        return self.values.get(key)

    async def set_int(self, key, value):
        self.values[key] = value

    async def remove(self, key):
        self.values.pop(key, None)


def unit_timer(id, unit_id, status=UnitTimerStatus.ACTIVE, minutes=10):
    started = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    return UnitTimer(
        id=id,
        unit_id=unit_id,
        step_timer_id=f"step-timer-{id}",
        started_at=started,
        expires_at=started + timedelta(minutes=minutes),
        status=status,
    )


class FakeUnitTimerRepository(FakeRepository):
    def __init__(self, timers=()):
        super().__init__()
        self.timers = {t.id: t for t in timers}
        self.expired = []
        self._next = 0

    def _active(self):
        return [t for t in self.timers.values() if t.status is UnitTimerStatus.ACTIVE]

    async def get_timers_for_unit(self, unit_id):
        self._record("get_timers_for_unit")
        return [t for t in self.timers.values() if t.unit_id == unit_id]

    async def get_active_timers_for_unit(self, unit_id):
        self._record("get_active_timers_for_unit")
        return [t for t in self._active() if t.unit_id == unit_id]

    async def get_active_timers_with_details_for_unit(self, unit_id):
        self._record("get_active_timers_with_details_for_unit")
        return [
            UnitTimerWithDetails(timer=t, step_name="Step", timer_name="Cure", duration_minutes=10)
            for t in self._active()
            if t.unit_id == unit_id
        ]

    async def get_all_active_timers(self):
        self._record("get_all_active_timers")
        return self._active()

    async def get_expired_active_timers(self):
        self._record("get_expired_active_timers")
        return list(self.expired)

    async def start_timer(self, *, unit_id, step_timer_id, duration_minutes):
        self._record("start_timer")
        self._next += 1
        timer = unit_timer(f"t{self._next}", unit_id, minutes=duration_minutes)
        self.timers[timer.id] = timer
        return timer

    def _set_status(self, timer_id, status):
        current = self.timers[timer_id]
        updated = UnitTimer(
            id=current.id,
            unit_id=current.unit_id,
            step_timer_id=current.step_timer_id,
            started_at=current.started_at,
            expires_at=current.expires_at,
            status=status,
        )
        self.timers[timer_id] = updated
        return updated

    async def complete_timer(self, timer_id):
        self._record("complete_timer")
        return self._set_status(timer_id, UnitTimerStatus.COMPLETED)

    async def cancel_timer(self, timer_id):
        self._record("cancel_timer")
        return self._set_status(timer_id, UnitTimerStatus.CANCELLED)

    async def delete_timer(self, timer_id):
        self._record("delete_timer")
        self.timers.pop(timer_id, None)


def device(id, mac=None, unit_id=None, slug="hub", status=DeviceStatus.UNPROVISIONED):
    return Device(
        id=id,
        mac_address=mac or f"AA:BB:CC:00:00:{id[-2:]}",
        device_type_slug=slug,
        status=status,
        unit_id=unit_id,
    )


class FakeDeviceRepository(FakeRepository):
    def __init__(self, devices=()):
        super().__init__()
        self.devices = {d.id: d for d in devices}

    def _by_mac(self, mac_address):
        for d in self.devices.values():
            if d.mac_address == mac_address:
                return d
        return None

    def _replace(self, device_id, **changes):
        current = self.devices[device_id]
        fields = {
            "id": current.id,
            "mac_address": current.mac_address,
            "device_type_slug": current.device_type_slug,
            "status": current.status,
            "unit_id": current.unit_id,
            "firmware_version": current.firmware_version,
            "firmware_id": current.firmware_id,
            "provision_data": current.provision_data,
            "last_seen_at": current.last_seen_at,
        }
        fields.update(changes)
        self.devices[device_id] = Device(**fields)
        return self.devices[device_id]

    async def get_devices_for_unit(self, unit_id):
        self._record("get_devices_for_unit")
        return [d for d in self.devices.values() if d.unit_id == unit_id]

    async def get_devices_by_type(self, device_type_slug):
        self._record("get_devices_by_type")
        return [d for d in self.devices.values() if d.device_type_slug == device_type_slug]

    async def get_devices_by_status(self, status):
        self._record("get_devices_by_status")
        return [d for d in self.devices.values() if d.status == status]

    async def get_online_devices(self):
        self._record("get_online_devices")
        return [d for d in self.devices.values() if d.status is DeviceStatus.ONLINE]

    async def get_device_by_id(self, device_id):
        self._record("get_device_by_id")
        return self.devices[device_id]

    async def get_device_by_mac_address(self, mac_address):
        self._record("get_device_by_mac_address")
        return self._by_mac(mac_address)

    async def get_devices_with_firmware(self, firmware_id):
        self._record("get_devices_with_firmware")
        return [d for d in self.devices.values() if d.firmware_id == firmware_id]

    async def create_device(self, *, mac_address, device_type_slug, unit_id=None,
                            firmware_version=None, firmware_id=None):
        self._record("create_device")
        new = Device(
            id=f"dev-{len(self.devices) + 1:02d}",
            mac_address=mac_address,
            device_type_slug=device_type_slug,
            unit_id=unit_id,
            firmware_version=firmware_version,
            firmware_id=firmware_id,
        )
        self.devices[new.id] = new
        return new

    async def upsert_device(self, *, mac_address, device_type_slug, unit_id=None, **kwargs):
        self._record("upsert_device")
        existing = self._by_mac(mac_address)
        if existing is None:
            return await self.create_device(
                mac_address=mac_address, device_type_slug=device_type_slug, unit_id=unit_id
            )
        return self._replace(existing.id, device_type_slug=device_type_slug, unit_id=unit_id)

    async def mark_factory_provisioned(self, *, device_id, user_id, provision_data=None):
        self._record("mark_factory_provisioned")
        return self._replace(device_id, status=DeviceStatus.PROVISIONED)

    async def update_provision_data(self, *, device_id, provision_data):
        self._record("update_provision_data")
        return self._replace(device_id, provision_data=dict(provision_data))

    async def merge_provision_data(self, *, device_id, new_data):
        self._record("merge_provision_data")
        merged = {**self.devices[device_id].provision_data, **new_data}
        return self._replace(device_id, provision_data=merged)

    async def update_firmware(self, *, device_id, firmware_version, firmware_id=None):
        self._record("update_firmware")
        return self._replace(device_id, firmware_version=firmware_version, firmware_id=firmware_id)

    async def update_last_seen(self, device_id):
        self._record("update_last_seen")
        return self._replace(device_id, last_seen_at=datetime.now(timezone.utc))

    async def update_last_seen_by_mac(self, mac_address):
        self._record("update_last_seen_by_mac")
        existing = self._by_mac(mac_address)
        if existing is None:
            return None
        return self._replace(existing.id, last_seen_at=datetime.now(timezone.utc))

    async def assign_to_unit(self, *, device_id, unit_id):
        self._record("assign_to_unit")
        return self._replace(device_id, unit_id=unit_id)

    async def assign_to_unit_by_mac(self, *, mac_address, unit_id):
        self._record("assign_to_unit_by_mac")
        existing = self._by_mac(mac_address)
        if existing is None:
            return None
        return self._replace(existing.id, unit_id=unit_id)

    async def unassign_from_unit(self, device_id):
        self._record("unassign_from_unit")
        return self._replace(device_id, unit_id=None)

    async def delete_device(self, device_id):
        self._record("delete_device")
        self.devices.pop(device_id, None)

    async def delete_device_by_mac(self, mac_address):
        self._record("delete_device_by_mac")
        existing = self._by_mac(mac_address)
        if existing is not None:
            del self.devices[existing.id]


class FakeRealtimeSource:
    def __init__(self):
        self.streams = {}

    def device_updates(self, device_id):
        return self.streams.setdefault(device_id, EventStream())


class FakeSettingsRepository(FakeRepository):
    def __init__(self, settings=None):
        super().__init__()
        self.settings = settings or PrinterSettings()
        self.load_error = None

    async def load_printer_settings(self):
        self.calls["load_printer_settings"] += 1
        if self.load_error is not None:
            raise self.load_error
        return self.settings

    async def save_printer_settings(self, settings):
        self._record("save_printer_settings")
        self.settings = settings

    async def clear_printer_settings(self):
        self._record("clear_printer_settings")
        self.settings = PrinterSettings()


class FakeAuthService:
    def __init__(self, *, signed_in=True, remaining=timedelta(hours=2), should_refresh=False):
        self.is_signed_in = signed_in
        self.remaining = remaining
        self.should_refresh = should_refresh
        self.refresh_result = True
        self.refresh_count = 0

    def session_expiry(self):
        if self.remaining is None:
            return None
        return datetime(2024, 1, 1, tzinfo=timezone.utc) + self.remaining

    def time_until_expiry(self):
        return self.remaining

    def should_refresh_session(self):
        return self.should_refresh

    async def refresh_session(self):
        self.refresh_count += 1
        if self.refresh_result:
            self.remaining = timedelta(hours=1)
            self.should_refresh = False
        return self.refresh_result


def boom():
    return RepositoryFailure("backend unavailable")


"""Domain records passed between repositories and providers.

Records are frozen dataclasses: equal field values mean equal records, which
is what lets listeners skip notifications when a refetch returns the same
data.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, NamedTuple


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ─── Music library ──────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Album:
    id: str
    title: str
    artist: str
    year: int | None = None
    genres: tuple[str, ...] = ()
    styles: tuple[str, ...] = ()
    label: str | None = None
    discogs_id: int | None = None
    cover_image_url: str | None = None


@dataclass(frozen=True, slots=True)
class LibraryAlbum:
    """An album placed in a user's library."""

    id: str
    library_id: str
    album_id: str
    album: Album | None = None
    date_added: datetime = field(default_factory=_utcnow)
    is_favorite: bool = False
    location_id: str | None = None
    notes: str | None = None

    @property
    def year(self) -> int | None:
        return self.album.year if self.album is not None else None


class AlbumSortOption(enum.Enum):
    ARTIST_ASC = "artist_asc"
    ARTIST_DESC = "artist_desc"
    TITLE_ASC = "title_asc"
    TITLE_DESC = "title_desc"
    DATE_ADDED_ASC = "date_added_asc"
    DATE_ADDED_DESC = "date_added_desc"
    YEAR_ASC = "year_asc"
    YEAR_DESC = "year_desc"


@dataclass(frozen=True, slots=True)
class AlbumFilters:
    """Filter for library albums. None fields do not filter."""

    genres: tuple[str, ...] | None = None
    year_from: int | None = None
    year_to: int | None = None
    is_favorite: bool | None = None
    location_id: str | None = None

    def matches(self, library_album: LibraryAlbum) -> bool:
        album = library_album.album
        if self.genres:
            if album is None or not set(self.genres) & set(album.genres):
                return False
        if self.year_from is not None or self.year_to is not None:
            year = library_album.year
            if year is None:
                return False
            if self.year_from is not None and year < self.year_from:
                return False
            if self.year_to is not None and year > self.year_to:
                return False
        if self.is_favorite is not None and library_album.is_favorite != self.is_favorite:
            return False
        if self.location_id is not None and library_album.location_id != self.location_id:
            return False
        return True


class YearRange(NamedTuple):
    min: int | None
    max: int | None


# ─── Production ─────────────────────────────────────────────────────────


class MachineType(str, enum.Enum):
    CNC = "cnc"
    LASER = "laser"


@dataclass(frozen=True, slots=True)
class MachineMacro:
    id: str
    name: str
    machine_type: str
    icon_name: str
    gcode_commands: str
    execution_order: int
    is_active: bool = True
    description: str | None = None

    def is_valid(self) -> bool:
        if not self.name.strip():
            return False
        if self.machine_type not in (MachineType.CNC.value, MachineType.LASER.value):
            return False
        if not self.icon_name.strip():
            return False
        if not self.gcode_commands.strip():
            return False
        return self.execution_order > 0


class StepType(str, enum.Enum):
    GENERAL = "general"
    CNC_MILLING = "cnc_milling"
    LASER_CUTTING = "laser_cutting"
    FIRMWARE_PROVISIONING = "firmware_provisioning"


@dataclass(frozen=True, slots=True)
class ProductionStep:
    id: str
    product_id: str
    name: str
    step_order: int
    description: str | None = None
    step_type: StepType = StepType.GENERAL
    file_url: str | None = None
    file_name: str | None = None
    engrave_qr: bool = False
    qr_x_offset: float | None = None
    qr_y_offset: float | None = None
    qr_size: float | None = None
    qr_power_percent: int | None = None
    qr_speed_mm_min: int | None = None
    firmware_version_id: str | None = None

    def is_valid(self) -> bool:
        if self.step_order <= 0 or not self.name:
            return False
        if self.engrave_qr:
            if None in (self.qr_x_offset, self.qr_y_offset, self.qr_size):
                return False
            if self.qr_power_percent is None or not 0 <= self.qr_power_percent <= 100:
                return False
            if self.qr_speed_mm_min is None or self.qr_speed_mm_min <= 0:
                return False
        return True


class UnitTimerStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class UnitTimer:
    id: str
    unit_id: str
    step_timer_id: str
    started_at: datetime
    expires_at: datetime
    status: UnitTimerStatus = UnitTimerStatus.ACTIVE
    completed_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or _utcnow()
        return self.status is UnitTimerStatus.ACTIVE and now > self.expires_at

    def remaining_seconds(self, now: datetime | None = None) -> int:
        """Seconds left, 0 when expired or no longer active."""
        now = now or _utcnow()
        if self.status is not UnitTimerStatus.ACTIVE or now > self.expires_at:
            return 0
        return int((self.expires_at - now).total_seconds())

    def remaining_formatted(self, now: datetime | None = None) -> str:
        """Remaining time as "5:30" or "1:15:45"."""
        seconds = self.remaining_seconds(now)
        if seconds <= 0:
            return "0:00"
        hours, rest = divmod(seconds, 3600)
        minutes, secs = divmod(rest, 60)
        if hours:
            return f"{hours}:{minutes:02d}:{secs:02d}"
        return f"{minutes}:{secs:02d}"


@dataclass(frozen=True, slots=True)
class UnitTimerWithDetails:
    timer: UnitTimer
    step_name: str
    timer_name: str
    duration_minutes: int


class DeviceStatus(str, enum.Enum):
    UNPROVISIONED = "unprovisioned"
    PROVISIONED = "provisioned"
    ONLINE = "online"
    OFFLINE = "offline"


@dataclass(frozen=True, slots=True)
class Device:
    id: str
    mac_address: str
    device_type_slug: str | None = None
    status: DeviceStatus = DeviceStatus.UNPROVISIONED
    unit_id: str | None = None
    firmware_version: str | None = None
    firmware_id: str | None = None
    provision_data: Mapping[str, Any] = field(default_factory=dict)
    last_seen_at: datetime | None = None


# ─── Settings & session ─────────────────────────────────────────────────


class TagPrinterType(str, enum.Enum):
    STANDARD = "standard"
    NIIMBOT = "niimbot"


@dataclass(frozen=True, slots=True)
class PrinterSettings:
    """Label printer settings. Sizes are in inches."""

    default_printer_id: str | None = None
    default_printer_name: str | None = None
    tag_label_printer_id: str | None = None
    tag_label_printer_name: str | None = None
    auto_print: bool = False
    label_width: float = 1.0
    label_height: float = 1.0
    tag_label_width: float = 1.0
    tag_label_height: float = 1.0
    tag_printer_type: TagPrinterType = TagPrinterType.STANDARD
    niimbot_port: str | None = None
    niimbot_density: int = 3

    def is_valid(self) -> bool:
        # Label sizes between 0.5" and 4".
        for size in (self.label_width, self.label_height, self.tag_label_width, self.tag_label_height):
            if not 0.5 <= size <= 4.0:
                return False
        return 1 <= self.niimbot_density <= 5

    def has_default_printer(self) -> bool:
        return self.default_printer_id is not None


@dataclass(frozen=True, slots=True)
class SessionState:
    expires_at: datetime | None = None
    time_remaining: timedelta | None = None
    needs_refresh: bool = False
    is_expired: bool = False

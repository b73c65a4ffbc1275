"""Label printer settings."""

from __future__ import annotations

import logging
from dataclasses import replace

from provgraph._errors import ValidationFailure
from provgraph.domain.management import Management
from provgraph.domain.models import PrinterSettings
from provgraph.domain.repositories import SettingsRepository, dependency
from provgraph.provider import FutureProvider, Provider

logger = logging.getLogger("provgraph.domain.settings")

settings_repository: Provider[SettingsRepository] = dependency("settings_repository")


async def _printer_settings(ref) -> PrinterSettings:
    repository = ref.watch(settings_repository)
    try:
        return await repository.load_printer_settings()
    except Exception:
        logger.exception("Error loading printer settings, using defaults")
        return PrinterSettings()


# Never holds an Error from storage: a failed load falls back to defaults.
printer_settings: FutureProvider[PrinterSettings] = FutureProvider(
    _printer_settings, name="printer_settings"
)


class PrinterSettingsManagement(Management):
    logger = logging.getLogger("provgraph.domain.settings")

    def __init__(self, container, repository: SettingsRepository) -> None:
        super().__init__(container)
        self._repository = repository

    async def update_settings(self, settings: PrinterSettings) -> None:
        if not settings.is_valid():
            logger.error("Rejected invalid printer settings: %r", settings)
            raise ValidationFailure("invalid printer settings")
        await self._mutate(
            "update printer settings",
            self._repository.save_printer_settings(settings),
            [printer_settings],
        )

    async def _current(self) -> PrinterSettings:
        return await self.container.read_future(printer_settings)

    async def update_default_printer(
        self, printer_id: str | None, printer_name: str | None
    ) -> None:
        current = await self._current()
        await self.update_settings(
            replace(current, default_printer_id=printer_id, default_printer_name=printer_name)
        )

    async def toggle_auto_print(self) -> None:
        current = await self._current()
        await self.update_settings(replace(current, auto_print=not current.auto_print))

    async def update_label_size(self, width: float, height: float) -> None:
        current = await self._current()
        await self.update_settings(replace(current, label_width=width, label_height=height))

    async def reset_to_defaults(self) -> None:
        await self._mutate(
            "reset printer settings",
            self._repository.clear_printer_settings(),
            [printer_settings],
        )

    def reload(self) -> None:
        """Drop the cached settings; the next read loads them again."""
        self.container.invalidate(printer_settings)


printer_settings_management: Provider[PrinterSettingsManagement] = Provider(
    lambda ref: PrinterSettingsManagement(ref.container, ref.watch(settings_repository)),
    name="printer_settings_management",
)

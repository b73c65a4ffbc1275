"""Machine macro providers (G-code shortcuts for CNC and laser machines)."""

from __future__ import annotations

import logging
from typing import Sequence

from provgraph._errors import ValidationFailure
from provgraph.domain.management import Management
from provgraph.domain.models import MachineMacro, MachineType
from provgraph.domain.repositories import MachineMacroRepository, dependency
from provgraph.provider import FutureProvider, Provider

macro_repository: Provider[MachineMacroRepository] = dependency("macro_repository")


async def _cnc_macros(ref) -> list[MachineMacro]:
    return await ref.watch(macro_repository).get_macros_by_machine_type(MachineType.CNC.value)


async def _laser_macros(ref) -> list[MachineMacro]:
    return await ref.watch(macro_repository).get_macros_by_machine_type(MachineType.LASER.value)


async def _all_macros(ref) -> list[MachineMacro]:
    return await ref.watch(macro_repository).get_all_macros()


async def _macros_by_machine_type(ref, machine_type: str) -> list[MachineMacro]:
    return await ref.watch(macro_repository).get_macros_by_machine_type_all(machine_type)


# Active macros only.
cnc_macros: FutureProvider[list[MachineMacro]] = FutureProvider(_cnc_macros, name="cnc_macros")
laser_macros: FutureProvider[list[MachineMacro]] = FutureProvider(
    _laser_macros, name="laser_macros"
)

# Including inactive macros, for the settings screen.
all_macros: FutureProvider[list[MachineMacro]] = FutureProvider(_all_macros, name="all_macros")
macros_by_machine_type = FutureProvider.family(
    _macros_by_machine_type, name="macros_by_machine_type"
)

_EVERY_MACRO_VIEW = (all_macros, cnc_macros, laser_macros, macros_by_machine_type)


class MacroManagement(Management):
    logger = logging.getLogger("provgraph.domain.macros")

    def __init__(self, container, repository: MachineMacroRepository) -> None:
        super().__init__(container)
        self._repository = repository

    async def get_macros_by_machine_type(self, machine_type: str) -> list[MachineMacro]:
        return await self._repository.get_macros_by_machine_type(machine_type)

    async def get_all_macros(self) -> list[MachineMacro]:
        return await self._repository.get_all_macros()

    async def get_macros_by_machine_type_all(self, machine_type: str) -> list[MachineMacro]:
        return await self._repository.get_macros_by_machine_type_all(machine_type)

    async def get_macro_by_id(self, macro_id: str) -> MachineMacro | None:
        return await self._repository.get_macro_by_id(macro_id)

    async def create_macro(self, macro: MachineMacro) -> MachineMacro:
        _validate(macro)
        return await self._mutate(
            f"create macro {macro.name!r}",
            self._repository.create_macro(macro),
            _EVERY_MACRO_VIEW,
        )

    async def update_macro(self, macro: MachineMacro) -> MachineMacro:
        _validate(macro)
        return await self._mutate(
            f"update macro {macro.id}",
            self._repository.update_macro(macro),
            _EVERY_MACRO_VIEW,
        )

    async def delete_macro(self, macro_id: str) -> None:
        await self._mutate(
            f"delete macro {macro_id}",
            self._repository.delete_macro(macro_id),
            _EVERY_MACRO_VIEW,
        )

    async def reorder_macros(self, machine_type: str, macro_ids: Sequence[str]) -> None:
        """Persist a new execution order for one machine type's macros."""
        targets = [all_macros, macros_by_machine_type]
        if machine_type == MachineType.CNC.value:
            targets.append(cnc_macros)
        elif machine_type == MachineType.LASER.value:
            targets.append(laser_macros)
        await self._mutate(
            f"reorder {machine_type} macros",
            self._repository.reorder_macros(machine_type, list(macro_ids)),
            targets,
        )


def _validate(macro: MachineMacro) -> None:
    if not macro.is_valid():
        raise ValidationFailure(f"invalid macro {macro.name!r}")


macro_management: Provider[MacroManagement] = Provider(
    lambda ref: MacroManagement(ref.container, ref.watch(macro_repository)),
    name="macro_management",
)

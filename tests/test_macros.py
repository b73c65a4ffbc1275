"""Tests for machine macro providers and MacroManagement."""

import logging

import pytest

from conftest import FakeMacroRepository, boom, macro
from provgraph import Data, ProviderContainer, RepositoryFailure, ValidationFailure
from provgraph.domain.macros import (
    all_macros,
    cnc_macros,
    laser_macros,
    macro_management,
    macro_repository,
    macros_by_machine_type,
)


def _container(repository):
    return ProviderContainer(overrides=[macro_repository.override_with_value(repository)])


async def _warm(container):
    for provider in (all_macros, cnc_macros, laser_macros, macros_by_machine_type("cnc")):
        await container.read_future(provider)


class TestProviders:
    @pytest.mark.asyncio
    async def test_active_macros_by_type(self):
        repository = FakeMacroRepository(
            [macro("1", "cnc"), macro("2", "cnc", active=False), macro("3", "laser")]
        )
        container = _container(repository)

        assert [m.id for m in await container.read_future(cnc_macros)] == ["1"]
        assert [m.id for m in await container.read_future(laser_macros)] == ["3"]
        assert [m.id for m in await container.read_future(macros_by_machine_type("cnc"))] == [
            "1",
            "2",
        ]
        assert len(await container.read_future(all_macros)) == 3


class TestCreateMacro:
    @pytest.mark.asyncio
    async def test_success_refetches_every_view_once(self):
        repository = FakeMacroRepository([macro("1", "cnc")])
        container = _container(repository)
        await _warm(container)
        repository.calls.clear()

        await container.read(macro_management).create_macro(macro("2", "laser"))

        for provider in (all_macros, cnc_macros, laser_macros, macros_by_machine_type("cnc")):
            assert container.is_dirty(provider)
        await _warm(container)
        await _warm(container)
        assert repository.calls["get_all_macros"] == 1
        assert repository.calls["get_macros_by_machine_type"] == 2
        assert repository.calls["get_macros_by_machine_type_all"] == 1
        assert [m.id for m in container.read(laser_macros).value] == ["2"]

    @pytest.mark.asyncio
    async def test_failure_leaves_views_and_is_retryable(self, caplog):
        repository = FakeMacroRepository([macro("1", "cnc")])
        container = _container(repository)
        await _warm(container)
        before = container.read(all_macros)
        management = container.read(macro_management)

        repository.fail_with = boom()
        with caplog.at_level(logging.ERROR, logger="provgraph.domain.macros"):
            with pytest.raises(RepositoryFailure):
                await management.create_macro(macro("2", "cnc"))

        assert "Failed to create macro" in caplog.text
        assert not container.is_dirty(all_macros)
        assert container.read(all_macros) == before

        repository.fail_with = None
        await management.create_macro(macro("2", "cnc"))
        assert len(await container.read_future(all_macros)) == 2

    @pytest.mark.asyncio
    async def test_invalid_macro_never_reaches_repository(self):
        repository = FakeMacroRepository()
        container = _container(repository)

        with pytest.raises(ValidationFailure):
            await container.read(macro_management).create_macro(macro("1", "plasma"))

        assert repository.calls["create_macro"] == 0

    @pytest.mark.asyncio
    async def test_invalidation_list_covers_dependents(self):
        repository = FakeMacroRepository([macro("1", "cnc")])
        container = _container(repository)
        await _warm(container)
        listed = {all_macros, cnc_macros, laser_macros, macros_by_machine_type("cnc")}

        # Everything fed by the repository is refreshed by a create.
        assert container.dependents(macro_repository) == listed


class TestOtherCommands:
    @pytest.mark.asyncio
    async def test_update_and_delete(self):
        repository = FakeMacroRepository([macro("1", "cnc", name="Home")])
        container = _container(repository)
        management = container.read(macro_management)
        await _warm(container)

        await management.update_macro(macro("1", "cnc", name="Home all"))
        assert (await container.read_future(cnc_macros))[0].name == "Home all"

        await management.delete_macro("1")
        assert await container.read_future(all_macros) == []

    @pytest.mark.asyncio
    async def test_reorder_only_touches_matching_type(self):
        repository = FakeMacroRepository([macro("1", "cnc"), macro("2", "laser")])
        container = _container(repository)
        await _warm(container)

        await container.read(macro_management).reorder_macros("cnc", ["1"])

        assert repository.reordered == ("cnc", ["1"])
        assert container.is_dirty(cnc_macros)
        assert container.is_dirty(all_macros)
        assert container.is_dirty(macros_by_machine_type("cnc"))
        assert not container.is_dirty(laser_macros)

    @pytest.mark.asyncio
    async def test_pass_through_reads(self):
        repository = FakeMacroRepository([macro("1", "cnc")])
        management = _container(repository).read(macro_management)

        assert (await management.get_macro_by_id("1")).id == "1"
        assert await management.get_macro_by_id("missing") is None
        assert len(await management.get_all_macros()) == 1
        assert len(await management.get_macros_by_machine_type("cnc")) == 1
        assert len(await management.get_macros_by_machine_type_all("laser")) == 0

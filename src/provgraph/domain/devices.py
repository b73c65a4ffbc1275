"""Hardware device providers.

Device commands invalidate only the views a change can affect: the device
itself (by id or MAC address) and the lists keyed by its unit, type, status
or firmware.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping

from provgraph.domain.management import Management
from provgraph.domain.models import Device, DeviceStatus
from provgraph.domain.repositories import DeviceRealtimeSource, DeviceRepository, dependency
from provgraph.provider import FutureProvider, Provider, StreamProvider

device_repository: Provider[DeviceRepository] = dependency("device_repository")
device_realtime_source: Provider[DeviceRealtimeSource] = dependency("device_realtime_source")


async def _devices_by_unit(ref, unit_id: str) -> list[Device]:
    return await ref.watch(device_repository).get_devices_for_unit(unit_id)


async def _devices_by_type(ref, device_type_slug: str) -> list[Device]:
    return await ref.watch(device_repository).get_devices_by_type(device_type_slug)


async def _devices_by_status(ref, status: DeviceStatus) -> list[Device]:
    return await ref.watch(device_repository).get_devices_by_status(status)


async def _online_devices(ref) -> list[Device]:
    return await ref.watch(device_repository).get_online_devices()


async def _device_by_id(ref, device_id: str) -> Device:
    return await ref.watch(device_repository).get_device_by_id(device_id)


async def _device_by_mac(ref, mac_address: str) -> Device | None:
    return await ref.watch(device_repository).get_device_by_mac_address(mac_address)


async def _devices_with_firmware(ref, firmware_id: str) -> list[Device]:
    return await ref.watch(device_repository).get_devices_with_firmware(firmware_id)


devices_by_unit = FutureProvider.family(_devices_by_unit, name="devices_by_unit")
devices_by_type = FutureProvider.family(_devices_by_type, name="devices_by_type")
devices_by_status = FutureProvider.family(_devices_by_status, name="devices_by_status")
online_devices: FutureProvider[list[Device]] = FutureProvider(
    _online_devices, name="online_devices"
)
device_by_id = FutureProvider.family(_device_by_id, name="device_by_id")
device_by_mac = FutureProvider.family(_device_by_mac, name="device_by_mac")
devices_with_firmware = FutureProvider.family(
    _devices_with_firmware, name="devices_with_firmware"
)

# Latest backend snapshot of one device; Loading until the first update.
realtime_device = StreamProvider.family(
    lambda ref, device_id: ref.watch(device_realtime_source).device_updates(device_id),
    name="realtime_device",
    auto_dispose=True,
)


class DeviceManagement(Management):
    logger = logging.getLogger("provgraph.domain.devices")

    def __init__(self, container, repository: DeviceRepository) -> None:
        super().__init__(container)
        self._repository = repository

    async def create_device(
        self,
        *,
        mac_address: str,
        device_type_slug: str,
        unit_id: str | None = None,
        firmware_version: str | None = None,
        firmware_id: str | None = None,
    ) -> Device:
        targets = [devices_by_type(device_type_slug), devices_by_status(DeviceStatus.UNPROVISIONED)]
        if unit_id is not None:
            targets.append(devices_by_unit(unit_id))
        return await self._mutate(
            f"create device {mac_address}",
            self._repository.create_device(
                mac_address=mac_address,
                device_type_slug=device_type_slug,
                unit_id=unit_id,
                firmware_version=firmware_version,
                firmware_id=firmware_id,
            ),
            targets,
        )

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
    ) -> Device:
        """Create or update the device with this MAC address."""
        targets = [device_by_mac(mac_address), devices_by_type(device_type_slug)]
        if unit_id is not None:
            targets.append(devices_by_unit(unit_id))
        return await self._mutate(
            f"upsert device {mac_address}",
            self._repository.upsert_device(
                mac_address=mac_address,
                device_type_slug=device_type_slug,
                unit_id=unit_id,
                firmware_version=firmware_version,
                firmware_id=firmware_id,
                factory_provisioned_at=factory_provisioned_at,
                factory_provisioned_by=factory_provisioned_by,
                provision_data=provision_data,
                status=status,
            ),
            targets,
        )

    async def mark_factory_provisioned(
        self, *, device_id: str, user_id: str, provision_data: Mapping[str, Any] | None = None
    ) -> Device:
        return await self._mutate(
            f"mark device {device_id} factory provisioned",
            self._repository.mark_factory_provisioned(
                device_id=device_id, user_id=user_id, provision_data=provision_data
            ),
            [
                device_by_id(device_id),
                devices_by_status(DeviceStatus.UNPROVISIONED),
                devices_by_status(DeviceStatus.PROVISIONED),
            ],
        )

    async def update_provision_data(
        self, *, device_id: str, provision_data: Mapping[str, Any]
    ) -> Device:
        """Replace the device's provision data."""
        return await self._mutate(
            f"update provision data of {device_id}",
            self._repository.update_provision_data(
                device_id=device_id, provision_data=provision_data
            ),
            [device_by_id(device_id)],
        )

    async def merge_provision_data(self, *, device_id: str, new_data: Mapping[str, Any]) -> Device:
        """Merge new keys into the device's provision data."""
        return await self._mutate(
            f"merge provision data of {device_id}",
            self._repository.merge_provision_data(device_id=device_id, new_data=new_data),
            [device_by_id(device_id)],
        )

    async def update_firmware(
        self, *, device_id: str, firmware_version: str, firmware_id: str | None = None
    ) -> Device:
        targets = [device_by_id(device_id)]
        if firmware_id is not None:
            targets.append(devices_with_firmware(firmware_id))
        return await self._mutate(
            f"update firmware of {device_id} to {firmware_version}",
            self._repository.update_firmware(
                device_id=device_id, firmware_version=firmware_version, firmware_id=firmware_id
            ),
            targets,
        )

    async def update_last_seen(self, device_id: str) -> Device:
        return await self._mutate(
            f"update last seen of {device_id}",
            self._repository.update_last_seen(device_id),
            [device_by_id(device_id), online_devices],
        )

    async def update_last_seen_by_mac(self, mac_address: str) -> Device | None:
        return await self._mutate(
            f"update last seen of {mac_address}",
            self._repository.update_last_seen_by_mac(mac_address),
            lambda device: [device_by_mac(mac_address), online_devices] if device else [],
        )

    async def assign_to_unit(self, *, device_id: str, unit_id: str) -> Device:
        return await self._mutate(
            f"assign device {device_id} to unit {unit_id}",
            self._repository.assign_to_unit(device_id=device_id, unit_id=unit_id),
            [device_by_id(device_id), devices_by_unit(unit_id)],
        )

    async def assign_to_unit_by_mac(self, *, mac_address: str, unit_id: str) -> Device | None:
        return await self._mutate(
            f"assign device {mac_address} to unit {unit_id}",
            self._repository.assign_to_unit_by_mac(mac_address=mac_address, unit_id=unit_id),
            lambda device: [device_by_mac(mac_address), devices_by_unit(unit_id)] if device else [],
        )

    async def unassign_from_unit(self, device_id: str) -> Device:
        # The unit to refresh is the one the device was assigned to before.
        previous: Device | None = None

        async def _unassign() -> Device:
            nonlocal previous
            previous = await self._repository.get_device_by_id(device_id)
            return await self._repository.unassign_from_unit(device_id)

        def _stale(device: Device) -> list:
            targets = [device_by_id(device_id)]
            if previous is not None and previous.unit_id is not None:
                targets.append(devices_by_unit(previous.unit_id))
            return targets

        return await self._mutate(f"unassign device {device_id}", _unassign(), _stale)

    async def delete_device(self, device_id: str) -> None:
        async def _delete() -> Device | None:
            device = await self._repository.get_device_by_id(device_id)
            await self._repository.delete_device(device_id)
            return device

        await self._mutate(f"delete device {device_id}", _delete(), _views_of)

    async def delete_device_by_mac(self, mac_address: str) -> None:
        async def _delete() -> Device | None:
            device = await self._repository.get_device_by_mac_address(mac_address)
            await self._repository.delete_device_by_mac(mac_address)
            return device

        await self._mutate(f"delete device {mac_address}", _delete(), _views_of)


def _views_of(device: Device | None) -> list:
    """Everything a deleted device used to appear in."""
    if device is None:
        return []
    targets: list = [
        device_by_id(device.id),
        device_by_mac(device.mac_address),
        devices_by_status(device.status),
        online_devices,
    ]
    if device.device_type_slug is not None:
        targets.append(devices_by_type(device.device_type_slug))
    if device.unit_id is not None:
        targets.append(devices_by_unit(device.unit_id))
    if device.firmware_id is not None:
        targets.append(devices_with_firmware(device.firmware_id))
    return targets


device_management: Provider[DeviceManagement] = Provider(
    lambda ref: DeviceManagement(ref.container, ref.watch(device_repository)),
    name="device_management",
)

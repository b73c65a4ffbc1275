"""Production step providers, one list per product.

Reordering is optimistic: reorder_locally() writes the new order into
local_production_steps, which displayed_production_steps prefers over the
fetched list until reorder_steps() has persisted it.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from provgraph._errors import ValidationFailure
from provgraph.domain.management import Management
from provgraph.domain.models import ProductionStep
from provgraph.domain.repositories import ProductionStepRepository, dependency
from provgraph.provider import FutureProvider, Provider, StateProvider

production_step_repository: Provider[ProductionStepRepository] = dependency(
    "production_step_repository"
)


async def _production_steps(ref, product_id: str) -> list[ProductionStep]:
    return await ref.watch(production_step_repository).get_steps_for_product(product_id)


production_steps = FutureProvider.family(_production_steps, name="production_steps")

# None means "use the fetched order".
local_production_steps = StateProvider.family(
    lambda ref, product_id: None, name="local_production_steps"
)


def _displayed_production_steps(ref, product_id: str) -> list[ProductionStep]:
    local = ref.watch(local_production_steps(product_id))
    if local is not None:
        return list(local)
    return ref.watch(production_steps(product_id)).value_or([])


displayed_production_steps = Provider.family(
    _displayed_production_steps, name="displayed_production_steps"
)


class ProductionStepManagement(Management):
    logger = logging.getLogger("provgraph.domain.production_steps")

    def __init__(self, container, repository: ProductionStepRepository) -> None:
        super().__init__(container)
        self._repository = repository

    async def create_step(self, step: ProductionStep, *, file: Any = None) -> ProductionStep:
        _validate(step)
        return await self._mutate(
            "create production step",
            self._repository.create_step(step, file=file),
            [production_steps(step.product_id)],
        )

    async def update_step(
        self, step: ProductionStep, *, file: Any = None, old_step: ProductionStep | None = None
    ) -> None:
        _validate(step)
        await self._mutate(
            "update production step",
            self._repository.update_step(step, file=file, old_step=old_step),
            [production_steps(step.product_id)],
        )

    async def delete_step(self, step_id: str, product_id: str) -> None:
        await self._mutate(
            "delete production step",
            self._repository.delete_step(step_id),
            [production_steps(product_id)],
        )

    def reorder_locally(self, product_id: str, steps: Sequence[ProductionStep]) -> None:
        """Show steps in this order until the server confirms a reorder."""
        self.container.set(local_production_steps(product_id), list(steps))

    async def reorder_steps(self, product_id: str, step_ids: Sequence[str]) -> None:
        # Invalidating the local cell resets it to None.
        await self._mutate(
            "reorder production steps",
            self._repository.reorder_steps(product_id, list(step_ids)),
            [local_production_steps(product_id), production_steps(product_id)],
        )

    async def get_next_step_order(self, product_id: str) -> int:
        try:
            return await self._repository.get_next_step_order(product_id)
        except Exception:
            self.logger.exception("Failed to get next step order")
            raise


def _validate(step: ProductionStep) -> None:
    if not step.is_valid():
        raise ValidationFailure(f"invalid production step {step.name!r}")


production_step_management: Provider[ProductionStepManagement] = Provider(
    lambda ref: ProductionStepManagement(ref.container, ref.watch(production_step_repository)),
    name="production_step_management",
)

"""InMemoryOrderStore: Scenario-based test double for the OrderStore protocol.

Scenarios:
- happy_path: every transition is applied
- store_failure: every write raises OrderStoreError
- not_found: every lookup raises OrderNotFoundError
- flaky: the first write fails, later writes succeed
"""

import asyncio

from sikupi.core.exceptions import OrderNotFoundError, OrderStoreError
from sikupi.orders.store import OrderTransition


class InMemoryOrderStore:
    """Deterministic OrderStore that records every call."""

    VALID_SCENARIOS = {"happy_path", "store_failure", "not_found", "flaky"}

    def __init__(self, scenario: str = "happy_path", delay: float = 0.0):
        """Initialize with a named scenario.

        Args:
            scenario: One of VALID_SCENARIOS
            delay: Seconds to await inside apply_transition, to widen race windows in tests

        Raises:
            ValueError: If scenario is not recognized
        """
        if scenario not in self.VALID_SCENARIOS:
            raise ValueError(
                f"Unknown scenario: {scenario}. Valid scenarios: {self.VALID_SCENARIOS}"
            )
        self.scenario = scenario
        self.delay = delay
        self.calls: list[tuple[str, OrderTransition]] = []
        self.applied: dict[str, OrderTransition] = {}

    async def apply_transition(self, external_order_id: str, transition: OrderTransition) -> None:
        self.calls.append((external_order_id, transition))
        if self.delay:
            await asyncio.sleep(self.delay)

        if self.scenario == "not_found":
            raise OrderNotFoundError(external_order_id)
        if self.scenario == "store_failure":
            raise OrderStoreError(f"Write failed for order {external_order_id}")
        if self.scenario == "flaky" and len(self.calls) == 1:
            raise OrderStoreError(f"Transient write failure for order {external_order_id}")

        self.applied[external_order_id] = transition

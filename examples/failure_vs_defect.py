"""
Typed failures are retried and can be handled; defects end the run.

Shows both error channels side by side on the in-process host.
"""

import asyncio
import logging

from pydantic import BaseModel

from ergonbridge import (
    BridgeConfig,
    RetryConfig,
    StepConfig,
    TaggedFailure,
    WorkflowDefect,
    make_workflow,
    step,
)
from ergonbridge.local import LocalStep

logging.basicConfig(level=logging.CRITICAL)


class Order(BaseModel):
    id: str
    sku: str


class OutOfStock(TaggedFailure, tag="inventory.OutOfStock"):
    pass


QUICK = StepConfig(retries=RetryConfig(limit=2, delay_ms=100))


def reserve(order: Order):
    raise OutOfStock(f"{order.sku} is sold out", sku=order.sku)


@make_workflow(name="Checkout", binding="CHECKOUT", schema=Order, config=BridgeConfig())
async def checkout(order: Order) -> str:
    try:
        await step("reserve", lambda: reserve(order), QUICK)
    except OutOfStock as exc:
        return f"{order.id} backordered ({exc.sku})"
    return f"{order.id} reserved"


@make_workflow(name="Broken", binding="BROKEN", schema=Order, config=BridgeConfig())
async def broken(order: Order) -> int:
    try:
        return await step("divide", lambda: len(order.sku) // 0, QUICK)
    except Exception:
        # Never reached: defects are not Exceptions.
        return -1


async def main():
    local = LocalStep()
    result = await checkout.run({"payload": {"id": "o-1", "sku": "A1"}, "instanceId": "o-1"}, local)
    print(f"checkout: {result} after {local.attempts['reserve']} attempts")

    local = LocalStep()
    try:
        await broken.run({"payload": {"id": "o-2", "sku": "B2"}, "instanceId": "o-2"}, local)
    except WorkflowDefect as defect:
        print(f"broken: died with {defect} after {local.attempts['divide']} attempt")


if __name__ == "__main__":
    asyncio.run(main())

# src/marketplace/core/ledger/state_machine.py
from __future__ import annotations

from dataclasses import dataclass

from src.marketplace.core.models.enums import OrderStatus


TERMINAL: set[OrderStatus] = {OrderStatus.FILLED, OrderStatus.CANCELLED}


@dataclass(frozen=True)
class Decision:
    allow: bool
    reason: str = ""


def should_apply(current_status: OrderStatus | str | None, incoming_status: OrderStatus | str | None) -> Decision:
    """
    Allow only OPEN -> FILLED and OPEN -> CANCELLED.
    - terminal status never changes again
    - OPEN is only ever the initial state
    """
    if not incoming_status:
        return Decision(False, "incoming_status is empty")
    if not current_status:
        return Decision(False, "current_status is empty")

    cur = OrderStatus(current_status)
    inc = OrderStatus(incoming_status)

    if cur in TERMINAL:
        return Decision(False, f"terminal regression blocked: {cur.value} -> {inc.value}")

    if inc == OrderStatus.OPEN:
        return Decision(False, f"no-op transition blocked: {cur.value} -> {inc.value}")

    return Decision(True, "ok")

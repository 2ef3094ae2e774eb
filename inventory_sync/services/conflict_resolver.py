"""
Decides which side's quantity wins when local and remote stock diverge.
"""

import logging
from typing import NamedTuple, Optional

from inventory_sync.core.enums import ConflictPolicy, StockSource

logger = logging.getLogger(__name__)


class Resolution(NamedTuple):
    winning_quantity: int
    push_required: bool
    pull_required: bool


def clamp_quantity(quantity: int, label: str = "quantity") -> int:
    """Clamp a proposed stock quantity to zero, logging when it was negative."""
    quantity = int(quantity)
    if quantity < 0:
        logger.warning(f"Negative {label} {quantity} clamped to 0")
        return 0
    return quantity


def resolve(
    local_qty: int,
    remote_qty: int,
    policy: ConflictPolicy,
    source: Optional[StockSource] = None
) -> Resolution:
    """
    Resolve a local/remote stock comparison.

    remote_wins pulls the remote value over the local one, local_wins pushes
    the local value to the remote service. Under ``both`` the side that
    originated the triggering change wins; with no source given the remote
    side is treated as the originator.

    Equal quantities never require a push or a pull.
    """
    policy = ConflictPolicy(policy)
    source = StockSource(source) if source is not None else None
    local_qty = clamp_quantity(local_qty, "local quantity")
    remote_qty = clamp_quantity(remote_qty, "remote quantity")

    if local_qty == remote_qty:
        return Resolution(local_qty, False, False)

    if policy is ConflictPolicy.BOTH:
        policy = ConflictPolicy.LOCAL_WINS if source is StockSource.LOCAL else ConflictPolicy.REMOTE_WINS

    if policy is ConflictPolicy.LOCAL_WINS:
        return Resolution(local_qty, True, False)

    return Resolution(remote_qty, False, True)

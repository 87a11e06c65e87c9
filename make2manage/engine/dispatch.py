"""
Dispatch policies for station queues.

The policies are a closed set of sort keys selected by each station's
``dispatch_policy``:

- FIFO: earliest enqueue first
- EDD: earliest due time first, ties by enqueue order
- SPT: shortest base duration at this station first, ties by enqueue order

Every key ends with the order's global enqueue sequence number, so each
policy is a total order and re-sorting a queue is reproducible.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional

from make2manage.models.departments import Department, DispatchPolicy
from make2manage.models.orders import Order, OrderStatus

SortKey = Callable[[Order, Department], tuple[int, ...]]


def _fifo_key(order: Order, department: Department) -> tuple[int, ...]:
    return (order.enqueue_seq,)


def _edd_key(order: Order, department: Department) -> tuple[int, ...]:
    return (order.due_at_ms, order.enqueue_seq)


def _spt_key(order: Order, department: Department) -> tuple[int, ...]:
    base = order.base_duration_ms(department.id, department.standard_processing_ms)
    return (base, order.enqueue_seq)


POLICY_KEYS: dict[DispatchPolicy, SortKey] = {
    DispatchPolicy.FIFO: _fifo_key,
    DispatchPolicy.EDD: _edd_key,
    DispatchPolicy.SPT: _spt_key,
}


def sort_queue(
    queue: list[Order],
    department: Department,
    policy: Optional[DispatchPolicy] = None,
) -> list[Order]:
    """Return the queue ordered by a policy (the station's own by default)."""
    key = POLICY_KEYS[policy or department.dispatch_policy]
    return sorted(queue, key=lambda order: key(order, department))


def select_next(department: Department) -> Optional[Order]:
    """First order in the queue that is not on hold."""
    for order in department.queue:
        if order.status != OrderStatus.ON_HOLD:
            return order
    return None


# =============================================================================
# Teaching aids
# =============================================================================

POLICY_DESCRIPTIONS: dict[DispatchPolicy, str] = {
    DispatchPolicy.FIFO: "First In, First Out - orders are processed in the order they arrive",
    DispatchPolicy.EDD: "Earliest Due Date - orders with the earliest due dates are processed first",
    DispatchPolicy.SPT: "Shortest Processing Time - the quickest jobs are processed first",
}


@dataclass
class PolicyInsights:
    """Benefits and drawbacks of a dispatch policy."""

    benefits: list[str] = field(default_factory=list)
    drawbacks: list[str] = field(default_factory=list)
    best_for: str = ""


POLICY_INSIGHTS: dict[DispatchPolicy, PolicyInsights] = {
    DispatchPolicy.FIFO: PolicyInsights(
        benefits=[
            "Simple and fair, no order skipping",
            "Predictable wait times for customers",
        ],
        drawbacks=[
            "Ignores urgency and due dates",
            "Urgent orders can finish late",
        ],
        best_for="Stable environments with consistent order types",
    ),
    DispatchPolicy.EDD: PolicyInsights(
        benefits=[
            "Minimizes late deliveries",
            "Works directly from customer deadlines",
        ],
        drawbacks=[
            "Orders with distant due dates can wait a long time",
            "Does not maximize throughput",
        ],
        best_for="Customer-focused shops where on-time delivery is critical",
    ),
    DispatchPolicy.SPT: PolicyInsights(
        benefits=[
            "Maximizes throughput",
            "Minimizes average waiting time and WIP",
        ],
        drawbacks=[
            "Long jobs may starve",
            "May miss customer due dates",
        ],
        best_for="High-volume shops focused on output",
    ),
}


@dataclass
class PolicySwitchAnalysis:
    """Effect of re-sorting a queue under a different policy."""

    reordering_required: bool
    orders_affected: int
    estimated_impact: str


def analyze_policy_switch(
    department: Department,
    to_policy: DispatchPolicy,
) -> PolicySwitchAnalysis:
    """Count how many queued orders change position under a new policy.

    Args:
        department: Station whose queue is analyzed
        to_policy: Policy being considered

    Returns:
        PolicySwitchAnalysis; up to 30% of orders moved is a minor change,
        up to 70% moderate, beyond that major
    """
    queue = department.queue
    if to_policy == department.dispatch_policy or not queue:
        return PolicySwitchAnalysis(False, 0, "No change required")

    current = [o.id for o in sort_queue(queue, department)]
    proposed = [o.id for o in sort_queue(queue, department, to_policy)]
    moved = sum(1 for a, b in zip(current, proposed) if a != b)
    share = moved / len(queue)

    if moved == 0:
        impact = "No change required"
    elif share <= 0.3:
        impact = "Minor reordering"
    elif share <= 0.7:
        impact = "Moderate reordering"
    else:
        impact = "Major reordering"
    return PolicySwitchAnalysis(moved > 0, moved, impact)

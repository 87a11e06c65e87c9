"""
Order generation for make2manage.

Two mutually exclusive modes per session:

(a) procedural: the whole order book is drawn up front from a seeded
    stream, keyed by complexity level and generation rate, so a fixed
    seed always yields the same orders;
(b) predetermined: an authored list of scheduled orders is consumed in
    release-time order.

Procedural distributions follow the classroom game: customer tier drives
priority, rush chance and order value; routes visit two to five
production stations and sometimes start at Engineering.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Optional

from make2manage.config import defaults
from make2manage.config.schema import EngineConfig, get_default_config
from make2manage.engine import rng as seeds
from make2manage.engine.clock import Scheduler
from make2manage.engine.errors import EmptySchedule, InvalidSeed
from make2manage.models.customers import Customer, CustomerTier
from make2manage.models.departments import Department
from make2manage.models.orders import (
    HALF_ORDER_MULTIPLIER,
    MS_PER_MINUTE,
    HalfOrderReason,
    Order,
    OrderPriority,
    ScheduledOrder,
)
from make2manage.models.settings import GameSettings

logger = logging.getLogger(__name__)

# Leave the tail of the session free of new releases
CLOSING_WINDOW_FRACTION = 0.2
CLOSING_WINDOW_MAX_MINUTES = 5.0


@dataclass
class GenerationResult:
    """Order book produced at session start."""

    seed: int
    mode: str
    scheduled: list[ScheduledOrder] = field(default_factory=list)

    @property
    def order_count(self) -> int:
        return len(self.scheduled)


class OrderGenerator:
    """Builds a session's order book.

    Usage:
        generator = OrderGenerator()
        result = generator.generate(settings, customers)
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or get_default_config()

    def resolve_seed(self, settings: GameSettings) -> int:
        """Resolve the session seed.

        Raises:
            InvalidSeed: If the seed is malformed and procedural mode is used
        """
        try:
            return seeds.resolve_seed(settings.random_seed)
        except InvalidSeed:
            if not settings.use_predetermined_orders:
                raise
            logger.warning(
                "Ignoring malformed seed %r for a predetermined schedule",
                settings.random_seed,
            )
            return seeds.hash_seed(str(settings.random_seed))

    def generate(
        self,
        settings: GameSettings,
        customers: list[Customer],
        seed: Optional[int] = None,
    ) -> GenerationResult:
        """Produce the order book for a session.

        Args:
            settings: Session settings
            customers: Customer registry used for weighting
            seed: Already resolved seed (resolved from settings if None)

        Returns:
            GenerationResult with orders in release order

        Raises:
            InvalidSeed: Malformed seed in procedural mode
            EmptySchedule: Predetermined mode without scheduled orders
        """
        if seed is None:
            seed = self.resolve_seed(settings)

        if settings.use_predetermined_orders:
            scheduled = self.load_predetermined(settings)
            mode = "predetermined"
        else:
            scheduled = self.generate_procedural(settings, customers, seed)
            mode = "procedural"

        logger.info("Generated %d %s orders (seed %d)", len(scheduled), mode, seed)
        return GenerationResult(seed=seed, mode=mode, scheduled=scheduled)

    # -------------------------------------------------------------------------
    # Predetermined mode
    # -------------------------------------------------------------------------

    def load_predetermined(self, settings: GameSettings) -> list[ScheduledOrder]:
        """Copy the authored schedule into fresh, unreleased orders.

        Raises:
            EmptySchedule: If the schedule has no entries
        """
        if not settings.predetermined_schedule:
            raise EmptySchedule("Predetermined orders were requested but the schedule is empty")

        scheduled = []
        for item in settings.predetermined_schedule:
            order = item.order.model_copy(
                deep=True,
                update={
                    "created_at_ms": item.release_time_ms,
                    "current_step_index": 0,
                    "timestamps": [],
                    "completed_at_ms": None,
                    "remaining_ms": None,
                    "step_duration_ms": None,
                    "enqueue_seq": 0,
                    "held_from": None,
                    "blocked": False,
                },
            )
            scheduled.append(ScheduledOrder(order=order, release_time_ms=item.release_time_ms))
        return Scheduler.order_schedule(scheduled)

    # -------------------------------------------------------------------------
    # Procedural mode
    # -------------------------------------------------------------------------

    def order_count(self, settings: GameSettings) -> int:
        gen = self.config.generation
        per_half_hour = gen.orders_per_half_hour[settings.complexity_level.value]
        factor = gen.rate_factor[settings.order_generation_rate.value]
        return max(1, round(per_half_hour * factor * settings.session_duration / 30))

    def release_minutes(self, rng: random.Random, settings: GameSettings, count: int) -> list[float]:
        """Release times: a few orders early, the rest spread over the session."""
        gen = self.config.generation
        duration = float(settings.session_duration)
        early = min(gen.early_release_count, count)
        window = min(gen.early_release_window_minutes, duration)

        times = [rng.uniform(0, window) for _ in range(early)]

        rest = count - early
        if rest > 0:
            closing = min(CLOSING_WINDOW_MAX_MINUTES, duration * CLOSING_WINDOW_FRACTION)
            span = max(0.0, duration - closing - window)
            interval = span / rest
            for i in range(rest):
                times.append(window + i * interval + rng.uniform(0, interval * 0.8))
        return sorted(times)

    def generate_route(self, rng: random.Random, settings: GameSettings) -> list[int]:
        """Draw a route over the production stations.

        Engineering, when included, is always the first step.
        """
        gen = self.config.generation
        production = [
            d.id for d in self.config.departments if d.id != defaults.ENGINEERING_DEPARTMENT_ID
        ]
        low, high = gen.route_length[settings.complexity_level.value]
        length = min(rng.randint(low, high), len(production))
        route = rng.sample(production, length)

        has_engineering = self.config.department_config(defaults.ENGINEERING_DEPARTMENT_ID) is not None
        if has_engineering and rng.random() < gen.engineering_route_chance:
            route = [defaults.ENGINEERING_DEPARTMENT_ID] + route
        return route

    def choose_customer(self, rng: random.Random, customers: list[Customer]) -> Customer:
        """Weighted draw: tier weight scaled up by order history."""
        weights = self.config.generation.tier_selection_weight
        scores = [weights.get(c.tier.value, 1.0) * (1 + c.total_orders / 50) for c in customers]
        return rng.choices(customers, weights=scores, k=1)[0]

    def priority_for_tier(self, rng: random.Random, tier: CustomerTier) -> OrderPriority:
        roll = rng.random()
        if tier == CustomerTier.VIP:
            return OrderPriority.URGENT if roll < 0.4 else OrderPriority.HIGH
        if tier == CustomerTier.PREMIUM:
            return OrderPriority.HIGH if roll < 0.3 else OrderPriority.NORMAL
        if roll < 0.1:
            return OrderPriority.HIGH
        if roll < 0.25:
            return OrderPriority.LOW
        return OrderPriority.NORMAL

    def generate_procedural(
        self,
        settings: GameSettings,
        customers: list[Customer],
        seed: int,
    ) -> list[ScheduledOrder]:
        """Draw the full order book from the seed."""
        if not customers:
            customers = [Customer(id="CUST-LEVEL", name="Walk-in Customer")]

        rng = seeds.stream(seed, "orders")
        gen = self.config.generation
        count = self.order_count(settings)
        scheduled = []

        for index, release_minute in enumerate(self.release_minutes(rng, settings, count), start=1):
            customer = self.choose_customer(rng, customers)
            tier = customer.tier.value
            route = self.generate_route(rng, settings)

            priority = self.priority_for_tier(rng, customer.tier)
            rush = rng.random() < gen.rush_chance.get(tier, 0.0)
            if rush and priority.rank < OrderPriority.HIGH.rank:
                priority = OrderPriority.HIGH

            half_reason = None
            multiplier = 1.0
            if rng.random() < gen.half_order_chance:
                half_reason = rng.choice(list(HalfOrderReason))
                multiplier = HALF_ORDER_MULTIPLIER

            value = (
                len(route)
                * gen.base_value_per_step
                * gen.tier_value_multiplier.get(tier, 1.0)
                * rng.uniform(*gen.value_jitter)
            )
            if half_reason is not None:
                value *= gen.half_order_value_factor

            window = gen.priority_due_minutes[priority.value] * max(1.0, len(route) / 2)
            due_minutes = min(float(settings.session_duration), release_minute + window)
            release_ms = round(release_minute * MS_PER_MINUTE)

            order = Order(
                id=f"ORD-{index:03d}",
                customer_id=customer.id,
                customer_name=customer.name,
                priority=priority,
                value=round(value, 2),
                due_minutes=round(due_minutes, 3),
                route=route,
                created_at_ms=release_ms,
                processing_time_multiplier=multiplier,
                half_order_reason=half_reason,
                rush_order=rush,
            )
            scheduled.append(ScheduledOrder(order=order, release_time_ms=release_ms))

        return scheduled

    # -------------------------------------------------------------------------
    # Shop floor
    # -------------------------------------------------------------------------

    def randomize_departments(self, departments: list[Department], seed: int) -> None:
        """Draw station characteristics from the seed (in place)."""
        rng = seeds.stream(seed, "departments")
        for department in departments:
            department.efficiency = round(rng.uniform(*defaults.EFFICIENCY_RANGE), 3)
            department.equipment_condition = round(
                rng.uniform(*defaults.EQUIPMENT_CONDITION_RANGE), 3
            )
            department.max_queue_size = rng.randint(*defaults.MAX_QUEUE_SIZE_RANGE)

"""
Customer registry models.

Customers weight procedural order generation by tier and accumulate a
delivery history as their orders complete.
"""

from enum import Enum

from pydantic import BaseModel, Field


class CustomerTier(str, Enum):
    """Commercial tier of a customer."""

    VIP = "vip"
    PREMIUM = "premium"
    STANDARD = "standard"


class Customer(BaseModel):
    """A customer and its delivery history."""

    id: str = Field(description="Customer identifier")
    name: str = Field(description="Customer display name")
    tier: CustomerTier = Field(default=CustomerTier.STANDARD)
    total_orders: int = Field(default=0, ge=0, description="Orders completed for this customer")
    on_time_orders: int = Field(default=0, ge=0)
    late_orders: int = Field(default=0, ge=0)

    @property
    def on_time_rate(self) -> float:
        """Share of completed orders delivered on time, as a percentage."""
        if self.total_orders == 0:
            return 100.0
        return self.on_time_orders / self.total_orders * 100

    def record_delivery(self, on_time: bool) -> "Customer":
        """Return a copy with one more completed order recorded."""
        return self.model_copy(
            update={
                "total_orders": self.total_orders + 1,
                "on_time_orders": self.on_time_orders + (1 if on_time else 0),
                "late_orders": self.late_orders + (0 if on_time else 1),
            }
        )

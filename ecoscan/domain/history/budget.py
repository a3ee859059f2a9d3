"""
Carbon budget tracking.

A budget caps the footprint of products scanned within a period.
"""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Sequence

from pydantic import BaseModel, Field

from ecoscan.domain.history.statistics import parse_co2_value
from ecoscan.domain.product.models import ProductRecord


class BudgetPeriod(str, Enum):
    """Budget window length."""

    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"

    @property
    def default_budget(self) -> float:
        """Default target in kg CO2 (12 kg/day global average)."""
        return {"Daily": 12.0, "Weekly": 84.0, "Monthly": 360.0}[self.value]

    def end_date(self, start: datetime) -> datetime:
        """Exclusive end of the window starting at start."""
        if self is BudgetPeriod.DAILY:
            return start + timedelta(days=1)
        if self is BudgetPeriod.WEEKLY:
            return start + timedelta(weeks=1)

        year = start.year + (start.month // 12)
        month = start.month % 12 + 1
        day = min(start.day, calendar.monthrange(year, month)[1])
        return start.replace(year=year, month=month, day=day)

    def contains(self, moment: datetime, start: datetime) -> bool:
        return start <= moment < self.end_date(start)


class CarbonBudget(BaseModel):
    """Carbon budget for one period.

    Example:
        >>> budget = CarbonBudget(period=BudgetPeriod.DAILY, target_amount=12.0)
        >>> budget = budget.add(10.0)
        >>> assert budget.status_message == "Approaching budget limit"
    """

    period: BudgetPeriod
    target_amount: float = Field(..., ge=0, description="Target in kg CO2")
    start_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    current_amount: float = Field(0.0, ge=0)
    is_active: bool = True

    @classmethod
    def for_period(cls, period: BudgetPeriod, start: Optional[datetime] = None) -> CarbonBudget:
        """Budget with the period's default target."""
        return cls(
            period=period,
            target_amount=period.default_budget,
            start_date=start or datetime.now(timezone.utc),
        )

    @property
    def end_date(self) -> datetime:
        return self.period.end_date(self.start_date)

    @property
    def progress(self) -> float:
        if self.target_amount <= 0:
            return 0.0
        return min(self.current_amount / self.target_amount, 1.0)

    @property
    def remaining_amount(self) -> float:
        return max(0.0, self.target_amount - self.current_amount)

    @property
    def is_over_budget(self) -> bool:
        return self.current_amount > self.target_amount

    @property
    def status_message(self) -> str:
        if self.is_over_budget:
            over = self.current_amount - self.target_amount
            return f"Over budget by {over:.1f} kg CO2"
        if self.progress >= 0.8:
            return "Approaching budget limit"
        return "On track"

    def add(self, amount_kg: float) -> CarbonBudget:
        return self.model_copy(update={"current_amount": self.current_amount + amount_kg})

    def record_from_history(self, records: Sequence[ProductRecord]) -> CarbonBudget:
        """Budget whose current amount sums records scanned in the window.

        Records without a parsable footprint are skipped.
        """
        total = 0.0
        for record in records:
            if not self.period.contains(record.scanned_at, self.start_date):
                continue
            value = parse_co2_value(record.carbon_footprint)
            if value is not None:
                total += value
        return self.model_copy(update={"current_amount": total})

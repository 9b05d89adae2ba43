from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Iterable, List, Optional

ZERO = Decimal("0")
SAVINGS_WINDOW_MONTHS = 3


class RiskTolerance(str, Enum):
    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["RiskTolerance"]:
        """Exact match against a stored tolerance; see ``validate`` for user input."""
        for member in cls:
            if member.value == value:
                return member
        return None

    @classmethod
    def resolve(cls, value: Optional[str]) -> "RiskTolerance":
        """Map a stored tolerance string onto a tier, defaulting to moderate."""
        return cls.parse(value) or cls.MODERATE

    @classmethod
    def validate(cls, value: str) -> str:
        parsed = cls.parse(value.strip().lower())
        if parsed is None:
            raise ValueError("Risk tolerance must be conservative, moderate, or aggressive.")
        return parsed.value


# Percent of monthly savings per asset, keyed by tier.
ALLOCATION_SPLITS: dict[RiskTolerance, tuple[tuple[str, Decimal], ...]] = {
    RiskTolerance.CONSERVATIVE: (("SPY", Decimal("70")), ("BTC", Decimal("30"))),
    RiskTolerance.MODERATE: (("SPY", Decimal("50")), ("BTC", Decimal("50"))),
    RiskTolerance.AGGRESSIVE: (("SPY", Decimal("30")), ("BTC", Decimal("70"))),
}


@dataclass(frozen=True)
class Transaction:
    amount: Decimal
    type: str
    date: date


@dataclass(frozen=True)
class Allocation:
    asset: str
    amount: Decimal
    percent: Decimal


@dataclass(frozen=True)
class InvestmentAdvice:
    monthly_savings: Decimal
    risk: str
    recommendations: List[Allocation]


def savings_window_start(today: date) -> date:
    """Three calendar months before ``today``.

    A day missing from the target month rolls over into the next one, so
    May 31 starts the window on March 2 (or March 3 outside leap years).
    """
    month_index = (today.year * 12 + today.month - 1) - SAVINGS_WINDOW_MONTHS
    first_of_month = date(month_index // 12, month_index % 12 + 1, 1)
    return first_of_month + timedelta(days=today.day - 1)


def calculate_monthly_savings(
    transactions: Iterable[Transaction],
    today: date,
) -> Decimal:
    """Average monthly (income - expense) over the trailing three months.

    Only transactions dated strictly after the window start are counted.
    """
    window_start = savings_window_start(today)
    income = ZERO
    expense = ZERO
    for txn in transactions:
        if txn.date <= window_start:
            continue
        txn_type = txn.type.strip().lower()
        if txn_type == "income":
            income += _coerce_amount(txn.amount)
        elif txn_type == "expense":
            expense += _coerce_amount(txn.amount)
    return (income - expense) / Decimal(SAVINGS_WINDOW_MONTHS)


def generate_advice(risk_tolerance: Optional[str], monthly_savings: Decimal) -> InvestmentAdvice:
    tier = RiskTolerance.resolve(risk_tolerance)
    savings = _coerce_amount(monthly_savings)
    recommendations = [
        Allocation(asset=asset, amount=savings * percent / Decimal("100"), percent=percent)
        for asset, percent in ALLOCATION_SPLITS[tier]
    ]
    return InvestmentAdvice(
        monthly_savings=savings,
        risk=risk_tolerance if risk_tolerance is not None else tier.value,
        recommendations=recommendations,
    )


def _coerce_amount(amount: Decimal | int | float | str) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))

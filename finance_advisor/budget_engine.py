from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

ZERO = Decimal("0")
HUNDRED = Decimal("100")
WARNING_PERCENT = Decimal("80")
SUPPORTED_PERIODS = {"weekly", "monthly", "yearly"}


@dataclass(frozen=True)
class Transaction:
    amount: Decimal
    type: str
    date: date
    category_id: Optional[int] = None


@dataclass(frozen=True)
class BudgetRule:
    category_id: int
    amount: Decimal
    start_date: date
    end_date: date


@dataclass(frozen=True)
class BudgetEvaluation:
    spent: Decimal
    remaining: Decimal
    percentage_used: Decimal
    status: str


@dataclass(frozen=True)
class BudgetSummary:
    total_budget: Decimal
    total_spent: Decimal
    total_remaining: Decimal
    percentage_used: Decimal
    budget_status: str


def normalize_period(value: Optional[str]) -> str:
    normalized = (value or "monthly").strip().lower()
    if normalized not in SUPPORTED_PERIODS:
        raise ValueError("Period must be weekly, monthly, or yearly.")
    return normalized


def default_end_date(start_date: date, period: str) -> date:
    normalized = normalize_period(period)
    if normalized == "weekly":
        return start_date + timedelta(days=7)
    if normalized == "yearly":
        return _shift_months(start_date, 12)
    return _shift_months(start_date, 1)


def budget_status(amount: Decimal, spent: Decimal) -> str:
    if amount == ZERO:
        return "no_budget"
    percentage = spent / amount * HUNDRED
    if percentage >= HUNDRED:
        return "over_budget"
    if percentage >= WARNING_PERCENT:
        return "warning"
    return "on_track"


def evaluate_budget(transactions: Iterable[Transaction], rule: BudgetRule) -> BudgetEvaluation:
    if rule.start_date > rule.end_date:
        raise ValueError("start_date must be on or before end_date.")
    if rule.amount < ZERO:
        raise ValueError("rule.amount must not be negative.")

    spent = _sum_expenses(
        (
            txn
            for txn in transactions
            if rule.start_date <= txn.date <= rule.end_date
        ),
        category_id=rule.category_id,
    )
    return BudgetEvaluation(
        spent=spent,
        remaining=rule.amount - spent,
        percentage_used=_percentage(spent, rule.amount),
        status=budget_status(rule.amount, spent),
    )


def summarize_budgets(rules: Iterable[BudgetRule], evaluations: Iterable[BudgetEvaluation]) -> BudgetSummary:
    total_budget = sum((rule.amount for rule in rules), ZERO)
    total_spent = sum((evaluation.spent for evaluation in evaluations), ZERO)
    percentage_used = _percentage(total_spent, total_budget)
    if percentage_used >= HUNDRED:
        status = "over_budget"
    elif percentage_used >= WARNING_PERCENT:
        status = "warning"
    else:
        status = "on_track"
    return BudgetSummary(
        total_budget=total_budget,
        total_spent=total_spent,
        total_remaining=total_budget - total_spent,
        percentage_used=percentage_used,
        budget_status=status,
    )


def _sum_expenses(
    transactions: Iterable[Transaction],
    *,
    category_id: Optional[int] = None,
) -> Decimal:
    total = ZERO
    for txn in transactions:
        txn_type = txn.type.strip().lower()
        if txn_type != "expense":
            continue
        if category_id is not None and txn.category_id != category_id:
            continue
        total += _coerce_amount(txn.amount)
    return total


def _percentage(part: Decimal, whole: Decimal) -> Decimal:
    if whole <= ZERO:
        return ZERO
    return part / whole * HUNDRED


def _shift_months(value: date, months: int) -> date:
    month_index = (value.year * 12 + value.month - 1) + months
    year = month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(value.day, last_day))


def _coerce_amount(amount: Decimal) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))

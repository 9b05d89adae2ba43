from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from finance_advisor.advisor_engine import RiskTolerance
from finance_advisor.market_analysis import MarketAnalysis

FACTORS_ANALYZED = ("age", "income", "risk_tolerance", "investment_goals", "market_conditions")
DEFAULT_GOALS = ("retirement", "wealth_building")

HIGH_RISK = "high_risk_high_reward"
MODERATE_RISK = "moderate_risk"
LOW_RISK = "low_risk_stable"

TOLERANCE_WEIGHTS: dict[RiskTolerance, float] = {
    RiskTolerance.AGGRESSIVE: 0.4,
    RiskTolerance.MODERATE: 0.25,
    RiskTolerance.CONSERVATIVE: 0.1,
}


@dataclass(frozen=True)
class RiskAssessment:
    user_id: int
    risk_score: float
    risk_category: str
    recommended_allocation: dict[str, float]
    confidence_score: float
    factors_analyzed: list[str]
    investment_goals: list[str]
    created_at: datetime


@dataclass(frozen=True)
class PortfolioOptimization:
    user_id: int
    current_portfolio_value: Decimal
    risk_assessment: RiskAssessment
    optimized_allocation: dict[str, float]
    rebalancing_needed: bool
    expected_return: float
    optimization_score: float
    suggestions: dict[str, bool]
    next_review_date: datetime
    generated_at: datetime
    degraded_sources: list[str] = field(default_factory=list)


def calculate_user_risk_score(
    age: Optional[int],
    monthly_income: Decimal | float | int,
    risk_tolerance: Optional[str],
) -> float:
    score = 0.0

    age_value = age or 0
    if age_value < 30:
        score += 0.3
    elif age_value < 50:
        score += 0.2
    else:
        score += 0.1

    income = float(monthly_income or 0)
    if income > 10000:
        score += 0.3
    elif income > 5000:
        score += 0.2
    else:
        score += 0.1

    tier = RiskTolerance.parse(risk_tolerance)
    if tier is not None:
        score += TOLERANCE_WEIGHTS[tier]

    return min(score, 1.0)


def determine_risk_category(score: float) -> str:
    if score >= 0.7:
        return HIGH_RISK
    if score >= 0.4:
        return MODERATE_RISK
    return LOW_RISK


def recommended_allocation(score: float) -> dict[str, float]:
    if score >= 0.7:
        return {"stocks": 0.4, "crypto": 0.4, "bonds": 0.1, "cash": 0.1}
    if score >= 0.4:
        return {"stocks": 0.5, "crypto": 0.2, "bonds": 0.2, "cash": 0.1}
    return {"stocks": 0.3, "crypto": 0.1, "bonds": 0.4, "cash": 0.2}


def assessment_confidence(
    age: Optional[int],
    monthly_income: Decimal | float | int,
    risk_tolerance: Optional[str],
) -> float:
    confidence = 0.5
    if age and age > 0:
        confidence += 0.1
    if monthly_income and monthly_income > 0:
        confidence += 0.1
    if risk_tolerance:
        confidence += 0.2
    return min(confidence, 1.0)


def assess_user_risk(
    user_id: int,
    age: Optional[int],
    monthly_income: Decimal | float | int,
    risk_tolerance: Optional[str],
    now: datetime,
    goals: Optional[Sequence[str]] = None,
) -> RiskAssessment:
    score = calculate_user_risk_score(age, monthly_income, risk_tolerance)
    return RiskAssessment(
        user_id=user_id,
        risk_score=score,
        risk_category=determine_risk_category(score),
        recommended_allocation=recommended_allocation(score),
        confidence_score=assessment_confidence(age, monthly_income, risk_tolerance),
        factors_analyzed=list(FACTORS_ANALYZED),
        investment_goals=list(goals) if goals else list(DEFAULT_GOALS),
        created_at=now,
    )


def optimize_portfolio(
    assessment: RiskAssessment,
    analysis: MarketAnalysis,
    current_value: Decimal,
) -> PortfolioOptimization:
    if current_value < 0:
        raise ValueError("current_value must not be negative.")
    return PortfolioOptimization(
        user_id=assessment.user_id,
        current_portfolio_value=current_value,
        risk_assessment=assessment,
        optimized_allocation=assessment.recommended_allocation,
        rebalancing_needed=current_value > 0,
        expected_return=analysis.predicted_return,
        optimization_score=assessment.confidence_score,
        suggestions={
            "increase_stocks": assessment.risk_score > 0.5 and analysis.sentiment_score > 0.6,
            "reduce_crypto": analysis.volatility == "high",
            "add_bonds": assessment.risk_score < 0.3,
            "hold_cash": analysis.sentiment_score < 0.4,
        },
        next_review_date=_add_one_month(assessment.created_at),
        generated_at=assessment.created_at,
        degraded_sources=list(analysis.degraded_sources),
    )


def _add_one_month(value: datetime) -> datetime:
    month_index = value.year * 12 + value.month
    year = month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return value.replace(year=year, month=month, day=min(value.day, last_day))

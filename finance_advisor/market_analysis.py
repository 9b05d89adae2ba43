"""
Market scoring and portfolio recommendations.

Every scoring function is a pure function of the fetched crypto and stock
quotes. Scores live on a 0-1 scale except the predicted return, which is a
percentage.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Sequence

from finance_advisor.advisor_engine import RiskTolerance
from finance_advisor.market_data import CompositeQuoteProvider, CryptoQuote, StockQuote

INVESTABLE_SHARE = Decimal("0.2")

TREND_THRESHOLD = 2.0
HIGH_VOLATILITY = 5.0
MEDIUM_VOLATILITY = 2.0

STOCK_VOLUME_SCALE = 1_000_000.0
CRYPTO_VOLUME_SCALE = 1_000_000_000.0
LARGE_CAP = 100_000_000_000.0
ASSUMED_STOCK_MARKET_CAP = 50_000_000_000.0


@dataclass(frozen=True)
class MarketAnalysis:
    cryptos: list[CryptoQuote]
    stocks: list[StockQuote]
    market_trend: str
    volatility: str
    recommendation: str
    sentiment_score: float
    confidence_level: float
    risk_score: float
    predicted_return: float
    last_updated: datetime
    degraded_sources: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Recommendation:
    type: str
    symbol: str
    action: str
    reason: str
    confidence: float
    amount: Decimal
    allocation_percent: Decimal
    risk_level: str
    timeframe: str


@dataclass(frozen=True)
class _Template:
    type: str
    symbol: str
    reason: str
    confidence: float
    percent: Decimal
    risk_level: str
    timeframe: str


RECOMMENDATION_TABLE: dict[RiskTolerance, tuple[_Template, ...]] = {
    RiskTolerance.CONSERVATIVE: (
        _Template("bond", "GOVT", "Low-risk government bonds for stable returns", 85.0, Decimal("60"), "low", "long"),
        _Template("stock", "SPY", "Blue chip stocks for steady growth", 80.0, Decimal("30"), "low", "medium"),
        _Template("crypto", "BTC", "Small allocation to Bitcoin for diversification", 70.0, Decimal("10"), "medium", "long"),
    ),
    RiskTolerance.MODERATE: (
        _Template("stock", "SPY", "S&P 500 index funds for balanced growth", 85.0, Decimal("40"), "medium", "medium"),
        _Template("stock", "QQQ", "Growth stocks for higher potential returns", 75.0, Decimal("30"), "medium", "medium"),
        _Template("crypto", "BTC", "Bitcoin allocation for portfolio diversification", 70.0, Decimal("20"), "high", "long"),
        _Template("crypto", "ETH", "Ethereum for smart contract exposure", 65.0, Decimal("10"), "high", "medium"),
    ),
    RiskTolerance.AGGRESSIVE: (
        _Template("stock", "QQQ", "High-growth technology stocks for maximum returns", 70.0, Decimal("30"), "high", "short"),
        _Template("crypto", "BTC", "Major Bitcoin allocation for high growth potential", 65.0, Decimal("30"), "high", "medium"),
        _Template("crypto", "ETH", "Ethereum for DeFi and smart contract exposure", 60.0, Decimal("20"), "high", "medium"),
        _Template("crypto", "ALT", "Diversified altcoin portfolio for explosive growth", 50.0, Decimal("20"), "high", "short"),
    ),
}

TOLERANCE_ADVICE: dict[RiskTolerance, str] = {
    RiskTolerance.CONSERVATIVE: (
        "As a conservative investor, focus on stable assets with guaranteed returns. "
        "Consider government bonds and established blue-chip stocks. "
        "Limit cryptocurrency exposure to 10% maximum."
    ),
    RiskTolerance.MODERATE: (
        "With moderate risk tolerance, diversify across index funds and growth stocks. "
        "Cryptocurrency allocation of 20-30% can provide growth potential while maintaining stability."
    ),
    RiskTolerance.AGGRESSIVE: (
        "As an aggressive investor, you can take advantage of high-growth opportunities. "
        "Consider higher cryptocurrency allocation and growth stocks, but monitor market conditions closely."
    ),
}


def _changes(cryptos: Sequence[CryptoQuote], stocks: Sequence[StockQuote]) -> list[float]:
    return [crypto.change_24h for crypto in cryptos] + [stock.change_percent for stock in stocks]


def calculate_market_trend(cryptos: Sequence[CryptoQuote], stocks: Sequence[StockQuote]) -> str:
    changes = _changes(cryptos, stocks)
    if not changes:
        return "neutral"
    average = sum(changes) / len(changes)
    if average > TREND_THRESHOLD:
        return "bullish"
    if average < -TREND_THRESHOLD:
        return "bearish"
    return "neutral"


def calculate_volatility(cryptos: Sequence[CryptoQuote], stocks: Sequence[StockQuote]) -> str:
    changes = _changes(cryptos, stocks)
    if not changes:
        return "low"
    average = sum(abs(change) for change in changes) / len(changes)
    if average > HIGH_VOLATILITY:
        return "high"
    if average > MEDIUM_VOLATILITY:
        return "medium"
    return "low"


def market_recommendation(trend: str, volatility: str) -> str:
    if trend == "bullish" and volatility == "low":
        return "Strong buy signal - favorable market conditions"
    if trend == "bullish" and volatility == "medium":
        return "Buy signal with caution - monitor volatility"
    if trend == "bullish" and volatility == "high":
        return "Cautious buy - high volatility present"
    if trend == "bearish" and volatility == "low":
        return "Hold or sell - stable downtrend"
    if trend == "bearish" and volatility == "high":
        return "Strong sell signal - high risk environment"
    return "Neutral - wait for clearer signals"


def calculate_sentiment_score(cryptos: Sequence[CryptoQuote], stocks: Sequence[StockQuote]) -> float:
    scores: list[float] = []
    for crypto in cryptos:
        volume_weight = 0.0
        if crypto.market_cap > 0:
            volume_weight = min(crypto.volume_24h / crypto.market_cap, 1.0)
        scores.append(crypto.change_24h / 100.0 * (1.0 + volume_weight))
    for stock in stocks:
        volume_weight = min(stock.volume / STOCK_VOLUME_SCALE, 1.0)
        scores.append(stock.change_percent / 100.0 * (1.0 + volume_weight * 0.1))
    if not scores:
        return 0.5
    return _clamp(0.5 + sum(scores) / len(scores))


def calculate_confidence_level(cryptos: Sequence[CryptoQuote], stocks: Sequence[StockQuote]) -> float:
    total_volume = 0.0
    consistency = 0.0
    for crypto in cryptos:
        total_volume += crypto.volume_24h
        magnitude = abs(crypto.change_24h)
        if magnitude < 5:
            consistency += 1.0
        elif magnitude < 10:
            consistency += 0.7
        else:
            consistency += 0.3
    for stock in stocks:
        magnitude = abs(stock.change_percent)
        if magnitude < 3:
            consistency += 1.0
        elif magnitude < 7:
            consistency += 0.8
        else:
            consistency += 0.4

    count = len(cryptos) + len(stocks)
    if count == 0:
        return 0.5
    volume_confidence = min(total_volume / CRYPTO_VOLUME_SCALE, 1.0)
    return volume_confidence * 0.3 + (consistency / count) * 0.7


def calculate_risk_score(cryptos: Sequence[CryptoQuote], stocks: Sequence[StockQuote]) -> float:
    risks: list[float] = []
    for crypto in cryptos:
        volatility_risk = abs(crypto.change_24h) / 100.0
        market_cap_risk = 1.0 - min(crypto.market_cap / LARGE_CAP, 1.0)
        risks.append(min(volatility_risk * 0.7 + market_cap_risk * 0.3, 1.0))
    for stock in stocks:
        risks.append(min(abs(stock.change_percent) / 100.0 * 0.5, 1.0))
    if not risks:
        return 0.5
    return sum(risks) / len(risks)


def predict_market_return(
    cryptos: Sequence[CryptoQuote],
    stocks: Sequence[StockQuote],
    sentiment_score: float,
) -> float:
    weighted_return = 0.0
    total_weight = 0.0
    for crypto in cryptos:
        predicted = crypto.change_24h * 0.1 + (sentiment_score - 0.5) * 20
        weighted_return += predicted * crypto.market_cap
        total_weight += crypto.market_cap
    for stock in stocks:
        predicted = stock.change_percent * 0.05 + (sentiment_score - 0.5) * 10
        weighted_return += predicted * ASSUMED_STOCK_MARKET_CAP
        total_weight += ASSUMED_STOCK_MARKET_CAP
    if total_weight == 0:
        return 0.0
    return weighted_return / total_weight


def analyze_market(
    cryptos: Sequence[CryptoQuote],
    stocks: Sequence[StockQuote],
    now: datetime,
    degraded_sources: Optional[Sequence[str]] = None,
) -> MarketAnalysis:
    trend = calculate_market_trend(cryptos, stocks)
    volatility = calculate_volatility(cryptos, stocks)
    sentiment = calculate_sentiment_score(cryptos, stocks)
    return MarketAnalysis(
        cryptos=list(cryptos),
        stocks=list(stocks),
        market_trend=trend,
        volatility=volatility,
        recommendation=market_recommendation(trend, volatility),
        sentiment_score=sentiment,
        confidence_level=calculate_confidence_level(cryptos, stocks),
        risk_score=calculate_risk_score(cryptos, stocks),
        predicted_return=predict_market_return(cryptos, stocks, sentiment),
        last_updated=now,
        degraded_sources=list(degraded_sources or []),
    )


def generate_recommendations(
    risk_tolerance: Optional[str],
    monthly_income: Decimal | int | float | str,
) -> list[Recommendation]:
    """Split 20% of monthly income across the fixed picks for the tier.

    An unrecognised tolerance yields no recommendations.
    """
    tier = RiskTolerance.parse(risk_tolerance)
    if tier is None:
        return []
    investable = _coerce_decimal(monthly_income) * INVESTABLE_SHARE
    return [
        Recommendation(
            type=template.type,
            symbol=template.symbol,
            action="buy",
            reason=template.reason,
            confidence=template.confidence,
            amount=investable * template.percent / Decimal("100"),
            allocation_percent=template.percent,
            risk_level=template.risk_level,
            timeframe=template.timeframe,
        )
        for template in RECOMMENDATION_TABLE[tier]
    ]


def generate_advice_text(risk_tolerance: Optional[str], analysis: MarketAnalysis) -> str:
    base = (
        f"Market Analysis: {analysis.market_trend} trend with {analysis.volatility} volatility. "
        f"{analysis.recommendation}\n\n"
    )
    tier = RiskTolerance.parse(risk_tolerance)
    if tier is None:
        return base + "Please complete risk assessment to receive personalized investment advice."
    return base + TOLERANCE_ADVICE[tier]


def market_summary(analysis: MarketAnalysis) -> dict:
    return {
        "market_trend": analysis.market_trend,
        "volatility": analysis.volatility,
        "recommendation": analysis.recommendation,
        "sentiment_score": analysis.sentiment_score,
        "confidence_level": analysis.confidence_level,
        "risk_score": analysis.risk_score,
        "predicted_return": analysis.predicted_return,
        "top_cryptos": [asdict(crypto) for crypto in analysis.cryptos[:3]],
        "top_stocks": [asdict(stock) for stock in analysis.stocks[:3]],
        "last_updated": analysis.last_updated,
        "degraded_sources": analysis.degraded_sources,
    }


def market_prediction(analysis: MarketAnalysis, timeframe_days: int) -> dict:
    if timeframe_days <= 0:
        raise ValueError("timeframe must be greater than zero.")
    return {
        "timeframe_days": timeframe_days,
        "predicted_return": analysis.predicted_return,
        "confidence_level": analysis.confidence_level,
        "risk_score": analysis.risk_score,
        "sentiment_score": analysis.sentiment_score,
        "market_trend": analysis.market_trend,
        "volatility": analysis.volatility,
        "recommendation": analysis.recommendation,
        "insights": {
            "bullish_signals": analysis.sentiment_score > 0.6,
            "bearish_signals": analysis.sentiment_score < 0.4,
            "high_confidence": analysis.confidence_level > 0.7,
            "low_risk": analysis.risk_score < 0.3,
            "high_volatility": analysis.volatility == "high",
        },
        "generated_at": analysis.last_updated,
        "degraded_sources": analysis.degraded_sources,
    }


@dataclass
class MarketService:
    provider: CompositeQuoteProvider

    def analyze(self, now: Optional[datetime] = None, symbols: Optional[Sequence[str]] = None) -> MarketAnalysis:
        bundle = self.provider.fetch_quotes(symbols)
        return analyze_market(
            bundle.cryptos,
            bundle.stocks,
            now or datetime.now(timezone.utc),
            degraded_sources=bundle.degraded_sources,
        )


def _clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    return max(lower, min(upper, value))


def _coerce_decimal(value: Decimal | int | float | str) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))

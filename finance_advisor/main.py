import logging
import os
from dataclasses import asdict
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

import bcrypt
import uvicorn
from fastapi import FastAPI, HTTPException, Header, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    UniqueConstraint,
    create_engine,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError

from finance_advisor.advisor_engine import (
    RiskTolerance,
    Transaction as SavingsTransaction,
    calculate_monthly_savings,
    generate_advice,
    savings_window_start,
)
from finance_advisor.budget_engine import (
    BudgetRule,
    Transaction as BudgetTransaction,
    default_end_date,
    evaluate_budget,
    normalize_period,
    summarize_budgets,
)
from finance_advisor.market_analysis import (
    MarketAnalysis,
    MarketService,
    generate_advice_text,
    generate_recommendations,
    market_prediction,
    market_summary,
)
from finance_advisor.market_data import build_default_provider
from finance_advisor.risk_profile import assess_user_risk, optimize_portfolio

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

app = FastAPI()

frontend_origin = os.getenv("FRONTEND_ORIGIN", "http://localhost:3000")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[frontend_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

database_url = os.getenv("DATABASE_URL", "sqlite:///./finance_advisor.db")
connect_args = {}
if database_url.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(database_url, connect_args=connect_args)
metadata = MetaData()

CENTS = Decimal("0.01")


def get_env_decimal(name: str, default: str, allow_zero: bool = True) -> Decimal:
    raw = os.getenv(name, default)
    try:
        value = Decimal(raw)
    except ArithmeticError:
        return Decimal(default)
    if not value.is_finite() or value < 0 or (value == 0 and not allow_zero):
        return Decimal(default)
    return value


DEFAULT_MONTHLY_INCOME = get_env_decimal("DEFAULT_MONTHLY_INCOME", "5000")
# urlopen treats a zero timeout as a non-blocking socket.
MARKET_REQUEST_TIMEOUT = float(get_env_decimal("MARKET_REQUEST_TIMEOUT", "15", allow_zero=False))
MARKET_SERVICE = MarketService(
    provider=build_default_provider(
        alpha_vantage_api_key=os.getenv("ALPHA_VANTAGE_API_KEY", "demo"),
        timeout=MARKET_REQUEST_TIMEOUT,
    )
)

DEFAULT_CATEGORIES = [
    ("Salary", "income", "Regular salary income", "💼", "#4CAF50"),
    ("Freelance", "income", "Freelance work income", "💻", "#2196F3"),
    ("Investment", "income", "Investment returns", "📈", "#FF9800"),
    ("Business", "income", "Business income", "🏢", "#9C27B0"),
    ("Other Income", "income", "Other sources of income", "💰", "#607D8B"),
    ("Food & Dining", "expense", "Restaurants, groceries, food delivery", "🍽️", "#F44336"),
    ("Transportation", "expense", "Gas, public transport, car maintenance", "🚗", "#FF5722"),
    ("Shopping", "expense", "Clothing, electronics, general shopping", "🛍️", "#E91E63"),
    ("Entertainment", "expense", "Movies, games, hobbies", "🎬", "#9C27B0"),
    ("Bills & Utilities", "expense", "Electricity, water, internet, phone", "📄", "#FF9800"),
    ("Healthcare", "expense", "Medical expenses, insurance", "🏥", "#4CAF50"),
    ("Education", "expense", "Courses, books, training", "📚", "#2196F3"),
    ("Travel", "expense", "Vacation, business trips", "✈️", "#00BCD4"),
    ("Housing", "expense", "Rent, mortgage, home maintenance", "🏠", "#795548"),
    ("Other Expenses", "expense", "Miscellaneous expenses", "💸", "#607D8B"),
]

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(100), unique=True, nullable=False),
    Column("hashed_password", String(255), nullable=False),
    Column("first_name", String(50)),
    Column("last_name", String(50)),
    Column("age", Integer, nullable=False, server_default="30"),
    Column("risk_tolerance", String(20), nullable=False, server_default="moderate"),
    Column("monthly_income", Numeric(12, 2)),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
    Column("updated_at", DateTime, nullable=False, server_default=func.now(), onupdate=func.now()),
)

categories = Table(
    "categories",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("name", String(50), nullable=False),
    Column("type", String(10), nullable=False),
    Column("description", String(255)),
    Column("icon", String(16)),
    Column("color", String(16)),
    Column("is_default", Boolean, nullable=False, server_default="0"),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
    UniqueConstraint("user_id", "name", "type", name="uq_categories_user_name_type"),
)

transactions = Table(
    "transactions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("category_id", Integer, ForeignKey("categories.id")),
    Column("type", String(10), nullable=False, server_default="expense"),
    Column("description", String(500)),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("date", Date, nullable=False),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
    Column("updated_at", DateTime, nullable=False, server_default=func.now(), onupdate=func.now()),
)

budgets = Table(
    "budgets",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("category_id", Integer, ForeignKey("categories.id"), nullable=False),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("period", String(20), nullable=False, server_default="monthly"),
    Column("start_date", Date, nullable=False),
    Column("end_date", Date, nullable=False),
    Column("is_active", Boolean, nullable=False, server_default="1"),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)


@app.on_event("startup")
def init_db() -> None:
    metadata.create_all(engine)


class TransactionType:
    values = {"income", "expense"}

    @classmethod
    def validate(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in cls.values:
            raise ValueError("Invalid transaction type.")
        return normalized


class CategoryType:
    values = {"income", "expense"}

    @classmethod
    def validate(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in cls.values:
            raise ValueError("Invalid category type.")
        return normalized


def _strip_or_none(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


class RegisterPayload(BaseModel):
    email: str
    password: str
    first_name: str | None = None
    last_name: str | None = None
    age: int | None = None
    risk_tolerance: str | None = None
    monthly_income: Decimal | None = None

    @classmethod
    def validate_payload(cls, payload: "RegisterPayload") -> "RegisterPayload":
        payload.email = payload.email.strip().lower()
        if not payload.email or not payload.password:
            raise ValueError("Email and password required.")
        payload.first_name = _strip_or_none(payload.first_name)
        payload.last_name = _strip_or_none(payload.last_name)
        if payload.risk_tolerance is not None:
            payload.risk_tolerance = RiskTolerance.validate(payload.risk_tolerance)
        if payload.age is not None and payload.age <= 0:
            raise ValueError("Age must be greater than zero.")
        if payload.monthly_income is not None and payload.monthly_income < 0:
            raise ValueError("Monthly income must not be negative.")
        return payload


class CredentialsPayload(BaseModel):
    email: str
    password: str


class UserProfilePayload(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    age: int | None = None
    risk_tolerance: str | None = None
    monthly_income: Decimal | None = None

    @classmethod
    def validate_payload(cls, payload: "UserProfilePayload") -> "UserProfilePayload":
        payload.first_name = _strip_or_none(payload.first_name)
        payload.last_name = _strip_or_none(payload.last_name)
        if payload.risk_tolerance is not None:
            payload.risk_tolerance = RiskTolerance.validate(payload.risk_tolerance)
        if payload.age is not None and payload.age <= 0:
            raise ValueError("Age must be greater than zero.")
        if payload.monthly_income is not None and payload.monthly_income < 0:
            raise ValueError("Monthly income must not be negative.")
        return payload


class RiskTolerancePayload(BaseModel):
    risk_tolerance: str


class UserResponse(BaseModel):
    id: int
    email: str
    first_name: str | None = None
    last_name: str | None = None
    age: int | None = None
    risk_tolerance: str
    monthly_income: Decimal | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CategoryPayload(BaseModel):
    name: str
    type: str
    description: str | None = None
    icon: str | None = None
    color: str | None = None

    @classmethod
    def validate_payload(cls, payload: "CategoryPayload") -> "CategoryPayload":
        payload.name = payload.name.strip()
        if not payload.name:
            raise ValueError("Category name required.")
        payload.type = CategoryType.validate(payload.type)
        payload.description = _strip_or_none(payload.description)
        payload.icon = _strip_or_none(payload.icon)
        payload.color = _strip_or_none(payload.color)
        return payload


class CategoryResponse(BaseModel):
    id: int
    user_id: int
    name: str
    type: str
    description: str | None = None
    icon: str | None = None
    color: str | None = None
    is_default: bool
    created_at: datetime | None = None


class CategoryUsageResponse(BaseModel):
    category_id: int
    category_name: str
    category_type: str
    transaction_count: int
    total_amount: Decimal
    average_amount: Decimal
    last_used: date | None = None


class TransactionPayload(BaseModel):
    category_id: int | None = None
    type: str
    description: str | None = None
    amount: Decimal
    date: date

    @classmethod
    def validate_payload(cls, payload: "TransactionPayload") -> "TransactionPayload":
        payload.type = TransactionType.validate(payload.type)
        payload.description = _strip_or_none(payload.description)
        if payload.amount <= 0:
            raise ValueError("Amount must be greater than zero.")
        return payload


class TransactionResponse(BaseModel):
    id: int
    user_id: int
    category_id: int | None = None
    type: str
    description: str | None = None
    amount: Decimal
    date: date
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CategoryTotalResponse(BaseModel):
    category_id: int | None = None
    total: Decimal


class TransactionSummaryResponse(BaseModel):
    start_date: date
    end_date: date
    total_income: Decimal
    total_expense: Decimal
    net: Decimal
    daily_income: Decimal
    daily_expense: Decimal
    daily_net: Decimal
    expense_by_category: list[CategoryTotalResponse]


class BudgetPayload(BaseModel):
    category_id: int
    amount: Decimal
    period: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    is_active: bool = True

    @classmethod
    def validate_payload(cls, payload: "BudgetPayload") -> "BudgetPayload":
        if payload.amount < 0:
            raise ValueError("Budget amount must not be negative.")
        payload.period = normalize_period(payload.period)
        if payload.start_date is None:
            payload.start_date = date.today()
        if payload.end_date is None:
            payload.end_date = default_end_date(payload.start_date, payload.period)
        if payload.start_date > payload.end_date:
            raise ValueError("start_date must be on or before end_date.")
        return payload


class BudgetResponse(BaseModel):
    id: int
    user_id: int
    category_id: int
    amount: Decimal
    period: str
    start_date: date
    end_date: date
    is_active: bool
    spent: Decimal
    remaining: Decimal
    percentage_used: Decimal
    status: str
    created_at: datetime | None = None


class BudgetSummaryResponse(BaseModel):
    total_budget: Decimal
    total_spent: Decimal
    total_remaining: Decimal
    percentage_used: Decimal
    budget_status: str


class AllocationResponse(BaseModel):
    asset: str
    amount: Decimal
    percent: Decimal


class AdviceResponse(BaseModel):
    monthly_savings: Decimal
    risk: str
    recommendations: list[AllocationResponse]


class CryptoQuoteResponse(BaseModel):
    symbol: str
    name: str
    price: float
    change_24h: float
    market_cap: float
    volume_24h: float


class StockQuoteResponse(BaseModel):
    symbol: str
    price: float
    change: float
    change_percent: float
    volume: int


class MarketPricesResponse(BaseModel):
    bitcoin: float
    sp500: float
    degraded_sources: list[str]


class CryptoQuotesResponse(BaseModel):
    cryptos: list[CryptoQuoteResponse]
    count: int
    degraded_sources: list[str]


class StockQuotesResponse(BaseModel):
    stocks: list[StockQuoteResponse]
    count: int
    degraded_sources: list[str]


class MarketAnalysisResponse(BaseModel):
    cryptos: list[CryptoQuoteResponse]
    stocks: list[StockQuoteResponse]
    market_trend: str
    volatility: str
    recommendation: str
    sentiment_score: float
    confidence_level: float
    risk_score: float
    predicted_return: float
    last_updated: datetime
    degraded_sources: list[str]


class MarketSummaryResponse(BaseModel):
    market_trend: str
    volatility: str
    recommendation: str
    sentiment_score: float
    confidence_level: float
    risk_score: float
    predicted_return: float
    top_cryptos: list[CryptoQuoteResponse]
    top_stocks: list[StockQuoteResponse]
    last_updated: datetime
    degraded_sources: list[str]


class MarketInsightsResponse(BaseModel):
    bullish_signals: bool
    bearish_signals: bool
    high_confidence: bool
    low_risk: bool
    high_volatility: bool


class MarketPredictionResponse(BaseModel):
    timeframe_days: int
    predicted_return: float
    confidence_level: float
    risk_score: float
    sentiment_score: float
    market_trend: str
    volatility: str
    recommendation: str
    insights: MarketInsightsResponse
    generated_at: datetime
    degraded_sources: list[str]


class RecommendationResponse(BaseModel):
    type: str
    symbol: str
    action: str
    reason: str
    confidence: float
    amount: Decimal
    allocation_percent: Decimal
    risk_level: str
    timeframe: str


class RealTimeAdviceResponse(BaseModel):
    user_id: int
    risk_profile: str
    monthly_income: Decimal
    recommendations: list[RecommendationResponse]
    market_analysis: MarketAnalysisResponse
    advice: str
    created_at: datetime


class MarketScoresResponse(BaseModel):
    sentiment_score: float
    confidence_level: float
    risk_score: float
    predicted_return: float


class PortfolioRecommendationsResponse(BaseModel):
    user_id: int
    risk_profile: str
    recommendations: list[RecommendationResponse]
    advice: str
    market_analysis: MarketAnalysisResponse
    scores: MarketScoresResponse


class RiskAssessmentResponse(BaseModel):
    user_id: int
    risk_score: float
    risk_category: str
    recommended_allocation: dict[str, float]
    confidence_score: float
    factors_analyzed: list[str]
    investment_goals: list[str]
    created_at: datetime


class PortfolioOptimizationResponse(BaseModel):
    user_id: int
    current_portfolio_value: Decimal
    risk_assessment: RiskAssessmentResponse
    optimized_allocation: dict[str, float]
    rebalancing_needed: bool
    expected_return: float
    optimization_score: float
    suggestions: dict[str, bool]
    next_review_date: datetime
    generated_at: datetime
    degraded_sources: list[str]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))


def get_user_id(x_user_id: str | None = Header(None)) -> int:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing user identity.")
    try:
        user_id = int(x_user_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid user identity.") from exc
    with engine.begin() as conn:
        result = conn.execute(select(users.c.id).where(users.c.id == user_id))
        if not result.first():
            raise HTTPException(status_code=404, detail="User not found.")
    return user_id


def fetch_user(conn, user_id: int):
    row = conn.execute(select(users).where(users.c.id == user_id)).mappings().first()
    if not row:
        raise HTTPException(status_code=404, detail="User not found.")
    return row


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def user_response(row) -> UserResponse:
    return UserResponse(
        id=row["id"],
        email=row["email"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        age=row["age"],
        risk_tolerance=row["risk_tolerance"],
        monthly_income=row["monthly_income"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def category_response(row) -> CategoryResponse:
    return CategoryResponse(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        type=row["type"],
        description=row["description"],
        icon=row["icon"],
        color=row["color"],
        is_default=row["is_default"],
        created_at=row["created_at"],
    )


def transaction_response(row) -> TransactionResponse:
    return TransactionResponse(
        id=row["id"],
        user_id=row["user_id"],
        category_id=row["category_id"],
        type=row["type"],
        description=row["description"],
        amount=row["amount"],
        date=row["date"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def ensure_default_categories(conn, user_id: int) -> None:
    existing = conn.execute(
        select(categories.c.id)
        .where(categories.c.user_id == user_id, categories.c.is_default.is_(True))
        .limit(1)
    ).first()
    if existing:
        return
    conn.execute(
        insert(categories),
        [
            {
                "user_id": user_id,
                "name": name,
                "type": category_type,
                "description": description,
                "icon": icon,
                "color": color,
                "is_default": True,
            }
            for name, category_type, description, icon, color in DEFAULT_CATEGORIES
        ],
    )


def ensure_category_owned(conn, user_id: int, category_id: int | None) -> None:
    if category_id is None:
        return
    owned = conn.execute(
        select(categories.c.id).where(
            categories.c.id == category_id, categories.c.user_id == user_id
        )
    ).first()
    if not owned:
        raise HTTPException(status_code=404, detail="Category not found.")


def category_in_use(conn, user_id: int, category_id: int) -> bool:
    txn_match = conn.execute(
        select(transactions.c.id)
        .where(transactions.c.user_id == user_id, transactions.c.category_id == category_id)
        .limit(1)
    ).first()
    if txn_match:
        return True
    budget_match = conn.execute(
        select(budgets.c.id)
        .where(budgets.c.user_id == user_id, budgets.c.category_id == category_id)
        .limit(1)
    ).first()
    return bool(budget_match)


def fetch_monthly_savings(conn, user_id: int, today: date) -> Decimal:
    rows = conn.execute(
        select(transactions.c.amount, transactions.c.type, transactions.c.date).where(
            transactions.c.user_id == user_id,
            transactions.c.date > savings_window_start(today),
        )
    ).mappings().all()
    return calculate_monthly_savings(
        [
            SavingsTransaction(amount=row["amount"], type=row["type"], date=row["date"])
            for row in rows
        ],
        today,
    )


def budget_overlap_exists(
    conn,
    user_id: int,
    category_id: int,
    start_date: date,
    end_date: date,
    exclude_id: int | None = None,
) -> bool:
    conditions = [
        budgets.c.user_id == user_id,
        budgets.c.category_id == category_id,
        budgets.c.is_active.is_(True),
        budgets.c.start_date <= end_date,
        budgets.c.end_date >= start_date,
    ]
    if exclude_id is not None:
        conditions.append(budgets.c.id != exclude_id)
    return bool(conn.execute(select(budgets.c.id).where(*conditions).limit(1)).first())


def evaluate_budget_row(conn, row):
    txn_rows = conn.execute(
        select(transactions.c.amount, transactions.c.type, transactions.c.date, transactions.c.category_id).where(
            transactions.c.user_id == row["user_id"],
            transactions.c.category_id == row["category_id"],
            transactions.c.date >= row["start_date"],
            transactions.c.date <= row["end_date"],
        )
    ).mappings().all()
    rule = BudgetRule(
        category_id=row["category_id"],
        amount=row["amount"],
        start_date=row["start_date"],
        end_date=row["end_date"],
    )
    evaluation = evaluate_budget(
        [
            BudgetTransaction(
                amount=txn["amount"],
                type=txn["type"],
                date=txn["date"],
                category_id=txn["category_id"],
            )
            for txn in txn_rows
        ],
        rule,
    )
    return rule, evaluation


def budget_response(conn, row) -> BudgetResponse:
    _, evaluation = evaluate_budget_row(conn, row)
    return BudgetResponse(
        id=row["id"],
        user_id=row["user_id"],
        category_id=row["category_id"],
        amount=row["amount"],
        period=row["period"],
        start_date=row["start_date"],
        end_date=row["end_date"],
        is_active=row["is_active"],
        spent=evaluation.spent,
        remaining=evaluation.remaining,
        percentage_used=to_cents(evaluation.percentage_used),
        status=evaluation.status,
        created_at=row["created_at"],
    )


def resolve_monthly_income(requested: Decimal | None, user_row) -> Decimal:
    if requested is not None:
        if requested < 0:
            raise HTTPException(status_code=400, detail="Monthly income must not be negative.")
        return requested
    if user_row["monthly_income"] is not None:
        return user_row["monthly_income"]
    return DEFAULT_MONTHLY_INCOME


def parse_symbols(value: str | None) -> list[str] | None:
    if not value:
        return None
    symbols = [symbol.strip().upper() for symbol in value.split(",") if symbol.strip()]
    return symbols or None


def analysis_response(analysis: MarketAnalysis) -> MarketAnalysisResponse:
    return MarketAnalysisResponse.model_validate(asdict(analysis))


def recommendation_responses(risk_tolerance: str, monthly_income: Decimal) -> list[RecommendationResponse]:
    return [
        RecommendationResponse(
            type=item.type,
            symbol=item.symbol,
            action=item.action,
            reason=item.reason,
            confidence=item.confidence,
            amount=to_cents(item.amount),
            allocation_percent=item.allocation_percent,
            risk_level=item.risk_level,
            timeframe=item.timeframe,
        )
        for item in generate_recommendations(risk_tolerance, monthly_income)
    ]


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/auth/register", response_model=UserResponse)
def register(payload: RegisterPayload) -> UserResponse:
    try:
        payload = RegisterPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    values = {
        "email": payload.email,
        "hashed_password": hash_password(payload.password),
        "first_name": payload.first_name,
        "last_name": payload.last_name,
        "monthly_income": payload.monthly_income,
    }
    if payload.age is not None:
        values["age"] = payload.age
    if payload.risk_tolerance is not None:
        values["risk_tolerance"] = payload.risk_tolerance

    try:
        with engine.begin() as conn:
            result = conn.execute(insert(users).values(**values).returning(*users.c))
            row = result.mappings().first()
            if row:
                ensure_default_categories(conn, row["id"])
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail="User already exists.") from exc

    if not row:
        raise HTTPException(status_code=500, detail="Failed to create user.")
    logger.info("Registered user %s", row["id"])
    return user_response(row)


@app.post("/auth/login", response_model=UserResponse)
def login(payload: CredentialsPayload) -> UserResponse:
    email = payload.email.strip().lower()
    with engine.begin() as conn:
        result = conn.execute(select(users).where(users.c.email == email))
        row = result.mappings().first()

    if not row or not verify_password(payload.password, row["hashed_password"]):
        raise HTTPException(status_code=401, detail="Invalid credentials.")

    return user_response(row)


@app.get("/users/me", response_model=UserResponse)
def get_profile(
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> UserResponse:
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        row = fetch_user(conn, user_id)
    return user_response(row)


@app.put("/users/me", response_model=UserResponse)
def update_profile(
    payload: UserProfilePayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> UserResponse:
    user_id = get_user_id(x_user_id)
    provided = set(payload.model_fields_set)
    try:
        payload = UserProfilePayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    values = {
        key: value
        for key, value in payload.model_dump().items()
        if key in provided and (value is not None or key not in {"age", "risk_tolerance"})
    }
    with engine.begin() as conn:
        if values:
            conn.execute(update(users).where(users.c.id == user_id).values(**values))
        row = fetch_user(conn, user_id)
    return user_response(row)


@app.put("/users/me/risk", response_model=UserResponse)
def update_risk_tolerance(
    payload: RiskTolerancePayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> UserResponse:
    user_id = get_user_id(x_user_id)
    try:
        risk_tolerance = RiskTolerance.validate(payload.risk_tolerance)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    with engine.begin() as conn:
        conn.execute(
            update(users).where(users.c.id == user_id).values(risk_tolerance=risk_tolerance)
        )
        row = fetch_user(conn, user_id)
    return user_response(row)


@app.get("/categories", response_model=list[CategoryResponse])
def list_categories(
    type: str | None = None,
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> list[CategoryResponse]:
    user_id = get_user_id(x_user_id)
    conditions = [categories.c.user_id == user_id]
    if type is not None:
        try:
            conditions.append(categories.c.type == CategoryType.validate(type))
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
    with engine.begin() as conn:
        ensure_default_categories(conn, user_id)
        result = conn.execute(
            select(categories)
            .where(*conditions)
            .order_by(categories.c.type.asc(), categories.c.name.asc(), categories.c.id.asc())
        )
        rows = result.mappings().all()
    return [category_response(row) for row in rows]


@app.get("/categories/usage", response_model=list[CategoryUsageResponse])
def category_usage(
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> list[CategoryUsageResponse]:
    user_id = get_user_id(x_user_id)
    transaction_count = func.count(transactions.c.id)
    total_amount = func.coalesce(func.sum(transactions.c.amount), 0)
    join_stmt = categories.outerjoin(
        transactions,
        (transactions.c.category_id == categories.c.id) & (transactions.c.user_id == user_id),
    )
    with engine.begin() as conn:
        rows = conn.execute(
            select(
                categories.c.id,
                categories.c.name,
                categories.c.type,
                transaction_count.label("transaction_count"),
                total_amount.label("total_amount"),
                func.coalesce(func.avg(transactions.c.amount), 0).label("average_amount"),
                func.max(transactions.c.date).label("last_used"),
            )
            .select_from(join_stmt)
            .where(categories.c.user_id == user_id)
            .group_by(categories.c.id, categories.c.name, categories.c.type)
            .order_by(transaction_count.desc(), total_amount.desc(), categories.c.id.asc())
        ).mappings().all()
    return [
        CategoryUsageResponse(
            category_id=row["id"],
            category_name=row["name"],
            category_type=row["type"],
            transaction_count=row["transaction_count"],
            total_amount=to_cents(Decimal(str(row["total_amount"]))),
            average_amount=to_cents(Decimal(str(row["average_amount"]))),
            last_used=row["last_used"],
        )
        for row in rows
    ]


@app.get("/categories/{category_id}", response_model=CategoryResponse)
def get_category(
    category_id: int, x_user_id: str | None = Header(None, alias="x-user-id")
) -> CategoryResponse:
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        row = conn.execute(
            select(categories).where(
                categories.c.id == category_id, categories.c.user_id == user_id
            )
        ).mappings().first()
    if not row:
        raise HTTPException(status_code=404, detail="Category not found.")
    return category_response(row)


@app.post("/categories", response_model=CategoryResponse)
def create_category(
    payload: CategoryPayload, x_user_id: str | None = Header(None, alias="x-user-id")
) -> CategoryResponse:
    user_id = get_user_id(x_user_id)
    try:
        payload = CategoryPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    stmt = (
        insert(categories)
        .values(
            user_id=user_id,
            name=payload.name,
            type=payload.type,
            description=payload.description,
            icon=payload.icon,
            color=payload.color,
            is_default=False,
        )
        .returning(*categories.c)
    )
    try:
        with engine.begin() as conn:
            result = conn.execute(stmt)
            row = result.mappings().first()
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail="Category already exists.") from exc

    if not row:
        raise HTTPException(status_code=500, detail="Failed to create category.")
    return category_response(row)


@app.put("/categories/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: int,
    payload: CategoryPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> CategoryResponse:
    user_id = get_user_id(x_user_id)
    try:
        payload = CategoryPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    try:
        with engine.begin() as conn:
            existing = conn.execute(
                select(categories.c.is_default).where(
                    categories.c.id == category_id, categories.c.user_id == user_id
                )
            ).first()
            if not existing:
                raise HTTPException(status_code=404, detail="Category not found.")
            # Default categories only accept cosmetic edits.
            if existing[0]:
                values = {"description": payload.description, "color": payload.color}
            else:
                values = {
                    "name": payload.name,
                    "type": payload.type,
                    "description": payload.description,
                    "icon": payload.icon,
                    "color": payload.color,
                }
            result = conn.execute(
                update(categories)
                .where(categories.c.id == category_id, categories.c.user_id == user_id)
                .values(**values)
                .returning(*categories.c)
            )
            row = result.mappings().first()
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail="Category already exists.") from exc

    if not row:
        raise HTTPException(status_code=404, detail="Category not found.")
    return category_response(row)


@app.delete("/categories/{category_id}")
def delete_category(
    category_id: int, x_user_id: str | None = Header(None, alias="x-user-id")
) -> dict:
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        row = conn.execute(
            select(categories.c.id, categories.c.is_default).where(
                categories.c.id == category_id, categories.c.user_id == user_id
            )
        ).mappings().first()
        if not row:
            raise HTTPException(status_code=404, detail="Category not found.")
        if row["is_default"]:
            raise HTTPException(status_code=400, detail="Default categories cannot be deleted.")
        if category_in_use(conn, user_id, category_id):
            raise HTTPException(status_code=409, detail="Category is in use.")
        conn.execute(
            categories.delete().where(
                categories.c.id == category_id, categories.c.user_id == user_id
            )
        )
    return {"status": "deleted"}


@app.get("/transactions", response_model=list[TransactionResponse])
def list_transactions(
    type: str | None = None,
    category_id: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> list[TransactionResponse]:
    user_id = get_user_id(x_user_id)
    conditions = [transactions.c.user_id == user_id]
    if type:
        try:
            conditions.append(transactions.c.type == TransactionType.validate(type))
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
    if category_id is not None:
        conditions.append(transactions.c.category_id == category_id)
    if start_date is not None:
        conditions.append(transactions.c.date >= start_date)
    if end_date is not None:
        conditions.append(transactions.c.date <= end_date)
    with engine.begin() as conn:
        rows = conn.execute(
            select(transactions)
            .where(*conditions)
            .order_by(transactions.c.date.desc(), transactions.c.id.desc())
            .limit(limit)
            .offset(offset)
        ).mappings().all()
    return [transaction_response(row) for row in rows]


@app.get("/transactions/summary", response_model=TransactionSummaryResponse)
def transaction_summary(
    start_date: date | None = None,
    end_date: date | None = None,
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> TransactionSummaryResponse:
    user_id = get_user_id(x_user_id)
    end_value = end_date or date.today()
    start_value = start_date or end_value.replace(day=1)
    if start_value > end_value:
        raise HTTPException(status_code=400, detail="start_date must be on or before end_date.")

    in_range = [
        transactions.c.user_id == user_id,
        transactions.c.date >= start_value,
        transactions.c.date <= end_value,
    ]
    with engine.begin() as conn:
        type_rows = conn.execute(
            select(transactions.c.type, func.coalesce(func.sum(transactions.c.amount), 0).label("total"))
            .where(*in_range)
            .group_by(transactions.c.type)
        ).mappings().all()
        category_rows = conn.execute(
            select(
                transactions.c.category_id,
                func.coalesce(func.sum(transactions.c.amount), 0).label("total"),
            )
            .where(*in_range, transactions.c.type == "expense")
            .group_by(transactions.c.category_id)
            .order_by(func.sum(transactions.c.amount).desc())
        ).mappings().all()

    totals = {row["type"]: Decimal(str(row["total"])) for row in type_rows}
    income = totals.get("income", Decimal("0"))
    expense = totals.get("expense", Decimal("0"))
    days = Decimal(max((end_value - start_value).days + 1, 1))
    return TransactionSummaryResponse(
        start_date=start_value,
        end_date=end_value,
        total_income=to_cents(income),
        total_expense=to_cents(expense),
        net=to_cents(income - expense),
        daily_income=to_cents(income / days),
        daily_expense=to_cents(expense / days),
        daily_net=to_cents((income - expense) / days),
        expense_by_category=[
            CategoryTotalResponse(
                category_id=row["category_id"],
                total=to_cents(Decimal(str(row["total"]))),
            )
            for row in category_rows
        ],
    )


@app.get("/transactions/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: int, x_user_id: str | None = Header(None, alias="x-user-id")
) -> TransactionResponse:
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        row = conn.execute(
            select(transactions).where(
                transactions.c.id == transaction_id, transactions.c.user_id == user_id
            )
        ).mappings().first()
    if not row:
        raise HTTPException(status_code=404, detail="Transaction not found.")
    return transaction_response(row)


@app.post("/transactions", response_model=TransactionResponse)
def create_transaction(
    payload: TransactionPayload, x_user_id: str | None = Header(None, alias="x-user-id")
) -> TransactionResponse:
    user_id = get_user_id(x_user_id)
    try:
        payload = TransactionPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    with engine.begin() as conn:
        ensure_category_owned(conn, user_id, payload.category_id)
        result = conn.execute(
            insert(transactions)
            .values(
                user_id=user_id,
                category_id=payload.category_id,
                type=payload.type,
                description=payload.description,
                amount=payload.amount,
                date=payload.date,
            )
            .returning(*transactions.c)
        )
        row = result.mappings().first()

    if not row:
        raise HTTPException(status_code=500, detail="Failed to create transaction.")
    return transaction_response(row)


@app.put("/transactions/{transaction_id}", response_model=TransactionResponse)
def update_transaction(
    transaction_id: int,
    payload: TransactionPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> TransactionResponse:
    user_id = get_user_id(x_user_id)
    try:
        payload = TransactionPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    with engine.begin() as conn:
        ensure_category_owned(conn, user_id, payload.category_id)
        result = conn.execute(
            update(transactions)
            .where(transactions.c.id == transaction_id, transactions.c.user_id == user_id)
            .values(
                category_id=payload.category_id,
                type=payload.type,
                description=payload.description,
                amount=payload.amount,
                date=payload.date,
            )
            .returning(*transactions.c)
        )
        row = result.mappings().first()

    if not row:
        raise HTTPException(status_code=404, detail="Transaction not found.")
    return transaction_response(row)


@app.delete("/transactions/{transaction_id}")
def delete_transaction(
    transaction_id: int, x_user_id: str | None = Header(None, alias="x-user-id")
) -> dict:
    user_id = get_user_id(x_user_id)
    stmt = transactions.delete().where(transactions.c.id == transaction_id, transactions.c.user_id == user_id)
    with engine.begin() as conn:
        result = conn.execute(stmt)
        if result.rowcount == 0:
            raise HTTPException(status_code=404, detail="Transaction not found.")
    return {"status": "deleted"}


@app.get("/budgets", response_model=list[BudgetResponse])
def list_budgets(
    active: bool | None = None,
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> list[BudgetResponse]:
    user_id = get_user_id(x_user_id)
    conditions = [budgets.c.user_id == user_id]
    if active:
        conditions.extend([budgets.c.is_active.is_(True), budgets.c.end_date >= date.today()])
    with engine.begin() as conn:
        rows = conn.execute(
            select(budgets)
            .where(*conditions)
            .order_by(budgets.c.created_at.desc(), budgets.c.id.desc())
        ).mappings().all()
        return [budget_response(conn, row) for row in rows]


@app.get("/budgets/summary", response_model=BudgetSummaryResponse)
def budget_summary(
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> BudgetSummaryResponse:
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        rows = conn.execute(
            select(budgets).where(
                budgets.c.user_id == user_id,
                budgets.c.is_active.is_(True),
                budgets.c.end_date >= date.today(),
            )
        ).mappings().all()
        evaluated = [evaluate_budget_row(conn, row) for row in rows]

    summary = summarize_budgets(
        [rule for rule, _ in evaluated],
        [evaluation for _, evaluation in evaluated],
    )
    return BudgetSummaryResponse(
        total_budget=summary.total_budget,
        total_spent=summary.total_spent,
        total_remaining=summary.total_remaining,
        percentage_used=to_cents(summary.percentage_used),
        budget_status=summary.budget_status,
    )


@app.get("/budgets/{budget_id}", response_model=BudgetResponse)
def get_budget(
    budget_id: int, x_user_id: str | None = Header(None, alias="x-user-id")
) -> BudgetResponse:
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        row = conn.execute(
            select(budgets).where(budgets.c.id == budget_id, budgets.c.user_id == user_id)
        ).mappings().first()
        if not row:
            raise HTTPException(status_code=404, detail="Budget not found.")
        return budget_response(conn, row)


@app.post("/budgets", response_model=BudgetResponse)
def create_budget(
    payload: BudgetPayload, x_user_id: str | None = Header(None, alias="x-user-id")
) -> BudgetResponse:
    user_id = get_user_id(x_user_id)
    try:
        payload = BudgetPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    with engine.begin() as conn:
        ensure_category_owned(conn, user_id, payload.category_id)
        if payload.is_active and budget_overlap_exists(
            conn, user_id, payload.category_id, payload.start_date, payload.end_date
        ):
            raise HTTPException(
                status_code=409,
                detail="Budget already exists for this category and period.",
            )
        result = conn.execute(
            insert(budgets)
            .values(
                user_id=user_id,
                category_id=payload.category_id,
                amount=payload.amount,
                period=payload.period,
                start_date=payload.start_date,
                end_date=payload.end_date,
                is_active=payload.is_active,
            )
            .returning(*budgets.c)
        )
        row = result.mappings().first()
        if not row:
            raise HTTPException(status_code=500, detail="Failed to create budget.")
        return budget_response(conn, row)


@app.put("/budgets/{budget_id}", response_model=BudgetResponse)
def update_budget(
    budget_id: int,
    payload: BudgetPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> BudgetResponse:
    user_id = get_user_id(x_user_id)
    try:
        payload = BudgetPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    with engine.begin() as conn:
        ensure_category_owned(conn, user_id, payload.category_id)
        if payload.is_active and budget_overlap_exists(
            conn,
            user_id,
            payload.category_id,
            payload.start_date,
            payload.end_date,
            exclude_id=budget_id,
        ):
            raise HTTPException(
                status_code=409,
                detail="Budget already exists for this category and period.",
            )
        result = conn.execute(
            update(budgets)
            .where(budgets.c.id == budget_id, budgets.c.user_id == user_id)
            .values(
                category_id=payload.category_id,
                amount=payload.amount,
                period=payload.period,
                start_date=payload.start_date,
                end_date=payload.end_date,
                is_active=payload.is_active,
            )
            .returning(*budgets.c)
        )
        row = result.mappings().first()
        if not row:
            raise HTTPException(status_code=404, detail="Budget not found.")
        return budget_response(conn, row)


@app.delete("/budgets/{budget_id}")
def delete_budget(
    budget_id: int, x_user_id: str | None = Header(None, alias="x-user-id")
) -> dict:
    user_id = get_user_id(x_user_id)
    stmt = budgets.delete().where(budgets.c.id == budget_id, budgets.c.user_id == user_id)
    with engine.begin() as conn:
        result = conn.execute(stmt)
        if result.rowcount == 0:
            raise HTTPException(status_code=404, detail="Budget not found.")
    return {"status": "deleted"}


@app.get("/advice", response_model=AdviceResponse)
def get_advice(
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> AdviceResponse:
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        user_row = fetch_user(conn, user_id)
        savings = fetch_monthly_savings(conn, user_id, date.today())

    advice = generate_advice(user_row["risk_tolerance"], savings)
    return AdviceResponse(
        monthly_savings=to_cents(advice.monthly_savings),
        risk=advice.risk,
        recommendations=[
            AllocationResponse(
                asset=item.asset,
                amount=to_cents(item.amount),
                percent=item.percent,
            )
            for item in advice.recommendations
        ],
    )


@app.get("/advice/realtime", response_model=RealTimeAdviceResponse)
def get_realtime_advice(
    monthly_income: Decimal | None = None,
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> RealTimeAdviceResponse:
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        user_row = fetch_user(conn, user_id)
    income = resolve_monthly_income(monthly_income, user_row)

    analysis = MARKET_SERVICE.analyze()
    risk_tolerance = user_row["risk_tolerance"]
    return RealTimeAdviceResponse(
        user_id=user_id,
        risk_profile=risk_tolerance,
        monthly_income=income,
        recommendations=recommendation_responses(risk_tolerance, income),
        market_analysis=analysis_response(analysis),
        advice=generate_advice_text(risk_tolerance, analysis),
        created_at=analysis.last_updated,
    )


@app.get("/portfolio/recommendations", response_model=PortfolioRecommendationsResponse)
def get_portfolio_recommendations(
    monthly_income: Decimal | None = None,
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> PortfolioRecommendationsResponse:
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        user_row = fetch_user(conn, user_id)
    income = resolve_monthly_income(monthly_income, user_row)

    analysis = MARKET_SERVICE.analyze()
    risk_tolerance = user_row["risk_tolerance"]
    return PortfolioRecommendationsResponse(
        user_id=user_id,
        risk_profile=risk_tolerance,
        recommendations=recommendation_responses(risk_tolerance, income),
        advice=generate_advice_text(risk_tolerance, analysis),
        market_analysis=analysis_response(analysis),
        scores=MarketScoresResponse(
            sentiment_score=analysis.sentiment_score,
            confidence_level=analysis.confidence_level,
            risk_score=analysis.risk_score,
            predicted_return=analysis.predicted_return,
        ),
    )


@app.get("/market/prices", response_model=MarketPricesResponse)
def get_market_prices() -> MarketPricesResponse:
    prices = MARKET_SERVICE.provider.fetch_prices()
    return MarketPricesResponse.model_validate(asdict(prices))


@app.get("/market/data", response_model=MarketAnalysisResponse)
def get_market_data() -> MarketAnalysisResponse:
    return analysis_response(MARKET_SERVICE.analyze())


@app.get("/market/crypto", response_model=CryptoQuotesResponse)
def get_crypto_quotes() -> CryptoQuotesResponse:
    bundle = MARKET_SERVICE.provider.fetch_crypto_quotes()
    return CryptoQuotesResponse(
        cryptos=[CryptoQuoteResponse.model_validate(asdict(quote)) for quote in bundle.cryptos],
        count=len(bundle.cryptos),
        degraded_sources=bundle.degraded_sources,
    )


@app.get("/market/stocks", response_model=StockQuotesResponse)
def get_stock_quotes(symbols: str | None = None) -> StockQuotesResponse:
    bundle = MARKET_SERVICE.provider.fetch_stock_quotes(parse_symbols(symbols))
    return StockQuotesResponse(
        stocks=[StockQuoteResponse.model_validate(asdict(quote)) for quote in bundle.stocks],
        count=len(bundle.stocks),
        degraded_sources=bundle.degraded_sources,
    )


@app.get("/market/summary", response_model=MarketSummaryResponse)
def get_market_summary() -> MarketSummaryResponse:
    return MarketSummaryResponse.model_validate(market_summary(MARKET_SERVICE.analyze()))


@app.get("/ai/market/prediction", response_model=MarketPredictionResponse)
def get_market_prediction(timeframe: int = 30) -> MarketPredictionResponse:
    try:
        prediction = market_prediction(MARKET_SERVICE.analyze(), timeframe)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return MarketPredictionResponse.model_validate(prediction)


@app.get("/ai/risk-assessment", response_model=RiskAssessmentResponse)
def get_risk_assessment(
    monthly_income: Decimal | None = None,
    goals: str | None = None,
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> RiskAssessmentResponse:
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        user_row = fetch_user(conn, user_id)
    income = resolve_monthly_income(monthly_income, user_row)
    goal_list = [goal.strip() for goal in goals.split(",") if goal.strip()] if goals else None

    assessment = assess_user_risk(
        user_id=user_id,
        age=user_row["age"],
        monthly_income=income,
        risk_tolerance=user_row["risk_tolerance"],
        now=datetime.now(timezone.utc),
        goals=goal_list,
    )
    return RiskAssessmentResponse.model_validate(asdict(assessment))


@app.get("/ai/portfolio/optimization", response_model=PortfolioOptimizationResponse)
def get_portfolio_optimization(
    monthly_income: Decimal | None = None,
    current_value: Decimal = Decimal("0"),
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> PortfolioOptimizationResponse:
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        user_row = fetch_user(conn, user_id)
    income = resolve_monthly_income(monthly_income, user_row)

    assessment = assess_user_risk(
        user_id=user_id,
        age=user_row["age"],
        monthly_income=income,
        risk_tolerance=user_row["risk_tolerance"],
        now=datetime.now(timezone.utc),
        goals=["optimization"],
    )
    try:
        optimization = optimize_portfolio(assessment, MARKET_SERVICE.analyze(), current_value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return PortfolioOptimizationResponse.model_validate(asdict(optimization))


def run() -> None:
    uvicorn.run("finance_advisor.main:app", host="127.0.0.1", port=8080)


if __name__ == "__main__":
    run()

import os
import tempfile
import unittest
from datetime import date, timedelta
from decimal import Decimal
from unittest import mock

_DB_DIR = tempfile.mkdtemp(prefix="finance_advisor_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'api.db')}"

from fastapi.testclient import TestClient  # noqa: E402

from finance_advisor import main  # noqa: E402
from finance_advisor.market_analysis import MarketService  # noqa: E402
from finance_advisor.market_data import (  # noqa: E402
    CompositeQuoteProvider,
    QuoteProviderUnavailable,
    StaticQuoteProvider,
)


class UnavailableProvider:
    def get_crypto_quotes(self):
        raise QuoteProviderUnavailable("Down")

    def get_bitcoin_price(self):
        raise QuoteProviderUnavailable("Down")

    def get_stock_quotes(self, symbols=None):
        raise QuoteProviderUnavailable("Down")

    def get_index_price(self):
        raise QuoteProviderUnavailable("Down")


class ApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        main.metadata.drop_all(main.engine)
        main.metadata.create_all(main.engine)
        service = MarketService(
            provider=CompositeQuoteProvider(crypto=StaticQuoteProvider(), stocks=StaticQuoteProvider())
        )
        patcher = mock.patch.object(main, "MARKET_SERVICE", service)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.client = TestClient(main.app)

    def register(self, email: str = "Ada@Example.com", **fields) -> dict:
        response = self.client.post(
            "/auth/register",
            json={"email": email, "password": "secret", **fields},
        )
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()

    def headers(self, user: dict) -> dict:
        return {"x-user-id": str(user["id"])}

    def category_id(self, user: dict, name: str) -> int:
        response = self.client.get("/categories", headers=self.headers(user))
        return next(item["id"] for item in response.json() if item["name"] == name)

    def add_transaction(self, user: dict, **fields) -> dict:
        response = self.client.post("/transactions", json=fields, headers=self.headers(user))
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()


class AuthTests(ApiTestCase):
    def test_register_applies_defaults(self) -> None:
        user = self.register()

        self.assertEqual(user["email"], "ada@example.com")
        self.assertEqual(user["age"], 30)
        self.assertEqual(user["risk_tolerance"], "moderate")
        self.assertIsNone(user["monthly_income"])

    def test_duplicate_email_conflicts(self) -> None:
        self.register()

        response = self.client.post(
            "/auth/register",
            json={"email": "ada@example.com", "password": "other"},
        )

        self.assertEqual(response.status_code, 409)

    def test_invalid_risk_tolerance_rejected(self) -> None:
        response = self.client.post(
            "/auth/register",
            json={"email": "bob@example.com", "password": "x", "risk_tolerance": "reckless"},
        )

        self.assertEqual(response.status_code, 400)

    def test_login(self) -> None:
        user = self.register()

        ok = self.client.post("/auth/login", json={"email": "ADA@example.com", "password": "secret"})
        bad = self.client.post("/auth/login", json={"email": "ada@example.com", "password": "nope"})

        self.assertEqual(ok.status_code, 200)
        self.assertEqual(ok.json()["id"], user["id"])
        self.assertEqual(bad.status_code, 401)

    def test_identity_header_errors(self) -> None:
        self.assertEqual(self.client.get("/users/me").status_code, 401)
        self.assertEqual(self.client.get("/users/me", headers={"x-user-id": "abc"}).status_code, 400)
        self.assertEqual(self.client.get("/users/me", headers={"x-user-id": "999"}).status_code, 404)

    def test_profile_update_keeps_unsent_fields(self) -> None:
        user = self.register(first_name="Ada", age=41)

        response = self.client.put(
            "/users/me",
            json={"monthly_income": "7200.50"},
            headers=self.headers(user),
        )
        body = response.json()

        self.assertEqual(response.status_code, 200)
        self.assertEqual(body["first_name"], "Ada")
        self.assertEqual(body["age"], 41)
        self.assertEqual(Decimal(str(body["monthly_income"])), Decimal("7200.50"))

    def test_update_risk_tolerance(self) -> None:
        user = self.register()

        ok = self.client.put("/users/me/risk", json={"risk_tolerance": "Aggressive"}, headers=self.headers(user))
        bad = self.client.put("/users/me/risk", json={"risk_tolerance": "wild"}, headers=self.headers(user))

        self.assertEqual(ok.json()["risk_tolerance"], "aggressive")
        self.assertEqual(bad.status_code, 400)


class CategoryTests(ApiTestCase):
    def test_defaults_seeded_on_registration(self) -> None:
        user = self.register()

        everything = self.client.get("/categories", headers=self.headers(user)).json()
        income = self.client.get("/categories", params={"type": "income"}, headers=self.headers(user)).json()

        self.assertEqual(len(everything), 15)
        self.assertEqual(len(income), 5)
        self.assertTrue(all(item["is_default"] for item in everything))

    def test_custom_category_lifecycle(self) -> None:
        user = self.register()
        headers = self.headers(user)

        created = self.client.post(
            "/categories",
            json={"name": "Pets", "type": "expense", "color": "#000000"},
            headers=headers,
        )
        duplicate = self.client.post("/categories", json={"name": "Pets", "type": "expense"}, headers=headers)
        category_id = created.json()["id"]
        renamed = self.client.put(
            f"/categories/{category_id}",
            json={"name": "Pet Care", "type": "expense"},
            headers=headers,
        )
        deleted = self.client.delete(f"/categories/{category_id}", headers=headers)

        self.assertEqual(created.status_code, 200)
        self.assertFalse(created.json()["is_default"])
        self.assertEqual(duplicate.status_code, 409)
        self.assertEqual(renamed.json()["name"], "Pet Care")
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(self.client.get(f"/categories/{category_id}", headers=headers).status_code, 404)

    def test_default_category_only_accepts_cosmetic_changes(self) -> None:
        user = self.register()
        headers = self.headers(user)
        category_id = self.category_id(user, "Travel")

        response = self.client.put(
            f"/categories/{category_id}",
            json={"name": "Trips", "type": "income", "description": "Holidays", "color": "#123456"},
            headers=headers,
        )
        body = response.json()

        self.assertEqual(body["name"], "Travel")
        self.assertEqual(body["type"], "expense")
        self.assertEqual(body["description"], "Holidays")
        self.assertEqual(body["color"], "#123456")
        self.assertEqual(self.client.delete(f"/categories/{category_id}", headers=headers).status_code, 400)

    def test_category_in_use_cannot_be_deleted(self) -> None:
        user = self.register()
        headers = self.headers(user)
        category_id = self.client.post(
            "/categories",
            json={"name": "Gym", "type": "expense"},
            headers=headers,
        ).json()["id"]
        self.add_transaction(user, category_id=category_id, type="expense", amount="30", date="2024-05-01")

        response = self.client.delete(f"/categories/{category_id}", headers=headers)

        self.assertEqual(response.status_code, 409)

    def test_usage_orders_by_transaction_count(self) -> None:
        user = self.register()
        food = self.category_id(user, "Food & Dining")
        travel = self.category_id(user, "Travel")
        self.add_transaction(user, category_id=travel, type="expense", amount="500", date="2024-05-01")
        self.add_transaction(user, category_id=food, type="expense", amount="20", date="2024-05-02")
        self.add_transaction(user, category_id=food, type="expense", amount="40", date="2024-05-09")

        usage = self.client.get("/categories/usage", headers=self.headers(user)).json()

        self.assertEqual(len(usage), 15)
        self.assertEqual([item["category_id"] for item in usage[:2]], [food, travel])
        self.assertEqual(usage[0]["transaction_count"], 2)
        self.assertEqual(Decimal(str(usage[0]["total_amount"])), Decimal("60"))
        self.assertEqual(Decimal(str(usage[0]["average_amount"])), Decimal("30"))
        self.assertEqual(usage[0]["last_used"], "2024-05-09")
        self.assertEqual(usage[2]["transaction_count"], 0)


class TransactionTests(ApiTestCase):
    def test_validation_errors(self) -> None:
        user = self.register()
        headers = self.headers(user)
        other = self.register("other@example.com")
        foreign_category = self.category_id(other, "Travel")

        zero = self.client.post(
            "/transactions",
            json={"type": "expense", "amount": "0", "date": "2024-05-01"},
            headers=headers,
        )
        bad_type = self.client.post(
            "/transactions",
            json={"type": "transfer", "amount": "5", "date": "2024-05-01"},
            headers=headers,
        )
        foreign = self.client.post(
            "/transactions",
            json={"category_id": foreign_category, "type": "expense", "amount": "5", "date": "2024-05-01"},
            headers=headers,
        )

        self.assertEqual(zero.status_code, 400)
        self.assertEqual(bad_type.status_code, 400)
        self.assertEqual(foreign.status_code, 404)

    def test_list_filters_and_ordering(self) -> None:
        user = self.register()
        headers = self.headers(user)
        self.add_transaction(user, type="income", amount="1000", date="2024-05-01")
        self.add_transaction(user, type="expense", amount="15", date="2024-05-03")
        self.add_transaction(user, type="expense", amount="25", date="2024-05-20")

        everything = self.client.get("/transactions", headers=headers).json()
        expenses = self.client.get(
            "/transactions",
            params={"type": "expense", "start_date": "2024-05-02", "end_date": "2024-05-10"},
            headers=headers,
        ).json()
        paged = self.client.get("/transactions", params={"limit": 1, "offset": 1}, headers=headers).json()

        self.assertEqual([item["date"] for item in everything], ["2024-05-20", "2024-05-03", "2024-05-01"])
        self.assertEqual([Decimal(str(item["amount"])) for item in expenses], [Decimal("15")])
        self.assertEqual([item["date"] for item in paged], ["2024-05-03"])

    def test_update_and_delete(self) -> None:
        user = self.register()
        headers = self.headers(user)
        created = self.add_transaction(user, type="expense", amount="15", date="2024-05-03")

        updated = self.client.put(
            f"/transactions/{created['id']}",
            json={"type": "expense", "amount": "17.5", "date": "2024-05-04", "description": " Lunch "},
            headers=headers,
        ).json()
        deleted = self.client.delete(f"/transactions/{created['id']}", headers=headers)
        missing = self.client.get(f"/transactions/{created['id']}", headers=headers)

        self.assertEqual(Decimal(str(updated["amount"])), Decimal("17.5"))
        self.assertEqual(updated["description"], "Lunch")
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(missing.status_code, 404)

    def test_summary(self) -> None:
        user = self.register()
        headers = self.headers(user)
        food = self.category_id(user, "Food & Dining")
        self.add_transaction(user, type="income", amount="1000", date="2024-05-01")
        self.add_transaction(user, category_id=food, type="expense", amount="150", date="2024-05-05")
        self.add_transaction(user, category_id=food, type="expense", amount="50", date="2024-05-06")
        self.add_transaction(user, type="expense", amount="999", date="2024-06-01")

        summary = self.client.get(
            "/transactions/summary",
            params={"start_date": "2024-05-01", "end_date": "2024-05-10"},
            headers=headers,
        ).json()

        self.assertEqual(Decimal(str(summary["total_income"])), Decimal("1000"))
        self.assertEqual(Decimal(str(summary["total_expense"])), Decimal("200"))
        self.assertEqual(Decimal(str(summary["net"])), Decimal("800"))
        self.assertEqual(Decimal(str(summary["daily_expense"])), Decimal("20"))
        self.assertEqual(summary["expense_by_category"][0]["category_id"], food)


class BudgetTests(ApiTestCase):
    def test_budget_tracks_spending(self) -> None:
        user = self.register()
        headers = self.headers(user)
        food = self.category_id(user, "Food & Dining")
        self.add_transaction(user, category_id=food, type="expense", amount="85", date="2024-05-10")
        self.add_transaction(user, category_id=food, type="expense", amount="40", date="2024-06-10")

        created = self.client.post(
            "/budgets",
            json={"category_id": food, "amount": "100", "start_date": "2024-05-01"},
            headers=headers,
        )
        body = created.json()

        self.assertEqual(created.status_code, 200, created.text)
        self.assertEqual(body["period"], "monthly")
        self.assertEqual(body["end_date"], "2024-06-01")
        self.assertEqual(Decimal(str(body["spent"])), Decimal("85"))
        self.assertEqual(Decimal(str(body["remaining"])), Decimal("15"))
        self.assertEqual(body["status"], "warning")

    def test_overlapping_budget_conflicts(self) -> None:
        user = self.register()
        headers = self.headers(user)
        food = self.category_id(user, "Food & Dining")
        payload = {"category_id": food, "amount": "100", "start_date": "2024-05-01", "end_date": "2024-05-31"}

        first = self.client.post("/budgets", json=payload, headers=headers)
        second = self.client.post(
            "/budgets",
            json={**payload, "start_date": "2024-05-15", "end_date": "2024-06-15"},
            headers=headers,
        )
        later = self.client.post(
            "/budgets",
            json={**payload, "start_date": "2024-06-01", "end_date": "2024-06-30"},
            headers=headers,
        )

        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 409)
        self.assertEqual(later.status_code, 200)

    def test_invalid_period_rejected(self) -> None:
        user = self.register()
        food = self.category_id(user, "Food & Dining")

        response = self.client.post(
            "/budgets",
            json={"category_id": food, "amount": "100", "period": "daily"},
            headers=self.headers(user),
        )

        self.assertEqual(response.status_code, 400)

    def test_summary_covers_current_active_budgets(self) -> None:
        user = self.register()
        headers = self.headers(user)
        today = date.today()
        food = self.category_id(user, "Food & Dining")
        travel = self.category_id(user, "Travel")
        self.add_transaction(user, category_id=food, type="expense", amount="120", date=today.isoformat())
        self.client.post(
            "/budgets",
            json={"category_id": food, "amount": "100", "start_date": today.isoformat()},
            headers=headers,
        )
        self.client.post(
            "/budgets",
            json={"category_id": travel, "amount": "100", "start_date": today.isoformat()},
            headers=headers,
        )
        self.client.post(
            "/budgets",
            json={"category_id": travel, "amount": "900", "start_date": "2020-01-01", "end_date": "2020-01-31"},
            headers=headers,
        )

        summary = self.client.get("/budgets/summary", headers=headers).json()

        self.assertEqual(Decimal(str(summary["total_budget"])), Decimal("200"))
        self.assertEqual(Decimal(str(summary["total_spent"])), Decimal("120"))
        self.assertEqual(summary["budget_status"], "on_track")

    def test_update_and_delete(self) -> None:
        user = self.register()
        headers = self.headers(user)
        food = self.category_id(user, "Food & Dining")
        budget_id = self.client.post(
            "/budgets",
            json={"category_id": food, "amount": "100", "start_date": "2024-05-01"},
            headers=headers,
        ).json()["id"]

        updated = self.client.put(
            f"/budgets/{budget_id}",
            json={"category_id": food, "amount": "0", "start_date": "2024-05-01", "period": "weekly"},
            headers=headers,
        ).json()
        deleted = self.client.delete(f"/budgets/{budget_id}", headers=headers)

        self.assertEqual(updated["end_date"], "2024-05-08")
        self.assertEqual(updated["status"], "no_budget")
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(self.client.get(f"/budgets/{budget_id}", headers=headers).status_code, 404)


class AdviceTests(ApiTestCase):
    def test_advice_uses_recent_savings(self) -> None:
        user = self.register(risk_tolerance="conservative")
        recent = (date.today() - timedelta(days=5)).isoformat()
        old = (date.today() - timedelta(days=200)).isoformat()
        self.add_transaction(user, type="income", amount="6000", date=recent)
        self.add_transaction(user, type="expense", amount="1500", date=recent)
        self.add_transaction(user, type="income", amount="9999", date=old)

        advice = self.client.get("/advice", headers=self.headers(user)).json()

        self.assertEqual(Decimal(str(advice["monthly_savings"])), Decimal("1500"))
        self.assertEqual(advice["risk"], "conservative")
        self.assertEqual(
            [(item["asset"], Decimal(str(item["amount"]))) for item in advice["recommendations"]],
            [("SPY", Decimal("1050")), ("BTC", Decimal("450"))],
        )

    def test_advice_without_transactions(self) -> None:
        user = self.register()

        advice = self.client.get("/advice", headers=self.headers(user)).json()

        self.assertEqual(Decimal(str(advice["monthly_savings"])), Decimal("0"))
        self.assertEqual(advice["risk"], "moderate")

    def test_realtime_advice(self) -> None:
        user = self.register(risk_tolerance="conservative")

        response = self.client.get(
            "/advice/realtime",
            params={"monthly_income": "5000"},
            headers=self.headers(user),
        )
        body = response.json()

        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(body["risk_profile"], "conservative")
        self.assertEqual(
            [(item["symbol"], Decimal(str(item["amount"]))) for item in body["recommendations"]],
            [("GOVT", Decimal("600")), ("SPY", Decimal("300")), ("BTC", Decimal("100"))],
        )
        self.assertIn("conservative investor", body["advice"])
        self.assertEqual(body["market_analysis"]["market_trend"], "neutral")

    def test_realtime_advice_defaults_income(self) -> None:
        user = self.register()

        body = self.client.get("/portfolio/recommendations", headers=self.headers(user)).json()

        self.assertEqual(Decimal(str(body["recommendations"][0]["amount"])), Decimal("400"))
        self.assertIn("sentiment_score", body["scores"])

    def test_negative_income_rejected(self) -> None:
        user = self.register()

        response = self.client.get(
            "/advice/realtime",
            params={"monthly_income": "-1"},
            headers=self.headers(user),
        )

        self.assertEqual(response.status_code, 400)

    def test_risk_assessment_and_optimization(self) -> None:
        user = self.register(age=25, risk_tolerance="aggressive", monthly_income="12000")
        headers = self.headers(user)

        assessment = self.client.get(
            "/ai/risk-assessment",
            params={"goals": "house, travel"},
            headers=headers,
        ).json()
        optimization = self.client.get(
            "/ai/portfolio/optimization",
            params={"current_value": "2500"},
            headers=headers,
        ).json()

        self.assertEqual(assessment["risk_category"], "high_risk_high_reward")
        self.assertEqual(assessment["investment_goals"], ["house", "travel"])
        self.assertTrue(optimization["rebalancing_needed"])
        self.assertEqual(optimization["risk_assessment"]["investment_goals"], ["optimization"])


class ConfigTests(unittest.TestCase):
    def test_timeout_must_be_positive(self) -> None:
        with mock.patch.dict(os.environ, {"MARKET_REQUEST_TIMEOUT": "0"}):
            self.assertEqual(
                main.get_env_decimal("MARKET_REQUEST_TIMEOUT", "15", allow_zero=False),
                Decimal("15"),
            )
        with mock.patch.dict(os.environ, {"MARKET_REQUEST_TIMEOUT": "2.5"}):
            self.assertEqual(
                main.get_env_decimal("MARKET_REQUEST_TIMEOUT", "15", allow_zero=False),
                Decimal("2.5"),
            )

    def test_invalid_values_use_default(self) -> None:
        for raw in ("abc", "-3", "nan", "inf"):
            with mock.patch.dict(os.environ, {"DEFAULT_MONTHLY_INCOME": raw}):
                self.assertEqual(main.get_env_decimal("DEFAULT_MONTHLY_INCOME", "5000"), Decimal("5000"))
        with mock.patch.dict(os.environ, {"DEFAULT_MONTHLY_INCOME": "0"}):
            self.assertEqual(main.get_env_decimal("DEFAULT_MONTHLY_INCOME", "5000"), Decimal("0"))


class MarketTests(ApiTestCase):
    def test_prices_from_provider(self) -> None:
        body = self.client.get("/market/prices").json()

        self.assertEqual(body, {"bitcoin": 45000.0, "sp500": 4500.0, "degraded_sources": []})

    def test_prices_fall_back_when_providers_down(self) -> None:
        service = MarketService(
            provider=CompositeQuoteProvider(crypto=UnavailableProvider(), stocks=UnavailableProvider())
        )
        with mock.patch.object(main, "MARKET_SERVICE", service):
            body = self.client.get("/market/prices").json()
            stocks = self.client.get("/market/stocks", params={"symbols": "aapl,msft"}).json()

        self.assertEqual((body["bitcoin"], body["sp500"]), (45000.0, 4500.0))
        self.assertEqual(body["degraded_sources"], ["crypto", "stocks"])
        self.assertEqual(stocks["count"], 1)
        self.assertEqual(stocks["degraded_sources"], ["stocks"])

    def test_market_views(self) -> None:
        data = self.client.get("/market/data").json()
        crypto = self.client.get("/market/crypto").json()
        summary = self.client.get("/market/summary").json()
        prediction = self.client.get("/ai/market/prediction", params={"timeframe": 14}).json()

        self.assertEqual(data["volatility"], "low")
        self.assertEqual(crypto["count"], 1)
        self.assertEqual(summary["top_cryptos"][0]["name"], "Bitcoin")
        self.assertEqual(prediction["timeframe_days"], 14)
        self.assertEqual(self.client.get("/ai/market/prediction", params={"timeframe": 0}).status_code, 400)

    def test_health(self) -> None:
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})


if __name__ == "__main__":
    unittest.main()

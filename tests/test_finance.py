from datetime import date

import pytest

from conftest import txn
from kitakita.schemas.finance import BankAccount
from kitakita.services.agents import finance

AS_OF = date(2024, 3, 15)


@pytest.fixture
def transactions():
    return [
        txn("t1", 50000, "income", "salary", on=date(2024, 3, 1)),
        txn("t2", 1200, "expense", "food", on=date(2024, 3, 5)),
        txn("t3", 800, "withdrawal", "transport", on=date(2024, 3, 10)),
        txn("t4", 5000, "expense", "food", on=date(2024, 2, 20)),
        txn("t5", 40000, "income", "salary", on=date(2024, 2, 1)),
        txn("t6", 300, "expense", None, on=date(2024, 3, 12)),
    ]


def test_monthly_flow_covers_current_month_only(transactions):
    flow = finance.calculate_monthly_flow(transactions, AS_OF)
    assert flow.inflow == 50000
    assert flow.outflow == 2300
    assert flow.net == 47700
    assert flow.transaction_count == 4


def test_category_totals_sorted_largest_first(transactions):
    totals = finance.category_totals(finance.monthly_transactions(transactions, AS_OF))
    assert list(totals.items()) == [("food", 1200), ("transport", 800), ("uncategorized", 300)]


def test_month_over_month_spending(transactions):
    monthly = finance.month_over_month_spending(transactions, AS_OF)
    assert monthly["current"]["food"] == 1200
    assert monthly["previous"] == {"food": 5000}


def test_month_over_month_wraps_year():
    monthly = finance.month_over_month_spending([txn("d", 700, on=date(2023, 12, 24))], date(2024, 1, 3))
    assert monthly["previous"] == {"uncategorized": 700}
    assert monthly["current"] == {}


def test_monthly_average(transactions):
    assert finance.monthly_average(transactions, "income") == 45000
    assert finance.monthly_average([], "income") == 0.0


def test_monthly_category_totals(transactions):
    months = finance.monthly_category_totals(transactions)
    assert list(months) == ["2024-02", "2024-03"]
    assert months["2024-02"] == {"food": 5000}


def test_financial_overview(transactions):
    accounts = [
        BankAccount(id="bpi", name="BPI", balance=10000, category="traditional-bank"),
        BankAccount(id="col", name="COL", balance=30000, category="investment"),
    ]
    overview = finance.get_financial_overview(accounts, transactions, AS_OF)

    assert overview.total_balance == 40000
    assert overview.monthly_income == 50000
    assert overview.monthly_expenses == 2300
    assert overview.savings_rate == pytest.approx(95.4)
    assert overview.liquidity_ratio == 25.0
    assert overview.accounts_by_category["investment"] == {"count": 1, "total_balance": 30000, "accounts": ["col"]}
    assert overview.total_accounts == 2


def test_overview_without_income_has_zero_savings_rate():
    overview = finance.get_financial_overview([], [txn("x", 100, on=AS_OF)], AS_OF)
    assert overview.savings_rate == 0.0
    assert overview.liquidity_ratio == 0.0


def test_usage_pattern():
    assert finance.analyze_usage_pattern([])["frequency"] == "inactive"

    busy = [txn(f"t{i}", 100, on=AS_OF) for i in range(12)]
    usage = finance.analyze_usage_pattern(busy, AS_OF)
    assert usage["frequency"] == "active"
    assert usage["primary_usage"] == "spending"
    assert usage["pattern"] == "consistent"
    assert usage["days_since_last_transaction"] == 0


def test_balance_trend_rebuilds_history():
    account = BankAccount(id="a", balance=10000)
    trend = finance.calculate_balance_trend(account, [
        txn("i", 5000, "income", on=date(2024, 3, 1)),
        txn("e", 1000, "expense", on=date(2024, 3, 2)),
    ])
    assert trend["balance_history"] == [6000, 11000, 10000]
    assert trend["trend"] == "increasing"
    assert trend["stability"] == "volatile"
    assert trend["historical_low"] == 6000


def test_low_balance_inactive_account_risk():
    risk = finance.assess_account_risk(BankAccount(id="c", balance=500, category="cash"), [], AS_OF)
    assert risk["risk_score"] == 40
    assert risk["risk_level"] == "medium"
    assert risk["risk_factors"] == ["Very low balance", "Unused funds"]
    assert risk["recommendations"][0] == "Transfer funds to maintain minimum balance"


def test_heavy_outflow_is_high_risk():
    account = BankAccount(id="b", balance=800, category="traditional-bank")
    risk = finance.assess_account_risk(account, [txn("big", 20000, on=AS_OF)], AS_OF)
    assert risk["risk_level"] == "high"
    assert "High monthly outflow" in risk["risk_factors"]


def test_digital_wallet_recommendations():
    wallet = BankAccount(id="g", name="GCash", balance=60000, category="digital-wallet")
    recommendations = finance.generate_account_recommendations(wallet, [], AS_OF)
    assert [r["type"] for r in recommendations] == ["inactive_account", "excess_digital_balance"]
    assert recommendations[1]["potential_gain"] == pytest.approx(10000 * 0.025 / 12)


def test_liquidity_score():
    assert finance.calculate_liquidity_score(BankAccount(id="c", balance=60000, category="cash")) == 100.0
    assert finance.calculate_liquidity_score(BankAccount(id="i", balance=500, category="investment")) == 24.0


def test_account_insights_use_own_transactions():
    accounts = [BankAccount(id="a", name="A", balance=5000), BankAccount(id="b", name="B", balance=100)]
    insights = finance.generate_account_insights(
        accounts, [txn("t", 300, account_id="a", on=AS_OF)], AS_OF
    )
    assert insights["a"]["transaction_count"] == 1
    assert insights["a"]["last_activity_date"] == "2024-03-15"
    assert insights["b"]["transaction_count"] == 0
    assert insights["b"]["usage_frequency"] == "inactive"

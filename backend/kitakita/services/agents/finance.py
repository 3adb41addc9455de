"""Aggregates derived from a user's accounts and transactions.

Pure functions over the `schemas.finance` models. `as_of` defaults to today
and pins "current month" for the monthly figures.
"""

import math
from collections import defaultdict
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from ...config import INFLOW_TYPES, LIQUID_ACCOUNT_CATEGORIES, OUTFLOW_TYPES
from ...schemas.finance import BankAccount, FinancialOverview, MonthlyFlow, Transaction

RISK_DESCRIPTIONS = {
    "low": "This account appears to be well-managed with minimal risk factors.",
    "medium": "This account has some areas that could be optimized to reduce risk.",
    "high": "This account requires attention to address significant risk factors.",
}

RISK_MITIGATIONS = {
    "Very low balance": "Transfer funds to maintain minimum balance",
    "High monthly outflow": "Review and reduce unnecessary expenses",
    "Excessive funds in digital wallet": "Transfer excess to savings or investment account",
    "High cash holdings": "Deposit cash into interest-bearing account",
}


def _in_month(txn: Transaction, year: int, month: int) -> bool:
    return txn.txn_date is not None and txn.txn_date.year == year and txn.txn_date.month == month


def _month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def variance(numbers: List[float]) -> float:
    if not numbers:
        return 0.0
    mean = sum(numbers) / len(numbers)
    return sum((n - mean) ** 2 for n in numbers) / len(numbers)


def monthly_transactions(transactions: List[Transaction], as_of: Optional[date] = None) -> List[Transaction]:
    today = as_of or date.today()
    return [t for t in transactions if _in_month(t, today.year, today.month)]


def calculate_monthly_flow(transactions: List[Transaction], as_of: Optional[date] = None) -> MonthlyFlow:
    """Inflow and outflow for the current calendar month."""
    current = monthly_transactions(transactions, as_of)
    inflow = sum(t.amount for t in current if t.type in INFLOW_TYPES)
    outflow = sum(t.amount for t in current if t.type in OUTFLOW_TYPES)
    return MonthlyFlow(inflow=inflow, outflow=outflow, net=inflow - outflow, transaction_count=len(current))


def category_totals(transactions: List[Transaction]) -> Dict[str, float]:
    """Total outflow per category, largest first."""
    totals: Dict[str, float] = defaultdict(float)
    for t in transactions:
        if t.type in OUTFLOW_TYPES:
            totals[t.category or "uncategorized"] += t.amount
    return dict(sorted(totals.items(), key=lambda x: x[1], reverse=True))


def monthly_category_totals(transactions: List[Transaction]) -> Dict[str, Dict[str, float]]:
    """Outflow per category per month, keyed ``YYYY-MM``."""
    months: Dict[str, Dict[str, float]] = defaultdict(lambda: defaultdict(float))
    for t in transactions:
        if t.type in OUTFLOW_TYPES and t.txn_date:
            months[_month_key(t.txn_date)][t.category or "uncategorized"] += t.amount
    return {m: dict(cats) for m, cats in sorted(months.items())}


def month_over_month_spending(
    transactions: List[Transaction],
    as_of: Optional[date] = None,
) -> Dict[str, Dict[str, float]]:
    """Outflow per category for this month and the previous one."""
    today = as_of or date.today()
    prev_year, prev_month = (today.year - 1, 12) if today.month == 1 else (today.year, today.month - 1)
    return {
        "current": category_totals([t for t in transactions if _in_month(t, today.year, today.month)]),
        "previous": category_totals([t for t in transactions if _in_month(t, prev_year, prev_month)]),
    }


def monthly_average(transactions: List[Transaction], txn_type: str) -> float:
    """Average monthly total of one transaction type over the months it occurs in."""
    months: Dict[str, float] = defaultdict(float)
    for t in transactions:
        if t.type == txn_type and t.txn_date:
            months[_month_key(t.txn_date)] += t.amount
    return sum(months.values()) / len(months) if months else 0.0


def get_financial_overview(
    accounts: List[BankAccount],
    transactions: List[Transaction],
    as_of: Optional[date] = None,
) -> FinancialOverview:
    """Totals across every account plus this month's income and expenses."""
    total_balance = 0.0
    by_category: Dict[str, Dict[str, Any]] = {}
    for account in accounts:
        total_balance += account.balance
        category = account.category or "unknown"
        bucket = by_category.setdefault(category, {"count": 0, "total_balance": 0.0, "accounts": []})
        bucket["count"] += 1
        bucket["total_balance"] += account.balance
        bucket["accounts"].append(account.id)

    flow = calculate_monthly_flow(transactions, as_of)
    savings_rate = (flow.net / flow.inflow) * 100 if flow.inflow > 0 else 0.0

    liquid_balance = sum(
        data["total_balance"] for category, data in by_category.items()
        if category in LIQUID_ACCOUNT_CATEGORIES
    )
    liquidity_ratio = (liquid_balance / total_balance) * 100 if total_balance > 0 else 0.0

    return FinancialOverview(
        total_balance=total_balance,
        monthly_income=flow.inflow,
        monthly_expenses=flow.outflow,
        net_monthly_cash_flow=flow.net,
        savings_rate=savings_rate,
        liquidity_ratio=liquidity_ratio,
        category_spending=category_totals(monthly_transactions(transactions, as_of)),
        accounts_by_category=by_category,
        total_accounts=len(accounts),
    )


def analyze_transaction_types(transactions: List[Transaction]) -> Dict[str, float]:
    total = len(transactions)
    if not total:
        return {"income_ratio": 0.0, "expense_ratio": 0.0, "savings_ratio": 0.0}
    income = sum(1 for t in transactions if t.type in INFLOW_TYPES)
    expense = sum(1 for t in transactions if t.type in OUTFLOW_TYPES)
    savings = sum(1 for t in transactions if t.type in ("savings", "transfer"))
    return {
        "income_ratio": income / total,
        "expense_ratio": expense / total,
        "savings_ratio": savings / total,
    }


def identify_transaction_pattern(transactions: List[Transaction]) -> str:
    if len(transactions) < 5:
        return "insufficient_data"
    amounts = [t.amount for t in transactions]
    mean = sum(amounts) / len(amounts)
    var = variance(amounts)
    cv = math.sqrt(var) / mean if var > 0 and mean else 0
    if cv < 0.3:
        return "consistent"
    if cv < 0.7:
        return "moderate_variation"
    return "highly_variable"


def analyze_usage_pattern(transactions: List[Transaction], as_of: Optional[date] = None) -> Dict[str, Any]:
    """Classify how actively an account is used this month."""
    if not transactions:
        return {
            "frequency": "inactive",
            "primary_usage": "dormant",
            "pattern": "no_activity",
            "recommendation": "Consider activating this account or consolidating with active accounts",
        }

    today = as_of or date.today()
    monthly_count = len(monthly_transactions(transactions, today))
    if monthly_count > 20:
        frequency = "very_active"
    elif monthly_count > 10:
        frequency = "active"
    elif monthly_count > 5:
        frequency = "moderate"
    elif monthly_count > 0:
        frequency = "low"
    else:
        frequency = "inactive"

    types = analyze_transaction_types(transactions)
    if types["income_ratio"] > 0.7:
        primary_usage = "income_receiving"
    elif types["expense_ratio"] > 0.8:
        primary_usage = "spending"
    elif types["savings_ratio"] > 0.5:
        primary_usage = "savings"
    else:
        primary_usage = "mixed_usage"

    dated = [t.txn_date for t in transactions if t.txn_date]
    last_activity = max(dated) if dated else None

    return {
        "frequency": frequency,
        "primary_usage": primary_usage,
        "monthly_transaction_count": monthly_count,
        "days_since_last_transaction": (today - last_activity).days if last_activity else None,
        "transaction_types": types,
        "average_transaction_value": sum(t.amount for t in transactions) / len(transactions),
        "pattern": identify_transaction_pattern(transactions),
    }


def calculate_balance_trend(account: BankAccount, transactions: List[Transaction]) -> Dict[str, Any]:
    """Rebuild the balance history backwards from the current balance."""
    ordered = sorted(transactions, key=lambda t: t.txn_date or date.min)
    history = [account.balance]
    running = account.balance
    for t in reversed(ordered):
        if t.type in INFLOW_TYPES:
            running -= t.amount
        elif t.type in OUTFLOW_TYPES:
            running += t.amount
        history.insert(0, running)

    change = history[-1] - history[0] if len(history) > 1 else 0.0
    if abs(change) < 1000:
        trend = "stable"
    elif change > 0:
        trend = "increasing"
    else:
        trend = "decreasing"

    var = variance([history[i] - history[i - 1] for i in range(1, len(history))])
    if var < 10000:
        stability = "very_stable"
    elif var < 50000:
        stability = "stable"
    elif var < 100000:
        stability = "moderate"
    else:
        stability = "volatile"

    return {
        "trend": trend,
        "stability": stability,
        "balance_change": change,
        "current_balance": account.balance,
        "historical_low": min(history),
        "historical_high": max(history),
        "variance": var,
        "balance_history": history[-30:],
    }


def assess_account_risk(
    account: BankAccount,
    transactions: List[Transaction],
    as_of: Optional[date] = None,
) -> Dict[str, Any]:
    """Additive risk score for one account: high >= 50, medium >= 25."""
    score = 0
    factors: List[str] = []
    balance = account.balance
    flow = calculate_monthly_flow(transactions, as_of)
    usage = analyze_usage_pattern(transactions, as_of)

    if balance < 1000:
        score += 30
        factors.append("Very low balance")
    elif balance < 5000:
        score += 15
        factors.append("Low balance")

    if flow.net < -10000:
        score += 25
        factors.append("High monthly outflow")
    elif flow.net < -5000:
        score += 15
        factors.append("Moderate monthly outflow")

    if usage["frequency"] == "inactive" and balance > 0:
        score += 10
        factors.append("Unused funds")

    if account.category == "digital-wallet" and balance > 100000:
        score += 20
        factors.append("Excessive funds in digital wallet")

    if account.category == "cash" and balance > 20000:
        score += 15
        factors.append("High cash holdings")

    if score >= 50:
        level = "high"
    elif score >= 25:
        level = "medium"
    else:
        level = "low"

    return {
        "risk_level": level,
        "risk_score": score,
        "risk_factors": factors,
        "description": RISK_DESCRIPTIONS[level],
        "recommendations": [RISK_MITIGATIONS.get(f, f"Address: {f}") for f in factors],
    }


def generate_account_recommendations(
    account: BankAccount,
    transactions: List[Transaction],
    as_of: Optional[date] = None,
) -> List[Dict[str, Any]]:
    recommendations = []
    balance = account.balance
    flow = calculate_monthly_flow(transactions, as_of)
    usage = analyze_usage_pattern(transactions, as_of)

    if balance < 1000 and account.account_type != "credit-card":
        recommendations.append({
            "type": "low_balance",
            "priority": "high",
            "title": "Low Account Balance",
            "description": f"Your {account.name} balance is below ₱1,000. Consider transferring funds or setting up automatic transfers.",
            "action": "Increase account balance",
            "target_amount": 5000,
        })

    if usage["frequency"] == "inactive":
        recommendations.append({
            "type": "inactive_account",
            "priority": "medium",
            "title": "Inactive Account",
            "description": f"{account.name} shows minimal activity. Consider consolidating or closing if unnecessary.",
            "action": "Review account necessity",
            "potential_savings": balance * 0.01,
        })

    if flow.net < -5000:
        recommendations.append({
            "type": "negative_flow",
            "priority": "high",
            "title": "Negative Cash Flow",
            "description": f"{account.name} has consistent outflow. Monitor spending or increase income deposits.",
            "action": "Optimize cash flow",
            "monthly_impact": abs(flow.net),
        })

    if account.category == "digital-wallet" and balance > 50000:
        recommendations.append({
            "type": "excess_digital_balance",
            "priority": "medium",
            "title": "High Digital Wallet Balance",
            "description": f"Consider transferring excess funds from {account.name} to a higher-yield savings account.",
            "action": "Optimize fund allocation",
            # 2.5% annual on the excess
            "potential_gain": ((balance - 50000) * 0.025) / 12,
        })

    if account.category == "traditional-bank" and usage["frequency"] == "very_active" and balance < 10000:
        recommendations.append({
            "type": "low_primary_balance",
            "priority": "medium",
            "title": "Primary Account Underfunded",
            "description": f"{account.name} is heavily used but underfunded. Consider maintaining a higher balance.",
            "action": "Increase primary account balance",
            "target_amount": 25000,
        })

    return recommendations


def calculate_liquidity_score(account: BankAccount) -> float:
    base = {
        "cash": 100,
        "digital-wallet": 95,
        "traditional-bank": 85,
        "investment": 30,
    }.get(account.category or "", 0)
    if account.balance > 50000:
        base *= 1.1
    elif account.balance < 1000:
        base *= 0.8
    return min(100.0, max(0.0, base))


def analyze_account(
    account: BankAccount,
    transactions: List[Transaction],
    as_of: Optional[date] = None,
) -> Dict[str, Any]:
    """Full insight record for one account, from its own transactions."""
    own = [t for t in transactions if t.account_id == account.id]
    flow = calculate_monthly_flow(own, as_of)
    usage = analyze_usage_pattern(own, as_of)
    trend = calculate_balance_trend(account, own)
    dated = [t.txn_date for t in own if t.txn_date]

    return {
        "account_id": account.id,
        "account_name": account.name,
        "account_type": account.account_type or account.category,
        "provider": account.provider,
        "current_balance": account.balance,
        "monthly_inflow": flow.inflow,
        "monthly_outflow": flow.outflow,
        "net_monthly_flow": flow.net,
        "average_transaction_amount": sum(t.amount for t in own) / len(own) if own else 0.0,
        "usage_frequency": usage["frequency"],
        "primary_usage": usage["primary_usage"],
        "transaction_count": len(own),
        "last_activity_date": max(dated).isoformat() if dated else None,
        "balance_trend": trend["trend"],
        "balance_stability": trend["stability"],
        "risk": assess_account_risk(account, own, as_of),
        "recommendations": generate_account_recommendations(account, own, as_of),
        "liquidity_score": calculate_liquidity_score(account),
        "analysis_date": datetime.now().isoformat(),
    }


def generate_account_insights(
    accounts: List[BankAccount],
    transactions: List[Transaction],
    as_of: Optional[date] = None,
) -> Dict[str, Dict[str, Any]]:
    """Insights for every account, keyed by account id."""
    return {
        account.id: analyze_account(account, transactions, as_of)
        for account in accounts
        if account.id
    }

"""Debt payoff simulation.

Pure functions over plain debt dicts ``{id, name, balance, interest_rate,
minimum_payment}``; nothing here touches the gateway or the store.
"""

from typing import Any, Dict, List, Optional

from ...schemas.finance import BankAccount

MAX_SIMULATION_MONTHS = 600  # 50 years
HIGH_INTEREST_RATE = 10.0  # percent per year
DTI_HIGH = 43.0
DTI_MEDIUM = 36.0

STRATEGY_NAMES = {
    "avalanche": "Debt Avalanche",
    "snowball": "Debt Snowball",
}


def is_debt_account(account: BankAccount) -> bool:
    account_type = (account.account_type or "").lower().replace(" ", "-")
    return account.category == "loan" or account_type == "credit-card"


def debts_from_accounts(accounts: List[BankAccount]) -> List[Dict[str, Any]]:
    """Debt accounts as simulation input. Balances are taken as positive amounts owed."""
    return [
        {
            "id": account.id,
            "name": account.name or account.id,
            "balance": abs(account.balance),
            "interest_rate": account.interest_rate or 0.0,
            "minimum_payment": account.minimum_payment or 0.0,
        }
        for account in accounts
        if is_debt_account(account)
    ]


def order_debts(debts: List[Dict[str, Any]], strategy: str) -> List[Dict[str, Any]]:
    """Avalanche: highest rate first. Snowball: smallest balance first."""
    active = [d for d in debts if d["balance"] > 0]
    if strategy == "avalanche":
        return sorted(active, key=lambda d: d["interest_rate"], reverse=True)
    if strategy == "snowball":
        return sorted(active, key=lambda d: d["balance"])
    raise ValueError(f"Unknown repayment strategy: {strategy}")


def simulate_payoff(
    debts: List[Dict[str, Any]],
    strategy: str,
    extra_payment: float = 0.0,
) -> Dict[str, Any]:
    """Simulate paying off `debts` month by month.

    Each month every open debt accrues a twelfth of its annual rate, then the
    month's budget (extra payment plus the minimums of the still open debts)
    is applied in strategy order. Stops when everything is paid or after
    MAX_SIMULATION_MONTHS.
    """
    ordered = [dict(d) for d in order_debts(debts, strategy)]
    months = 0
    total_interest = 0.0
    schedule = []

    while any(d["balance"] > 0 for d in ordered) and months < MAX_SIMULATION_MONTHS:
        months += 1
        budget = extra_payment

        for debt in ordered:
            if debt["balance"] > 0:
                interest = debt["balance"] * (debt["interest_rate"] / 100) / 12
                debt["balance"] += interest
                total_interest += interest
                budget += debt["minimum_payment"]

        for debt in ordered:
            if budget <= 0.01:
                break
            if debt["balance"] > 0:
                payment = min(debt["balance"], budget)
                debt["balance"] -= payment
                budget -= payment

        schedule.append({"month": months, "balance": sum(d["balance"] for d in ordered)})

    return {
        "strategy": strategy,
        "name": STRATEGY_NAMES[strategy],
        "payoff_months": months,
        "total_interest": total_interest,
        "paid_off": all(d["balance"] <= 0 for d in ordered),
        "focus_account": ordered[0]["name"] if ordered else None,
        "schedule": schedule,
    }


def compare_strategies(debts: List[Dict[str, Any]], extra_payment: float = 0.0) -> Dict[str, Dict[str, Any]]:
    return {strategy: simulate_payoff(debts, strategy, extra_payment) for strategy in STRATEGY_NAMES}


def debt_to_income_ratio(total_debt: float, monthly_income: float) -> Optional[float]:
    """Total debt over a year of income, in percent. None without income."""
    if monthly_income <= 0:
        return None
    return (total_debt / (monthly_income * 12)) * 100


def payment_power(
    debts: List[Dict[str, Any]],
    strategy: str,
    extra_payment: float,
    increments: tuple = (1000, 2500, 5000),
) -> List[Dict[str, Any]]:
    """Months saved by paying more than `extra_payment` each month."""
    baseline = simulate_payoff(debts, strategy, extra_payment)["payoff_months"]
    scenarios = []
    for increment in increments:
        faster = simulate_payoff(debts, strategy, extra_payment + increment)["payoff_months"]
        if baseline - faster > 0:
            scenarios.append({"additional_payment": increment, "months_saved": baseline - faster})
    return scenarios

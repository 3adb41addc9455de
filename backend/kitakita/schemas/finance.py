from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Transaction(BaseModel):
    id: str
    amount: float = 0.0
    type: str = "expense"  # income, expense, deposit, withdrawal, transfer, savings
    category: Optional[str] = None
    description: Optional[str] = None
    txn_date: Optional[date] = Field(default=None, alias="date")
    account_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class BankAccount(BaseModel):
    id: str
    name: str = ""
    balance: float = 0.0
    category: Optional[str] = None      # traditional-bank, digital-wallet, cash, investment, loan
    account_type: Optional[str] = None  # savings, checking, credit-card
    provider: Optional[str] = None
    # Debt accounts only
    interest_rate: Optional[float] = None    # annual, percent
    minimum_payment: Optional[float] = None  # monthly

    model_config = ConfigDict(from_attributes=True)


class FinancialSnapshot(BaseModel):
    """Read-only view of a user's accounts and transactions."""
    profile: Optional[Dict[str, Any]] = None
    accounts: List[BankAccount] = Field(default_factory=list)
    transactions: List[Transaction] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.accounts and not self.transactions


class MonthlyFlow(BaseModel):
    inflow: float = 0.0
    outflow: float = 0.0
    net: float = 0.0
    transaction_count: int = 0


class FinancialOverview(BaseModel):
    total_balance: float = 0.0
    monthly_income: float = 0.0
    monthly_expenses: float = 0.0
    net_monthly_cash_flow: float = 0.0
    savings_rate: float = 0.0  # percent
    liquidity_ratio: float = 0.0  # percent
    category_spending: Dict[str, float] = Field(default_factory=dict)
    accounts_by_category: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    total_accounts: int = 0

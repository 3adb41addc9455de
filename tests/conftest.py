import json
from datetime import date
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from kitakita.schemas.finance import BankAccount, Transaction
from kitakita.services.agents.llm import GeminiGateway
from kitakita.services.agents.rate_limit import BackoffPolicy, SlidingWindowRateLimiter


class FakeClock:
    """Manual clock; `sleep` advances it instead of waiting."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeStore:
    """In-memory FinancialDataStore."""

    def __init__(
        self,
        profile: Optional[Dict[str, Any]] = None,
        transactions: Optional[List[Transaction]] = None,
        accounts: Optional[List[BankAccount]] = None,
        fail: tuple = (),
    ):
        self.profile = profile
        self.transactions = list(transactions or [])
        self.accounts = list(accounts or [])
        self.fail = set(fail)
        self.writes: List[Dict[str, Any]] = []

    async def get_user_data(self, uid: str) -> Optional[Dict[str, Any]]:
        if "profile" in self.fail:
            raise RuntimeError("profile unavailable")
        return dict(self.profile) if self.profile is not None else None

    async def get_user_transactions(self, uid: str) -> List[Transaction]:
        if "transactions" in self.fail:
            raise RuntimeError("transactions unavailable")
        return list(self.transactions)

    async def get_user_bank_accounts(self, uid: str) -> List[BankAccount]:
        if "accounts" in self.fail:
            raise RuntimeError("accounts unavailable")
        return list(self.accounts)

    async def store_user_data(self, uid: str, patch: Dict[str, Any]) -> None:
        self.writes.append(patch)
        self.profile = {**(self.profile or {}), **patch}


def txn(id: str, amount: float, type: str = "expense", category: Optional[str] = None,
        on: Optional[date] = None, description: Optional[str] = None, account_id: Optional[str] = None) -> Transaction:
    return Transaction(
        id=id,
        amount=amount,
        type=type,
        category=category,
        description=description,
        txn_date=on or date.today(),
        account_id=account_id,
    )


def gemini_reply(text: str, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})


def request_prompt(request: httpx.Request) -> str:
    return json.loads(request.content)["contents"][0]["parts"][0]["text"]


def make_gateway(
    handler: Callable[[httpx.Request], httpx.Response],
    max_retries: int = 0,
    api_key: str = "test-key",
) -> GeminiGateway:
    """Gateway on a mock transport with its own limiter and no backoff delay."""
    return GeminiGateway(
        api_key=api_key,
        model="gemini-test",
        base_url="https://gemini.test/v1beta",
        limiter=SlidingWindowRateLimiter(max_requests=1000),
        policy=BackoffPolicy(max_retries=max_retries, initial_delay=0, max_jitter=0),
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def unconfigured_gateway():
    def handler(request):
        raise AssertionError("gateway without a key must not send requests")

    return make_gateway(handler, api_key="")


@pytest.fixture
def household_store():
    """A salaried user with this month's income, expenses and two accounts."""
    return FakeStore(
        profile={"uid": "u1", "displayName": "Juan"},
        transactions=[
            txn("t1", 50000, "income", "salary", description="Sahod"),
            txn("t2", 30000, "expense", "food", description="Palengke at grocery"),
            txn("t3", 10000, "expense", "rent", description="Upa sa apartment"),
            txn("t4", 5000, "withdrawal", "transport", description="Grab rides", account_id="gcash"),
        ],
        accounts=[
            BankAccount(id="bpi", name="BPI Savings", balance=10000, category="traditional-bank", account_type="savings"),
            BankAccount(id="gcash", name="GCash", balance=2000, category="digital-wallet"),
        ],
    )

from datetime import date

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from kitakita import models
from kitakita.database import init_db
from kitakita.services.agents.specialized import WealthBuilderAgent
from kitakita.services.agents.store import FinancialDataStore, SqlFinancialDataStore


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'agents.db'}")
    await init_db(engine)
    factory = sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    async with factory() as session:
        session.add(models.UserProfile(uid="u1", display_name="Maria", data={"age": 29}))
        session.add(models.BankAccount(id="bpi", uid="u1", name="BPI", balance=15000, category="traditional-bank"))
        session.add_all([
            models.Transaction(id="t1", uid="u1", amount=35000, type="income", txn_date=date(2024, 3, 1), account_id="bpi"),
            models.Transaction(id="t2", uid="u1", amount=1200, type="expense", category="food",
                               description="Grocery", txn_date=date(2024, 3, 4), account_id="bpi"),
            models.Transaction(id="t3", uid="u2", amount=999, type="expense", txn_date=date(2024, 3, 4)),
        ])
        await session.commit()

    yield factory
    await engine.dispose()


async def test_store_implements_protocol(session_factory):
    assert isinstance(SqlFinancialDataStore(session_factory), FinancialDataStore)


async def test_reads_profile_accounts_and_transactions(session_factory):
    store = SqlFinancialDataStore(session_factory)

    profile = await store.get_user_data("u1")
    transactions = await store.get_user_transactions("u1")
    accounts = await store.get_user_bank_accounts("u1")

    assert profile == {"age": 29, "uid": "u1", "displayName": "Maria"}
    assert [t.id for t in transactions] == ["t2", "t1"]
    assert transactions[0].txn_date == date(2024, 3, 4)
    assert transactions[0].category == "food"
    assert accounts[0].balance == 15000
    assert accounts[0].category == "traditional-bank"
    assert await store.get_user_data("nobody") is None


async def test_store_user_data_merges_patch(session_factory):
    store = SqlFinancialDataStore(session_factory)

    await store.store_user_data("u1", {"agentMemory": {"wealth_builder": {"goal": "house"}}})

    profile = await store.get_user_data("u1")
    assert profile["age"] == 29
    assert profile["agentMemory"] == {"wealth_builder": {"goal": "house"}}


async def test_store_user_data_creates_missing_profile(session_factory):
    store = SqlFinancialDataStore(session_factory)
    await store.store_user_data("new-user", {"age": 41})
    assert (await store.get_user_data("new-user"))["age"] == 41


async def test_agent_memory_round_trips_through_the_database(session_factory):
    store = SqlFinancialDataStore(session_factory)
    agent = await WealthBuilderAgent.create("u1", store=store)
    assert len(agent.snapshot.transactions) == 2

    agent.memory.set_long_term("risk_tolerance", "moderate")
    assert await agent.persist_long_term_memory() is True

    reloaded = await WealthBuilderAgent.create("u1", store=store)
    assert reloaded.memory.get_long_term("risk_tolerance") == "moderate"

import json
from datetime import date

import pytest

from conftest import FakeStore, gemini_reply, make_gateway, txn
from kitakita.schemas.agents import AutonomyLevel
from kitakita.schemas.finance import BankAccount
from kitakita.services.agents.specialized import (
    DebtDemolisherAgent,
    GastosGuardianAgent,
    IponCoachAgent,
    PeraPlannerAgent,
    WealthBuilderAgent,
)
from kitakita.services.agents.specialized.gastos_guardian import categorize_description
from kitakita.services.agents.specialized.pera_planner import asset_allocation


def fixed_reply(payload):
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return make_gateway(lambda request: gemini_reply(text))


class TestIponCoach:
    async def test_decides_to_build_emergency_fund(self, household_store):
        agent = await IponCoachAgent.create("u1", store=household_store)

        decision = await agent.decide()

        assert agent.autonomy_level == AutonomyLevel.HIGH
        assert decision.decision["action"] == "build_emergency_fund"
        assert decision.confidence == 0.85
        assert decision.requires_confirmation is False
        assert decision.follow_up_plan["timeline"] == "this_week"
        evaluated = {o["action"] for o in agent.decision_history[-1].evaluated_options}
        assert evaluated == {"maintain_course", "build_emergency_fund", "trim_top_category", "raise_savings_rate"}

    async def test_only_liquid_accounts_cover_the_emergency_fund(self):
        store = FakeStore(
            transactions=[txn("e", 10000, "expense", "food")],
            accounts=[
                BankAccount(id="bpi", name="BPI", balance=10000, category="traditional-bank"),
                BankAccount(id="wallet", name="Pitaka", balance=5000, category="cash"),
                BankAccount(id="uitf", name="UITF", balance=100000, category="investment"),
            ],
        )
        agent = await IponCoachAgent.create("u1", store=store)

        analysis = await agent.analyze_situation({})

        assert analysis["emergency_fund_months"] == 1.5

    async def test_budget_recommendations_fall_back_to_50_30_20(self, household_store, unconfigured_gateway):
        agent = await IponCoachAgent.create("u1", store=household_store, gateway=unconfigured_gateway)

        result = await agent.generate_budget_recommendations()

        assert result["fallback"] is True
        assert result["monthly_income"] == 50000
        assert result["recommended_budget"]["savings"]["amount"] == 10000
        assert {"monthly_income", "recommended_budget", "recommendations"} <= set(result)

    async def test_budget_recommendations_with_unusable_reply(self, household_store):
        agent = await IponCoachAgent.create("u1", store=household_store, gateway=fixed_reply("Mag-ipon ka!"))
        result = await agent.generate_budget_recommendations()
        assert result["fallback"] is True
        assert "recommended_budget" in result

    async def test_budget_recommendations_from_model(self, household_store):
        reply = {"monthly_income": 50000, "recommended_budget": {}, "recommendations": [{"action": "Cook at home"}]}
        agent = await IponCoachAgent.create("u1", store=household_store, gateway=fixed_reply(reply))
        result = await agent.generate_budget_recommendations()
        assert result == reply

    def test_fallback_pattern_detection(self):
        patterns = IponCoachAgent.fallback_pattern_detection({
            "current": {"food": 3000, "transport": 1400, "rent": 5000},
            "previous": {"food": 1000, "transport": 1000},
        })
        assert len(patterns) == 1
        assert patterns[0]["category"] == "food"
        assert patterns[0]["severity"] == "high"
        assert patterns[0]["percentage_change"] == 200

    async def test_detect_overspending_patterns_offline(self):
        store = FakeStore(transactions=[
            txn("now", 1800, category="food", on=date(2024, 3, 2)),
            txn("before", 1000, category="food", on=date(2024, 2, 2)),
        ])
        agent = await IponCoachAgent.create("u1", store=store)

        result = await agent.detect_overspending_patterns(as_of=date(2024, 3, 20))

        assert result["fallback"] is True
        assert result["patterns"][0]["severity"] == "medium"
        assert result["monthly_spending"]["previous"] == {"food": 1000}

    async def test_no_spending_this_month_means_no_patterns(self):
        agent = await IponCoachAgent.create("u1", store=FakeStore())
        assert await agent.detect_overspending_patterns() == {
            "patterns": [],
            "monthly_spending": {"current": {}, "previous": {}},
        }


class TestCategorizeDescription:
    def test_keyword_match(self):
        result = categorize_description("Meralco bill")
        assert result["category"] == "Utilities"
        assert result["confidence"] == 0.75
        assert result["source"] == "keyword"

    def test_misspelled_keyword_matches_fuzzily(self):
        result = categorize_description("Jollibee delivry")
        assert result["category"] == "Food"
        assert result["confidence"] == 0.65
        assert result["source"] == "fuzzy"

    def test_unknown_description_defaults_to_others(self):
        result = categorize_description("xyz123 qwerty")
        assert result == {
            "category": "Others",
            "confidence": 0.6,
            "reasoning": "Default categorization",
            "source": "default",
        }

    def test_empty_description(self):
        assert categorize_description("")["category"] == "Others"


class TestGastosGuardian:
    async def test_categorization_falls_back_per_batch(self):
        expenses = [txn(f"t{i}", 150, description="Tricycle papuntang palengke") for i in range(12)]
        agent = await GastosGuardianAgent.create("u1", store=FakeStore(transactions=expenses))

        result = await agent.categorize_transactions()

        assert result["fallback"] is True
        assert len(result["categorized"]) == 12
        assert all(item["fallback"] for item in result["categorized"])
        assert result["category_totals"] == {"Food": 1800}

    async def test_large_amounts_raise_fallback_confidence(self):
        batch = [{"id": "t", "description": "mystery", "amount": 20000, "date": None, "current_category": "x"}]
        assert GastosGuardianAgent.fallback_categorization(batch)[0]["confidence"] == 0.65

    async def test_categorization_from_model(self):
        reply = {"categories": ["Food", "Transport"], "confidence": [0.9, 0.8], "reasoning": ["meal", "ride"]}
        agent = await GastosGuardianAgent.create("u1", gateway=fixed_reply(reply))

        result = await agent.categorize_transactions([
            txn("a", 250, description="Jollibee"),
            txn("b", 120, description="Angkas"),
        ])

        assert "fallback" not in result
        assert [i["category"] for i in result["categorized"]] == ["Food", "Transport"]
        assert result["categorized"][1]["source"] == "ai"
        assert result["category_totals"] == {"Food": 250, "Transport": 120}

    async def test_non_string_categories_fall_back_per_item(self):
        reply = {"categories": [{"name": "Food"}, "Transport"], "confidence": ["high", "0.8"]}
        agent = await GastosGuardianAgent.create("u1", gateway=fixed_reply(reply))

        result = await agent.categorize_transactions([
            txn("a", 300, description="Palengke run"),
            txn("b", 120, description="Angkas"),
        ])

        first, second = result["categorized"]
        assert result["fallback"] is True
        assert first["fallback"] is True
        assert first["category"] == "Food"
        assert first["source"] == "keyword"
        assert second["source"] == "ai"
        assert second["confidence"] == 0.8
        assert result["category_totals"] == {"Food": 300, "Transport": 120}

    async def test_missing_categories_fall_back_for_remaining_items(self):
        agent = await GastosGuardianAgent.create("u1", gateway=fixed_reply({"categories": ["Food"]}))

        result = await agent.categorize_transactions([
            txn("a", 250, description="Jollibee"),
            txn("b", 80, description="xyz123 qwerty"),
        ])

        assert [i["category"] for i in result["categorized"]] == ["Food", "Others"]
        assert result["categorized"][0]["confidence"] == 0.5
        assert result["categorized"][1]["fallback"] is True

    async def test_decision_flags_small_purchases(self):
        expenses = [txn(f"s{i}", 50, category="food") for i in range(10)]
        expenses.append(txn("rent", 100, category="rent"))
        agent = await GastosGuardianAgent.create("u1", store=FakeStore(transactions=expenses))

        decision = await agent.decide()

        assert decision.decision["action"] == "set_category_budget"
        options = {o["action"] for o in agent.decision_history[-1].evaluated_options}
        assert "track_small_purchases" in options

    async def test_leaks_and_tips_fall_back_to_local_analysis(self):
        expenses = [txn(f"s{i}", 50, category="food") for i in range(10)]
        agent = await GastosGuardianAgent.create("u1", store=FakeStore(transactions=expenses))

        leaks = await agent.find_spending_leaks()
        tips = await agent.generate_tipid_tips()

        assert leaks["fallback"] is True
        assert "10 small purchases" in leaks["leaks"][0]
        assert tips["fallback"] is True
        assert tips["tips"][0].startswith("Mamalengke")

    async def test_tips_from_model(self):
        agent = await GastosGuardianAgent.create("u1", gateway=fixed_reply({"tips": ["Magbaon ka."]}))
        assert await agent.generate_tipid_tips() == {"tips": ["Magbaon ka."]}


class TestWealthBuilder:
    @pytest.fixture
    def store(self):
        return FakeStore(
            transactions=[
                txn("i1", 40000, "income", on=date(2024, 2, 1)),
                txn("i2", 40000, "income", on=date(2024, 3, 1)),
                txn("e1", 30000, "expense", "living", on=date(2024, 2, 10)),
                txn("e2", 30000, "expense", "living", on=date(2024, 3, 10)),
            ],
            accounts=[
                BankAccount(id="bdo", name="BDO", balance=50000, category="traditional-bank"),
                BankAccount(id="mp2", name="MP2", balance=20000, category="investment"),
            ],
        )

    async def test_overview_uses_monthly_averages(self, store):
        agent = await WealthBuilderAgent.create("u1", store=store)
        overview = agent.calculate_wealth_overview()
        assert overview["monthly_income"] == 40000
        assert overview["monthly_expenses"] == 30000
        assert overview["savings_rate"] == 25
        assert overview["emergency_fund_target"] == 180000
        assert overview["invested_balance"] == 20000

    async def test_decides_to_build_emergency_fund(self, store):
        agent = await WealthBuilderAgent.create("u1", store=store)

        decision = await agent.decide()

        assert decision.decision["action"] == "build_emergency_fund"
        assert decision.decision["gap"] == 130000
        assert decision.requires_confirmation is True
        assert agent.goals[0]["target_months"] == 6

    async def test_complete_emergency_fund_suggests_investing(self, store):
        store.accounts[0] = BankAccount(id="bdo", name="BDO", balance=200000, category="traditional-bank")
        agent = await WealthBuilderAgent.create("u1", store=store)

        decision = await agent.decide()

        assert decision.decision["action"] == "start_investing"
        assert decision.decision["monthly_amount"] == 10000

    async def test_insights_and_recommendations_fallbacks(self, store):
        agent = await WealthBuilderAgent.create("u1", store=store)

        insights = await agent.generate_wealth_insights()
        recommendations = await agent.generate_recommendations()

        assert insights["fallback"] is True
        assert insights["insights"][0]["title"] == "Track Your Spending"
        assert recommendations["fallback"] is True
        assert [r["title"] for r in recommendations["recommendations"]] == [
            "Build an Emergency Fund",
            "Explore Low-Cost Investments",
        ]

    async def test_recommendations_from_model(self, store):
        reply = {"recommendations": [{"title": "Max out MP2", "description": "...", "priority": "high"}]}
        agent = await WealthBuilderAgent.create("u1", store=store, gateway=fixed_reply(reply))
        assert await agent.generate_recommendations() == reply


def debt_store(home_loan=5000, card=2000, income=20000):
    return FakeStore(
        transactions=[txn("i1", income, "income", "salary")],
        accounts=[
            BankAccount(id="home", name="Home Loan", balance=home_loan, category="loan",
                        interest_rate=24, minimum_payment=500),
            BankAccount(id="card", name="Credit Card", balance=card, category="traditional-bank",
                        account_type="credit-card", interest_rate=6, minimum_payment=200),
            BankAccount(id="bpi", name="BPI", balance=30000, category="traditional-bank"),
        ],
    )


class TestDebtDemolisher:
    async def test_small_interest_gap_favors_snowball(self):
        agent = await DebtDemolisherAgent.create("u1", store=debt_store())

        decision = await agent.decide()

        assert agent.autonomy_level == AutonomyLevel.HIGH
        assert decision.decision["action"] == "debt_snowball"
        assert decision.decision["focus_account"] == "Credit Card"
        assert decision.follow_up_plan["actions"][0] == "automate_extra_payment"
        options = {o["action"] for o in agent.decision_history[-1].evaluated_options}
        assert options == {"debt_avalanche", "debt_snowball", "refinance_high_interest"}

    async def test_large_interest_gap_favors_avalanche(self):
        store = debt_store(home_loan=200000, card=20000)
        store.accounts[0] = store.accounts[0].model_copy(update={"minimum_payment": 5000})
        store.accounts[1] = store.accounts[1].model_copy(update={"minimum_payment": 1000})
        agent = await DebtDemolisherAgent.create("u1", store=store)

        decision = await agent.decide()

        assert decision.decision["action"] == "debt_avalanche"
        assert decision.decision["focus_account"] == "Home Loan"

    async def test_no_debts_means_stay_debt_free(self, household_store):
        agent = await DebtDemolisherAgent.create("u1", store=household_store)

        decision = await agent.decide()
        plan = await agent.build_repayment_plan()

        assert decision.decision["action"] == "stay_debt_free"
        assert agent.goals == []
        assert plan["recommended_strategy"] is None
        assert plan["total_debt"] == 0

    async def test_repayment_plan_falls_back_to_avalanche(self, unconfigured_gateway):
        agent = await DebtDemolisherAgent.create("u1", store=debt_store(), gateway=unconfigured_gateway)

        plan = await agent.build_repayment_plan()

        assert plan["fallback"] is True
        assert plan["total_debt"] == 7000
        assert plan["recommended_strategy"]["strategy"] == "avalanche"
        assert plan["recommended_strategy"]["focus_account"] == "Home Loan"
        assert "Home Loan" in plan["recommended_strategy"]["reasoning"]
        titles = [i["title"] for i in plan["insights"]]
        assert "Debt-to-Income Analysis" in titles
        assert "High-Interest Rate Review: Home Loan" in titles
        assert [step["step"] for step in plan["action_plan"]] == [1, 2]

    async def test_repayment_plan_from_model(self):
        reply = {
            "recommended_strategy": "snowball",
            "reasoning": "Quick wins keep you going.",
            "insights": [{"title": "Close the card", "description": "Cut it up once it is paid."}, "stray"],
        }
        agent = await DebtDemolisherAgent.create("u1", store=debt_store(), gateway=fixed_reply(reply))

        plan = await agent.build_repayment_plan(extra_payment=1000)

        assert "fallback" not in plan
        assert plan["recommended_strategy"]["strategy"] == "snowball"
        assert plan["recommended_strategy"]["focus_account"] == "Credit Card"
        assert plan["recommended_strategy"]["reasoning"] == "Quick wins keep you going."
        assert plan["insights"] == [
            {"title": "Close the card", "description": "Cut it up once it is paid.", "priority": "opportunity"}
        ]

    async def test_unusable_strategy_in_reply(self):
        reply = {"recommended_strategy": ["snowball"], "insights": "none"}
        agent = await DebtDemolisherAgent.create("u1", store=debt_store(), gateway=fixed_reply(reply))

        plan = await agent.build_repayment_plan()

        assert plan["fallback"] is True
        assert plan["recommended_strategy"]["strategy"] == "avalanche"
        assert plan["insights"]


class TestAssetAllocation:
    def test_moderate(self):
        assert asset_allocation(30, "moderate") == {"stocks": 70, "bonds": 18, "real_estate": 9, "cash": 3}

    def test_aggressive_is_capped(self):
        assert asset_allocation(30, "aggressive")["stocks"] == 80

    def test_conservative_keeps_a_floor(self):
        assert asset_allocation(90, "conservative") == {"stocks": 20, "bonds": 48, "real_estate": 24, "cash": 8}


class TestPeraPlanner:
    @pytest.fixture
    def ready_store(self):
        return FakeStore(
            profile={"uid": "u1", "age": 40, "riskTolerance": "conservative"},
            transactions=[
                txn("i1", 50000, "income", "salary"),
                txn("e1", 20000, "expense", "food"),
            ],
            accounts=[BankAccount(id="bpi", name="BPI", balance=300000, category="traditional-bank")],
        )

    async def test_emergency_fund_status(self, household_store):
        agent = await PeraPlannerAgent.create("u1", store=household_store)

        status = agent.assess_emergency_fund()

        assert agent.autonomy_level == AutonomyLevel.MEDIUM
        assert status["status"] == "insufficient"
        assert status["current_amount"] == 12000
        assert status["target_amount"] == 240000
        assert status["remaining_amount"] == 228000
        assert status["months_covered"] == 0.3

    async def test_expenses_estimated_from_income(self):
        agent = await PeraPlannerAgent.create("u1", store=FakeStore(transactions=[txn("i", 10000, "income")]))
        assert agent.cash_flow()["monthly_expenses"] == 7000

    async def test_ready_to_invest(self, ready_store):
        agent = await PeraPlannerAgent.create("u1", store=ready_store)

        readiness = agent.assess_investment_readiness()
        decision = await agent.decide()

        assert readiness["readiness_score"] == 100
        assert readiness["readiness_level"] == "ready"
        assert readiness["suggested_timeline"] == "You can start investing now"
        assert decision.decision["action"] == "start_investing"

    async def test_thin_emergency_fund_comes_first(self, household_store):
        agent = await PeraPlannerAgent.create("u1", store=household_store)
        decision = await agent.decide()
        assert decision.decision["action"] == "build_emergency_fund"

    async def test_investment_strategy(self, ready_store):
        agent = await PeraPlannerAgent.create("u1", store=ready_store)

        strategy = agent.investment_strategy()

        assert strategy["stage"] == "beginner"
        assert strategy["monthly_budget"] == 10000
        assert strategy["asset_allocation"]["stocks"] == 40

    async def test_investment_account_raises_stage(self, ready_store):
        ready_store.accounts.append(BankAccount(id="col", name="COL", balance=1000, category="investment"))
        agent = await PeraPlannerAgent.create("u1", store=ready_store)
        assert agent.investment_strategy()["stage"] == "intermediate"

    async def test_roadmap(self, ready_store, clock):
        agent = await PeraPlannerAgent.create("u1", store=ready_store, clock=clock)

        roadmap = agent.financial_roadmap()

        assert [m["year"] - roadmap[0]["year"] for m in roadmap] == [0, 1, 4]
        assert roadmap[0]["target"] == 120000
        assert roadmap[2]["goal"] == "Business Capital"
        assert roadmap[2]["age"] == 45

    async def test_financial_plan_offline(self, ready_store, unconfigured_gateway):
        agent = await PeraPlannerAgent.create("u1", store=ready_store, gateway=unconfigured_gateway)

        plan = await agent.create_financial_plan()

        assert plan["fallback"] is True
        assert plan["plan_type"] == "fallback"
        assert plan["executive_summary"] is None
        assert len(plan["financial_roadmap"]) == 3
        assert plan["investment_readiness"]["readiness_level"] == "ready"

    async def test_financial_plan_from_model(self, ready_store):
        reply = {
            "executive_summary": {"financial_health_score": 82, "primary_recommendation": "Start an MP2 account"},
            "investment_strategy": {"stage": "beginner", "monthly_budget": 8000},
        }
        agent = await PeraPlannerAgent.create("u1", store=ready_store, gateway=fixed_reply(reply))

        plan = await agent.create_financial_plan()

        assert "fallback" not in plan
        assert plan["plan_type"] == "ai_comprehensive"
        assert plan["investment_strategy"] == {"stage": "beginner", "monthly_budget": 8000}
        assert len(plan["financial_roadmap"]) == 3

"""Wealth Builder: long-term savings and investment planning agent."""

import json
import logging
from typing import Any, Dict, List

from ....schemas.agents.state import AutonomyLevel
from .. import finance
from ..base import BaseAgent
from ..fallback import structured_or_fallback

logger = logging.getLogger(__name__)

EMERGENCY_FUND_MONTHS = 6
MIN_SAVINGS_RATE = 0.2

DEFAULT_RECOMMENDATIONS = [
    {
        "title": "Build an Emergency Fund",
        "description": "Aim to save 3-6 months of living expenses in a high-yield savings account.",
        "priority": "high",
    },
    {
        "title": "Explore Low-Cost Investments",
        "description": "Consider starting with Pag-IBIG MP2 or a local index fund UITF.",
        "priority": "medium",
    },
]

DEFAULT_INSIGHTS = [
    {
        "title": "Track Your Spending",
        "description": "Get a clearer picture of where your money goes by categorizing every expense.",
        "category": "spending",
        "priority": "high",
    },
]


class WealthBuilderAgent(BaseAgent):
    """Guides the user from saving to investing.

    Works from monthly averages over the full history rather than the
    current month, so one unusual month does not swing the plan.
    """

    agent_type = "wealth_builder"
    default_autonomy = AutonomyLevel.MEDIUM

    async def on_initialized(self) -> None:
        self.goals = [
            {"type": "emergency_fund", "target_months": EMERGENCY_FUND_MONTHS},
            {"type": "savings", "target_rate": MIN_SAVINGS_RATE},
        ]

    async def load_domain_knowledge(self) -> Dict[str, Any]:
        knowledge = await super().load_domain_knowledge()
        knowledge.update({
            "mp2": "Pag-IBIG MP2: 5-year voluntary savings with tax-free dividends",
            "uitf": "Unit investment trust funds: pooled funds offered by banks",
            "emergency_fund": f"{EMERGENCY_FUND_MONTHS} months of expenses before investing",
        })
        return knowledge

    def calculate_wealth_overview(self) -> Dict[str, Any]:
        transactions = self.snapshot.transactions
        income = finance.monthly_average(transactions, "income")
        expenses = finance.monthly_average(transactions, "expense")
        total_balance = sum(a.balance for a in self.snapshot.accounts)
        invested = sum(a.balance for a in self.snapshot.accounts if a.category == "investment")
        return {
            "monthly_income": income,
            "monthly_expenses": expenses,
            "total_balance": total_balance,
            "invested_balance": invested,
            "savings_rate": ((income - expenses) / income) * 100 if income > 0 else 0.0,
            "emergency_fund_target": expenses * EMERGENCY_FUND_MONTHS,
        }

    # Decision stages

    async def analyze_situation(self, context: Dict[str, Any]) -> Dict[str, Any]:
        overview = self.calculate_wealth_overview()
        liquid = overview["total_balance"] - overview["invested_balance"]
        target = overview["emergency_fund_target"]
        return {
            **overview,
            "liquid_balance": liquid,
            "emergency_fund_gap": max(target - liquid, 0.0),
            "emergency_fund_complete": target > 0 and liquid >= target,
            "meets_savings_rate": overview["savings_rate"] >= MIN_SAVINGS_RATE * 100,
        }

    async def generate_action_options(
        self, context: Dict[str, Any], analysis: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        options = []
        if not analysis["emergency_fund_complete"]:
            options.append({
                "action": "build_emergency_fund",
                "description": f"Save ₱{analysis['emergency_fund_gap']:,.2f} more to cover {EMERGENCY_FUND_MONTHS} months",
                "gap": analysis["emergency_fund_gap"],
            })
        if not analysis["meets_savings_rate"]:
            options.append({
                "action": "increase_savings_rate",
                "description": f"Raise savings to at least {MIN_SAVINGS_RATE * 100:.0f}% of income",
            })
        if analysis["emergency_fund_complete"] and analysis["meets_savings_rate"]:
            options.append({
                "action": "start_investing",
                "description": "Put surplus into MP2 or an index UITF",
                "monthly_amount": analysis["monthly_income"] - analysis["monthly_expenses"],
            })
        options.append({"action": "review_goals", "description": "Review your long-term goals"})
        return options

    async def evaluate_options(
        self, options: List[Dict[str, Any]], context: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        scores = {
            "build_emergency_fund": 0.85,
            "increase_savings_rate": 0.75,
            "start_investing": 0.8,
            "review_goals": 0.4,
        }
        return [
            {**o, "score": scores.get(o.get("action"), o.get("score", 0.5)), "confidence": o.get("confidence", 0.65)}
            for o in options
        ]

    async def select_optimal_action(
        self, options: List[Dict[str, Any]], context: Dict[str, Any]
    ) -> Dict[str, Any]:
        if not options:
            raise ValueError("No options to choose from")
        return max(options, key=lambda o: o["score"])

    async def plan_follow_up_actions(self, decision: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, Any]:
        return {"actions": [f"track_{decision.get('action')}"], "timeline": "monthly"}

    # AI-backed analyses

    async def generate_wealth_insights(self) -> Dict[str, Any]:
        overview = self.calculate_wealth_overview()
        sample = "\n".join(
            f"- {t.description or t.category or 'Unknown'}: ₱{t.amount:,.2f} ({t.type})"
            for t in self.snapshot.transactions[:20]
        )
        prompt = (
            "As a sharp financial analyst AI, identify key insights from this user's financial data: "
            "spending habits, income stability and savings potential against a 20% benchmark.\n\n"
            f"Financial Snapshot:\n{json.dumps(overview, indent=2)}\n\n"
            f"Recent Transactions (sample):\n{sample}\n\n"
            'Return JSON: {"insights": [{"title": "...", "description": "...", '
            '"category": "spending|income|savings", "priority": "high|medium|low"}]}'
        )
        parsed = await self.call_ai(prompt)
        return structured_or_fallback(parsed, ("insights",), {"insights": list(DEFAULT_INSIGHTS)})

    async def generate_recommendations(self) -> Dict[str, Any]:
        overview = self.calculate_wealth_overview()
        balances = "\n".join(
            f"- {a.account_type or a.category} ({a.name}): ₱{a.balance:,.2f}" for a in self.snapshot.accounts
        )
        prompt = (
            "As WealthBuilder AI, guide a user in the Philippines from saving to strategic investing. "
            "Provide 3-4 high-impact recommendations on investment strategy, increasing investable "
            "capital and debt management.\n\n"
            f"Financial Snapshot:\n{json.dumps(overview, indent=2)}\n\n"
            f"Account Balances:\n{balances}\n\n"
            'Return JSON: {"recommendations": [{"title": "...", "description": "...", '
            '"priority": "high|medium|low"}]}'
        )
        parsed = await self.call_ai(prompt)
        result = structured_or_fallback(
            parsed, ("recommendations",), {"recommendations": list(DEFAULT_RECOMMENDATIONS)}
        )
        if result.get("fallback"):
            logger.info(f"[WealthBuilder] Using default recommendations for {self.user_id}")
        return result

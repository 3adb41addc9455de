"""Pera Planner: long-range financial planning agent."""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List

from ....config import LIQUID_ACCOUNT_CATEGORIES
from ....schemas.agents.state import AutonomyLevel
from .. import debt, finance
from ..base import BaseAgent
from ..fallback import is_fallback

logger = logging.getLogger(__name__)

DEFAULT_AGE = 30
DEFAULT_RISK_TOLERANCE = "moderate"
EMERGENCY_FUND_MONTHS = 6
INVESTMENT_SHARE = 0.2
# Expenses are estimated from income when there is no expense history
ESTIMATED_EXPENSE_RATIO = 0.7

RISK_LEVEL_SCORES = {"low": 25, "medium": 50, "high": 75}

EMERGENCY_FUND_ADVICE = {
    "adequate": [
        "Emergency fund is well-established",
        "Maintain this level and adjust for lifestyle changes",
        "Consider higher-yield savings for the emergency fund",
    ],
    "building": [
        "Good progress! Continue building to 6 months of expenses",
        "Automate transfers to your emergency fund",
    ],
    "minimal": [
        "Priority: build the emergency fund to 3-6 months of expenses",
        "Cut unnecessary expenses temporarily to boost savings",
        "Keep the emergency fund in easily accessible accounts",
    ],
    "insufficient": [
        "Critical: build an emergency fund immediately",
        "Start with a goal of ₱25,000 minimum",
        "Consider side income to accelerate fund building",
    ],
}

READINESS_ADVICE = {
    "ready": [
        "You're ready to start investing! Consider index funds or ETFs",
        "Start with 5-10% of income in low-cost diversified investments",
        "Maintain your emergency fund while investing",
    ],
    "nearly_ready": [
        "Focus on building your emergency fund to 6 months of expenses",
        "Increase your savings rate to 20% if possible",
        "Consider starting with very conservative investments",
    ],
    "building": [
        "Priority: build an emergency fund (3-6 months of expenses)",
        "Improve your savings rate through expense optimization",
        "Learn about investing while building your financial foundation",
    ],
    "not_ready": [
        "Focus on increasing income and reducing expenses",
        "Build an emergency fund of ₱50,000 minimum",
        "Stabilize cash flow before considering investments",
    ],
}

READINESS_TIMELINES = {
    "ready": "You can start investing now",
    "nearly_ready": "2-6 months of preparation needed",
    "building": "6-12 months to build foundation",
    "not_ready": "12+ months to establish financial stability",
}

READINESS_ACTIONS = {
    "ready": "start_investing",
    "nearly_ready": "prepare_to_invest",
    "building": "build_foundation",
    "not_ready": "stabilize_cash_flow",
}

INVESTOR_STAGES = {
    "beginner": {
        "platforms": ["CIMB Bank", "ING Bank", "COL Financial"],
        "instruments": ["Digital Banks", "Time Deposits", "Index Funds"],
        "expected_return": "4-8%",
    },
    "intermediate": {
        "platforms": ["COL Financial", "BPI Trade", "First Metro Securities"],
        "instruments": ["Stock Market", "Index Funds", "Real Estate"],
        "expected_return": "6-12%",
    },
    "advanced": {
        "platforms": ["BDO Nomura", "Philequity", "AREIT"],
        "instruments": ["Blue Chip Stocks", "REITs", "International Funds"],
        "expected_return": "8-15%",
    },
}


def asset_allocation(age: int, risk_tolerance: str) -> Dict[str, int]:
    """Percent split by "100 minus age" in stocks, kept between 20 and 80."""
    stocks = max(20, 100 - age)
    if risk_tolerance == "conservative":
        stocks -= 20
    elif risk_tolerance == "aggressive":
        stocks += 10
    stocks = max(20, min(80, stocks))
    rest = 100 - stocks
    return {
        "stocks": stocks,
        "bonds": round(rest * 0.6),
        "real_estate": round(rest * 0.3),
        "cash": round(rest * 0.1),
    }


def readiness_level(score: int) -> str:
    if score >= 80:
        return "ready"
    if score >= 60:
        return "nearly_ready"
    if score >= 40:
        return "building"
    return "not_ready"


class PeraPlannerAgent(BaseAgent):
    """Builds a multi-year plan: emergency fund, investing, then a major goal."""

    agent_type = "pera_planner"
    default_autonomy = AutonomyLevel.MEDIUM

    async def load_domain_knowledge(self) -> Dict[str, Any]:
        knowledge = await super().load_domain_knowledge()
        knowledge.update({
            "asset_allocation": "100 minus age in stocks, adjusted for risk tolerance",
            "investment_readiness": "Emergency fund, savings rate, cash flow and account risk",
        })
        return knowledge

    @property
    def profile(self) -> Dict[str, Any]:
        return self.snapshot.profile or {}

    @property
    def age(self) -> int:
        age = self.profile.get("age")
        return age if isinstance(age, int) and age > 0 else DEFAULT_AGE

    @property
    def risk_tolerance(self) -> str:
        return self.profile.get("riskTolerance") or DEFAULT_RISK_TOLERANCE

    def liquid_balance(self) -> float:
        return sum(
            a.balance for a in self.snapshot.accounts
            if a.category in LIQUID_ACCOUNT_CATEGORIES and not debt.is_debt_account(a)
        )

    def cash_flow(self) -> Dict[str, float]:
        transactions = self.snapshot.transactions
        income = finance.monthly_average(transactions, "income")
        expenses = finance.monthly_average(transactions, "expense") or income * ESTIMATED_EXPENSE_RATIO
        return {
            "monthly_income": income,
            "monthly_expenses": expenses,
            "net_cash_flow": income - expenses,
            "savings_rate": ((income - expenses) / income) * 100 if income > 0 else 0.0,
        }

    def assess_emergency_fund(self) -> Dict[str, Any]:
        expenses = self.cash_flow()["monthly_expenses"]
        liquid = self.liquid_balance()
        months = liquid / expenses if expenses > 0 else 0.0

        if months >= 6:
            status = "adequate"
        elif months >= 3:
            status = "building"
        elif months >= 1:
            status = "minimal"
        else:
            status = "insufficient"

        target = expenses * EMERGENCY_FUND_MONTHS
        remaining = max(0.0, target - liquid)
        advice = list(EMERGENCY_FUND_ADVICE[status])
        if status == "building":
            advice.insert(1, f"Save an additional ₱{remaining:,.0f} to reach your target")
        return {
            "status": status,
            "current_amount": liquid,
            "target_amount": target,
            "remaining_amount": remaining,
            "months_covered": round(months, 1),
            "recommendations": advice,
        }

    def portfolio_risk_level(self) -> str:
        """Average of the per-account risk levels."""
        levels = [i["risk"]["risk_level"] for i in self.account_insights.values()]
        average = sum(RISK_LEVEL_SCORES.get(level, 50) for level in levels) / len(levels) if levels else 0
        if average < 35:
            return "low"
        if average < 65:
            return "medium"
        return "high"

    def assess_investment_readiness(self) -> Dict[str, Any]:
        """0-100 score: emergency fund 40, savings rate 30, cash flow 20, risk 10."""
        flow = self.cash_flow()
        emergency = self.assess_emergency_fund()
        risk = self.portfolio_risk_level()
        score = 0
        factors = []

        if emergency["status"] == "adequate":
            score += 40
            factors.append("Emergency fund established")
        elif emergency["status"] == "building":
            score += 20
            factors.append("Emergency fund in progress")
        else:
            factors.append("Emergency fund needed")

        rate = flow["savings_rate"]
        if rate > 20:
            score += 30
            factors.append("Strong savings rate")
        elif rate > 10:
            score += 20
            factors.append("Moderate savings rate")
        elif rate > 5:
            score += 10
            factors.append("Low savings rate")
        else:
            factors.append("Insufficient savings rate")

        if flow["net_cash_flow"] > flow["monthly_income"] * 0.15:
            score += 20
            factors.append("Healthy cash flow")
        elif flow["net_cash_flow"] > 0:
            score += 10
            factors.append("Tight cash flow")
        else:
            factors.append("Negative cash flow")

        if risk == "low":
            score += 10
            factors.append("Well-managed risk profile")
        elif risk == "medium":
            score += 5
            factors.append("Moderate risk profile")
        else:
            factors.append("High risk profile needs attention")

        level = readiness_level(score)
        return {
            "readiness_level": level,
            "readiness_score": score,
            "factors": factors,
            "recommendations": READINESS_ADVICE[level],
            "suggested_timeline": READINESS_TIMELINES[level],
        }

    def financial_roadmap(self) -> List[Dict[str, Any]]:
        flow = self.cash_flow()
        year = datetime.fromtimestamp(self._clock()).year
        emergency_target = flow["monthly_expenses"] * EMERGENCY_FUND_MONTHS
        return [
            {
                "year": year + 1,
                "age": self.age + 1,
                "goal": "Emergency Fund Complete",
                "target": emergency_target,
                "strategy": f"Save ₱{emergency_target / 12:,.0f}/month using automated transfers",
                "priority": "high",
            },
            {
                "year": year + 2,
                "age": self.age + 2,
                "goal": "Investment Portfolio Launch",
                "target": flow["monthly_income"] * 12,
                "strategy": f"Invest ₱{flow['monthly_income'] * INVESTMENT_SHARE:,.0f}/month in index funds",
                "priority": "high",
            },
            {
                "year": year + 5,
                "age": self.age + 5,
                "goal": "House Down Payment" if self.age < 35 else "Business Capital",
                "target": flow["monthly_income"] * 24,
                "strategy": "Combine savings and investment returns for a major milestone",
                "priority": "medium",
            },
        ]

    def investment_strategy(self) -> Dict[str, Any]:
        flow = self.cash_flow()
        savings = self.liquid_balance()
        has_investments = any(a.category == "investment" for a in self.snapshot.accounts)

        stage = "beginner"
        if has_investments or savings > 500_000:
            stage = "intermediate"
        if savings > 2_000_000 or self.profile.get("investmentExperience") == "advanced":
            stage = "advanced"

        return {
            "stage": stage,
            "monthly_budget": round(flow["monthly_income"] * INVESTMENT_SHARE),
            "asset_allocation": asset_allocation(self.age, self.risk_tolerance),
            **INVESTOR_STAGES[stage],
        }

    # Decision stages

    async def analyze_situation(self, context: Dict[str, Any]) -> Dict[str, Any]:
        return {
            **self.cash_flow(),
            "emergency_fund": self.assess_emergency_fund(),
            "readiness": self.assess_investment_readiness(),
        }

    async def generate_action_options(
        self, context: Dict[str, Any], analysis: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        readiness = analysis["readiness"]
        options = [{
            "action": READINESS_ACTIONS[readiness["readiness_level"]],
            "description": readiness["recommendations"][0],
            "timeline": readiness["suggested_timeline"],
            "readiness_score": readiness["readiness_score"],
        }]
        emergency = analysis["emergency_fund"]
        if emergency["status"] in ("minimal", "insufficient"):
            options.append({
                "action": "build_emergency_fund",
                "description": emergency["recommendations"][0],
                "remaining_amount": emergency["remaining_amount"],
            })
        options.append({"action": "review_plan", "description": "Review your financial roadmap"})
        return options

    async def evaluate_options(
        self, options: List[Dict[str, Any]], context: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        scores = {
            "build_emergency_fund": 0.85,
            "start_investing": 0.8,
            "prepare_to_invest": 0.75,
            "build_foundation": 0.75,
            "stabilize_cash_flow": 0.8,
            "review_plan": 0.4,
        }
        return [
            {**o, "score": scores.get(o.get("action"), o.get("score", 0.5)), "confidence": o.get("confidence", 0.7)}
            for o in options
        ]

    async def select_optimal_action(
        self, options: List[Dict[str, Any]], context: Dict[str, Any]
    ) -> Dict[str, Any]:
        if not options:
            raise ValueError("No options to choose from")
        return max(options, key=lambda o: o["score"])

    async def plan_follow_up_actions(self, decision: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, Any]:
        return {"actions": [f"track_{decision.get('action')}"], "timeline": "quarterly"}

    # AI-backed analyses

    async def create_financial_plan(self) -> Dict[str, Any]:
        """Comprehensive plan; each section the model leaves out is computed locally."""
        flow = self.cash_flow()
        profile = {
            "age": self.age,
            "risk_tolerance": self.risk_tolerance,
            **flow,
            "spending_categories": finance.category_totals(self.snapshot.transactions),
            "account_count": len(self.snapshot.accounts),
            "transaction_count": len(self.snapshot.transactions),
        }
        prompt = (
            "Ikaw ay isang world-class Filipino Financial Planner. Analyze the user's financial "
            "situation and create a comprehensive, personalized financial plan. Use the actual "
            "numbers, Philippine investments and Filipino family priorities.\n\n"
            f"User profile:\n{json.dumps(profile, indent=2, default=str)}\n\n"
            'Return JSON: {"executive_summary": {"financial_health_score": number, '
            '"primary_recommendation": "...", "critical_insights": [...]}, '
            '"roadmap": [{"year": number, "goal": "...", "target": number, "strategy": "...", '
            '"priority": "high|medium|low"}], '
            '"investment_strategy": {"stage": "...", "monthly_budget": number, "platforms": [...], '
            '"instruments": [...], "expected_return": "..."}, '
            '"action_plan": {"immediate": [...], "within_3_months": [...], "within_1_year": [...]}}'
        )
        parsed = await self.call_ai(prompt)
        usable = not is_fallback(parsed)

        roadmap = parsed.get("roadmap") if usable else None
        strategy = parsed.get("investment_strategy") if usable else None
        summary = parsed.get("executive_summary") if usable else None
        action_plan = parsed.get("action_plan") if usable else None
        ai_driven = isinstance(summary, dict)

        plan = {
            "profile": profile,
            "emergency_fund": self.assess_emergency_fund(),
            "investment_readiness": self.assess_investment_readiness(),
            "executive_summary": summary if ai_driven else None,
            "financial_roadmap": roadmap if isinstance(roadmap, list) and roadmap else self.financial_roadmap(),
            "investment_strategy": strategy if isinstance(strategy, dict) and strategy else self.investment_strategy(),
            "action_plan": action_plan if isinstance(action_plan, dict) else None,
            "plan_type": "ai_comprehensive" if ai_driven else "fallback",
            "generated_at": datetime.fromtimestamp(self._clock()).isoformat(),
        }
        if not ai_driven:
            logger.info(f"[PeraPlanner] Using locally computed plan for {self.user_id}")
            plan["fallback"] = True
        self.log_agent_action("financial_plan", {"plan_type": plan["plan_type"]})
        return plan

"""Ipon Coach: savings coaching agent."""

import json
import logging
from typing import Any, Dict, List, Optional

from ....config import LIQUID_ACCOUNT_CATEGORIES
from ....schemas.agents.state import AutonomyLevel
from .. import finance
from ..base import BaseAgent
from ..fallback import structured_or_fallback

logger = logging.getLogger(__name__)

EMERGENCY_FUND_TARGET_MONTHS = 3
TARGET_SAVINGS_RATE = 20.0
SPIKE_THRESHOLD_PERCENT = 50.0


class IponCoachAgent(BaseAgent):
    """Coaches the user toward an emergency fund and a healthy savings rate.

    Decisions pick between building the emergency fund, trimming the top
    spending category, raising the savings rate, or keeping course.
    """

    agent_type = "ipon_coach"
    default_autonomy = AutonomyLevel.HIGH

    async def load_domain_knowledge(self) -> Dict[str, Any]:
        knowledge = await super().load_domain_knowledge()
        knowledge.update({
            "budget_rule": "50/30/20: needs, wants, savings",
            "emergency_fund": f"Keep at least {EMERGENCY_FUND_TARGET_MONTHS} months of expenses liquid",
            "paluwagan": "Rotating savings groups; treat payouts as savings, not income",
        })
        return knowledge

    def get_financial_summary(self) -> Dict[str, Any]:
        overview = self.get_financial_overview()
        return {
            "total_balance": overview.total_balance,
            "monthly_income": overview.monthly_income,
            "monthly_expenses": overview.monthly_expenses,
            "category_spending": overview.category_spending,
            "savings_rate": overview.savings_rate,
        }

    # Decision stages

    async def analyze_situation(self, context: Dict[str, Any]) -> Dict[str, Any]:
        overview = self.get_financial_overview()
        liquid = sum(
            data["total_balance"] for category, data in overview.accounts_by_category.items()
            if category in LIQUID_ACCOUNT_CATEGORIES
        )
        months_covered = liquid / overview.monthly_expenses if overview.monthly_expenses > 0 else None
        top_category = next(iter(overview.category_spending), None)
        return {
            "savings_rate": overview.savings_rate,
            "monthly_expenses": overview.monthly_expenses,
            "emergency_fund_months": months_covered,
            "top_category": top_category,
            "top_category_amount": overview.category_spending.get(top_category, 0.0) if top_category else 0.0,
            "has_data": not self.snapshot.is_empty,
        }

    async def generate_action_options(
        self, context: Dict[str, Any], analysis: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        options = [{"action": "maintain_course", "description": "Keep your current saving habits"}]
        months = analysis.get("emergency_fund_months")
        if months is not None and months < EMERGENCY_FUND_TARGET_MONTHS:
            options.append({
                "action": "build_emergency_fund",
                "description": f"Build an emergency fund covering {EMERGENCY_FUND_TARGET_MONTHS} months of expenses",
                "months_covered": months,
            })
        if analysis.get("top_category"):
            options.append({
                "action": "trim_top_category",
                "description": f"Cut back on {analysis['top_category']} spending by 10%",
                "category": analysis["top_category"],
                "potential_savings": analysis["top_category_amount"] * 0.1,
            })
        if analysis.get("savings_rate", 0) < TARGET_SAVINGS_RATE:
            options.append({
                "action": "raise_savings_rate",
                "description": f"Raise your savings rate toward {TARGET_SAVINGS_RATE:.0f}%",
                "current_rate": analysis.get("savings_rate", 0),
            })
        return options

    async def evaluate_options(
        self, options: List[Dict[str, Any]], context: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        weights = {
            "build_emergency_fund": (0.9, 0.85),
            "raise_savings_rate": (0.75, 0.8),
            "trim_top_category": (0.6, 0.75),
            "maintain_course": (0.3, 0.7),
        }
        evaluated = []
        for option in options:
            score, confidence = weights.get(option.get("action"), (option.get("score", 0.5), 0.6))
            evaluated.append({**option, "score": score, "confidence": option.get("confidence", confidence)})
        return evaluated

    async def select_optimal_action(
        self, options: List[Dict[str, Any]], context: Dict[str, Any]
    ) -> Dict[str, Any]:
        if not options:
            raise ValueError("No options to choose from")
        # Ties go to the higher confidence, then to the earlier option
        return max(options, key=lambda o: (o["score"], o.get("confidence", 0)))

    async def plan_follow_up_actions(self, decision: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, Any]:
        timeline = "this_week" if decision.get("action") != "maintain_course" else "next_month"
        return {"actions": [f"review_{decision.get('action')}"], "timeline": timeline}

    # AI-backed analyses

    async def generate_budget_recommendations(self) -> Dict[str, Any]:
        """Personalized budget; falls back to a 50/30/20 split."""
        summary = self.get_financial_summary()
        prompt = (
            "As a Filipino financial advisor AI, create a personalized budget recommendation "
            "based on this financial data.\n\n"
            f"Financial Summary:\n{json.dumps(summary, indent=2)}\n\n"
            "Consider the Filipino 50/30/20 rule adaptation, family obligations and remittances, "
            "current spending patterns and emergency fund priority.\n\n"
            "Return as JSON object:\n"
            '{"monthly_income": number, "recommended_budget": {"needs": {...}, "wants": {...}, '
            '"savings": {...}}, "category_budgets": {...}, "recommendations": [{"priority": "...", '
            '"action": "...", "reason": "...", "expected_savings": number}], '
            '"emergency_fund_goal": number, "time_to_goal": "months"}'
        )
        parsed = await self.call_ai(prompt)
        return structured_or_fallback(
            parsed,
            ("monthly_income", "recommended_budget", "recommendations"),
            self.fallback_budget_recommendations(summary),
        )

    @staticmethod
    def fallback_budget_recommendations(summary: Dict[str, Any]) -> Dict[str, Any]:
        income = summary.get("monthly_income") or sum(summary.get("category_spending", {}).values()) * 1.2
        return {
            "monthly_income": income,
            "recommended_budget": {
                "needs": {"amount": income * 0.5, "percentage": 50, "categories": ["Food", "Utilities", "Rent"]},
                "wants": {"amount": income * 0.3, "percentage": 30, "categories": ["Entertainment", "Shopping"]},
                "savings": {"amount": income * 0.2, "percentage": 20, "purpose": "Emergency fund and goals"},
            },
            "category_budgets": {},
            "recommendations": [
                {
                    "priority": "high",
                    "action": "Create an emergency fund",
                    "reason": "Financial security is crucial",
                    "expected_savings": income * 0.1,
                }
            ],
            "emergency_fund_goal": income * EMERGENCY_FUND_TARGET_MONTHS,
            "time_to_goal": "6-12 months",
        }

    async def detect_overspending_patterns(self, as_of: Optional[Any] = None) -> Dict[str, Any]:
        """Spending spikes by category; falls back to a month-over-month check."""
        monthly = finance.month_over_month_spending(self.snapshot.transactions, as_of)
        if not monthly["current"]:
            return {"patterns": [], "monthly_spending": monthly}

        prompt = (
            "As a Filipino financial advisor AI, analyze these spending patterns and detect "
            "overspending or concerning trends.\n\n"
            f"Monthly spending data:\n{json.dumps(monthly, indent=2)}\n\n"
            "Identify increasing trends, unusual spikes, overspending against typical Filipino "
            "household budgets and concerning patterns like growing utang.\n\n"
            'Return JSON: {"patterns": [{"category": "...", "pattern": "increasing|spike|concerning", '
            '"severity": "low|medium|high", "description": "...", "recommendation": "...", '
            '"current_monthly": number, "previous_monthly": number, "percentage_change": number}]}'
        )
        parsed = await self.call_ai(prompt)
        result = structured_or_fallback(
            parsed,
            ("patterns",),
            {"patterns": self.fallback_pattern_detection(monthly)},
        )
        if result.get("fallback"):
            logger.info(f"[IponCoach] Using local spike detection for {self.user_id}")
        result["monthly_spending"] = monthly
        return result

    @staticmethod
    def fallback_pattern_detection(monthly: Dict[str, Dict[str, float]]) -> List[Dict[str, Any]]:
        patterns = []
        for category, current in monthly["current"].items():
            previous = monthly["previous"].get(category, 0)
            if previous <= 0:
                continue
            change = ((current - previous) / previous) * 100
            if change > SPIKE_THRESHOLD_PERCENT:
                patterns.append({
                    "category": category,
                    "pattern": "spike",
                    "severity": "high" if change > 100 else "medium",
                    "description": f"{category} spending increased by {change:.1f}%",
                    "recommendation": f"Consider reviewing your {category} expenses",
                    "current_monthly": current,
                    "previous_monthly": previous,
                    "percentage_change": change,
                })
        return patterns

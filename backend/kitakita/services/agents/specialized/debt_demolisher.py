"""Debt Demolisher: debt repayment strategy agent."""

import logging
from typing import Any, Dict, List, Optional

from ....schemas.agents.state import AutonomyLevel
from .. import debt, finance
from ..base import BaseAgent
from ..fallback import is_fallback

logger = logging.getLogger(__name__)

DEFAULT_EXTRA_PAYMENT = 5000.0
# Below this, the snowball's quick wins are worth more than the interest saved
SMALL_INTEREST_DIFFERENCE = 500.0


class DebtDemolisherAgent(BaseAgent):
    """Compares avalanche and snowball repayment and picks a plan.

    Debts are the user's ``loan`` accounts and credit cards. The simulation
    runs locally; the model only chooses between the two simulated plans and
    explains the choice.
    """

    agent_type = "debt_demolisher"
    default_autonomy = AutonomyLevel.HIGH

    def __init__(self, *args: Any, extra_payment: float = DEFAULT_EXTRA_PAYMENT, **kwargs: Any):
        kwargs.setdefault("learning_rate", 0.2)
        super().__init__(*args, **kwargs)
        self.extra_payment = extra_payment

    async def on_initialized(self) -> None:
        self.goals = [{"type": "debt_free", "total_debt": self.total_debt}] if self.debts else []

    async def load_domain_knowledge(self) -> Dict[str, Any]:
        knowledge = await super().load_domain_knowledge()
        knowledge.update({
            "avalanche": "Pay minimums on everything, extra on the highest interest rate first",
            "snowball": "Pay minimums on everything, extra on the smallest balance first",
            "dti": f"Debt-to-income above {debt.DTI_HIGH:.0f}% makes new loans hard to get",
        })
        return knowledge

    @property
    def debts(self) -> List[Dict[str, Any]]:
        return debt.debts_from_accounts(self.snapshot.accounts)

    @property
    def total_debt(self) -> float:
        return sum(d["balance"] for d in self.debts)

    @property
    def user_income(self) -> float:
        return finance.monthly_average(self.snapshot.transactions, "income")

    # Decision stages

    async def analyze_situation(self, context: Dict[str, Any]) -> Dict[str, Any]:
        debts = self.debts
        extra = context.get("extra_payment", self.extra_payment)
        plans = debt.compare_strategies(debts, extra) if debts else {}
        return {
            "debt_count": len(debts),
            "total_debt": self.total_debt,
            "extra_payment": extra,
            "plans": plans,
            "interest_saved": (
                plans["snowball"]["total_interest"] - plans["avalanche"]["total_interest"] if plans else 0.0
            ),
            "debt_to_income": debt.debt_to_income_ratio(self.total_debt, self.user_income),
            "high_interest": [d["name"] for d in debts if d["interest_rate"] > debt.HIGH_INTEREST_RATE],
        }

    async def generate_action_options(
        self, context: Dict[str, Any], analysis: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        if not analysis["debt_count"]:
            return [{"action": "stay_debt_free", "description": "No debts to pay down; keep it that way"}]

        options = []
        for strategy, plan in analysis["plans"].items():
            options.append({
                "action": f"debt_{strategy}",
                "description": f"{plan['name']}: debt-free in {plan['payoff_months']} months",
                "focus_account": plan["focus_account"],
                "payoff_months": plan["payoff_months"],
                "total_interest": plan["total_interest"],
            })
        for name in analysis["high_interest"]:
            options.append({
                "action": "refinance_high_interest",
                "description": f"Look for a lower rate to refinance {name}",
                "account": name,
            })
        return options

    async def evaluate_options(
        self, options: List[Dict[str, Any]], context: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        interest = {o["action"]: o.get("total_interest") for o in options if "total_interest" in o}
        difference = (interest.get("debt_snowball") or 0.0) - (interest.get("debt_avalanche") or 0.0)
        scores = {
            "stay_debt_free": 0.9,
            "debt_avalanche": 0.85,
            "debt_snowball": 0.9 if 0 < difference < SMALL_INTEREST_DIFFERENCE else 0.7,
            "refinance_high_interest": 0.6,
        }
        return [
            {**o, "score": scores.get(o.get("action"), o.get("score", 0.5)), "confidence": o.get("confidence", 0.8)}
            for o in options
        ]

    async def select_optimal_action(
        self, options: List[Dict[str, Any]], context: Dict[str, Any]
    ) -> Dict[str, Any]:
        if not options:
            raise ValueError("No options to choose from")
        return max(options, key=lambda o: o["score"])

    async def plan_follow_up_actions(self, decision: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, Any]:
        actions = [f"track_{decision.get('action')}"]
        if decision.get("action", "").startswith("debt_"):
            actions.insert(0, "automate_extra_payment")
        return {"actions": actions, "timeline": "monthly"}

    # AI-backed analyses

    async def build_repayment_plan(self, extra_payment: Optional[float] = None) -> Dict[str, Any]:
        """Simulate both strategies and let the model pick one.

        Without a usable reply the plan defaults to the avalanche, which is
        the cheaper plan, and carries ``fallback: True``.
        """
        extra = self.extra_payment if extra_payment is None else extra_payment
        debts = self.debts
        if not debts:
            return {"total_debt": 0.0, "plans": {}, "recommended_strategy": None, "action_plan": [], "insights": []}

        plans = debt.compare_strategies(debts, extra)
        avalanche, snowball = plans["avalanche"], plans["snowball"]
        prompt = (
            "You are a helpful financial AI assistant. Compare two debt repayment plans "
            "and recommend the best one.\n\n"
            f"Plan A (Debt Avalanche): total interest ₱{avalanche['total_interest']:,.2f}, "
            f"payoff in {avalanche['payoff_months']} months. Saves more on interest.\n"
            f"Plan B (Debt Snowball): total interest ₱{snowball['total_interest']:,.2f}, "
            f"payoff in {snowball['payoff_months']} months. Clears small debts first for quick wins.\n\n"
            'Return JSON: {"recommended_strategy": "avalanche|snowball", "reasoning": "...", '
            '"insights": [{"title": "...", "description": "..."}]}'
        )
        parsed = await self.call_ai(prompt)

        strategy = parsed.get("recommended_strategy") if not is_fallback(parsed) else None
        used_fallback = not isinstance(strategy, str) or strategy not in plans
        if used_fallback:
            logger.info(f"[DebtDemolisher] No usable recommendation, defaulting to avalanche for {self.user_id}")
            strategy = "avalanche"
        chosen = plans[strategy]

        reasoning = parsed.get("reasoning")
        if used_fallback or not isinstance(reasoning, str) or not reasoning:
            reasoning = self.default_reasoning(chosen)

        suggested = parsed.get("insights") if not used_fallback else None
        insights = [
            {"title": i["title"], "description": i["description"], "priority": "opportunity"}
            for i in (suggested if isinstance(suggested, list) else [])
            if isinstance(i, dict) and i.get("title") and i.get("description")
        ]
        if not insights:
            insights = self.strategic_insights(debts, strategy, extra)

        plan = {
            "total_debt": self.total_debt,
            "plans": plans,
            "recommended_strategy": {
                "strategy": strategy,
                "name": chosen["name"],
                "reasoning": reasoning,
                "payoff_months": chosen["payoff_months"],
                "total_interest": chosen["total_interest"],
                "focus_account": chosen["focus_account"],
            },
            "action_plan": [
                {
                    "step": 1,
                    "title": f"Target Your {'Highest-Interest' if strategy == 'avalanche' else 'Smallest'} Debt",
                    "description": (
                        "Pay the minimum on all debts and send every extra peso to "
                        f"{chosen['focus_account']}."
                    ),
                    "priority": "high",
                },
                {
                    "step": 2,
                    "title": "Automate Extra Payments",
                    "description": f"Set up an automatic transfer of at least ₱{extra:,.2f} to your focus account each month.",
                    "priority": "high",
                },
            ],
            "insights": insights,
        }
        if used_fallback:
            plan["fallback"] = True
        self.log_agent_action("repayment_plan", {"strategy": strategy, "fallback": used_fallback})
        return plan

    @staticmethod
    def default_reasoning(plan: Dict[str, Any]) -> str:
        focus = plan["focus_account"]
        if plan["strategy"] == "avalanche":
            return (
                f"The Debt Avalanche is recommended. Focusing on {focus}, your highest-rate debt, "
                "saves the most on interest over time."
            )
        return (
            f"The Debt Snowball is recommended. Clearing {focus}, your smallest debt, first gives "
            "a quick win that keeps you motivated."
        )

    def strategic_insights(self, debts: List[Dict[str, Any]], strategy: str, extra: float) -> List[Dict[str, Any]]:
        insights = []

        scenarios = debt.payment_power(debts, strategy, extra)
        if scenarios:
            insights.append({
                "title": "Payment Power-Up",
                "description": " ".join(
                    f"+₱{s['additional_payment']:,}/mo pays off debt {s['months_saved']} months sooner."
                    for s in scenarios
                ),
                "priority": "opportunity",
            })

        dti = debt.debt_to_income_ratio(self.total_debt, self.user_income)
        if dti is not None:
            if dti > debt.DTI_HIGH:
                note, priority = "This is high and could make new loans hard to get.", "high"
            elif dti > debt.DTI_MEDIUM:
                note, priority = "This is manageable, but lowering it gives you more flexibility.", "medium"
            else:
                note, priority = "This is generally healthy.", "low"
            insights.append({
                "title": "Debt-to-Income Analysis",
                "description": f"Your debt-to-income ratio is about {dti:.0f}%. {note}",
                "priority": priority,
            })

        high = next((d for d in debts if d["interest_rate"] > debt.HIGH_INTEREST_RATE), None)
        if high:
            insights.append({
                "title": f"High-Interest Rate Review: {high['name']}",
                "description": (
                    f"{high['name']} charges {high['interest_rate']:.1f}% a year. "
                    "Consider refinancing to a lower rate."
                ),
                "priority": "high",
            })
        return insights

"""Gastos Guardian: expense categorization and spending-leak agent."""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from rapidfuzz import fuzz, process

from ....config import OUTFLOW_TYPES
from ....schemas.agents.state import AutonomyLevel
from ....schemas.finance import Transaction
from .. import finance
from ..base import BaseAgent
from ..fallback import is_fallback, structured_or_fallback

logger = logging.getLogger(__name__)

FILIPINO_CATEGORIES = {
    "food": ["kakainin", "pagkain", "restaurant", "grocery", "tindahan", "palengke", "fast food", "delivery"],
    "transport": ["jeepney", "bus", "tricycle", "grab", "taxi", "mrt", "lrt", "gas", "gasolina"],
    "utilities": ["kuryente", "electricity", "tubig", "water", "internet", "phone", "meralco"],
    "rent": ["upa", "rent", "dormitory", "condo", "apartment"],
    "entertainment": ["sine", "movie", "gala", "gimik", "bar", "party", "shopping"],
    "health": ["gamot", "medicine", "doctor", "hospital", "checkup"],
    "education": ["tuition", "school", "books", "supplies"],
    "remittance": ["padala", "family", "pamilya", "utang", "loan"],
}

TIPID_TIPS = {
    "food": "Mamalengke instead of buying at the supermarket, and cook baon for work.",
    "transport": "Combine errands into one trip and try jeepney or MRT routes over Grab.",
    "utilities": "Unplug appliances when not in use to lower your Meralco bill.",
    "entertainment": "Set a fixed gala budget per month and look for free weekend events.",
    "rent": "Consider sharing a place or moving closer to work to save on both rent and fare.",
}

DEFAULT_CONFIDENCE = 0.6
KEYWORD_CONFIDENCE = 0.75
FUZZY_CONFIDENCE = 0.65
FUZZY_SCORE_CUTOFF = 80
MIN_FUZZY_TOKEN = 4
SMALL_PURCHASE_AMOUNT = 200
BATCH_SIZE = 10
CONCURRENT_BATCHES = 3
RECENT_TRANSACTION_LIMIT = 50

_KEYWORD_INDEX = {
    keyword: category
    for category, keywords in FILIPINO_CATEGORIES.items()
    for keyword in keywords
    if len(keyword) >= MIN_FUZZY_TOKEN
}
_KEYWORDS = list(_KEYWORD_INDEX)


def categorize_description(description: str) -> Dict[str, Any]:
    """Keyword match first, then a fuzzy match for misspelled words."""
    text = (description or "").lower()
    for category, keywords in FILIPINO_CATEGORIES.items():
        for keyword in keywords:
            if keyword in text:
                return {
                    "category": category.capitalize(),
                    "confidence": KEYWORD_CONFIDENCE,
                    "reasoning": f'Matched Filipino keyword: "{keyword}"',
                    "source": "keyword",
                }

    best = None
    for token in text.split():
        if len(token) < MIN_FUZZY_TOKEN:
            continue
        match = process.extractOne(token, _KEYWORDS, scorer=fuzz.ratio, score_cutoff=FUZZY_SCORE_CUTOFF)
        if match and (best is None or match[1] > best[1]):
            best = match
    if best:
        keyword = best[0]
        return {
            "category": _KEYWORD_INDEX[keyword].capitalize(),
            "confidence": FUZZY_CONFIDENCE,
            "reasoning": f'Close match to Filipino keyword: "{keyword}"',
            "source": "fuzzy",
        }

    return {
        "category": "Others",
        "confidence": DEFAULT_CONFIDENCE,
        "reasoning": "Default categorization",
        "source": "default",
    }


def _as_confidence(value: Any, default: float = 0.5) -> float:
    """Clamp a model-reported confidence into [0, 1]."""
    if isinstance(value, bool):
        return default
    try:
        return min(max(float(value), 0.0), 1.0)
    except (TypeError, ValueError):
        return default


def _describe(txn: Transaction) -> Dict[str, Any]:
    return {
        "id": txn.id,
        "description": txn.description or "Unknown",
        "amount": txn.amount,
        "date": txn.txn_date.isoformat() if txn.txn_date else None,
        "current_category": txn.category or "Uncategorized",
    }


class GastosGuardianAgent(BaseAgent):
    """Watches expenses: categorizes them and points out spending leaks."""

    agent_type = "gastos_guardian"
    default_autonomy = AutonomyLevel.HIGH

    async def load_domain_knowledge(self) -> Dict[str, Any]:
        knowledge = await super().load_domain_knowledge()
        knowledge["filipino_categories"] = FILIPINO_CATEGORIES
        knowledge["tipid_tips"] = TIPID_TIPS
        return knowledge

    def recent_expenses(self) -> List[Transaction]:
        expenses = [t for t in self.snapshot.transactions if t.type in OUTFLOW_TYPES]
        return expenses[:RECENT_TRANSACTION_LIMIT]

    # Decision stages

    async def analyze_situation(self, context: Dict[str, Any]) -> Dict[str, Any]:
        expenses = finance.monthly_transactions(self.recent_expenses())
        totals = finance.category_totals(expenses)
        total = sum(totals.values())
        top_category = next(iter(totals), None)
        small = [t for t in expenses if t.amount < SMALL_PURCHASE_AMOUNT]
        return {
            "monthly_expenses": total,
            "category_totals": totals,
            "top_category": top_category,
            "top_share": totals[top_category] / total if top_category and total else 0.0,
            "small_purchase_count": len(small),
            "small_purchase_total": sum(t.amount for t in small),
        }

    async def generate_action_options(
        self, context: Dict[str, Any], analysis: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        options = [{"action": "maintain_course", "description": "Spending looks balanced"}]
        if analysis["top_category"]:
            options.append({
                "action": "set_category_budget",
                "category": analysis["top_category"],
                "description": f"Set a monthly limit for {analysis['top_category']}",
                "share": analysis["top_share"],
            })
        if analysis["small_purchase_count"] >= 10:
            options.append({
                "action": "track_small_purchases",
                "description": "Many small purchases add up; track them for a week",
                "total": analysis["small_purchase_total"],
            })
        return options

    async def evaluate_options(
        self, options: List[Dict[str, Any]], context: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        evaluated = []
        for option in options:
            action = option.get("action")
            if action == "set_category_budget":
                score = min(0.4 + option.get("share", 0), 0.95)
            elif action == "track_small_purchases":
                score = 0.7
            elif action == "maintain_course":
                score = 0.35
            else:
                score = option.get("score", 0.5)
            evaluated.append({**option, "score": score, "confidence": option.get("confidence", 0.7)})
        return evaluated

    async def select_optimal_action(
        self, options: List[Dict[str, Any]], context: Dict[str, Any]
    ) -> Dict[str, Any]:
        if not options:
            raise ValueError("No options to choose from")
        return max(options, key=lambda o: o["score"])

    # AI-backed analyses

    async def categorize_transactions(self, transactions: Optional[List[Transaction]] = None) -> Dict[str, Any]:
        """Categorize recent expenses in batches, a few batches at a time.

        Batches the AI cannot categorize fall back to keyword and fuzzy
        matching; those items carry ``fallback: True``.
        """
        items = [_describe(t) for t in (transactions if transactions is not None else self.recent_expenses())]
        batches = [items[i:i + BATCH_SIZE] for i in range(0, len(items), BATCH_SIZE)]
        semaphore = asyncio.Semaphore(CONCURRENT_BATCHES)

        async def run(batch: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
            async with semaphore:
                return await self._categorize_batch(batch)

        results = await asyncio.gather(*(run(b) for b in batches))
        categorized = [item for batch in results for item in batch]

        totals: Dict[str, float] = {}
        for item in categorized:
            totals[item["category"]] = totals.get(item["category"], 0.0) + item["amount"]

        result = {"categorized": categorized, "category_totals": totals}
        if any(item.get("fallback") for item in categorized):
            result["fallback"] = True
        return result

    async def _categorize_batch(self, batch: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        prompt = (
            "Please analyze and categorize these financial transactions into appropriate categories. "
            "For each transaction, consider the description and amount.\n\n"
            f"Transaction details:\n{json.dumps([{k: t[k] for k in ('description', 'amount', 'date')} for t in batch], indent=2)}\n\n"
            f"Available categories: {', '.join(FILIPINO_CATEGORIES)}\n\n"
            'Return JSON: {"categories": ["category1", ...], "confidence": [0.95, ...], '
            '"reasoning": ["reason1", ...]}'
        )
        parsed = await self.call_ai(prompt)
        categories = parsed.get("categories") if not is_fallback(parsed) else None
        if not isinstance(categories, list):
            return self.fallback_categorization(batch)

        confidences = parsed.get("confidence") if isinstance(parsed.get("confidence"), list) else []
        reasons = parsed.get("reasoning") if isinstance(parsed.get("reasoning"), list) else []
        categorized = []
        for i, txn in enumerate(batch):
            category = categories[i] if i < len(categories) else None
            if not isinstance(category, str) or not category.strip():
                logger.warning(f"[GastosGuardian] Unusable category for {txn['id']}: {category!r}")
                categorized.extend(self.fallback_categorization([txn]))
                continue
            reason = reasons[i] if i < len(reasons) else None
            categorized.append({
                **txn,
                "category": category.strip(),
                "confidence": _as_confidence(confidences[i] if i < len(confidences) else None),
                "reasoning": reason if isinstance(reason, str) else "AI categorization",
                "source": "ai",
            })
        return categorized

    @staticmethod
    def fallback_categorization(batch: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        categorized = []
        for txn in batch:
            match = categorize_description(txn["description"])
            if txn["amount"] > 10000:
                match["confidence"] = max(match["confidence"], 0.65)
            categorized.append({**txn, **match, "fallback": True})
        return categorized

    async def find_spending_leaks(self) -> Dict[str, Any]:
        analysis = await self.analyze_situation({})
        prompt = (
            'As an AI "Gastos Guardian," analyze these Filipino user transactions and identify 2-3 '
            'potential "spending leaks": frequent online shopping, expensive data plans, or many '
            "small untracked purchases. Keep each observation short and non-judgmental.\n\n"
            f"Transactions:\n{self._transaction_summary()}\n\n"
            'Return JSON: {"leaks": ["Observation about a potential leak.", ...]}'
        )
        parsed = await self.call_ai(prompt)
        return structured_or_fallback(parsed, ("leaks",), {"leaks": self.fallback_leaks(analysis)})

    @staticmethod
    def fallback_leaks(analysis: Dict[str, Any]) -> List[str]:
        leaks = []
        if analysis["small_purchase_count"] >= 10:
            leaks.append(
                f"{analysis['small_purchase_count']} small purchases this month add up to "
                f"₱{analysis['small_purchase_total']:,.2f}."
            )
        if analysis["top_category"] and analysis["top_share"] > 0.4:
            leaks.append(
                f"{analysis['top_category']} takes {analysis['top_share'] * 100:.0f}% of your spending this month."
            )
        return leaks

    async def generate_tipid_tips(self) -> Dict[str, Any]:
        analysis = await self.analyze_situation({})
        prompt = (
            'As an AI "Gastos Guardian," provide 2-3 actionable "Tipid Tips" based on the '
            "user's spending habits. The tips must be culturally relevant to the Philippines.\n\n"
            f"Transactions:\n{self._transaction_summary()}\n\n"
            'Return JSON: {"tips": ["A culturally relevant tip.", ...]}'
        )
        parsed = await self.call_ai(prompt)
        return structured_or_fallback(parsed, ("tips",), {"tips": self.fallback_tips(analysis)})

    @staticmethod
    def fallback_tips(analysis: Dict[str, Any]) -> List[str]:
        tips = [
            TIPID_TIPS[category.lower()]
            for category in analysis["category_totals"]
            if category.lower() in TIPID_TIPS
        ][:3]
        return tips or ["Record every expense for a month to see where your money goes."]

    def _transaction_summary(self) -> str:
        return "\n".join(
            f"- {t.description or t.category or 'Unknown'}: ₱{t.amount:,.2f} ({t.type})"
            for t in self.recent_expenses()
        )

"""
Analysis Service

Runs the decision pipeline for one analyze request:

    employee snapshot -> ProfitabilityEvaluator -> SuggestionRuleEngine
        -> BudgetReconciler -> AnalysisAggregator

``analyze`` is pure and synchronous; it only sees the snapshot and the
AnalysisConfig it is handed, so concurrent calls with different budgets
cannot interfere. ``analyze_employees`` is the async wrapper that loads the
snapshot and, when enabled, writes the fresh suggestions back.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from compadvisor.core.config import settings
from compadvisor.core.logging_config import get_logger
from compadvisor.core.exceptions import InvalidBudgetError
from compadvisor.schemas.analysis import DecisionAction
from compadvisor.services.analysis_aggregator import AnalysisAggregator, AnalysisTotals
from compadvisor.services.budget_reconciler import BudgetReconciler, Escalation
from compadvisor.services.data.employee_store import EmployeeStore
from compadvisor.services.market_rates import MarketRateTable, default_market_rates, load_market_rates
from compadvisor.services.profitability_service import EmployeeProfile, ProfitabilityEvaluator
from compadvisor.services.suggestion_rule_engine import (
    CandidateSuggestion,
    RuleConfig,
    SuggestionRuleEngine,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class AnalysisConfig:
    """Everything one analysis call depends on besides the employee snapshot"""
    budget: float
    rules: RuleConfig = field(default_factory=RuleConfig)
    market_rates: MarketRateTable = default_market_rates


@dataclass
class AnalysisOutcome:
    summary: AnalysisTotals
    suggestions: List[CandidateSuggestion]
    escalations: List[Escalation]
    within_budget: bool

    def result_items(self) -> List[Dict]:
        """Per-employee rows in the analyze response shape"""
        return [build_result_item(s) for s in self.suggestions]


def validate_budget(budget) -> float:
    if budget is None or isinstance(budget, bool):
        raise InvalidBudgetError("Budget is required", details={"budget": budget})
    try:
        value = float(budget)
    except (TypeError, ValueError):
        raise InvalidBudgetError("Budget must be a number", details={"budget": budget})
    if not math.isfinite(value) or value <= 0:
        raise InvalidBudgetError("Budget must be a positive amount", details={"budget": budget})
    return value


def build_result_item(suggestion: CandidateSuggestion) -> Dict:
    difference = round(suggestion.payroll_contribution - suggestion.current_salary, 2)
    payload = suggestion.to_suggestion_dict()
    payload.update({
        "currentSalary": suggestion.current_salary,
        "salaryDifference": difference,
        "salaryChangeType": "increase" if difference > 0 else "decrease",
    })
    return {
        "ssid": suggestion.ssid,
        "name": suggestion.name,
        "currentSalary": suggestion.current_salary,
        "suggestion": payload,
    }


class AnalysisService:
    """Orchestrates the read-only analysis pipeline"""

    def __init__(
        self,
        rule_config: Optional[RuleConfig] = None,
        market_rates: Optional[MarketRateTable] = None,
        default_budget: Optional[float] = None,
        persist_suggestions: bool = True,
    ):
        self.rule_config = rule_config or RuleConfig()
        self.market_rates = market_rates or default_market_rates
        self.default_budget = default_budget
        self.persist_suggestions = persist_suggestions

    @classmethod
    def from_settings(cls, app_settings) -> "AnalysisService":
        return cls(
            rule_config=RuleConfig.from_settings(app_settings),
            market_rates=load_market_rates(app_settings.MARKET_RATES_PATH),
            default_budget=app_settings.DEFAULT_COMPANY_BUDGET,
            persist_suggestions=app_settings.PERSIST_SUGGESTIONS,
        )

    def config_for(self, budget: Optional[float]) -> AnalysisConfig:
        if budget is None:
            budget = self.default_budget
        return AnalysisConfig(
            budget=validate_budget(budget),
            rules=self.rule_config,
            market_rates=self.market_rates,
        )

    def analyze(self, profiles: Sequence[EmployeeProfile], config: AnalysisConfig) -> AnalysisOutcome:
        budget = validate_budget(config.budget)

        evaluator = ProfitabilityEvaluator(config.market_rates)
        engine = SuggestionRuleEngine(config.rules)
        # Per-employee signals and candidates are independent; reconciliation needs them all
        candidates = [engine.suggest(p, evaluator.evaluate(p)) for p in profiles]

        reconciled = BudgetReconciler(config.rules).reconcile(candidates, budget)
        summary = AnalysisAggregator(config.rules.currency_decimals).summarize(
            reconciled.suggestions, budget, escalations=len(reconciled.escalations)
        )

        logger.info(
            f"Analyzed {len(profiles)} employees against budget {budget:,.0f}: "
            f"suggested payroll {summary.totalSuggestedSalaries:,.0f}, "
            f"{summary.projectedSavingsType} {abs(summary.projectedSavings):,.0f}, "
            f"{len(reconciled.escalations)} escalations, actions {summary.actionCounts}"
        )

        return AnalysisOutcome(
            summary=summary,
            suggestions=reconciled.suggestions,
            escalations=reconciled.escalations,
            within_budget=reconciled.within_budget,
        )

    async def analyze_employees(
        self,
        db: AsyncSession,
        budget: Optional[float] = None,
        ssids: Optional[Sequence[str]] = None,
        persist: Optional[bool] = None,
    ) -> AnalysisOutcome:
        # Reject a bad budget before touching storage
        config = self.config_for(budget)

        store = EmployeeStore(db)
        employees = await store.list_active(ssids)
        if ssids is not None:
            missing = set(ssids) - {e.ssid for e in employees}
            if missing:
                logger.debug(f"Skipping unknown or inactive ssids: {sorted(missing)}")

        profiles = [EmployeeProfile.from_model(e) for e in employees]
        outcome = self.analyze(profiles, config)

        if self.persist_suggestions if persist is None else persist:
            analyzed_at = datetime.now(timezone.utc)
            await store.save_suggestions(
                [(s.ssid, s.to_suggestion_dict()) for s in outcome.suggestions],
                analyzed_at,
            )

        return outcome

    @staticmethod
    def is_pending(suggestion: Optional[Dict]) -> bool:
        """A persisted suggestion still awaiting a decision"""
        if not suggestion:
            return False
        if suggestion.get("supersededAt"):
            return False
        return suggestion.get("action") != DecisionAction.NO_CHANGE.value


analysis_service = AnalysisService.from_settings(settings)

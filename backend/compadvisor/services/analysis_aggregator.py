"""
Analysis Aggregator

Pure reduction of the final suggestion list into the organization-level
summary. Per employee the payroll contribution is 0 for FIRE, the suggested
salary when one is present, and the current salary otherwise.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Sequence

from compadvisor.schemas.analysis import DecisionAction
from compadvisor.services.suggestion_rule_engine import CandidateSuggestion


@dataclass(frozen=True)
class AnalysisTotals:
    companyBudget: float
    totalCurrentSalaries: float
    totalSuggestedSalaries: float
    totalRevenue: float
    projectedSavings: float
    projectedSavingsType: str
    budgetExceeded: bool
    escalations: int
    actionCounts: Dict[str, int]

    def to_dict(self) -> Dict:
        return asdict(self)


class AnalysisAggregator:
    def __init__(self, currency_decimals: int = 2):
        self.currency_decimals = currency_decimals

    def summarize(
        self,
        suggestions: Sequence[CandidateSuggestion],
        budget: float,
        escalations: int = 0,
    ) -> AnalysisTotals:
        d = self.currency_decimals
        total_current = round(sum(s.current_salary for s in suggestions), d)
        total_suggested = round(sum(s.payroll_contribution for s in suggestions), d)
        total_revenue = round(sum(s.revenue for s in suggestions), d)
        savings = round(total_current - total_suggested, d)

        # Every action kind appears, zero or not, so consumers get a stable shape
        counts = {action.value: 0 for action in DecisionAction}
        for s in suggestions:
            counts[s.action.value] += 1

        return AnalysisTotals(
            companyBudget=budget,
            totalCurrentSalaries=total_current,
            totalSuggestedSalaries=total_suggested,
            totalRevenue=total_revenue,
            projectedSavings=savings,
            projectedSavingsType="savings" if savings >= 0 else "increase",
            budgetExceeded=total_suggested > budget,
            escalations=escalations,
            actionCounts=counts,
        )

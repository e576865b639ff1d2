"""
Budget Reconciler

Fits the candidate set under an organization-wide payroll ceiling with a
deterministic greedy walk:

1. If the candidates' aggregate payroll already fits, return them untouched.
2. Otherwise rank the employees whose candidate is NO_CHANGE or PROMOTE by
   ascending profit, then ascending performance band, then ssid.
3. Walk that order in passes. Each visit escalates the employee one step on
   PROMOTE -> NO_CHANGE -> DECREASE_SALARY -> FIRE and re-checks the
   aggregate. Stop as soon as it fits, or when every ranked employee is at
   FIRE.

Candidates the rule engine already marked DECREASE_SALARY or FIRE are never
touched, and no employee is ever moved to a less severe action. A ceiling
that cannot be met is returned as a normal result (within_budget=False).
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence

from compadvisor.schemas.analysis import DecisionAction
from compadvisor.schemas.employee import PERFORMANCE_RANK
from compadvisor.services.suggestion_rule_engine import (
    CandidateSuggestion,
    RuleConfig,
    change_percent,
    round_money,
)

logger = logging.getLogger(__name__)

ESCALATABLE_ACTIONS = (DecisionAction.NO_CHANGE, DecisionAction.PROMOTE)


@dataclass(frozen=True)
class Escalation:
    """One reconciliation step, kept so every change is attributable"""
    ssid: str
    from_action: DecisionAction
    to_action: DecisionAction
    pass_number: int
    priority_rank: int
    aggregate_after: float


@dataclass
class ReconciliationResult:
    suggestions: List[CandidateSuggestion]
    total_suggested: float
    budget: float
    within_budget: bool
    escalations: List[Escalation]


def aggregate_payroll(suggestions: Sequence[CandidateSuggestion], decimals: int = 2) -> float:
    return round(sum(s.payroll_contribution for s in suggestions), decimals)


class BudgetReconciler:
    """Greedy, explainable escalation of candidate actions against a budget"""

    def __init__(self, config: Optional[RuleConfig] = None):
        self.config = config or RuleConfig()

    def priority_order(self, candidates: Sequence[CandidateSuggestion]) -> List[str]:
        """ssids eligible for escalation, least profitable first"""
        eligible = [c for c in candidates if c.action in ESCALATABLE_ACTIONS]
        eligible.sort(key=lambda c: (c.profit, PERFORMANCE_RANK.get(c.performance, 0), c.ssid))
        return [c.ssid for c in eligible]

    def escalate(self, suggestion: CandidateSuggestion, pass_number: int,
                 rank: int, budget: float) -> CandidateSuggestion:
        """Move a suggestion one step up the severity ladder"""
        cfg = self.config
        original = suggestion.escalated_from or suggestion.action

        if suggestion.action == DecisionAction.PROMOTE:
            to_action, suggested = DecisionAction.NO_CHANGE, None
        elif suggestion.action == DecisionAction.NO_CHANGE:
            band = suggestion.market_band
            cut = suggestion.current_salary * (1 - cfg.escalation_decrease_percent / 100)
            suggested = max(band.min, round_money(cut, cfg.currency_decimals))
            if suggested < suggestion.current_salary:
                to_action = DecisionAction.DECREASE_SALARY
            else:
                # Already at or below the market floor: no decrease possible
                to_action, suggested = DecisionAction.FIRE, None
        elif suggestion.action == DecisionAction.DECREASE_SALARY:
            to_action, suggested = DecisionAction.FIRE, None
        else:
            raise ValueError(f"{suggestion.ssid} is already at FIRE")

        if to_action == DecisionAction.NO_CHANGE:
            outcome = "holding salary at its current level"
        elif to_action == DecisionAction.DECREASE_SALARY:
            outcome = f"reducing salary to {suggested:,.0f}"
        else:
            outcome = "termination"
        reasoning = (
            f"Budget reconciliation (pass {pass_number}): payroll exceeded the {budget:,.0f} ceiling, "
            f"and this employee ranked #{rank} by profitability (profit {suggestion.profit:,.0f}), "
            f"so the {original.value} recommendation was escalated to {outcome}."
        )
        return replace(
            suggestion,
            action=to_action,
            suggested_salary=suggested,
            change_percent=change_percent(suggestion.current_salary, suggested) if suggested is not None else None,
            confidence=cfg.escalation_confidence,
            reasoning=reasoning,
            rule="budget_escalation",
            escalated_from=original,
        )

    def reconcile(self, candidates: Sequence[CandidateSuggestion], budget: float) -> ReconciliationResult:
        decimals = self.config.currency_decimals
        total = aggregate_payroll(candidates, decimals)
        if total <= budget:
            return ReconciliationResult(
                suggestions=list(candidates),
                total_suggested=total,
                budget=budget,
                within_budget=True,
                escalations=[],
            )

        working: Dict[str, CandidateSuggestion] = {c.ssid: c for c in candidates}
        order = self.priority_order(candidates)
        escalations: List[Escalation] = []
        pass_number = 0

        while total > budget:
            pass_number += 1
            progressed = False
            for rank, ssid in enumerate(order, start=1):
                current = working[ssid]
                if current.action == DecisionAction.FIRE:
                    continue
                escalated = self.escalate(current, pass_number, rank, budget)
                total = round(total + escalated.payroll_contribution - current.payroll_contribution, decimals)
                working[ssid] = escalated
                progressed = True
                escalations.append(Escalation(
                    ssid=ssid,
                    from_action=current.action,
                    to_action=escalated.action,
                    pass_number=pass_number,
                    priority_rank=rank,
                    aggregate_after=total,
                ))
                if total <= budget:
                    break
            if not progressed:
                break

        suggestions = [working[c.ssid] for c in candidates]
        # Recompute rather than trust the running float sum
        total = aggregate_payroll(suggestions, decimals)
        within_budget = total <= budget
        if not within_budget:
            logger.warning(
                f"Budget {budget:,.0f} cannot be met: aggregate payroll {total:,.0f} "
                f"after {len(escalations)} escalations"
            )

        return ReconciliationResult(
            suggestions=suggestions,
            total_suggested=total,
            budget=budget,
            within_budget=within_budget,
            escalations=escalations,
        )

"""
Suggestion Rule Engine

Maps one employee's profitability signal to a candidate compensation action.
Rules are an ordered tuple of (predicate, builder) pairs and the first rule
whose predicate matches wins:

1. fire            margin below LOW threshold and a low performance band
2. decrease_salary margin below MARGINAL threshold, acceptable performance,
                   salary above the market minimum
3. promote         margin at or above PROMOTE threshold, elite/strong
                   performance, salary below the band's target point
4. no_change       everything else

Every number in the rationale text comes from the inputs, so identical inputs
and config always produce identical action, confidence and wording.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence, Tuple, Any

from compadvisor.schemas.analysis import DecisionAction
from compadvisor.services.market_rates import MarketBand
from compadvisor.services.profitability_service import EmployeeProfile, ProfitabilitySignal


@dataclass(frozen=True)
class RuleConfig:
    """Thresholds and ratios for one analysis call. Defaults are tunable, not policy."""
    low_margin_threshold: float = -0.5
    marginal_margin_threshold: float = 0.1
    promote_margin_threshold: float = 0.4
    # Margin distance below the low threshold at which FIRE confidence reaches 1.0
    fire_confidence_span: float = 1.5
    fire_performance_bands: Tuple[str, ...] = ("risk",)
    decrease_performance_bands: Tuple[str, ...] = ("elite", "strong", "stable")
    # Share of the gap between salary and market minimum removed by a decrease
    decrease_interpolation: float = 0.5
    # Performance band -> market point ("mid" or "max") a raise moves toward
    promote_targets: Tuple[Tuple[str, str], ...] = (("elite", "max"), ("strong", "mid"))
    promote_interpolation: float = 0.5
    # NO_CHANGE confidence grows from min to max as the gap to the nearest boundary widens
    no_change_boundary_band: float = 0.25
    no_change_min_confidence: float = 0.35
    no_change_max_confidence: float = 0.9
    # Budget reconciliation
    escalation_decrease_percent: float = 10.0
    escalation_confidence: float = 0.6
    currency_decimals: int = 2

    def __post_init__(self):
        if not (self.low_margin_threshold < self.marginal_margin_threshold < self.promote_margin_threshold):
            raise ValueError("Margin thresholds must satisfy low < marginal < promote")
        if self.fire_confidence_span <= 0 or self.no_change_boundary_band <= 0:
            raise ValueError("Confidence spans must be positive")
        if not (0 < self.decrease_interpolation <= 1 and 0 < self.promote_interpolation <= 1):
            raise ValueError("Interpolation ratios must be in (0, 1]")
        if not (0 < self.escalation_decrease_percent < 100):
            raise ValueError("escalation_decrease_percent must be in (0, 100)")
        for _, point in self.promote_targets:
            if point not in ("mid", "max"):
                raise ValueError(f"Unknown promote target point '{point}'")

    @classmethod
    def from_settings(cls, settings) -> "RuleConfig":
        return cls(
            low_margin_threshold=settings.LOW_MARGIN_THRESHOLD,
            marginal_margin_threshold=settings.MARGINAL_MARGIN_THRESHOLD,
            promote_margin_threshold=settings.PROMOTE_MARGIN_THRESHOLD,
            currency_decimals=settings.CURRENCY_DECIMALS,
        )

    def promote_target(self, performance: str) -> Optional[str]:
        return dict(self.promote_targets).get(performance)


@dataclass(frozen=True)
class CandidateSuggestion:
    """A per-employee action, before or after budget reconciliation"""
    ssid: str
    name: str
    performance: str
    action: DecisionAction
    confidence: float
    reasoning: str
    current_salary: float
    revenue: float
    profit: float
    margin: float
    market_band: MarketBand
    suggested_salary: Optional[float] = None
    change_percent: Optional[float] = None
    rule: str = ""
    escalated_from: Optional[DecisionAction] = None

    def __post_init__(self):
        needs_salary = self.action in (DecisionAction.PROMOTE, DecisionAction.DECREASE_SALARY)
        if needs_salary != (self.suggested_salary is not None):
            raise ValueError(
                f"{self.action.value} suggestion for {self.ssid} must "
                f"{'carry' if needs_salary else 'not carry'} a suggested salary"
            )
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence {self.confidence} outside [0, 1]")

    @property
    def payroll_contribution(self) -> float:
        """What this employee costs if the suggestion is accepted"""
        if self.action == DecisionAction.FIRE:
            return 0.0
        if self.suggested_salary is not None:
            return self.suggested_salary
        return self.current_salary

    def to_suggestion_dict(self) -> Dict[str, Any]:
        """Persisted suggestion shape (field names are part of the stored contract)"""
        data: Dict[str, Any] = {
            "action": self.action.value,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "marketSalaryRange": self.market_band.to_dict(),
        }
        if self.suggested_salary is not None:
            data["suggestedSalary"] = self.suggested_salary
        if self.change_percent is not None:
            data["recommended_change_percent"] = self.change_percent
        return data


@dataclass(frozen=True)
class RuleContext:
    profile: EmployeeProfile
    signal: ProfitabilitySignal
    config: RuleConfig


@dataclass(frozen=True)
class SuggestionRule:
    name: str
    applies: Callable[[RuleContext], bool]
    build: Callable[[RuleContext], CandidateSuggestion]


# ---------------------------------------------------------------------------
# Formatting and arithmetic helpers
# ---------------------------------------------------------------------------

def _money(value: float) -> str:
    return f"{value:,.0f}"


def _pct(ratio: float) -> str:
    return f"{ratio * 100:.1f}%"


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def round_money(value: float, decimals: int) -> float:
    return round(value, decimals)


def change_percent(current: float, suggested: float) -> Optional[float]:
    if current == 0:
        return None
    return round((suggested - current) / current * 100, 2)


def _candidate(ctx: RuleContext, action: DecisionAction, confidence: float, reasoning: str,
               rule: str, suggested: Optional[float] = None) -> CandidateSuggestion:
    profile, signal = ctx.profile, ctx.signal
    return CandidateSuggestion(
        ssid=profile.ssid,
        name=profile.name,
        performance=profile.performance,
        action=action,
        confidence=round(_clamp(confidence), 4),
        reasoning=reasoning,
        current_salary=profile.salary,
        revenue=profile.revenue,
        profit=signal.profit,
        margin=signal.margin,
        market_band=signal.market_band,
        suggested_salary=suggested,
        change_percent=change_percent(profile.salary, suggested) if suggested is not None else None,
        rule=rule,
    )


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

def _fire_applies(ctx: RuleContext) -> bool:
    cfg = ctx.config
    return (
        ctx.signal.margin < cfg.low_margin_threshold
        and ctx.profile.performance in cfg.fire_performance_bands
    )


def _build_fire(ctx: RuleContext) -> CandidateSuggestion:
    cfg, signal, profile = ctx.config, ctx.signal, ctx.profile
    depth = (cfg.low_margin_threshold - signal.margin) / cfg.fire_confidence_span
    confidence = min(1.0, 0.5 + 0.5 * depth)
    reasoning = (
        f"Margin {_pct(signal.margin)} is below the {_pct(cfg.low_margin_threshold)} floor "
        f"with '{profile.performance}' performance. The position loses {_money(-signal.profit)} "
        f"against a salary of {_money(profile.salary)} (market mid {_money(signal.market_band.mid)}). "
        f"Termination recommended."
    )
    return _candidate(ctx, DecisionAction.FIRE, confidence, reasoning, "fire")


def _decrease_applies(ctx: RuleContext) -> bool:
    cfg = ctx.config
    return (
        ctx.signal.margin < cfg.marginal_margin_threshold
        and ctx.profile.performance in cfg.decrease_performance_bands
        and ctx.profile.salary > ctx.signal.market_band.min
    )


def _build_decrease(ctx: RuleContext) -> CandidateSuggestion:
    cfg, signal, profile = ctx.config, ctx.signal, ctx.profile
    band = signal.market_band
    target = profile.salary - (profile.salary - band.min) * cfg.decrease_interpolation
    suggested = max(band.min, round_money(target, cfg.currency_decimals))
    span = cfg.marginal_margin_threshold - cfg.low_margin_threshold
    confidence = 0.5 + 0.5 * min(1.0, (cfg.marginal_margin_threshold - signal.margin) / span)
    reasoning = (
        f"Margin {_pct(signal.margin)} is under the {_pct(cfg.marginal_margin_threshold)} target "
        f"while performance is '{profile.performance}'. Profit is {_money(signal.profit)}. "
        f"Reducing salary from {_money(profile.salary)} to {_money(suggested)} moves pay toward "
        f"the market minimum of {_money(band.min)}."
    )
    return _candidate(ctx, DecisionAction.DECREASE_SALARY, confidence, reasoning,
                      "decrease_salary", suggested)


def _promote_target_value(ctx: RuleContext) -> Optional[float]:
    point = ctx.config.promote_target(ctx.profile.performance)
    if point is None:
        return None
    return getattr(ctx.signal.market_band, point)


def _promote_applies(ctx: RuleContext) -> bool:
    target = _promote_target_value(ctx)
    return (
        target is not None
        and ctx.signal.margin >= ctx.config.promote_margin_threshold
        and ctx.profile.salary < target
    )


def _build_promote(ctx: RuleContext) -> CandidateSuggestion:
    cfg, signal, profile = ctx.config, ctx.signal, ctx.profile
    point = cfg.promote_target(profile.performance)
    target = _promote_target_value(ctx)
    suggested = round_money(
        profile.salary + (target - profile.salary) * cfg.promote_interpolation,
        cfg.currency_decimals,
    )
    headroom = 1.0 - cfg.promote_margin_threshold
    strength = (signal.margin - cfg.promote_margin_threshold) / headroom if headroom > 0 else 1.0
    confidence = 0.5 + 0.5 * min(1.0, strength)
    reasoning = (
        f"Margin {_pct(signal.margin)} clears the {_pct(cfg.promote_margin_threshold)} bar with "
        f"'{profile.performance}' performance, and salary {_money(profile.salary)} sits below the "
        f"market {point} of {_money(target)}. Raising pay to {_money(suggested)} keeps it competitive."
    )
    return _candidate(ctx, DecisionAction.PROMOTE, confidence, reasoning, "promote", suggested)


def _boundary_gap(ctx: RuleContext) -> float:
    """Distance to the closest threshold that would change the outcome"""
    cfg, signal, profile = ctx.config, ctx.signal, ctx.profile
    band = signal.market_band
    gaps = []

    if profile.performance in cfg.fire_performance_bands:
        gaps.append(signal.margin - cfg.low_margin_threshold)

    if profile.performance in cfg.decrease_performance_bands:
        if signal.margin >= cfg.marginal_margin_threshold:
            gaps.append(signal.margin - cfg.marginal_margin_threshold)
        elif band.min > 0:
            # Blocked only by the market floor
            gaps.append(max(0.0, (band.min - profile.salary) / band.min))
        else:
            gaps.append(0.0)

    target = _promote_target_value(ctx)
    if target is not None:
        if signal.margin < cfg.promote_margin_threshold:
            gaps.append(cfg.promote_margin_threshold - signal.margin)
        elif target > 0:
            # Blocked only by already being paid at or above target
            gaps.append(max(0.0, (profile.salary - target) / target))
        else:
            gaps.append(0.0)

    return max(0.0, min(gaps)) if gaps else cfg.no_change_boundary_band


def _build_no_change(ctx: RuleContext) -> CandidateSuggestion:
    cfg, signal, profile = ctx.config, ctx.signal, ctx.profile
    gap = _boundary_gap(ctx)
    closeness = min(1.0, gap / cfg.no_change_boundary_band)
    confidence = cfg.no_change_min_confidence + (
        cfg.no_change_max_confidence - cfg.no_change_min_confidence
    ) * closeness

    position = signal.market_position
    if position > 0:
        position_text = f"{_pct(position)} above"
    elif position < 0:
        position_text = f"{_pct(-position)} below"
    else:
        position_text = "at"

    reasoning = (
        f"Margin {_pct(signal.margin)} with '{profile.performance}' performance triggers no "
        f"adjustment rule. Salary {_money(profile.salary)} is {position_text} the market midpoint "
        f"of {_money(signal.market_band.mid)}; the nearest rule boundary is {_pct(gap)} away."
    )
    return _candidate(ctx, DecisionAction.NO_CHANGE, confidence, reasoning, "no_change")


DEFAULT_RULES: Tuple[SuggestionRule, ...] = (
    SuggestionRule("fire", _fire_applies, _build_fire),
    SuggestionRule("decrease_salary", _decrease_applies, _build_decrease),
    SuggestionRule("promote", _promote_applies, _build_promote),
    SuggestionRule("no_change", lambda ctx: True, _build_no_change),
)


class SuggestionRuleEngine:
    """First-match-wins evaluation of an ordered rule tuple"""

    def __init__(self, config: Optional[RuleConfig] = None,
                 rules: Optional[Sequence[SuggestionRule]] = None):
        self.config = config or RuleConfig()
        self.rules = tuple(rules) if rules is not None else DEFAULT_RULES

    def suggest(self, profile: EmployeeProfile, signal: ProfitabilitySignal) -> CandidateSuggestion:
        ctx = RuleContext(profile=profile, signal=signal, config=self.config)
        for rule in self.rules:
            if rule.applies(ctx):
                return rule.build(ctx)
        # Custom rule sets may omit the catch-all
        return _build_no_change(ctx)

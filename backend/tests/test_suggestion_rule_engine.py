"""
Tests for compadvisor/services/suggestion_rule_engine.py - candidate action rules.
"""
import pytest

from compadvisor.schemas.analysis import DecisionAction
from compadvisor.services.market_rates import MarketBand
from compadvisor.services.profitability_service import ProfitabilityEvaluator
from compadvisor.services.suggestion_rule_engine import (
    CandidateSuggestion,
    RuleConfig,
    SuggestionRuleEngine,
    change_percent,
)
from tests.utils.factories import make_profile


def suggest(engine=None, **profile_fields):
    engine = engine or SuggestionRuleEngine()
    profile = make_profile(**profile_fields)
    return engine.suggest(profile, ProfitabilityEvaluator().evaluate(profile))


class TestFireRule:
    """Severely negative margin with low performance."""

    def test_loss_making_risk_performer_is_fired(self):
        result = suggest(role="Support Engineer", experience="junior", performance="risk",
                         salary=1_000_000, revenue=400_000)

        assert result.action == DecisionAction.FIRE
        assert result.margin == pytest.approx(-1.5)
        assert result.confidence > 0.5
        assert result.confidence == pytest.approx(0.8333, abs=1e-4)
        assert result.suggested_salary is None
        assert result.change_percent is None
        assert result.payroll_contribution == 0.0

    def test_fire_confidence_grows_with_depth_and_caps(self):
        shallow = suggest(performance="risk", salary=1_100_000, revenue=700_000)
        deep = suggest(performance="risk", salary=5_000_000, revenue=100_000)

        assert shallow.action == deep.action == DecisionAction.FIRE
        assert shallow.confidence < deep.confidence
        assert deep.confidence == 1.0

    def test_strong_performer_is_never_fired_by_rules(self):
        result = suggest(performance="strong", salary=1_900_000, revenue=400_000)
        assert result.action == DecisionAction.DECREASE_SALARY


class TestDecreaseRule:
    """Marginal profit with acceptable performance."""

    def test_decrease_interpolates_toward_market_minimum(self):
        result = suggest(role="Data Scientist", experience="senior", performance="stable",
                         salary=2_500_000, revenue=2_600_000)

        assert result.action == DecisionAction.DECREASE_SALARY
        assert result.suggested_salary == 2_300_000
        assert result.change_percent == -8.0
        assert 0.5 <= result.confidence <= 1.0

    def test_decrease_never_goes_below_market_minimum(self):
        result = suggest(role="Data Scientist", experience="senior", performance="elite",
                         salary=2_200_000, revenue=1_000_000)

        assert result.action == DecisionAction.DECREASE_SALARY
        assert result.suggested_salary >= result.market_band.min
        assert result.change_percent < 0

    def test_salary_at_market_minimum_blocks_decrease(self):
        """Nothing to cut: falls through to NO_CHANGE sitting right on the boundary."""
        result = suggest(role="Data Scientist", experience="senior", performance="stable",
                         salary=2_100_000, revenue=2_000_000)

        assert result.action == DecisionAction.NO_CHANGE
        assert result.confidence == pytest.approx(0.35)

    def test_risk_performer_with_marginal_margin_is_held(self):
        result = suggest(performance="risk", salary=1_500_000, revenue=1_250_000)

        assert result.action == DecisionAction.NO_CHANGE


class TestPromoteRule:
    """Strong margin with elite/strong performance below the target point."""

    def test_strong_performer_moves_toward_market_mid(self):
        result = suggest(role="Software Engineer", experience="mid", performance="strong",
                         salary=800_000, revenue=2_000_000)

        assert result.action == DecisionAction.PROMOTE
        assert result.suggested_salary == 1_200_000
        assert result.change_percent == 50.0
        assert result.confidence == pytest.approx(0.6667, abs=1e-4)

    def test_elite_performer_moves_toward_market_max(self):
        result = suggest(role="Software Engineer", experience="junior", performance="elite",
                         salary=700_000, revenue=2_000_000)

        assert result.action == DecisionAction.PROMOTE
        assert result.suggested_salary == 950_000
        assert result.change_percent == pytest.approx(35.71)

    def test_no_promotion_when_already_at_target(self):
        result = suggest(role="Software Engineer", experience="mid", performance="strong",
                         salary=1_700_000, revenue=5_000_000)

        assert result.action == DecisionAction.NO_CHANGE

    def test_stable_performer_is_not_promoted(self):
        result = suggest(performance="stable", salary=800_000, revenue=5_000_000)

        assert result.action == DecisionAction.NO_CHANGE


class TestNoChangeRule:
    """Catch-all with boundary-sensitive confidence."""

    def test_near_boundary_is_less_confident_than_far(self):
        near = suggest(performance="elite", experience="senior", role="Product Manager",
                       salary=3_000_000, revenue=3_400_000)   # margin ~0.118, just above marginal
        far = suggest(performance="elite", experience="senior", role="Product Manager",
                      salary=3_000_000, revenue=4_000_000)    # margin 0.25

        assert near.action == far.action == DecisionAction.NO_CHANGE
        assert near.confidence < far.confidence

    def test_no_change_has_no_suggested_salary(self):
        result = suggest(performance="elite", experience="senior", role="Product Manager",
                         salary=3_000_000, revenue=4_000_000)

        assert result.suggested_salary is None
        assert result.payroll_contribution == 3_000_000
        assert "suggestedSalary" not in result.to_suggestion_dict()


class TestEngineBehaviour:
    """Determinism, configuration and rule ordering."""

    def test_identical_inputs_give_identical_output(self):
        first = suggest(performance="stable", salary=2_500_000, revenue=2_600_000,
                        role="Data Scientist", experience="senior")
        second = suggest(performance="stable", salary=2_500_000, revenue=2_600_000,
                         role="Data Scientist", experience="senior")

        assert first == second
        assert first.reasoning == second.reasoning

    def test_zero_revenue_is_zero_margin(self):
        result = suggest(performance="strong", salary=1_500_000, revenue=0)

        assert result.margin == 0.0
        assert result.action == DecisionAction.DECREASE_SALARY

    def test_thresholds_come_from_config(self):
        lenient = SuggestionRuleEngine(RuleConfig(
            low_margin_threshold=-2.0,
            marginal_margin_threshold=-1.8,
            promote_margin_threshold=0.9,
        ))
        result = suggest(engine=lenient, performance="risk", salary=1_000_000, revenue=400_000)

        assert result.action == DecisionAction.NO_CHANGE

    def test_empty_rule_set_falls_back_to_no_change(self):
        engine = SuggestionRuleEngine(rules=())
        result = suggest(engine=engine, performance="risk", salary=1_000_000, revenue=400_000)

        assert result.action == DecisionAction.NO_CHANGE

    def test_misordered_thresholds_rejected(self):
        with pytest.raises(ValueError):
            RuleConfig(low_margin_threshold=0.2, marginal_margin_threshold=0.1)

    def test_rule_config_from_settings(self):
        from compadvisor.core.config import settings

        config = RuleConfig.from_settings(settings)

        assert config.low_margin_threshold == settings.LOW_MARGIN_THRESHOLD
        assert config.promote_margin_threshold == settings.PROMOTE_MARGIN_THRESHOLD


class TestCandidateSuggestion:
    """Suggested salary must be present iff the action changes pay."""

    def _band(self):
        return MarketBand(1, 2, 3)

    def test_promote_without_salary_rejected(self):
        with pytest.raises(ValueError):
            CandidateSuggestion(
                ssid="X", name="X", performance="elite", action=DecisionAction.PROMOTE,
                confidence=0.7, reasoning="", current_salary=1, revenue=2, profit=1,
                margin=0.5, market_band=self._band(),
            )

    def test_fire_with_salary_rejected(self):
        with pytest.raises(ValueError):
            CandidateSuggestion(
                ssid="X", name="X", performance="risk", action=DecisionAction.FIRE,
                confidence=0.7, reasoning="", current_salary=1, revenue=0, profit=-1,
                margin=0, market_band=self._band(), suggested_salary=1,
            )

    def test_change_percent_helper(self):
        assert change_percent(800_000, 880_000) == 10.0
        assert change_percent(0, 100) is None

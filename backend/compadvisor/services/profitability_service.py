"""
Profitability Evaluator

Derives the financial signal for one employee:

- profit = revenue - salary
- margin = profit / revenue, defined as 0 when revenue is 0 (revenue-less
  employees are zero-margin rather than undefined)
- market band for the employee's role and experience, from an injected
  MarketRateTable

Pure: no I/O and no shared state.
"""

from dataclasses import dataclass
from typing import Optional

from compadvisor.services.market_rates import MarketBand, MarketRateTable, default_market_rates


@dataclass(frozen=True)
class EmployeeProfile:
    """In-memory snapshot of the fields the analysis needs"""
    ssid: str
    name: str
    role: str
    performance: str
    experience: str
    salary: float
    revenue: float

    @classmethod
    def from_model(cls, employee) -> "EmployeeProfile":
        return cls(
            ssid=employee.ssid,
            name=employee.name,
            role=employee.role,
            performance=employee.performance,
            experience=employee.experience,
            salary=float(employee.salary or 0),
            revenue=float(employee.revenue or 0),
        )


@dataclass(frozen=True)
class ProfitabilitySignal:
    """Financial and market signal for one employee"""
    ssid: str
    profit: float
    margin: float
    market_band: MarketBand
    market_position: float  # (salary - mid) / mid; negative = below market midpoint


def compute_margin(revenue: float, salary: float) -> float:
    if revenue == 0:
        return 0.0
    return (revenue - salary) / revenue


class ProfitabilityEvaluator:
    """Computes per-employee profit, margin and market position"""

    def __init__(self, market_rates: Optional[MarketRateTable] = None):
        self.market_rates = market_rates or default_market_rates

    def evaluate(self, profile: EmployeeProfile) -> ProfitabilitySignal:
        band = self.market_rates.lookup(profile.role, profile.experience)
        profit = profile.revenue - profile.salary
        position = (profile.salary - band.mid) / band.mid if band.mid else 0.0
        return ProfitabilitySignal(
            ssid=profile.ssid,
            profit=profit,
            margin=compute_margin(profile.revenue, profile.salary),
            market_band=band,
            market_position=position,
        )

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from config import MC_SIMULATIONS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DistributionAnalysis:
    success_rate: float
    median_final_value: float
    total_distributions: float
    simulation_years: float

    def to_dict(self) -> dict:
        return {
            "successRate": self.success_rate,
            "medianFinalValue": self.median_final_value,
            "totalDistributions": self.total_distributions,
            "simulationYears": self.simulation_years,
        }


def box_muller(rng: np.random.Generator, size: int) -> np.ndarray:
    """
    Standard normal draws via the Box-Muller transform.

    1 - U maps numpy's [0, 1) onto (0, 1] so log(u) is always finite.
    """
    u = 1.0 - rng.random(size)
    v = 1.0 - rng.random(size)
    return np.sqrt(-2.0 * np.log(u)) * np.cos(2.0 * np.pi * v)


def run_monte_carlo_simulation(
    initial_investment,
    client_age,
    target_age,
    annual_distribution,
    mean_annual_return,
    annual_volatility,
    n_simulations=MC_SIMULATIONS,
    random_seed=None,
    rng=None,
) -> Optional[DistributionAnalysis]:
    """
    Retirement-distribution Monte Carlo (annual steps, parametric normal).

    Each trial, for every year from client_age to target_age:
      1. draw z ~ N(0, 1) (Box-Muller)
      2. grow the portfolio by mean + z * volatility
      3. withdraw min(portfolio, annual_distribution) at year end
    A trial fails if the portfolio is exhausted before the final year,
    and only trials ending with a positive balance count as successes.

    Args:
        initial_investment (float): Starting portfolio value.
        client_age (float): Current age; must be positive and below target_age.
        target_age (float): Age the money must last to.
        annual_distribution (float): Fixed yearly withdrawal.
        mean_annual_return (float): Expected annual return (0.07 = 7%).
        annual_volatility (float): Annual standard deviation of returns.
        n_simulations (int): Number of independent trials.
        random_seed (int): Optional seed for a reproducible run.
        rng (np.random.Generator): Optional generator; takes precedence over random_seed.

    Returns:
        DistributionAnalysis, or None when the inputs cannot be simulated.
    """
    if (
        client_age <= 0
        or client_age >= target_age
        or initial_investment <= 0
        or annual_distribution <= 0
        or n_simulations <= 0
    ):
        logger.debug(
            "Monte Carlo skipped: age=%s target=%s investment=%s distribution=%s trials=%s",
            client_age, target_age, initial_investment, annual_distribution, n_simulations,
        )
        return None

    # Fractional spans (age 64.5) still step whole years: 30.5 runs 31 steps
    simulation_years = target_age - client_age
    n_steps = math.ceil(simulation_years)

    # Isolated generator per run (no global numpy state)
    if rng is None:
        rng = np.random.default_rng(random_seed)

    values = np.full(n_simulations, float(initial_investment))
    survived = np.ones(n_simulations, dtype=bool)

    for year in range(n_steps):
        z = box_muller(rng, n_simulations)
        annual_returns = mean_annual_return + z * annual_volatility

        # Exhausted trials stop evolving
        values = np.where(survived, values * (1.0 + annual_returns), values)

        withdrawals = np.minimum(values, annual_distribution)
        values = np.where(survived, values - withdrawals, values)

        if year < simulation_years - 1:
            survived &= ~(values <= 0)

    successes = survived & (values > 0)
    n_success = int(successes.sum())

    if n_success == 0:
        return DistributionAnalysis(
            success_rate=0.0,
            median_final_value=0.0,
            total_distributions=0.0,
            simulation_years=simulation_years,
        )

    # Median of surviving paths only (mean of the two middles for even counts)
    median_final_value = float(np.median(values[successes]))

    return DistributionAnalysis(
        success_rate=n_success / n_simulations * 100.0,
        median_final_value=median_final_value,
        total_distributions=float(annual_distribution) * simulation_years,
        simulation_years=simulation_years,
    )

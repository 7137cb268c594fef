import logging
from dataclasses import dataclass, field
from typing import Optional

from config import MC_RANDOM_SEED, MC_SIMULATIONS, RETURN_PERIODS, TARGET_AGE
from financial_math import (
    MONTHS_PER_YEAR,
    as_component,
    analyze_rolling_returns,
    blend_portfolios,
    calculate_annualized_return,
    calculate_annualized_volatility,
    calculate_drawdowns,
    calculate_growth_of_dollar,
    calculate_irr_for_period,
    calculate_rolling_returns,
    series_to_records,
    to_return_series,
)
from components.monte_carlo import DistributionAnalysis, run_monte_carlo_simulation

logger = logging.getLogger(__name__)

ASSET_CATEGORIES = {
    "Equity": "equity",
    "Fixed Income": "fixedIncome",
    "Alternatives": "alternatives",
}

WEIGHT_TOLERANCE_PCT = 0.01


class AllocationError(ValueError):
    """Raised when portfolio or benchmark allocations cannot form a report."""


# ------------------------------------------------------------
# Result objects
# ------------------------------------------------------------

@dataclass(frozen=True)
class PerformanceMetrics:
    returns: dict
    volatility: Optional[float]
    drawdowns: list
    percent_positive: float
    percent_negative: float
    rolling_returns_distribution: list
    growth_of_dollar: list
    return_type: str
    distribution_analysis: Optional[DistributionAnalysis] = None

    @property
    def has_distribution_analysis(self) -> bool:
        return self.distribution_analysis is not None

    def to_dict(self) -> dict:
        """Renderer payload; distributionAnalysis is omitted when not computed."""
        out = {
            "returns": dict(self.returns),
            "volatility": self.volatility,
            "drawdowns": [d.to_dict() for d in self.drawdowns],
            "rollingReturnsAnalysis": {
                "percentPositive": self.percent_positive,
                "percentNegative": self.percent_negative,
            },
            "rollingReturnsDistribution": [b.to_dict() for b in self.rolling_returns_distribution],
            "growthOfDollar": [dict(p) for p in self.growth_of_dollar],
            "returnType": self.return_type,
        }
        if self.distribution_analysis is not None:
            out["distributionAnalysis"] = self.distribution_analysis.to_dict()
        return out


@dataclass(frozen=True)
class NamedMetrics:
    name: str
    metrics: PerformanceMetrics

    def to_dict(self) -> dict:
        out = self.metrics.to_dict()
        out["name"] = self.name
        return out


@dataclass(frozen=True)
class ReportData:
    portfolio: NamedMetrics
    benchmark: NamedMetrics
    secondary_portfolio: Optional[NamedMetrics] = None
    category_allocation: dict = field(default_factory=dict)
    benchmark_category_allocation: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        out = {
            "portfolio": self.portfolio.to_dict(),
            "benchmark": self.benchmark.to_dict(),
        }
        if self.secondary_portfolio is not None:
            out["secondaryPortfolio"] = self.secondary_portfolio.to_dict()
        out["categoryAllocation"] = dict(self.category_allocation)
        out["benchmarkCategoryAllocation"] = dict(self.benchmark_category_allocation)
        return out


@dataclass(frozen=True)
class HouseholdSummary:
    total_investment: float
    total_annual_distribution: float
    account_count: int

    def to_dict(self) -> dict:
        return {
            "totalInvestment": self.total_investment,
            "totalAnnualDistribution": self.total_annual_distribution,
            "accountCount": self.account_count,
        }


# ------------------------------------------------------------
# Metrics orchestrator
# ------------------------------------------------------------

def calculate_metrics(
    returns,
    investment_amount=0,
    annual_distribution=0,
    client_age=0,
    target_age=TARGET_AGE,
    n_simulations=MC_SIMULATIONS,
    random_seed=MC_RANDOM_SEED,
) -> PerformanceMetrics:
    """
    Full metric set for one monthly return series.

    Return mode:
      - IRR when investment_amount > 0 and annual_distribution / 12 > 0
      - TWR otherwise

    Every metric degrades on its own (None / empty / absent); nothing here
    raises for short or empty histories.

    Monte Carlo runs only with a client age, investment, distribution, a
    10-year trailing return and a volatility. The 10-year return stands in
    for the forward mean.
    """
    series = to_return_series(returns)

    # Blank form fields arrive as None
    investment_amount = investment_amount or 0
    annual_distribution = annual_distribution or 0
    client_age = client_age or 0

    monthly_distribution = annual_distribution / MONTHS_PER_YEAR
    use_irr = investment_amount > 0 and monthly_distribution > 0

    period_returns = {}
    for label, years in RETURN_PERIODS.items():
        if use_irr:
            period_returns[label] = calculate_irr_for_period(series, years, investment_amount, monthly_distribution)
        else:
            period_returns[label] = calculate_annualized_return(series, years)

    volatility = calculate_annualized_volatility(series)

    rolling = calculate_rolling_returns(series)
    rolling_analysis = analyze_rolling_returns(rolling)

    ten_year_return = period_returns.get("10 Year")

    distribution_analysis = None
    if (
        client_age > 0
        and investment_amount > 0
        and annual_distribution > 0
        and ten_year_return is not None
        and volatility is not None
    ):
        distribution_analysis = run_monte_carlo_simulation(
            investment_amount,
            client_age,
            target_age,
            annual_distribution,
            ten_year_return,
            volatility,
            n_simulations=n_simulations,
            random_seed=random_seed,
        )
    else:
        logger.debug("Distribution analysis not computed (missing inputs or < 10 years of data)")

    return PerformanceMetrics(
        returns=period_returns,
        volatility=volatility,
        drawdowns=calculate_drawdowns(series),
        percent_positive=rolling_analysis.percent_positive,
        percent_negative=rolling_analysis.percent_negative,
        rolling_returns_distribution=rolling_analysis.distribution,
        growth_of_dollar=series_to_records(calculate_growth_of_dollar(series)),
        return_type="IRR" if use_irr else "TWR",
        distribution_analysis=distribution_analysis,
    )


# ------------------------------------------------------------
# Report composition
# ------------------------------------------------------------

def validate_allocation_weights(weights_percent, label="portfolio"):
    """Allocations are entered in percent and must total 100%."""
    total = float(sum(weights_percent))
    if abs(total - 100.0) > WEIGHT_TOLERANCE_PCT:
        raise AllocationError(f"Total {label} allocation must be 100% (current: {total:.2f}%)")
    return total


def calculate_category_allocation(components) -> dict:
    """
    Roll strategy asset mixes up to Equity / Fixed Income / Alternatives.

    Each component's asset_allocation holds percentages; weights are
    fractional. Result values are percentages, entries <= 0.01 dropped.
    """
    totals = {category: 0.0 for category in ASSET_CATEGORIES}

    for comp in (as_component(c) for c in components or []):
        mix = comp.asset_allocation
        if not mix:
            continue
        for category, key in ASSET_CATEGORIES.items():
            totals[category] += comp.weight * (float(mix.get(key, 0.0)) / 100.0)

    return {
        category: value * 100.0
        for category, value in totals.items()
        if value * 100.0 > 0.01
    }


def select_best_fit_benchmark(portfolio_components, benchmarks, annual_fee_percent=0):
    """
    Pick the benchmark whose full-history volatility is closest to the
    fee-adjusted portfolio blend's.

    `benchmarks` maps an id to a return series. Benchmarks without a
    volatility are skipped; ties keep the first one seen. Returns the
    winning id, or None when the portfolio has no volatility or nothing
    qualifies.
    """
    portfolio_returns = blend_portfolios(portfolio_components, annual_fee_percent)
    portfolio_vol = calculate_annualized_volatility(portfolio_returns)
    if portfolio_vol is None or not benchmarks:
        logger.debug("No best-fit benchmark: portfolio volatility unavailable or no benchmarks")
        return None

    best_id = None
    best_diff = float("inf")
    for benchmark_id, returns in benchmarks.items():
        vol = calculate_annualized_volatility(returns)
        if vol is None:
            continue
        diff = abs(portfolio_vol - vol)
        if diff < best_diff:
            best_diff = diff
            best_id = benchmark_id

    return best_id


def summarize_household(accounts) -> HouseholdSummary:
    """Total investment and annual distribution across a household's accounts."""
    total_investment = 0.0
    total_distribution = 0.0
    count = 0
    for acc in accounts or []:
        total_investment += float(acc.get("investmentAmount", acc.get("investment_amount")) or 0)
        total_distribution += float(acc.get("annualDistribution", acc.get("annual_distribution")) or 0)
        count += 1

    return HouseholdSummary(
        total_investment=total_investment,
        total_annual_distribution=total_distribution,
        account_count=count,
    )


def _benchmark_name(components) -> str:
    if len(components) == 1:
        return components[0].name or "Benchmark"
    return "Blended Benchmark"


def build_report_data(
    portfolio_components,
    benchmark_components,
    annual_fee_percent=0,
    investment_amount=0,
    annual_distribution=0,
    client_age=0,
    secondary_returns=None,
    secondary_name="Secondary Portfolio",
    **metric_kwargs,
) -> ReportData:
    """
    Portfolio vs. benchmark (and optional secondary ticker portfolio) metrics.

      - weights are fractional and must total 100% on both sides
      - the adviser fee is deducted from the portfolio blend only;
        benchmarks are already net of their own fees
      - the same cash-flow context drives all sides so IRR/TWR match
    """
    portfolio_components = [as_component(c) for c in portfolio_components or []]
    benchmark_components = [as_component(c) for c in benchmark_components or []]

    if not portfolio_components:
        raise AllocationError("Select at least one strategy for the portfolio.")
    if not benchmark_components:
        raise AllocationError("Please select a benchmark.")

    validate_allocation_weights([c.weight * 100.0 for c in portfolio_components], "portfolio")
    validate_allocation_weights([c.weight * 100.0 for c in benchmark_components], "benchmark")

    context = dict(
        investment_amount=investment_amount,
        annual_distribution=annual_distribution,
        client_age=client_age,
        **metric_kwargs,
    )

    portfolio_returns = blend_portfolios(portfolio_components, annual_fee_percent)
    benchmark_returns = blend_portfolios(benchmark_components)

    portfolio = NamedMetrics("Portfolio", calculate_metrics(portfolio_returns, **context))
    benchmark = NamedMetrics(
        _benchmark_name(benchmark_components),
        calculate_metrics(benchmark_returns, **context),
    )

    secondary = None
    if secondary_returns is not None and len(secondary_returns) > 0:
        secondary = NamedMetrics(secondary_name, calculate_metrics(secondary_returns, **context))

    logger.info(
        "Report built: portfolio=%d months, benchmark=%s (%d months)%s",
        len(portfolio_returns), benchmark.name, len(benchmark_returns),
        ", with secondary portfolio" if secondary is not None else "",
    )

    return ReportData(
        portfolio=portfolio,
        benchmark=benchmark,
        secondary_portfolio=secondary,
        category_allocation=calculate_category_allocation(portfolio_components),
        benchmark_category_allocation=calculate_category_allocation(benchmark_components),
    )

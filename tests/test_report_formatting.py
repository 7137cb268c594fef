import math

import pytest

from components.monte_carlo import DistributionAnalysis
from financial_math import Drawdown
from portfolio_engine import NamedMetrics, PerformanceMetrics
from report_formatting import (
    distribution_summary,
    drawdown_table_rows,
    fmt_dollar_clean,
    fmt_pct_clean,
    metric_label,
    performance_table_rows,
    safe,
    success_rate_band,
)


def _metrics(returns=None, volatility=None, drawdowns=None, return_type="TWR", analysis=None):
    return PerformanceMetrics(
        returns=returns or {"1 Year": None, "3 Year": None, "5 Year": None, "10 Year": None},
        volatility=volatility,
        drawdowns=drawdowns or [],
        percent_positive=0.0,
        percent_negative=0.0,
        rolling_returns_distribution=[],
        growth_of_dollar=[],
        return_type=return_type,
        distribution_analysis=analysis,
    )


@pytest.mark.parametrize(
    "value, expected",
    [
        (0.126825, "12.68%"),
        (-0.05, "-5.00%"),
        (0.0, "0.00%"),
        (None, "N/A"),
        (math.nan, "N/A"),
        ("abc", "N/A"),
    ],
)
def test_fmt_pct_clean(value, expected) -> None:
    assert fmt_pct_clean(value) == expected


def test_fmt_dollar_clean() -> None:
    assert fmt_dollar_clean(1234567.891) == "$1,234,567.89"
    assert fmt_dollar_clean(1_000_000, decimals=0) == "$1,000,000"
    assert fmt_dollar_clean(None) == "N/A"


def test_safe() -> None:
    assert safe(None) == "N/A"
    assert safe(0) == 0
    assert safe("x") == "x"


def test_metric_labels() -> None:
    assert metric_label("1 Year", "TWR") == "1-Year Return"
    assert metric_label("3 Year", "IRR") == "3-Year Ann. IRR"
    assert metric_label("10 Year", "TWR") == "10-Year Ann. Return"
    assert metric_label("volatility", "IRR") == "Annualized Volatility"


def test_performance_rows_flag_outperformance() -> None:
    portfolio = NamedMetrics("Portfolio", _metrics(
        returns={"1 Year": 0.10, "3 Year": 0.05, "5 Year": None, "10 Year": None}, volatility=0.12,
    ))
    benchmark = NamedMetrics("S&P 500", _metrics(
        returns={"1 Year": 0.08, "3 Year": 0.07, "5 Year": 0.06, "10 Year": None}, volatility=0.15,
    ))

    rows = performance_table_rows(portfolio, benchmark)

    assert [r["metric"] for r in rows] == [
        "1-Year Return",
        "3-Year Ann. Return",
        "5-Year Ann. Return",
        "10-Year Ann. Return",
        "Annualized Volatility",
    ]
    assert rows[0]["Portfolio"] == "10.00%"
    assert rows[0]["S&P 500"] == "8.00%"
    assert [r["outperforms"] for r in rows] == [True, False, False, False, False]
    assert rows[2]["Portfolio"] == "N/A"


def test_performance_rows_include_secondary_column() -> None:
    portfolio = NamedMetrics("Portfolio", _metrics(return_type="IRR"))
    benchmark = NamedMetrics("Benchmark", _metrics(return_type="IRR"))
    secondary = NamedMetrics("Client Tickers", _metrics(
        returns={"1 Year": 0.2, "3 Year": None, "5 Year": None, "10 Year": None}, return_type="IRR",
    ))

    rows = performance_table_rows(portfolio, benchmark, secondary)

    assert rows[0]["metric"] == "1-Year IRR"
    assert rows[0]["Client Tickers"] == "20.00%"
    assert list(rows[0]) == ["metric", "Portfolio", "Client Tickers", "Benchmark", "outperforms"]


def test_drawdown_rows_mark_open_episode() -> None:
    metrics = _metrics(drawdowns=[
        Drawdown("2020-01", "2020-03", None, -0.25),
        Drawdown("2018-09", "2018-12", "2019-04", -0.14),
    ])
    rows = drawdown_table_rows(metrics)

    assert rows[0] == {"Peak": "2020-01", "Trough": "2020-03", "Recovery": "Not Recovered", "Drawdown": "-25.00%"}
    assert rows[1]["Recovery"] == "2019-04"


@pytest.mark.parametrize(
    "rate, band",
    [(100.0, "green"), (75.0, "green"), (74.9, "yellow"), (50.0, "yellow"), (12.0, "red"), (None, "N/A")],
)
def test_success_rate_band(rate, band) -> None:
    assert success_rate_band(rate) == band


def test_distribution_summary() -> None:
    analysis = DistributionAnalysis(82.0, 1_534_210.4, 1_240_000.0, 31)
    card = distribution_summary(NamedMetrics("Portfolio", _metrics(analysis=analysis)))

    assert card == {
        "name": "Portfolio",
        "successRate": "82%",
        "band": "green",
        "medianFinalValue": "$1,534,210",
        "totalDistributions": "$1,240,000",
        "simulationYears": 31,
    }
    assert distribution_summary(NamedMetrics("Benchmark", _metrics())) is None

import pandas as pd

# Rows of the key performance metrics table, in display order
METRIC_ROWS = ["1 Year", "3 Year", "5 Year", "10 Year", "volatility"]


def _is_missing(x) -> bool:
    if x is None:
        return True
    try:
        return bool(pd.isna(x))
    except (TypeError, ValueError):
        return False


def fmt_pct_clean(x, decimals=2):
    if _is_missing(x):
        return "N/A"
    try:
        return f"{float(x) * 100:.{decimals}f}%"
    except (TypeError, ValueError):
        return "N/A"


def fmt_dollar_clean(x, decimals=2):
    if _is_missing(x):
        return "N/A"
    try:
        return f"${float(x):,.{decimals}f}"
    except (TypeError, ValueError):
        return "N/A"


def safe(x):
    return "N/A" if _is_missing(x) else x


def metric_label(key, return_type):
    """'3 Year' + 'IRR' -> '3-Year Ann. IRR'."""
    if key == "volatility":
        return "Annualized Volatility"
    kind = "IRR" if return_type == "IRR" else "Return"
    years = key.split()[0]
    if years == "1":
        return f"1-Year {kind}"
    return f"{years}-Year Ann. {kind}"


def _metric_value(metrics, key):
    if key == "volatility":
        return metrics.volatility
    return metrics.returns.get(key)


def performance_table_rows(portfolio, benchmark, secondary=None):
    """
    Key performance metrics table (portfolio vs benchmark [vs secondary]).

    Each row carries the formatted values plus an `outperforms` flag,
    set only when both portfolio and benchmark values exist and the
    portfolio's is higher.
    """
    return_type = portfolio.metrics.return_type
    columns = [portfolio] + ([secondary] if secondary is not None else []) + [benchmark]

    rows = []
    for key in METRIC_ROWS:
        p_val = _metric_value(portfolio.metrics, key)
        b_val = _metric_value(benchmark.metrics, key)

        row = {"metric": metric_label(key, return_type)}
        for col in columns:
            row[col.name] = fmt_pct_clean(_metric_value(col.metrics, key))
        row["outperforms"] = p_val is not None and b_val is not None and p_val > b_val
        rows.append(row)

    return rows


def drawdown_table_rows(metrics):
    rows = []
    for dd in metrics.drawdowns:
        rows.append({
            "Peak": dd.peak_date,
            "Trough": dd.trough_date,
            "Recovery": dd.recovery_date if dd.recovery_date is not None else "Not Recovered",
            "Drawdown": fmt_pct_clean(dd.drawdown),
        })
    return rows


def success_rate_band(success_rate):
    """Traffic-light band for a Monte Carlo success rate (0-100)."""
    if _is_missing(success_rate):
        return "N/A"
    if success_rate >= 75:
        return "green"
    if success_rate >= 50:
        return "yellow"
    return "red"


def distribution_summary(named):
    """Formatted distribution-analysis card; None when it was not computed."""
    analysis = named.metrics.distribution_analysis
    if analysis is None:
        return None
    return {
        "name": named.name,
        "successRate": f"{analysis.success_rate:.0f}%",
        "band": success_rate_band(analysis.success_rate),
        "medianFinalValue": fmt_dollar_clean(analysis.median_final_value, decimals=0),
        "totalDistributions": fmt_dollar_clean(analysis.total_distributions, decimals=0),
        "simulationYears": analysis.simulation_years,
    }

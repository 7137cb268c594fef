import pandas as pd
import plotly.graph_objects as go

from config import GLOBAL_PALETTE, ROLLING_WINDOW_MONTHS
from financial_math import scale_growth_series, to_return_series
from report_formatting import drawdown_table_rows, fmt_dollar_clean


def _hex_to_rgba(hex_code, alpha=0.2):
    """Helper to convert hex to rgba string."""
    hex_code = hex_code.lstrip('#')
    return f"rgba({int(hex_code[0:2], 16)}, {int(hex_code[2:4], 16)}, {int(hex_code[4:6], 16)}, {alpha})"


def _report_series(report):
    """Named metrics in chart order: portfolio, secondary (if any), benchmark."""
    items = [report.portfolio]
    if report.secondary_portfolio is not None:
        items.append(report.secondary_portfolio)
    items.append(report.benchmark)
    return items


def _template(theme):
    return "plotly_white" if theme == "light" else "plotly_dark"


# ============================================================
# GROWTH OF INVESTMENT
# ============================================================

def get_growth_frame(report, investment_amount=None) -> pd.DataFrame:
    """
    Growth series for every side of the report on one month axis.

    Values are in dollars of `investment_amount` (Growth of $1 when the
    amount is missing or zero). Months one side lacks are NaN.
    """
    amount = investment_amount if investment_amount and investment_amount > 0 else 1.0

    columns = {}
    for named in _report_series(report):
        growth = to_return_series(named.metrics.growth_of_dollar)
        columns[named.name] = scale_growth_series(growth, amount)

    if not columns:
        return pd.DataFrame()

    return pd.DataFrame(columns).sort_index()


def get_growth_chart(report, investment_amount=None, theme="light"):
    frame = get_growth_frame(report, investment_amount)
    if frame.empty:
        return go.Figure()

    amount = investment_amount if investment_amount and investment_amount > 0 else 1.0

    fig = go.Figure()
    for i, name in enumerate(frame.columns):
        fig.add_trace(go.Scatter(
            x=frame.index,
            y=frame[name],
            mode='lines',
            name=name,
            connectgaps=False,
            line=dict(color=GLOBAL_PALETTE[i % len(GLOBAL_PALETTE)], width=2),
            hovertemplate=f"<b>{name}</b>: %{{y:$,.2f}}<extra></extra>"
        ))

    # Year ticks on January only
    year_ticks = [d for d in frame.index if d.endswith("-01")]

    fig.update_layout(
        title=f"Growth of {fmt_dollar_clean(amount, decimals=0)}",
        xaxis_title="Date",
        yaxis_title="Value ($)",
        xaxis=dict(tickmode="array", tickvals=year_ticks, ticktext=[d[:4] for d in year_ticks]),
        template=_template(theme),
        hovermode="x unified"
    )
    return fig


# ============================================================
# ROLLING RETURNS
# ============================================================

def merge_rolling_distributions(named_list) -> pd.DataFrame:
    """
    One row per histogram bucket, one column per series (count, 0 if absent).

    Buckets are ordered by their numeric lower bound, not by label text.
    """
    bounds = {}
    counts = {}
    for named in named_list:
        col = {}
        for b in named.metrics.rolling_returns_distribution:
            bounds[b.name] = b.lower_bound
            col[b.name] = b.value
        counts[named.name] = col

    if not bounds:
        return pd.DataFrame(columns=[n.name for n in named_list])

    order = sorted(bounds, key=bounds.get)
    frame = pd.DataFrame(counts).reindex(order).fillna(0).astype(int)
    frame.index.name = "name"
    return frame


def get_rolling_returns_chart(report, theme="light"):
    frame = merge_rolling_distributions(_report_series(report))
    if frame.empty:
        return go.Figure()

    fig = go.Figure()
    for i, name in enumerate(frame.columns):
        fig.add_trace(go.Bar(
            x=list(frame.index),
            y=frame[name],
            name=name,
            marker_color=GLOBAL_PALETTE[i % len(GLOBAL_PALETTE)],
            hovertemplate=f"<b>{name}</b>: %{{y}} periods<extra></extra>"
        ))

    fig.update_layout(
        title=f"Rolling {ROLLING_WINDOW_MONTHS}-Month Returns Distribution",
        xaxis_title=f"{ROLLING_WINDOW_MONTHS}-Month Return",
        yaxis_title="Number of Periods",
        barmode="group",
        xaxis=dict(tickangle=-45),
        template=_template(theme),
    )
    return fig


# ============================================================
# DRAWDOWNS
# ============================================================

def get_drawdown_table(named, theme="light"):
    """Top drawdown episodes as a plotly table."""
    rows = drawdown_table_rows(named.metrics)
    headers = ["Peak", "Trough", "Recovery", "Drawdown"]

    fig = go.Figure(go.Table(
        header=dict(
            values=headers,
            fill_color=GLOBAL_PALETTE[0],
            font=dict(color="white"),
            align="left",
        ),
        cells=dict(
            values=[[r[h] for r in rows] for h in headers],
            fill_color=_hex_to_rgba(GLOBAL_PALETTE[1], 0.15),
            align="left",
        ),
    ))
    fig.update_layout(title=f"{named.name}: Largest Drawdowns", template=_template(theme))
    return fig


# ============================================================
# DISTRIBUTION ANALYSIS (MONTE CARLO)
# ============================================================

def get_distribution_chart(report, theme="light"):
    """
    Chance-of-success bars for each side that has a distribution analysis.
    Sides without one are left off the chart.
    """
    names = []
    rates = []
    colors = []
    for i, named in enumerate(_report_series(report)):
        analysis = named.metrics.distribution_analysis
        if analysis is None:
            continue
        names.append(named.name)
        rates.append(analysis.success_rate)
        colors.append(GLOBAL_PALETTE[i % len(GLOBAL_PALETTE)])

    if not names:
        return go.Figure()

    fig = go.Figure(go.Bar(
        x=names,
        y=rates,
        marker_color=colors,
        text=[f"{r:.0f}%" for r in rates],
        textposition="outside",
        hovertemplate="<b>%{x}</b>: %{y:.0f}% chance of success<extra></extra>"
    ))
    fig.update_layout(
        title="Chance of Success",
        yaxis=dict(title="Success Rate (%)", range=[0, 110]),
        template=_template(theme),
        showlegend=False,
    )
    return fig

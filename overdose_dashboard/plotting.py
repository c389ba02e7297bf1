import pandas as pd
import plotly.graph_objects as go

from .config import VALUE_LABEL


# ============================================================
# Configuration / constants
# ============================================================

LINE_COLOR: str = "#d62728"

HOVER_TEMPLATE = (
    "Month: %{customdata[0]} %{customdata[1]}<br>"
    "Total: %{y:,}<br>"
    "Observations: %{customdata[2]}<extra></extra>"
)


# ============================================================
# Main plotting function
# ============================================================


def create_series_plot(
    df: pd.DataFrame,
    indicator: str,
    *,
    y_axis_label: str = VALUE_LABEL,
    line_color: str | None = None,
) -> go.Figure:
    """
    Generate a line chart of monthly totals for one indicator.

    Parameters
    ----------
    df : pd.DataFrame
        Output of ``data_manager.series_frame`` with columns 'month_key',
        'year', 'month_name', 'total' and 'count', in month order.
    indicator : str
        Indicator name (for the title).
    y_axis_label : str, default VALUE_LABEL
        Y-axis title.
    line_color : str | None, default None
        Optional hex color overriding ``LINE_COLOR``.

    Returns
    -------
    go.Figure
        A Plotly Figure; empty when ``df`` has no rows.
    """
    if df.empty:
        return go.Figure()

    color = line_color or LINE_COLOR

    fig = go.Figure(
        go.Scatter(
            x=df["month_key"],
            y=df["total"],
            mode="lines+markers",
            line=dict(width=3, color=color),
            marker=dict(size=7, color=color),
            name=indicator,
            hovertemplate=HOVER_TEMPLATE,
            customdata=list(zip(df["month_name"], df["year"], df["count"])),
        )
    )

    fig.update_xaxes(title_text="Month", type="category", tickangle=-45)
    fig.update_yaxes(title_text=y_axis_label, tickformat=",", rangemode="tozero")
    fig.update_layout(
        title=f"<b>{y_axis_label} by Month ({indicator})</b>",
        height=550,
        margin=dict(t=80, l=50, r=40, b=80),
        plot_bgcolor="#f5f7fb",
        showlegend=False,
    )
    return fig

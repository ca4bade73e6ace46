"""Static chart images for the PDF/HTML reports."""

from __future__ import annotations

import base64
import io

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402

OK_COLOR = "#10b981"
NOK_COLOR = "#f43f5e"
DOWNTIME_COLOR = "#64748b"


def _fig_to_data_uri(fig) -> str:
    buf = io.BytesIO()
    fig.savefig(buf, format="png", bbox_inches="tight")
    plt.close(fig)
    buf.seek(0)
    b64 = base64.b64encode(buf.read()).decode("utf-8")
    return f"data:image/png;base64,{b64}"


def time_slot_chart(series: list[dict]) -> str:
    """Stacked OK/defect bars per time slot."""
    if not series:
        return ""
    slots = [entry["slot"] for entry in series]
    ok = [entry["ok"] for entry in series]
    nok = [entry["nok"] for entry in series]
    fig, ax = plt.subplots(figsize=(8, 3.5))
    ax.bar(slots, ok, color=OK_COLOR, label="OK")
    ax.bar(slots, nok, bottom=ok, color=NOK_COLOR, label="Defeitos")
    ax.set_ylabel("Unidades")
    ax.set_title("Produção por Intervalo")
    ax.tick_params(axis="x", rotation=45, labelsize=7)
    ax.legend()
    fig.tight_layout()
    return _fig_to_data_uri(fig)


def top_defects_chart(top_defects: list[dict]) -> str:
    """Horizontal Pareto of the ranked defect groups, largest on top."""
    if not top_defects:
        return ""
    names = [entry["name"] for entry in reversed(top_defects)]
    values = [entry["value"] for entry in reversed(top_defects)]
    fig, ax = plt.subplots(figsize=(8, 4))
    ax.barh(names, values, color=NOK_COLOR)
    ax.set_xlabel("Quantidade")
    ax.set_title("Top Defeitos")
    ax.tick_params(axis="y", labelsize=7)
    fig.tight_layout()
    return _fig_to_data_uri(fig)


def area_chart(area_stats: list[dict]) -> str:
    """OK/defect bars per area with downtime minutes on a second axis."""
    if not any(entry["total"] or entry["downtime"] for entry in area_stats):
        return ""
    areas = [entry["area"] for entry in area_stats]
    positions = range(len(areas))
    fig, ax = plt.subplots(figsize=(8, 4))
    ax.bar([p - 0.2 for p in positions], [e["ok"] for e in area_stats], 0.4, color=OK_COLOR, label="OK")
    ax.bar([p + 0.2 for p in positions], [e["nok"] for e in area_stats], 0.4, color=NOK_COLOR, label="Defeitos")
    ax.set_xticks(list(positions))
    ax.set_xticklabels(areas, rotation=45, ha="right", fontsize=7)
    ax.set_ylabel("Unidades")
    ax_right = ax.twinx()
    ax_right.plot(list(positions), [e["downtime"] for e in area_stats], color=DOWNTIME_COLOR, marker="o")
    ax_right.set_ylabel("Parada (min)")
    ax.legend(loc="upper left")
    fig.tight_layout()
    return _fig_to_data_uri(fig)


def dashboard_charts(stats: dict) -> dict[str, str]:
    return {
        "timeSlotImg": time_slot_chart(stats["timeSlotSeries"]),
        "topDefectsImg": top_defects_chart(stats["topDefects"]),
        "areaImg": area_chart(stats["areaStats"]),
    }

"""WhatsApp-formatted shift summary."""

from __future__ import annotations

from datetime import date
from urllib.parse import quote

from vqcenter.constants import area_display_name
from vqcenter.statistics import rank_defects

SHARE_URL = "https://wa.me/?text="


def build_chat_message(stats: dict, filtered, area: str, today: date) -> str:
    """Render the summary from the statistics of the same filter.

    ``filtered`` is the card-filtered record triple; only its defects are used
    for the plain top-3 ranking.
    """

    model_lines = "\n".join(
        f"*{entry['name']}*: OK: {entry['ok']} | Def: {entry['nok']}"
        for entry in stats["modelStats"]
    )
    top3 = "\n".join(
        f"{position}º {entry['name']} ({entry['value']})"
        for position, entry in enumerate(rank_defects(filtered.defects, limit=3), start=1)
    )

    lines = [
        f"🚀 *Centro de Qualidade VQ - Setor: {area_display_name(area)}*",
        f"📅 *Data:* {today.strftime('%d/%m/%Y')}",
        "",
        f"✅ *Produção Total:* {stats['totalOk']} unidades",
        f"⚠️ *Defeitos Totais:* {stats['totalDefects']} ocorrências",
        f"🔄 *Reinspeções:* {stats['totalReinspections']} veículos",
        f"📦 *Inspeção OffLine:* {stats['releasedCount']} itens liberados",
        f"⏱️ *Parada Total:* {stats['totalDowntimeHours']} horas",
        "",
        "📊 *Resumo por Modelo:*",
        model_lines,
        "",
        "🔝 *Top 3 Defeitos:*",
        top3 or "Nenhum defeito registrado",
        "",
        f"🛑 *Eventos de Parada:* {stats['downtimeEvents']}",
        "",
        "_Relatório filtrado via VQ Management System_",
    ]
    return "\n".join(lines)


def share_url(text: str) -> str:
    return SHARE_URL + quote(text.strip(), safe="")

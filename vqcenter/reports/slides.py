"""Bilingual (Portuguese / Chinese) summary deck built with python-pptx."""

from __future__ import annotations

import io
from datetime import date

from pptx import Presentation
from pptx.dml.color import RGBColor
from pptx.enum.shapes import MSO_SHAPE
from pptx.enum.text import PP_ALIGN
from pptx.util import Inches, Pt

from vqcenter.constants import AREA_TRANSLATIONS, area_display_name
from vqcenter.statistics import rank_defects

NAVY = "0C4A6E"
SKY = "0EA5E9"
MUTED = "94A3B8"
MAX_DOWNTIME_ROWS = 8

_BLANK_LAYOUT = 6


def deck_filename(area: str, period_label: str, today: date) -> str:
    clean_area = "_".join(area_display_name(area).split())
    return f"Relatorio_Bilingue_VQ_{clean_area}_{period_label}_{today.isoformat()}.pptx"


def _rgb(value: str) -> RGBColor:
    return RGBColor.from_string(value)


def _add_text(slide, text, x, y, w, h=0.8, *, size=18, color=NAVY, bold=False, center=False):
    box = slide.shapes.add_textbox(Inches(x), Inches(y), Inches(w), Inches(h))
    frame = box.text_frame
    frame.word_wrap = True
    paragraph = frame.paragraphs[0]
    paragraph.text = text
    paragraph.font.size = Pt(size)
    paragraph.font.bold = bold
    paragraph.font.color.rgb = _rgb(color)
    if center:
        paragraph.alignment = PP_ALIGN.CENTER
    return box


def _add_table(slide, rows, header_fill: str, *, font_size=12, y=1.2):
    """Add a table whose first row is a header; cells are ``(text, color, bold)``."""

    shape = slide.shapes.add_table(
        len(rows), len(rows[0]), Inches(0.5), Inches(y), Inches(9), Inches(0.4 * len(rows))
    )
    table = shape.table
    for r, row in enumerate(rows):
        for c, (text, color, bold) in enumerate(row):
            cell = table.cell(r, c)
            cell.text = str(text)
            cell.fill.solid()
            cell.fill.fore_color.rgb = _rgb(header_fill if r == 0 else "FFFFFF")
            font = cell.text_frame.paragraphs[0].font
            font.size = Pt(font_size)
            font.bold = bold or r == 0
            font.color.rgb = _rgb("FFFFFF" if r == 0 else color)
    return table


def _kpi_card(slide, x, label, value, fill, label_color, value_color):
    card = slide.shapes.add_shape(
        MSO_SHAPE.RECTANGLE, Inches(x), Inches(1.5), Inches(2.8), Inches(2.5)
    )
    card.fill.solid()
    card.fill.fore_color.rgb = _rgb(fill)
    card.line.fill.background()
    _add_text(slide, label, x + 0.1, 1.7, 2.6, 0.9, size=18, color=label_color, bold=True, center=True)
    _add_text(slide, value, x + 0.1, 2.8, 2.6, 1.0, size=44, color=value_color, bold=True, center=True)


def build_presentation(
    stats: dict,
    filtered,
    area: str,
    *,
    period_pt: str,
    period_cn: str,
    start: date,
    end: date,
) -> bytes:
    """Return a ``.pptx`` deck: title, KPIs, models, defect Pareto, stoppages."""

    area_label = AREA_TRANSLATIONS.get(area, area)
    prs = Presentation()
    prs.slide_width = Inches(10)
    prs.slide_height = Inches(5.625)
    layout = prs.slide_layouts[_BLANK_LAYOUT]

    slide = prs.slides.add_slide(layout)
    slide.background.fill.solid()
    slide.background.fill.fore_color.rgb = _rgb(SKY)
    _add_text(slide, "BYD - VQ MANAGEMENT", 1, 1.0, 8, size=36, color="FFFFFF", bold=True, center=True)
    _add_text(slide, f"Setor / 部门: {area_label}", 1, 1.8, 8, size=24, color="FFFFFF", bold=True, center=True)
    _add_text(
        slide,
        f"Relatório de Resumo {period_pt} / {period_cn}摘要报告",
        1, 2.6, 8, size=20, color="FFFFFF", center=True,
    )
    _add_text(
        slide,
        f"Período / 期间: {start.strftime('%d/%m/%Y')} - {end.strftime('%d/%m/%Y')}",
        1, 3.5, 8, size=16, color="F0F9FF", center=True,
    )

    slide = prs.slides.add_slide(layout)
    _add_text(
        slide,
        f"{area_label.upper()} - PERFORMANCE {period_pt.upper()} / {period_cn}关键指标",
        0.5, 0.5, 9, size=20, bold=True,
    )
    _kpi_card(slide, 0.5, "PRODUÇÃO OK\n合格产量", str(stats["totalOk"]), "F0F9FF", "0284C7", SKY)
    _kpi_card(slide, 3.6, "DEFEITOS VQ\n质量缺陷", str(stats["totalDefects"]), "FFF1F2", "E11D48", "9F1239")
    _kpi_card(
        slide, 6.7, "PARADAS (HORAS)\n停机时间 (小时)", f"{stats['totalDowntimeHours']}h",
        "F8FAFC", "475569", "1E293B",
    )

    slide = prs.slides.add_slide(layout)
    _add_text(slide, f"{area_label} - PRODUÇÃO POR MODELO / 按车型统计", 0.5, 0.5, 9, size=20, bold=True)
    model_rows = [[
        ("MODELO / 车型", "FFFFFF", True),
        ("OK / 合格", "FFFFFF", True),
        ("DEF / 缺陷", "FFFFFF", True),
        ("TOTAL / 总计", "FFFFFF", True),
    ]]
    for entry in stats["modelStats"]:
        model_rows.append([
            (entry["name"], NAVY, True),
            (entry["ok"], "10B981", False),
            (entry["nok"], "F97316", False),
            (entry["total"], NAVY, True),
        ])
    _add_table(slide, model_rows, NAVY, font_size=14)

    slide = prs.slides.add_slide(layout)
    _add_text(slide, f"{area_label} - PARETO DE DEFEITOS / 缺陷排列图", 0.5, 0.5, 9, size=20, bold=True)
    top10 = rank_defects(filtered.defects)
    if top10:
        rows = [[("TIPO DE DEFEITO / 缺陷类型", "FFFFFF", True), ("QUANTIDADE / 数量", "FFFFFF", True)]]
        rows.extend([(entry["name"], NAVY, False), (entry["value"], SKY, True)] for entry in top10)
        _add_table(slide, rows, SKY)
    else:
        _add_text(
            slide, "Sem defeitos registrados no período / 此期间无缺陷记录",
            0.5, 2, 9, size=18, color=MUTED, center=True,
        )

    slide = prs.slides.add_slide(layout)
    _add_text(slide, f"{area_label} - REGISTRO DE PARADAS / 停机记录", 0.5, 0.5, 9, size=20, bold=True)
    if filtered.downtime:
        rows = [[
            ("MOTIVO / 原因", "FFFFFF", True),
            ("HORÁRIO / 时间", "FFFFFF", True),
            ("DURAÇÃO (MIN) / 持续时间", "FFFFFF", True),
        ]]
        for record in filtered.downtime[:MAX_DOWNTIME_ROWS]:
            rows.append([
                (record.reason or "-", NAVY, False),
                (f"{record.start_time} - {record.end_time}", "475569", False),
                (record.duration_minutes, "475569", True),
            ])
        _add_table(slide, rows, "64748B")
    else:
        _add_text(
            slide, "Nenhuma parada registrada no período / 此期间无停机记录",
            0.5, 2, 9, size=18, color=MUTED, center=True,
        )

    buffer = io.BytesIO()
    prs.save(buffer)
    return buffer.getvalue()

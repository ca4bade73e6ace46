"""Spreadsheet export of the filtered inspection and downtime records."""

from __future__ import annotations

import io
from datetime import date, datetime, tzinfo

import pandas as pd

from vqcenter.constants import area_display_name
from vqcenter.statistics import FilteredRecords

_INSPECTION_COLUMNS = [
    "Data",
    "Horario",
    "Intervalo",
    "Matricula",
    "Modelo",
    "Area",
    "Reinspecao",
    "Atuacao",
    "Liberado",
    "VIN",
]
_DOWNTIME_COLUMNS = ["Data", "Area", "Inicio", "Fim", "DuracaoMin", "Motivo"]

# Excel rejects sheet names longer than this.
_MAX_SHEET_NAME = 31


def _local(timestamp_ms: int, tz: tzinfo | None) -> datetime:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz)


def _inspection_row(record, tz: tzinfo | None) -> dict:
    moment = _local(record.timestamp, tz)
    return {
        "Data": moment.strftime("%d/%m/%Y"),
        "Horario": moment.strftime("%H:%M:%S"),
        "Intervalo": record.time_slot or "N/A",
        "Matricula": record.employee_id,
        "Modelo": record.model,
        "Area": record.area,
        "Reinspecao": "Sim" if record.is_reinspection else "Não",
        "Atuacao": record.acting_section or "N/A",
        "Liberado": record.released or "N/A",
        "VIN": record.vin or "N/A",
    }


def _sheet_name(prefix: str, area_name: str) -> str:
    return f"{prefix}_{area_name}"[:_MAX_SHEET_NAME]


def workbook_filename(area: str, period: str, today: date) -> str:
    clean_area = "_".join(area_display_name(area).split())
    return f"Planilha_VQ_{clean_area}_{period}_{today.isoformat()}.xlsx"


def build_workbook(filtered: FilteredRecords, area: str, tz: tzinfo | None = None) -> bytes:
    """Return an ``.xlsx`` file with defect, OK and downtime sheets."""

    area_name = area_display_name(area)

    defects = pd.DataFrame(
        [
            {**_inspection_row(r, tz), "Defeito": r.defect_type, "Quantidade": r.quantity}
            for r in filtered.defects
        ],
        columns=_INSPECTION_COLUMNS + ["Defeito", "Quantidade"],
    )
    passes = pd.DataFrame(
        [{**_inspection_row(r, tz), "Quantidade": r.quantity} for r in filtered.passes],
        columns=_INSPECTION_COLUMNS + ["Quantidade"],
    )
    downtime = pd.DataFrame(
        [
            {
                "Data": _local(r.timestamp, tz).strftime("%d/%m/%Y"),
                "Area": r.area,
                "Inicio": r.start_time,
                "Fim": r.end_time,
                "DuracaoMin": r.duration_minutes,
                "Motivo": r.reason,
            }
            for r in filtered.downtime
        ],
        columns=_DOWNTIME_COLUMNS,
    )

    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        defects.to_excel(writer, sheet_name=_sheet_name("Defeitos", area_name), index=False)
        passes.to_excel(writer, sheet_name=_sheet_name("Producao_OK", area_name), index=False)
        downtime.to_excel(writer, sheet_name=_sheet_name("Paradas", area_name), index=False)
    return buffer.getvalue()

import io
import os
import sys
from datetime import date, datetime, timezone

from openpyxl import load_workbook

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from vqcenter.records import DefectRecord, PassRecord
from vqcenter.reports.chat import build_chat_message, share_url
from vqcenter.reports.excel import build_workbook, workbook_filename
from vqcenter.reports.slides import deck_filename
from vqcenter.statistics import FilteredRecords, StatisticsFilter, compute_statistics

TODAY = date(2024, 6, 10)
STAMP = int(datetime(2024, 6, 10, 14, 5, tzinfo=timezone.utc).timestamp() * 1000)


def test_filenames_replace_spaces_in_area():
    assert workbook_filename("Inspeção OffLine", "WEEKLY", TODAY) == (
        "Planilha_VQ_Inspeção_OffLine_WEEKLY_2024-06-10.xlsx"
    )
    assert deck_filename("ALL", "ANNUAL", TODAY) == (
        "Relatorio_Bilingue_VQ_Geral_ANNUAL_2024-06-10.pptx"
    )


def test_workbook_keeps_headers_for_empty_sheets():
    content = build_workbook(FilteredRecords([], [], []), "Inspeção OffLine")

    workbook = load_workbook(io.BytesIO(content))

    assert workbook.sheetnames == [
        "Defeitos_Inspeção OffLine",
        "Producao_OK_Inspeção OffLine",
        "Paradas_Inspeção OffLine",
    ]
    assert all(len(name) <= 31 for name in workbook.sheetnames)
    header = next(workbook["Paradas_Inspeção OffLine"].iter_rows(values_only=True))
    assert header == ("Data", "Area", "Inicio", "Fim", "DuracaoMin", "Motivo")


def test_workbook_rows_use_local_time_and_placeholders():
    record = PassRecord(id="p1", timestamp=STAMP, model="EQE", area="Linha OK", quantity=3)

    content = build_workbook(FilteredRecords([record], [], []), "Linha OK", tz=timezone.utc)

    rows = list(load_workbook(io.BytesIO(content))["Producao_OK_Linha OK"].iter_rows(values_only=True))
    assert rows[1][:3] == ("10/06/2024", "14:05:00", "N/A")
    assert rows[1][-1] == 3


def test_chat_message_lists_top_three_defects():
    defects = [
        DefectRecord(id=str(n), timestamp=STAMP, model="HA2", area="Linha OK",
                     defect_type=f"Defeito {n}", quantity=n)
        for n in range(1, 5)
    ]
    filters = StatisticsFilter(start_date=TODAY, end_date=TODAY, tz=timezone.utc)
    stats = compute_statistics([], defects, [], filters)

    message = build_chat_message(stats, FilteredRecords([], defects, []), "ALL", TODAY)

    assert "Setor: Geral" in message
    assert "📅 *Data:* 10/06/2024" in message
    assert "1º DEFEITO 4 (4)" in message
    assert "3º DEFEITO 2 (2)" in message
    assert "DEFEITO 1 (1)" not in message
    assert "*HA2*: OK: 0 | Def: 10" in message


def test_chat_message_without_defects():
    filters = StatisticsFilter(start_date=TODAY, end_date=TODAY, tz=timezone.utc)
    stats = compute_statistics([], [], [], filters)

    message = build_chat_message(stats, FilteredRecords([], [], []), "Linha OK", TODAY)

    assert "Nenhum defeito registrado" in message


def test_share_url_encodes_whole_message():
    url = share_url(" Olá *VQ*\n")

    assert url == "https://wa.me/?text=Ol%C3%A1%20%2AVQ%2A"

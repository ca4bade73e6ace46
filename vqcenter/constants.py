"""Closed sets shared by the entry workflow, the statistics engine and reports.

Area names, vehicle models and acting-section options are used verbatim as
stored values, so they are declared once here and imported everywhere else.
"""

AREAS: tuple[str, ...] = (
    "Linha OK",
    "Linha de Teste",
    "Teste de Estrada",
    "Teste de Chuva",
    "Inspeção OffLine",
)

MODELS: tuple[str, ...] = ("EQE", "SA2", "HA2")

ALL_AREAS = "ALL"
# Filter values accepted on input as "every area".
ALL_AREAS_ALIASES = frozenset({"", "ALL", "GERAL", "ALL AREAS"})

CHART_SCOPE_SELECTED = "SELECTED"
CHART_SCOPE_GENERAL = "GENERAL"
CHART_SCOPES = (CHART_SCOPE_SELECTED, CHART_SCOPE_GENERAL)

OFFLINE_AREA = "Inspeção OffLine"
ROAD_TEST_AREA = "Teste de Estrada"

ACTING_SECTIONS: dict[str, tuple[str, ...]] = {
    OFFLINE_AREA: (
        "Resinspeção Linha Ok",
        "reinspeção Linha de Teste/Chassis",
        "reinspeção teste de estrada",
        "reinspeção teste de chuva",
        "reinspeção recebimento",
        "reinspeção CL4/Global",
    ),
    ROAD_TEST_AREA: (
        "Teste de Estrada",
        "Chassis",
    ),
}

VIN_REQUIRED_AREAS = frozenset({OFFLINE_AREA})
EMPLOYEE_REQUIRED_AREAS = frozenset({OFFLINE_AREA})

TIME_SLOT_SEPARATOR = " as "

PRESET_TIME_SLOTS: tuple[tuple[str, str], ...] = (
    ("08:00", "09:00"),
    ("09:00", "09:50"),
    ("10:00", "11:00"),
    ("11:00", "11:30"),
    ("12:30", "13:00"),
    ("13:00", "14:00"),
    ("14:00", "14:50"),
    ("15:00", "16:00"),
    ("16:00", "17:00"),
    ("17:00", "17:30"),
)

DOWNTIME_REASONS: tuple[str, ...] = (
    "",
    "Parada não programada",
    "Falta de peça",
    "Manutenção equipamento",
    "Problema elétrico",
    "Problema mecânico",
    "Falta de mão de obra",
    "Parada programada",
    "DDS",
    "Falta de energia",
    "Aguardando carro",
    "Problema de qualidade",
)

TOP_DEFECTS_LIMIT = 10

# period -> (days, Portuguese label, Chinese label)
REPORT_PERIODS: dict[str, tuple[int, str, str]] = {
    "WEEKLY": (7, "Semanal", "每周"),
    "MONTHLY": (30, "Mensal", "每月"),
    "ANNUAL": (365, "Anual", "年度"),
}

AREA_TRANSLATIONS: dict[str, str] = {
    ALL_AREAS: "总览 (General)",
    "Linha OK": "合格线 (Linha OK)",
    "Linha de Teste": "测试线 (Linha de Teste)",
    "Teste de Estrada": "路试 (Teste de Estrada)",
    "Teste de Chuva": "淋雨测试 (Teste de Chuva)",
    "Inspeção OffLine": "线下检查 (Inspeção OffLine)",
}

ROLE_OPERATOR = "OPERATOR"
ROLE_MANAGER = "MANAGER"


def normalize_area_filter(value: str | None) -> str:
    """Return ``value`` as a known area or :data:`ALL_AREAS`.

    Raises:
        ValueError: ``value`` names neither an area nor "all areas".
    """

    text = (value or "").strip()
    if text.upper() in ALL_AREAS_ALIASES:
        return ALL_AREAS
    for area in AREAS:
        if area.casefold() == text.casefold():
            return area
    raise ValueError(f"Unknown area: {text}")


def acting_sections_for(area: str | None) -> tuple[str, ...]:
    """Acting-section options of ``area`` (empty for areas without them)."""

    return ACTING_SECTIONS.get(area or "", ())


def area_display_name(area: str) -> str:
    return "Geral" if area == ALL_AREAS else area

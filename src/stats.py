"""
Dashboard Statistics Module
Aggregates response records into the KPI cards, chart series and table
shown on the monitoring dashboard.

The data script already ships aggregates; compute_statistics() rebuilds
them locally from raw rows when the payload comes without them.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from .config import YES
from .records import ResponseRecord, decode_rows
from .report_engine import entry_date

logger = logging.getLogger(__name__)

AGE_BINS = [-1, 17, 29, 44, 59, 200]
AGE_LABELS = ["0-17", "18-29", "30-44", "45-59", "60+"]

WEEKDAYS = ["Segunda", "Terça", "Quarta", "Quinta", "Sexta", "Sábado", "Domingo"]

MASKED_NAME = "****************"

# (column header, record attribute) in spreadsheet mirror order
TABLE_COLUMNS = [
    ("ID", "patient_id"),
    ("NOME", "name"),
    ("NASC", "birth_date"),
    ("SEXO", "sex"),
    ("IDADE", "age"),
    ("BAIRRO", "neighborhood"),
    ("ZONA", "zone"),
    ("GPS", "gps"),
    ("DIAGNOSTICO", "diagnosis"),
    ("REINCIDENTE", "recurrence"),
    ("MEDICACAO", "medication"),
    ("MOTIVO_NAO_MED", "medication_refusal_reason"),
    ("APOIO_FAM", "family_support"),
    ("MOTIVO_NAO_FAM", "family_refusal_reason"),
    ("APOIO_RAPS", "raps_link"),
    ("OBSERVACOES", "notes"),
    ("RESPONSÁVEL", "responsible"),
    ("ENTRADA", "entry"),
]


@dataclass
class ClinicalCounts:
    diag: int = 0
    med: int = 0
    fam: int = 0
    raps: int = 0


@dataclass
class DashboardData:
    """
    Aggregate view of every response served by the data script.

    Attributes:
        total: Number of responses
        recurrent: Responses flagged as recurrent
        clinical: Counts of "Sim" for diagnosis, medication, family, RAPS
        male / female: Responses per sex
        ages / zones / neighborhoods / weekdays / monthly: label -> count
        records: Decoded raw rows
    """
    total: int = 0
    recurrent: int = 0
    clinical: ClinicalCounts = field(default_factory=ClinicalCounts)
    male: int = 0
    female: int = 0
    ages: Dict[str, int] = field(default_factory=dict)
    zones: Dict[str, int] = field(default_factory=dict)
    neighborhoods: Dict[str, int] = field(default_factory=dict)
    weekdays: Dict[str, int] = field(default_factory=dict)
    monthly: Dict[str, int] = field(default_factory=dict)
    records: List[ResponseRecord] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "DashboardData":
        """
        Decode a carregar_estatisticas payload.

        Missing aggregates are recomputed from dadosBrutos.
        """
        records = decode_rows(payload.get("dadosBrutos"))
        if "total" not in payload:
            logger.info("Payload without aggregates, computing locally")
            return compute_statistics(records)

        clinical_raw = payload.get("clinico") or {}
        return cls(
            total=_to_int(payload.get("total")),
            recurrent=_to_int(payload.get("reincidentes")),
            clinical=ClinicalCounts(
                diag=_to_int(clinical_raw.get("diag")),
                med=_to_int(clinical_raw.get("med")),
                fam=_to_int(clinical_raw.get("fam")),
                raps=_to_int(clinical_raw.get("raps")),
            ),
            male=_to_int(payload.get("masculino")),
            female=_to_int(payload.get("feminino")),
            ages=_counts(payload.get("idades")),
            zones=_counts(payload.get("zonas")),
            neighborhoods=_counts(payload.get("bairros")),
            weekdays=_counts(payload.get("dias")),
            monthly=_counts(payload.get("mensal")),
            records=records,
        )


def _to_int(value: Any, default: int = 0) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _counts(raw: Any) -> Dict[str, int]:
    if not isinstance(raw, dict):
        return {}
    return {str(k): _to_int(v) for k, v in raw.items()}


def percent(part: int, total: int) -> float:
    if not total:
        return 0.0
    return part / total * 100


# =============================================================================
# LOCAL AGGREGATION
# =============================================================================

def parse_entry_datetime(entry: str) -> Optional[datetime]:
    """Parse the date part of an entry field ("dd/mm/yyyy[ HH:MM[:SS]] | ...")."""
    text = entry_date(entry)
    for fmt in ("%d/%m/%Y %H:%M:%S", "%d/%m/%Y %H:%M", "%d/%m/%Y"):
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def records_frame(records: List[ResponseRecord]) -> pd.DataFrame:
    columns = [attr for _, attr in TABLE_COLUMNS]
    return pd.DataFrame([{c: getattr(r, c) for c in columns} for r in records], columns=columns)


def compute_statistics(records: List[ResponseRecord]) -> DashboardData:
    """Build every dashboard aggregate from decoded records."""
    if not records:
        return DashboardData()

    df = records_frame(records)
    sex = df["sex"].str.upper()

    ages = pd.to_numeric(df["age"], errors="coerce")
    bands = pd.cut(ages, bins=AGE_BINS, labels=AGE_LABELS)
    age_counts = bands.value_counts().reindex(AGE_LABELS, fill_value=0)

    dates = df["entry"].map(parse_entry_datetime).dropna()
    weekday_counts = dates.map(lambda d: WEEKDAYS[d.weekday()]).value_counts()
    months = sorted({(d.year, d.month) for d in dates})
    month_counts = dates.map(lambda d: f"{d.month:02d}/{d.year}").value_counts()

    zones = df.loc[df["zone"] != "", "zone"].value_counts()
    neighborhoods = df.loc[df["neighborhood"] != "", "neighborhood"].value_counts()

    return DashboardData(
        total=len(df),
        recurrent=int((df["recurrence"] == YES).sum()),
        clinical=ClinicalCounts(
            diag=int((df["diagnosis"].str.upper() == YES.upper()).sum()),
            med=int((df["medication"] == YES).sum()),
            fam=int((df["family_support"] == YES).sum()),
            raps=int((df["raps_link"] == YES).sum()),
        ),
        male=int(sex.str.startswith("M").sum()),
        female=int(sex.str.startswith("F").sum()),
        ages={k: int(v) for k, v in age_counts.items()},
        zones={k: int(v) for k, v in zones.items()},
        neighborhoods={k: int(v) for k, v in neighborhoods.items()},
        weekdays={d: int(weekday_counts.get(d, 0)) for d in WEEKDAYS},
        monthly={f"{m:02d}/{y}": int(month_counts[f"{m:02d}/{y}"]) for y, m in months},
        records=list(records),
    )


# =============================================================================
# CHART SERIES
# =============================================================================

Series = List[Dict[str, Any]]


def _series(pairs) -> Series:
    return [{"name": k, "value": v} for k, v in pairs]


def sex_series(data: DashboardData) -> Series:
    return _series([("Masc", data.male), ("Fem", data.female)])


def age_series(data: DashboardData) -> Series:
    return _series(data.ages.items())


def zone_series(data: DashboardData) -> Series:
    return _series(data.zones.items())


def top_neighborhoods(data: DashboardData, n: int = 10) -> Series:
    ranked = sorted(data.neighborhoods.items(), key=lambda kv: kv[1], reverse=True)
    return _series(ranked[:n])


def weekday_series(data: DashboardData) -> Series:
    return _series(data.weekdays.items())


def monthly_series(data: DashboardData) -> Series:
    return _series(data.monthly.items())


def clinical_radar(data: DashboardData) -> Series:
    c = data.clinical
    return [
        {"subject": "Diagnóstico", "value": percent(c.diag, data.total)},
        {"subject": "Medicação", "value": percent(c.med, data.total)},
        {"subject": "Família", "value": percent(c.fam, data.total)},
        {"subject": "RAPS", "value": percent(c.raps, data.total)},
    ]


def medication_split(data: DashboardData) -> Series:
    return _series([
        ("Com Medicação", data.clinical.med),
        ("Sem Medicação", data.total - data.clinical.med),
    ])


def support_split(data: DashboardData) -> Series:
    return _series([
        ("Apoio Familiar", data.clinical.fam),
        ("Vínculo RAPS", data.clinical.raps),
    ])


def diagnosis_split(data: DashboardData) -> Series:
    return _series([
        ("Diagnosticados", data.clinical.diag),
        ("Em Análise", data.total - data.clinical.diag),
    ])


def kpis(data: DashboardData) -> Tuple[int, int, int]:
    """(total, recurrence rate %, RAPS link rate %)"""
    return (
        data.total,
        round(percent(data.recurrent, data.total)),
        round(percent(data.clinical.raps, data.total)),
    )


# =============================================================================
# TABLE
# =============================================================================

def filter_records(records: List[ResponseRecord], term: str) -> List[ResponseRecord]:
    needle = (term or "").strip().lower()
    if not needle:
        return list(records)
    return [r for r in records if any(needle in cell.lower() for cell in r.cells() if cell)]


def records_table(records: List[ResponseRecord]) -> pd.DataFrame:
    """Spreadsheet mirror with the patient name masked."""
    df = records_frame(records)
    df["name"] = MASKED_NAME
    df = df.replace("", "-")
    df.columns = [header for header, _ in TABLE_COLUMNS]
    return df

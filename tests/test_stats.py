"""
Dashboard Statistics Tests
Payload decoding, local aggregation, chart series and table.
"""

import sys
import os
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from src.records import ResponseRecord
from src.stats import (
    MASKED_NAME,
    DashboardData,
    clinical_radar,
    compute_statistics,
    filter_records,
    kpis,
    medication_split,
    parse_entry_datetime,
    records_table,
    sex_series,
    top_neighborhoods,
)

PAYLOAD = {
    "total": 10,
    "reincidentes": 3,
    "clinico": {"diag": 6, "med": 5, "fam": 4, "raps": 2},
    "masculino": 7,
    "feminino": 3,
    "idades": {"18-29": 4, "30-44": 6},
    "zonas": {"ZONA OESTE": 8, "ZONA SUL": 2},
    "bairros": {f"B{i}": i for i in range(1, 13)},
    "dias": {"Segunda": 2},
    "mensal": {"01/2026": 10},
    "dadosBrutos": [["1", "ANA", "", "Feminino", "30"]],
}


def make(**kw) -> ResponseRecord:
    return ResponseRecord(**kw)


def test_from_payload_reads_aggregates():
    data = DashboardData.from_payload(PAYLOAD)

    assert data.total == 10
    assert data.recurrent == 3
    assert data.clinical.raps == 2
    assert data.zones["ZONA OESTE"] == 8
    assert data.records[0].name == "ANA"


def test_from_payload_without_aggregates_computes_locally():
    data = DashboardData.from_payload({"dadosBrutos": [["1", "ANA", "", "Feminino", "30"]]})
    assert data.total == 1
    assert data.female == 1


def test_kpis_and_zero_total():
    data = DashboardData.from_payload(PAYLOAD)
    assert kpis(data) == (10, 30, 20)
    assert kpis(DashboardData()) == (0, 0, 0)
    assert all(point["value"] == 0 for point in clinical_radar(DashboardData()))


def test_chart_series():
    data = DashboardData.from_payload(PAYLOAD)

    assert sex_series(data) == [{"name": "Masc", "value": 7}, {"name": "Fem", "value": 3}]
    top = top_neighborhoods(data)
    assert len(top) == 10
    assert top[0] == {"name": "B12", "value": 12}
    assert medication_split(data) == [
        {"name": "Com Medicação", "value": 5},
        {"name": "Sem Medicação", "value": 5},
    ]
    radar = {p["subject"]: p["value"] for p in clinical_radar(data)}
    assert radar["Diagnóstico"] == 60.0
    assert radar["RAPS"] == 20.0


def test_parse_entry_datetime():
    assert parse_entry_datetime("05/01/2026 14:30 | ANA").hour == 14
    assert parse_entry_datetime("05/01/2026").day == 5
    assert parse_entry_datetime("ontem | ANA") is None


def test_compute_statistics():
    records = [
        make(name="A", sex="Masculino", age="25", zone="ZONA OESTE", neighborhood="BURITIS",
             recurrence="Sim", medication="Sim", family_support="Não", raps_link="Não", diagnosis="SIM",
             entry="05/01/2026 10:00 | X"),
        make(name="B", sex="Feminino", age="70", zone="ZONA OESTE", neighborhood="BURITIS",
             recurrence="Não", medication="Não", family_support="Sim", raps_link="Sim", diagnosis="Não",
             entry="06/01/2026 | Y"),
        make(name="C", sex="Masculino", age="", zone="ZONA SUL", neighborhood="CENTRO",
             recurrence="Sim", medication="Sim", family_support="Sim", raps_link="Sim",
             entry="10/02/2026 | Z"),
    ]
    data = compute_statistics(records)

    assert data.total == 3
    assert data.recurrent == 2
    assert (data.clinical.diag, data.clinical.med, data.clinical.fam, data.clinical.raps) == (1, 2, 2, 2)
    assert (data.male, data.female) == (2, 1)
    assert data.ages["18-29"] == 1
    assert data.ages["60+"] == 1
    assert data.ages["0-17"] == 0
    assert data.zones == {"ZONA OESTE": 2, "ZONA SUL": 1}
    assert data.neighborhoods["BURITIS"] == 2
    # 05/01/2026 is a Monday, 06/01 a Tuesday, 10/02 a Tuesday
    assert data.weekdays["Segunda"] == 1
    assert data.weekdays["Terça"] == 2
    assert list(data.monthly.items()) == [("01/2026", 2), ("02/2026", 1)]


def test_compute_statistics_empty():
    assert compute_statistics([]).total == 0


def test_filter_records():
    records = [make(name="ANA", neighborhood="CENTRO"), make(name="PEDRO", patient_id="X-9")]
    assert [r.name for r in filter_records(records, "centro")] == ["ANA"]
    assert [r.name for r in filter_records(records, "x-9")] == ["PEDRO"]
    assert len(filter_records(records, "  ")) == 2


def test_records_table_masks_name():
    df = records_table([make(patient_id="1", name="ANA", entry="05/01/2026 | X")])

    assert list(df.columns)[:3] == ["ID", "NOME", "NASC"]
    assert df.iloc[0]["NOME"] == MASKED_NAME
    assert df.iloc[0]["NASC"] == "-"
    assert df.iloc[0]["ENTRADA"] == "05/01/2026 | X"

"""
Response Record Tests
Positional decoding and patient history lookup.
"""

import sys
import os
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from src.records import (
    ROW_WIDTH,
    ResponseRecord,
    decode_rows,
    find_patient_history,
    get_value,
    latest_record,
    normalize_yes_no,
    patient_names,
)

SAMPLE_ROW = [
    "P-010", " MARIA DE JESUS ", "1979-02-11", "Feminino", 47, "RUA A", "12", "CENTRO", "ZONA SUL",
    "2.82, -60.67", "PRAÇA", "Sim", "SIM", "NAO", "ABANDONOU", "não", "BRIGA FAMILIAR", "Nao",
    "CRISE DE ANSIEDADE", "03/03/2026 10:00 | JOSÉ", "USUÁRIO", "", "PRETA", "VENEZUELANA",
]


def test_from_row_maps_every_position():
    r = ResponseRecord.from_row(SAMPLE_ROW)

    assert r.patient_id == "P-010"
    assert r.name == "MARIA DE JESUS"
    assert r.age == "47"
    assert r.street == "RUA A"
    assert r.number == "12"
    assert r.neighborhood == "CENTRO"
    assert r.zone == "ZONA SUL"
    assert r.gps == "2.82, -60.67"
    assert r.reference_point == "PRAÇA"
    assert r.diagnosis == "Sim"
    assert r.medication_refusal_reason == "ABANDONOU"
    assert r.family_refusal_reason == "BRIGA FAMILIAR"
    assert r.notes == "CRISE DE ANSIEDADE"
    assert r.entry == "03/03/2026 10:00 | JOSÉ"
    assert r.responsible == "USUÁRIO"
    assert r.race == "PRETA"
    assert r.nationality == "VENEZUELANA"


def test_from_row_canonicalizes_yes_no_fields():
    r = ResponseRecord.from_row(SAMPLE_ROW)
    assert r.recurrence == "Sim"
    assert r.medication == "Não"
    assert r.family_support == "Não"
    assert r.raps_link == "Não"


def test_from_row_pads_short_rows():
    r = ResponseRecord.from_row(["1", "ANA", None])
    assert r.name == "ANA"
    assert r.birth_date == ""
    assert r.nationality == ""
    assert len(r.to_row()) == ROW_WIDTH


def test_to_row_round_trip_positions():
    row = ResponseRecord.from_row(SAMPLE_ROW).to_row()
    assert row[1] == "MARIA DE JESUS"
    assert row[17] == "Não"
    assert row[19] == "03/03/2026 10:00 | JOSÉ"
    assert row[23] == "VENEZUELANA"


def test_normalize_yes_no():
    assert normalize_yes_no("sim") == "Sim"
    assert normalize_yes_no("NÃO") == "Não"
    assert normalize_yes_no(None) == ""
    assert normalize_yes_no("Em análise") == "Em análise"


def test_get_value_from_mapping_and_row():
    assert get_value({"Apoio_RAPS": "sim"}, "apoio_raps") == "SIM"
    assert get_value({"diagnóstico": "não"}, "diagnostico") == "NÃO"
    assert get_value({"x": 1}, "bairro") == ""
    assert get_value(SAMPLE_ROW, "bairro") == "CENTRO"
    assert get_value(SAMPLE_ROW, "loc") == "2.82, -60.67"
    assert get_value(SAMPLE_ROW, "desconhecido") == ""
    assert get_value(None, "nome") == ""


def test_decode_rows_skips_malformed():
    records = decode_rows([SAMPLE_ROW, "lixo", None, ["2", "PEDRO"]])
    assert [r.name for r in records] == ["MARIA DE JESUS", "PEDRO"]


def test_find_patient_history_is_case_insensitive():
    records = decode_rows([
        ["1", "Maria de Jesus", "", "", "", "", "", "", "", "", "", "", "", "", "", "", "", "", "", "01/01/2026 | A"],
        ["2", "PEDRO"],
        ["3", "MARIA  DE JESUS", "", "", "", "", "", "", "", "", "", "", "", "", "", "", "", "", "", "02/01/2026 | B"],
    ])
    history = find_patient_history(records, " maria de jesus ")

    assert [r.patient_id for r in history] == ["1", "3"]
    assert latest_record(history).patient_id == "3"
    assert find_patient_history(records, "") == []
    assert latest_record([]) is None


def test_patient_names_unique_and_sorted():
    records = decode_rows([["1", "pedro"], ["2", "Ana"], ["3", "PEDRO"], ["4", ""]])
    assert patient_names(records) == ["Ana", "pedro"]

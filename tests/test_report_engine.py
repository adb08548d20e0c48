"""
Report Engine Tests
Risk tiering, history summary and report assembly.
"""

import random
import re
import sys
import os
from datetime import datetime

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pytest

from src.records import ResponseRecord
from src.report_engine import (
    NOT_GEOREFERENCED,
    REPORT_TITLE,
    TIER_ANALYSIS,
    TIER_LABELS,
    classify_risk,
    entry_date,
    format_birth_date,
    generate_protocol_id,
    generate_report,
    refresh_report,
    summarize_history,
)
from cases import TEST_CASES, run_all_tests, run_test

FIXED_NOW = datetime(2026, 3, 14, 9, 30, 5)


def make_record(**overrides) -> ResponseRecord:
    base = dict(
        patient_id="P-001",
        name="JOÃO DA SILVA",
        birth_date="1985-07-20",
        sex="Masculino",
        age="40",
        street="RUA DAS FLORES",
        number="120",
        neighborhood="BURITIS",
        zone="ZONA OESTE",
        gps="2.8080, -60.7200",
        diagnosis="Sim",
        recurrence="Não",
        medication="Sim",
        family_support="Sim",
        raps_link="Não",
        notes="PACIENTE AGITADO NA ABORDAGEM",
        entry="10/01/2026 08:15 | MARIA SOUZA",
    )
    base.update(overrides)
    return ResponseRecord(**base)


@pytest.mark.parametrize("case", TEST_CASES, ids=[c["id"] for c in TEST_CASES])
def test_tier_cases(case):
    assert run_test(case)["passed"]


def test_case_table_summary():
    summary = run_all_tests(verbose=False)
    assert summary["failed"] == 0
    assert summary["total_cases"] == len(TEST_CASES)


def test_recurrent_and_linked_falls_through_to_green():
    record = make_record(recurrence="Sim", raps_link="Sim", medication="Não", family_support="Não")
    result = classify_risk(record, 5)
    assert result.tier == "GREEN"
    assert result.label == TIER_LABELS["GREEN"]
    assert result.analysis == TIER_ANALYSIS["GREEN"]


def test_history_count_overrides_flag_for_red():
    for flag in ("Sim", "Não", ""):
        assert classify_risk(make_record(recurrence=flag, raps_link="Não"), 4).tier == "RED"


def test_entry_date_takes_text_before_pipe():
    assert entry_date("10/01/2026 08:15 | MARIA") == "10/01/2026 08:15"
    assert entry_date("  11/02/2026  ") == "11/02/2026"
    assert entry_date("") == "-"
    assert entry_date(" | MARIA") == "-"


def test_summarize_history():
    history = [
        make_record(),
        make_record(gps="", street="AV. CAPITAO JULIO BEZERRA", number="5", neighborhood="CENTRO", zone="ZONA SUL",
                    entry="02/02/2026 | PEDRO"),
    ]
    entries = summarize_history(history)

    assert entries[0].date == "10/01/2026 08:15"
    assert entries[0].responsible == "10/01/2026 08:15 | MARIA SOUZA"
    assert entries[0].address == "RUA DAS FLORES, 120 - BURITIS (ZONA OESTE)"
    assert entries[0].gps == "2.8080, -60.7200"
    assert entries[1].gps == NOT_GEOREFERENCED
    assert entries[1].address == "AV. CAPITAO JULIO BEZERRA, 5 - CENTRO (ZONA SUL)"


def test_format_birth_date():
    assert format_birth_date("1985-07-20") == "20/07/1985"
    assert format_birth_date("1985-07-20T03:00:00.000Z") == "20/07/1985"
    assert format_birth_date("20/07/1985") == "20/07/1985"
    assert format_birth_date("sem data") == "sem data"
    assert format_birth_date("") == "-"


def test_protocol_id_format():
    protocol = generate_protocol_id(FIXED_NOW, random.Random(7))
    assert re.fullmatch(r"REL-\d{3}-2026", protocol)
    number = int(protocol.split("-")[1])
    assert 100 <= number <= 999


def test_report_contains_title_and_protocol():
    record = make_record()
    report = generate_report(record, [record])

    assert REPORT_TITLE in report
    assert "RELATÓRIO DE INTELIGÊNCIA" in report
    assert re.search(r"REL-\d{3}-\d{4}", report)


def test_report_sections():
    first = make_record(entry="05/12/2025 22:10 | ANA LIMA", gps="")
    latest = make_record(
        medication="Não",
        medication_refusal_reason="EFEITOS COLATERAIS",
        family_support="Não",
        family_refusal_reason="MORA SOZINHO",
        race="PARDA",
    )
    report = generate_report(latest, [first, latest], now=FIXED_NOW, rng=random.Random(1))

    assert "EMISSÃO: 14/03/2026 09:30:05" in report
    assert "Nome: JOÃO DA SILVA" in report
    assert "Data de Nascimento: 20/07/1985" in report
    assert "Idade: 40 anos" in report
    assert "Raça/Cor: PARDA" in report
    assert "Nacionalidade: BRASILEIRO" in report
    assert "Bairro/Zona Atual: BURITIS (ZONA OESTE)" in report
    assert "Total de Atendimentos: 2" in report
    assert "Datas dos Atendimentos: 05/12/2025 22:10, 10/01/2026 08:15" in report
    assert "1. RUA DAS FLORES, 120 - BURITIS (ZONA OESTE) | GPS: Não georreferenciado" in report
    assert "2. RUA DAS FLORES, 120 - BURITIS (ZONA OESTE) | GPS: 2.8080, -60.7200" in report
    assert "Adesão à Medicação: Não (Motivo: EFEITOS COLATERAIS)" in report
    assert "Apoio Familiar: Não (Motivo: MORA SOZINHO)" in report
    assert "Vínculo RAPS: Não" in report
    assert "PACIENTE AGITADO NA ABORDAGEM" in report
    assert "(05/12/2025 22:10 | ANA LIMA)" in report
    assert "(10/01/2026 08:15 | MARIA SOUZA)" in report
    assert f"CLASSIFICAÇÃO: {TIER_LABELS['YELLOW']}" in report
    assert TIER_ANALYSIS["YELLOW"] in report


def test_report_defaults_for_missing_fields():
    record = make_record(notes="", race="", nationality="", medication="Sim", family_support="Sim")
    report = generate_report(record, [record], now=FIXED_NOW)

    assert "Raça/Cor: NÃO INFORMADO" in report
    assert "Nacionalidade: BRASILEIRO" in report
    assert "Sem observações." in report
    assert "Adesão à Medicação: Sim\n" in report
    assert "Motivo" not in report


def test_report_red_tier_for_recurrent_unlinked_patient():
    history = [make_record() for _ in range(4)]
    report = generate_report(history[-1], history, now=FIXED_NOW)
    assert f"CLASSIFICAÇÃO: {TIER_LABELS['RED']}" in report


def test_report_is_stable_apart_from_protocol_and_timestamp():
    history = [make_record(), make_record(entry="11/01/2026 | JOSE")]

    def strip_volatile(text):
        text = re.sub(r"REL-\d{3}-\d{4}", "REL-XXX-YYYY", text)
        return re.sub(r"EMISSÃO: .*", "EMISSÃO: -", text)

    first = generate_report(history[-1], history)
    second = generate_report(history[-1], history, now=datetime(2030, 1, 1), rng=random.Random(99))
    assert strip_volatile(first) == strip_volatile(second)


def test_no_report_without_patient_or_history():
    record = make_record()
    assert generate_report(record, []) is None
    assert generate_report(make_record(name="  "), [record]) is None
    assert generate_report(None, [record]) is None


def test_refresh_report_keeps_previous_output_on_empty_history():
    state = {"report_text": "RELATÓRIO ANTERIOR"}
    assert refresh_report(state, make_record(), []) is None
    assert state == {"report_text": "RELATÓRIO ANTERIOR"}

    empty_state = {}
    refresh_report(empty_state, None, None)
    assert empty_state == {}


def test_refresh_report_stores_generated_text():
    record = make_record()
    state = {}
    report = refresh_report(state, record, [record], now=FIXED_NOW)
    assert state["report_text"] == report

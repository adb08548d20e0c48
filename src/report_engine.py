"""
Triage Report Engine - Rule-Based Risk Tiering
Builds the patient intelligence report from a patient's response history.

Decision Logic (first match wins):
1. RED: recurrent patient with no RAPS linkage
2. YELLOW: first-time patient with fragile medication or family support
3. GREEN: everything else
"""

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Literal, MutableMapping, Optional

from .config import NO, YES
from .records import ResponseRecord

logger = logging.getLogger(__name__)

RiskTier = Literal["RED", "YELLOW", "GREEN"]

# More than this many responses makes a patient recurrent regardless of the flag
RECURRENCE_HISTORY_THRESHOLD = 3

REPORT_TITLE = "RELATÓRIO DE INTELIGÊNCIA"
REPORT_PLACEHOLDER = "Aguardando seleção de paciente para gerar o relatório..."

NOT_GEOREFERENCED = "Não georreferenciado"
DEFAULT_RACE = "NÃO INFORMADO"
DEFAULT_NATIONALITY = "BRASILEIRO"
NO_NOTES = "Sem observações."
MISSING = "-"

SEPARATOR = "=" * 60
RULE = "-" * 60


# TIER TEXTS: label and management analysis per tier
TIER_LABELS = {
    "RED": "VERMELHO - RISCO ALTO",
    "YELLOW": "AMARELO - RISCO MODERADO",
    "GREEN": "VERDE - RISCO BAIXO",
}

TIER_ANALYSIS = {
    "RED": (
        "Paciente reincidente sem vínculo com a RAPS, caracterizando efeito "
        "\"porta giratória\" e falha na continuidade do cuidado. Recomenda-se "
        "articulação urgente entre o SAMU e o CAPS de referência para "
        "repactuação do Projeto Terapêutico Singular (PTS)."
    ),
    "YELLOW": (
        "Paciente sem histórico de reincidência, porém com rede de suporte "
        "fragilizada (adesão medicamentosa e/ou apoio familiar ausentes). "
        "Recomenda-se busca ativa preventiva pela equipe da UBS de referência "
        "e vinculação ao CAPS."
    ),
    "GREEN": (
        "Fluxo assistencial estável. Recomenda-se acompanhamento de rotina "
        "por meio da ficha de referência e contrarreferência."
    ),
}


@dataclass
class HistoryEntry:
    """
    Display summary of one historical response.

    Attributes:
        date: Entry date (text before '|' in the entry field) or '-'
        responsible: Full entry field, verbatim
        address: "{street}, {number} - {neighborhood} ({zone})"
        gps: GPS string or NOT_GEOREFERENCED
    """
    date: str
    responsible: str
    address: str
    gps: str


@dataclass
class RiskAssessment:
    """
    Result of risk classification.

    Attributes:
        tier: RED, YELLOW or GREEN
        label: Display label for the tier
        analysis: Fixed management analysis text
        is_recurrent: Recurrence flag set or history above threshold
        history_size: Number of responses considered
    """
    tier: RiskTier
    label: str
    analysis: str
    is_recurrent: bool
    history_size: int


# =============================================================================
# STEP 1: HISTORY SUMMARY
# =============================================================================

def entry_date(entry: str) -> str:
    """
    Display date of an entry field ("19/10/2026 14:02 | MARIA" -> "19/10/2026 14:02").
    """
    head = str(entry or "").split("|", 1)[0].strip()
    return head or MISSING


def compose_address(record: ResponseRecord) -> str:
    return f"{record.street}, {record.number} - {record.neighborhood} ({record.zone})"


def summarize_history(history: List[ResponseRecord]) -> List[HistoryEntry]:
    return [
        HistoryEntry(
            date=entry_date(r.entry),
            responsible=r.entry,
            address=compose_address(r),
            gps=r.gps or NOT_GEOREFERENCED,
        )
        for r in history
    ]


# =============================================================================
# STEP 2: RISK CLASSIFICATION
# =============================================================================

def is_recurrent(record: ResponseRecord, history_size: int) -> bool:
    return record.recurrence == YES or history_size > RECURRENCE_HISTORY_THRESHOLD


def classify_risk(record: ResponseRecord, history_size: int) -> RiskAssessment:
    """
    Assign the risk tier for the selected record.

    Logic:
    1. Recurrent AND RAPS link "Não" -> RED
    2. Not recurrent AND (medication "Não" OR family support "Não") -> YELLOW
    3. Otherwise -> GREEN (recurrent patients linked to RAPS land here)

    Args:
        record: Latest response of the patient
        history_size: Number of responses in the patient's history

    Returns:
        RiskAssessment with tier, label and analysis text

    Examples:
        >>> classify_risk(ResponseRecord(recurrence="Sim", raps_link="Não"), 1).tier
        'RED'
        >>> classify_risk(ResponseRecord(raps_link="Sim"), 5).tier
        'GREEN'
    """
    recurrent = is_recurrent(record, history_size)

    if recurrent and record.raps_link == NO:
        tier = "RED"
    elif not recurrent and (record.medication == NO or record.family_support == NO):
        tier = "YELLOW"
    else:
        tier = "GREEN"

    return RiskAssessment(
        tier=tier,
        label=TIER_LABELS[tier],
        analysis=TIER_ANALYSIS[tier],
        is_recurrent=recurrent,
        history_size=history_size,
    )


# =============================================================================
# STEP 3: REPORT ASSEMBLY
# =============================================================================

def generate_protocol_id(now: Optional[datetime] = None, rng: Optional[random.Random] = None) -> str:
    """Protocol identifier in the form REL-{100..999}-{year}."""
    now = now or datetime.now()
    rng = rng or random
    return f"REL-{rng.randint(100, 999)}-{now.year:04d}"


def format_birth_date(raw: str) -> str:
    """
    Format an ISO date or datetime as dd/mm/yyyy.

    Unparseable input is echoed unchanged.

    Examples:
        >>> format_birth_date("1990-05-12")
        '12/05/1990'
        >>> format_birth_date("1990-05-12T03:00:00.000Z")
        '12/05/1990'
        >>> format_birth_date("12/05/1990")
        '12/05/1990'
    """
    text = str(raw or "").strip()
    if not text:
        return MISSING

    candidate = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        try:
            parsed = datetime.strptime(text[:10], "%Y-%m-%d")
        except ValueError:
            logger.debug(f"Birth date '{text}' is not ISO formatted, keeping raw value")
            return text
    return parsed.strftime("%d/%m/%Y")


def _or_missing(value: str) -> str:
    return value if value else MISSING


def _with_reason(flag: str, reason: str) -> str:
    flag_text = _or_missing(flag)
    if flag == NO:
        return f"{flag_text} (Motivo: {_or_missing(reason)})"
    return flag_text


def generate_report(
    record: Optional[ResponseRecord],
    history: Optional[List[ResponseRecord]],
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> Optional[str]:
    """
    Build the intelligence report for a patient.

    Args:
        record: Selected (latest) response of the patient
        history: Every response sharing the patient's name, any order
        now: Issuance time, defaults to the current local time
        rng: Random source for the protocol number

    Returns:
        Formatted report text, or None when there is no named patient or
        no history to report on
    """
    if record is None or not record.name.strip() or not history:
        logger.info("Report skipped: no patient selected or empty history")
        return None

    now = now or datetime.now()
    entries = summarize_history(history)
    assessment = classify_risk(record, len(history))

    dates = ", ".join(e.date for e in entries)
    addresses = "\n".join(
        f"  {idx}. {e.address} | GPS: {e.gps}" for idx, e in enumerate(entries, 1)
    )
    responsibles = "\n".join(f"  ({e.responsible})" for e in entries)

    age = f"{record.age} anos" if record.age else MISSING
    location = f"{_or_missing(record.neighborhood)} ({_or_missing(record.zone)})"

    lines = [
        SEPARATOR,
        f"{REPORT_TITLE} - CONEXÃO RAPS",
        SEPARATOR,
        f"PROTOCOLO: {generate_protocol_id(now, rng)}",
        f"EMISSÃO: {now.strftime('%d/%m/%Y %H:%M:%S')}",
        "",
        "1. IDENTIFICAÇÃO DO PACIENTE",
        RULE,
        f"Nome: {record.name}",
        f"Data de Nascimento: {format_birth_date(record.birth_date)}",
        f"Idade: {age}",
        f"Sexo: {_or_missing(record.sex)}",
        f"Raça/Cor: {record.race or DEFAULT_RACE}",
        f"Nacionalidade: {record.nationality or DEFAULT_NATIONALITY}",
        f"Bairro/Zona Atual: {location}",
        "",
        "2. ANÁLISE DE REINCIDÊNCIA",
        RULE,
        f"Total de Atendimentos: {len(history)}",
        f"Datas dos Atendimentos: {dates}",
        f"Diagnóstico Prévio: {_or_missing(record.diagnosis)}",
        "Histórico de Endereços:",
        addresses,
        "",
        "3. VULNERABILIDADE E REDE DE APOIO",
        RULE,
        f"Adesão à Medicação: {_with_reason(record.medication, record.medication_refusal_reason)}",
        f"Apoio Familiar: {_with_reason(record.family_support, record.family_refusal_reason)}",
        f"Vínculo RAPS: {_or_missing(record.raps_link)}",
        "",
        "4. OBSERVAÇÕES",
        RULE,
        record.notes or NO_NOTES,
        "",
        "5. RESPONSÁVEIS PELOS REGISTROS",
        RULE,
        responsibles,
        "",
        "6. PARECER DE GESTÃO",
        RULE,
        f"CLASSIFICAÇÃO: {assessment.label}",
        assessment.analysis,
        SEPARATOR,
    ]

    logger.info(f"Report generated for history of {len(history)} response(s): tier {assessment.tier}")
    return "\n".join(lines)


def refresh_report(
    state: MutableMapping[str, Any],
    record: Optional[ResponseRecord],
    history: Optional[List[ResponseRecord]],
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> Optional[str]:
    """
    Regenerate the report into state["report_text"].

    When nothing can be generated the state is left exactly as it was.
    """
    report = generate_report(record, history, now=now, rng=rng)
    if report is not None:
        state["report_text"] = report
    return report

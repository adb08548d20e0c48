"""
Response Records Module
Decodes the positional rows served by the data script into named records.

The remote spreadsheet returns each SAMU response as a fixed-width list.
Field positions are a contract with that service and are translated here,
at the boundary, so the rest of the application works on named fields.
"""

import logging
import unicodedata
from dataclasses import dataclass, fields
from typing import Any, Dict, Iterable, List, Optional

from .config import NO, YES

logger = logging.getLogger(__name__)


# =============================================================================
# POSITIONAL CONTRACT
# =============================================================================

# index -> field name, in spreadsheet column order
ROW_LAYOUT = [
    "patient_id",                 # 0
    "name",                       # 1
    "birth_date",                 # 2
    "sex",                        # 3
    "age",                        # 4
    "street",                     # 5
    "number",                     # 6
    "neighborhood",               # 7
    "zone",                       # 8
    "gps",                        # 9
    "reference_point",            # 10
    "diagnosis",                  # 11
    "recurrence",                 # 12
    "medication",                 # 13
    "medication_refusal_reason",  # 14
    "family_support",             # 15
    "family_refusal_reason",      # 16
    "raps_link",                  # 17
    "notes",                      # 18
    "entry",                      # 19
    "responsible",                # 20
    "reserved",                   # 21
    "race",                       # 22
    "nationality",                # 23
]
ROW_WIDTH = len(ROW_LAYOUT)

YES_NO_FIELDS = {"recurrence", "medication", "family_support", "raps_link"}

# Legacy lookup keys accepted by get_value for positional rows
ROW_ALIASES = {
    "id": 0,
    "nome": 1,
    "nascimento": 2,
    "datanasc": 2,
    "sexo": 3,
    "idade": 4,
    "bairro": 7,
    "zona": 8,
    "localizacao": 9,
    "gps": 9,
    "loc": 9,
    "diagnostico": 11,
    "reincidente": 12,
    "medicado": 13,
    "apoiofam": 15,
    "apoioraps": 17,
}


# =============================================================================
# NORMALIZATION UTILITIES
# =============================================================================

def strip_accents(text: str) -> str:
    """Remove combining diacritics ("NÃO" -> "NAO")."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_yes_no(value: Any) -> str:
    """
    Canonicalize a yes/no cell to "Sim" / "Não".

    Examples:
        >>> normalize_yes_no("SIM")
        'Sim'
        >>> normalize_yes_no(" nao ")
        'Não'
        >>> normalize_yes_no("Não sabe")
        'Não sabe'
    """
    if value is None:
        return ""
    raw = str(value).strip()
    key = strip_accents(raw).upper()
    if key in ("SIM", "S", "YES"):
        return YES
    if key in ("NAO", "N", "NO"):
        return NO
    return raw


def _cell(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


# =============================================================================
# RECORD
# =============================================================================

@dataclass
class ResponseRecord:
    """
    One emergency response event for a patient.

    Yes/no attributes hold "Sim" / "Não" after decoding; everything else is
    the trimmed cell text ("" when absent).
    """
    patient_id: str = ""
    name: str = ""
    birth_date: str = ""
    sex: str = ""
    age: str = ""
    street: str = ""
    number: str = ""
    neighborhood: str = ""
    zone: str = ""
    gps: str = ""
    reference_point: str = ""
    diagnosis: str = ""
    recurrence: str = ""
    medication: str = ""
    medication_refusal_reason: str = ""
    family_support: str = ""
    family_refusal_reason: str = ""
    raps_link: str = ""
    notes: str = ""
    entry: str = ""
    responsible: str = ""
    reserved: str = ""
    race: str = ""
    nationality: str = ""

    @classmethod
    def from_row(cls, row: Optional[Iterable[Any]]) -> "ResponseRecord":
        """
        Decode a positional spreadsheet row.

        Short rows are padded with empty cells, extra cells are ignored.
        """
        cells = list(row or [])
        if len(cells) > ROW_WIDTH:
            logger.debug(f"Row has {len(cells)} cells, ignoring extra columns")
        cells = (cells + [""] * ROW_WIDTH)[:ROW_WIDTH]

        values = {}
        for name, raw in zip(ROW_LAYOUT, cells):
            if name in YES_NO_FIELDS:
                values[name] = normalize_yes_no(raw)
            else:
                values[name] = _cell(raw)
        return cls(**values)

    def to_row(self) -> List[str]:
        return [getattr(self, name) for name in ROW_LAYOUT]

    def cells(self) -> List[str]:
        """All field values, used for free-text search."""
        return [getattr(self, f.name) for f in fields(self)]


# =============================================================================
# ACCESSORS
# =============================================================================

def get_value(row_or_mapping: Any, key: str) -> str:
    """
    Read a field from either a mapping payload or a positional row.

    Mapping keys match case- and accent-insensitively. Rows are addressed
    through ROW_ALIASES. The result is upper-cased, "" when missing.

    Examples:
        >>> get_value({"Diagnóstico": "sim"}, "diagnostico")
        'SIM'
        >>> get_value(["7", "ana"], "nome")
        'ANA'
    """
    if not row_or_mapping:
        return ""

    wanted = strip_accents(key).lower()

    if isinstance(row_or_mapping, dict):
        for k, v in row_or_mapping.items():
            if strip_accents(str(k)).lower() == wanted:
                return str(v or "").upper()
        return ""

    idx = ROW_ALIASES.get(wanted)
    if idx is None or idx >= len(row_or_mapping):
        return ""
    return str(row_or_mapping[idx] or "").upper()


def decode_rows(rows: Optional[Iterable[Any]]) -> List[ResponseRecord]:
    records = []
    for idx, row in enumerate(rows or []):
        if not isinstance(row, (list, tuple)):
            logger.warning(f"Skipping malformed row #{idx}: {type(row).__name__}")
            continue
        records.append(ResponseRecord.from_row(row))
    return records


def _name_key(name: str) -> str:
    return " ".join(str(name or "").split()).upper()


def find_patient_history(records: Iterable[ResponseRecord], name: str) -> List[ResponseRecord]:
    """
    All records sharing a patient name, in dataset order.

    Names are compared trimmed, whitespace-collapsed and case-insensitively.
    """
    key = _name_key(name)
    if not key:
        return []
    return [r for r in records if _name_key(r.name) == key]


def latest_record(history: List[ResponseRecord]) -> Optional[ResponseRecord]:
    # Spreadsheet order is insertion order
    return history[-1] if history else None


def patient_names(records: Iterable[ResponseRecord]) -> List[str]:
    seen: Dict[str, str] = {}
    for r in records:
        key = _name_key(r.name)
        if key and key not in seen:
            seen[key] = r.name.strip()
    return sorted(seen.values(), key=_name_key)

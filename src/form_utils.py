"""
Insertion Form Utilities
Pure helpers behind the SAMU data-entry form: age calculation, neighborhood
and zone resolution, geocoder result mapping, duplicate-patient merge and
payload assembly.
"""

import logging
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

import requests

from .config import CITY_BOUNDS, HTTP_TIMEOUT, NO, YES
from .records import strip_accents

logger = logging.getLogger(__name__)

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

NeighborhoodTable = Dict[str, List[str]]

NEIGHBORHOOD_TYPES = ("sublocality", "sublocality_level_1", "neighborhood")


def empty_form() -> Dict[str, str]:
    """Initial form state; support fields start at their most common answer."""
    return {
        "id": "",
        "nome": "",
        "nascimento": "",
        "idade": "",
        "sexo": "",
        "endereco": "",
        "numero": "",
        "bairro": "",
        "zona": "",
        "loc": "",
        "ref": "",
        "diag": "",
        "reinc": "",
        "med": YES,
        "pq_med": "",
        "fam": YES,
        "pq_fam": "",
        "raps": NO,
        "info": "",
    }


def normalize_text(text: Any) -> str:
    """
    Accent-free upper case for comparisons.

    Examples:
        >>> normalize_text("Parque Caçari")
        'PARQUE CACARI'
    """
    return strip_accents(str(text or "")).upper().strip()


def calculate_age(birth: Any, today: Optional[date] = None) -> Optional[int]:
    """
    Whole years between birth date and today.

    Args:
        birth: date/datetime or "YYYY-MM-DD" string
        today: Reference date, defaults to date.today()

    Returns:
        Age in years, or None when the birth date cannot be read
    """
    if isinstance(birth, datetime):
        birth = birth.date()
    elif not isinstance(birth, date):
        try:
            birth = datetime.strptime(str(birth or "")[:10], "%Y-%m-%d").date()
        except ValueError:
            logger.warning(f"Invalid birth date '{birth}'")
            return None

    today = today or date.today()
    age = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        age -= 1
    return age


def zone_for_neighborhood(neighborhood: str, table: NeighborhoodTable) -> str:
    for zone, names in table.items():
        if neighborhood in names:
            return zone
    return ""


def match_neighborhood(candidate: str, table: NeighborhoodTable) -> Optional[Tuple[str, str]]:
    """
    Find the registered neighborhood a geocoder name refers to.

    Tries direct, accent-normalized and substring matches, zone by zone.

    Returns:
        (neighborhood, zone) or None
    """
    if not candidate:
        return None
    wanted = candidate.upper()
    wanted_norm = normalize_text(candidate)

    for zone, names in table.items():
        for name in names:
            if (
                name == wanted
                or normalize_text(name) == wanted_norm
                or name in wanted
                or wanted in name
            ):
                return name, zone
    return None


def parse_place(place: Dict[str, Any], table: NeighborhoodTable) -> Dict[str, str]:
    """
    Map a geocoder result onto form fields.

    Args:
        place: Result with address_components, geometry and optional name
        table: zone -> neighborhoods

    Returns:
        Dict with endereco, numero, loc and, when recognized, bairro/zona
    """
    street = number = neighborhood = ""
    for comp in place.get("address_components") or []:
        types = comp.get("types") or []
        long_name = str(comp.get("long_name", "")).upper()
        if "route" in types:
            street = long_name
        if "street_number" in types:
            number = long_name
        if any(t in types for t in NEIGHBORHOOD_TYPES):
            neighborhood = long_name

    if not street and place.get("name"):
        street = str(place["name"]).upper()

    location = (place.get("geometry") or {}).get("location") or {}
    loc = ""
    if "lat" in location and "lng" in location:
        loc = f"{location['lat']}, {location['lng']}"

    fields = {"endereco": street, "numero": number, "loc": loc}

    match = match_neighborhood(neighborhood, table)
    if match:
        fields["bairro"], fields["zona"] = match
    elif neighborhood:
        logger.info(f"Geocoder neighborhood '{neighborhood}' not in the registered list")
    return fields


def geocode_address(query: str, api_key: Optional[str], timeout: float = HTTP_TIMEOUT) -> Optional[Dict[str, Any]]:
    """
    Look an address up with the Google Geocoding API, biased to Boa Vista.

    Returns the first result, or None when there is no key, no match or the
    request fails.
    """
    if not api_key or not (query or "").strip():
        return None

    b = CITY_BOUNDS
    params = {
        "address": query,
        "key": api_key,
        "language": "pt-BR",
        "region": "br",
        "components": "country:BR",
        "bounds": f"{b['south']},{b['west']}|{b['north']},{b['east']}",
    }
    try:
        response = requests.get(GEOCODE_URL, params=params, timeout=timeout)
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.error(f"Geocoding failed for '{query}': {e}")
        return None

    results = data.get("results") or []
    if data.get("status") != "OK" or not results:
        logger.info(f"Geocoding returned {data.get('status')} for '{query}'")
        return None
    return results[0]


def format_geolocation(position: Optional[Dict[str, Any]]) -> Optional[str]:
    """Turn a browser Geolocation position into the "lat, lng" text the form stores."""
    coords = (position or {}).get("coords") or {}
    lat, lng = coords.get("latitude"), coords.get("longitude")
    if lat is None or lng is None:
        return None
    return f"{lat}, {lng}"


def merge_patient_history(form: Dict[str, str], patient: Dict[str, str], table: NeighborhoodTable) -> Dict[str, str]:
    """
    Fill the form with the last known data of an existing patient.

    Blank remembered fields keep what is already typed; recurrence is
    always set to "Sim".
    """
    updated = dict(form)
    mapping = {
        "sexo": "sex",
        "endereco": "street",
        "numero": "number",
        "bairro": "neighborhood",
        "loc": "gps",
        "ref": "reference_point",
        "diag": "diagnosis",
    }
    for form_key, patient_key in mapping.items():
        value = patient.get(patient_key)
        if value:
            updated[form_key] = value
    updated["reinc"] = YES

    if patient.get("neighborhood"):
        zone = zone_for_neighborhood(patient["neighborhood"], table)
        if zone:
            updated["zona"] = zone
    return updated


def validate_form(form: Dict[str, str]) -> List[str]:
    errors = []
    if not form.get("nome", "").strip():
        errors.append("Nome é obrigatório!")
    return errors


def build_save_payload(form: Dict[str, str], responsible: str) -> Dict[str, str]:
    return {
        "id_paciente": form.get("id", ""),
        "nome": form.get("nome", ""),
        "nascimento": form.get("nascimento", ""),
        "sexo": form.get("sexo", ""),
        "idade": form.get("idade", ""),
        "endereco": form.get("endereco", ""),
        "numero": form.get("numero", ""),
        "bairro": form.get("bairro", ""),
        "zona": form.get("zona", ""),
        "localizacao": form.get("loc", ""),
        "referencia": form.get("ref", ""),
        "diagnosticado": form.get("diag", ""),
        "reincidente": form.get("reinc", ""),
        "medicacao": form.get("med", ""),
        "pq_med": form.get("pq_med", ""),
        "apoio_fam": form.get("fam", ""),
        "porque_fam": form.get("pq_fam", ""),
        "apoio_raps": form.get("raps", ""),
        "info_extra": form.get("info", ""),
        "responsavel": responsible or "Desconhecido",
    }


def validate_registration(data: Dict[str, str]) -> List[str]:
    """Staff registration checks, in the order they are reported."""
    if any(not str(v or "").strip() for v in data.values()):
        return ["Por favor, preencha todos os campos."]
    if len(re.sub(r"\D", "", data.get("cpf", ""))) != 11:
        return ["O CPF deve conter 11 dígitos."]
    if data.get("senha") != data.get("confirmarSenha"):
        return ["As senhas não coincidem."]
    return []

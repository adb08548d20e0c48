"""
Configuration Module
Environment-driven settings and static reference tables for Conexão RAPS.

Values are read from the process environment, optionally seeded by a
.env file in the project root.
"""

import os
from typing import Dict, List

from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


# =============================================================================
# REMOTE SERVICES
# =============================================================================

AUTH_API_URL = os.environ.get(
    "RAPS_AUTH_API_URL",
    "https://script.google.com/macros/s/AKfycbxWrKp35WbLNUPfU320EO4_2GBiEWzrtQDxe6k9gcPVTKPV4N4wO68iM2vb8SfqzwNe8A/exec",
)
DATA_API_URL = os.environ.get(
    "RAPS_DATA_API_URL",
    "https://script.google.com/macros/s/AKfycbwu66LoRjfqAJCmDG-MhqYyebNHmtbWcbUiASnuoKK-iCVOvN7gfIRTv_Uw2-kjS3VCzg/exec",
)
HTTP_TIMEOUT = _env_float("RAPS_HTTP_TIMEOUT", 20.0)

LOG_LEVEL = os.environ.get("RAPS_LOG_LEVEL", "INFO").upper()


def get_maps_api_key():
    return os.environ.get("GOOGLE_MAPS_API_KEY") or None


# =============================================================================
# FORM OPTIONS
# =============================================================================

YES = "Sim"
NO = "Não"
YES_NO_OPTIONS = [YES, NO]
SEX_OPTIONS = ["Masculino", "Feminino"]

# Used when the data script does not answer carregar_lista_bairros
FALLBACK_NEIGHBORHOODS: Dict[str, List[str]] = {
    "ZONA NORTE": ["AEROPORTO", "B. DOS ESTADOS", "CAUAME", "RIVER PARK", "PARAVIANA"],
    "ZONA OESTE": [
        "ALVORADA", "ASA BRANCA", "BURITIS", "CAIMBE", "CINTURAO VERDE",
        "DR. SILVIO BOTELHO", "GENIPAPO", "EQUATORIAL", "JARDIM FLORESTA",
        "JARDIM TROPICAL", "JOQUEI CLUBE", "LIBERDADE", "MARECHAL RONDON",
        "MECEJANA", "NOVA CIDADE", "OLIMPICO", "OPERARIO", "PINTOLANDIA",
        "PRICUMA", "PROFESSORA ARACELI SOUTO MAIOR", "RAIAR DO SOL",
        "SANTA TEREZA", "SAO BENTO", "SENADOR HELIO CAMPOS", "TANCREDO NEVES",
        "UNION", "LAURA MOREIRA",
    ],
    "ZONA SUL": ["13 DE SETEMBRO", "CALUNGA", "CAMBATA", "CENTRO", "SAO FRANCISCO", "SAO PEDRO", "SAO VICENTE"],
    "ZONA LESTE": [
        "APARECIDA", "31 DE MARCO", "CANARINHO", "CIDADE SATELITE", "DOS ESTADOS",
        "JARDIM CARANA", "JARDIM PRIMAVERA", "MURILO TEIXEIRA", "PARQUE CAÇARI",
        "PARQUE DAS PEDRAS",
    ],
    "RURAL": ["AREA RURAL"],
}


# =============================================================================
# GEOGRAPHY (Boa Vista - RR)
# =============================================================================

CITY_LABEL = "Boa Vista - RR"
CENTER_LAT = 2.819833
CENTER_LON = -60.673321

CITY_BOUNDS = {
    "north": 2.95,
    "south": 2.70,
    "east": -60.60,
    "west": -60.80,
}

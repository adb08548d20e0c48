"""
Remote Script API Client
Thin HTTP-to-JSON shim over the spreadsheet-backed auth and data scripts.

The auth script reads its command from the `acao` query parameter, the data
script from `action`. Every call is a POST whose arguments travel as query
parameters.
"""

import logging
from typing import Any, Dict, Optional

import requests

from .config import AUTH_API_URL, DATA_API_URL, FALLBACK_NEIGHBORHOODS, HTTP_TIMEOUT
from .records import get_value
from .stats import DashboardData

logger = logging.getLogger(__name__)

# Parameters sent to salvar_samu, in the order the script expects
SAVE_FIELDS = [
    "id_paciente", "nome", "nascimento", "sexo", "idade", "endereco", "numero",
    "bairro", "zona", "localizacao", "referencia", "diagnosticado", "reincidente",
    "medicacao", "pq_med", "apoio_fam", "porque_fam", "apoio_raps", "info_extra",
    "responsavel",
]

# Normalized patient key -> aliases tried in order on verificar_paciente payloads
PATIENT_ALIASES = {
    "id": ["id"],
    "birth_date": ["nascimento"],
    "sex": ["sexo"],
    "street": ["end", "endereco"],
    "number": ["num", "numero"],
    "neighborhood": ["bairro"],
    "gps": ["loc", "localizacao"],
    "reference_point": ["ref", "ponto_ref"],
    "diagnosis": ["diag", "diagnostico"],
    "recurrence": ["reinc", "reincidente"],
    "medication": ["med", "medicado"],
    "medication_refusal_reason": ["pq_med", "motivo_nao_med"],
    "family_support": ["fam", "apoio_familiar"],
    "family_refusal_reason": ["pq_fam", "motivo_nao_fam"],
    "raps_link": ["raps", "apoio_raps"],
    "notes": ["info", "observacoes"],
}


class ApiError(Exception):
    """Raised when a remote script call fails or answers garbage."""


def _resolve_patient(raw: Dict[str, Any]) -> Dict[str, str]:
    patient = {}
    for key, aliases in PATIENT_ALIASES.items():
        value = ""
        for alias in aliases:
            if raw.get(alias):
                value = str(raw[alias])
                break
        if not value and key != "birth_date":
            value = get_value(raw, aliases[-1])
        patient[key] = value
    return patient


class RapsApiClient:
    """
    Client for the Conexão RAPS remote scripts.

    Public methods never raise: failures are logged and reported through
    the returned result dict (or None for statistics).
    """

    def __init__(
        self,
        auth_url: str = AUTH_API_URL,
        data_url: str = DATA_API_URL,
        timeout: float = HTTP_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.auth_url = auth_url
        self.data_url = data_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def safe_fetch(self, url: str, cmd: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Run a script command and return its decoded JSON body.

        Raises:
            ApiError: On network failure, HTTP error status or invalid JSON
        """
        param_name = "acao" if url == self.auth_url else "action"
        query = {param_name: cmd}
        for k, v in (params or {}).items():
            query[k] = "" if v is None else str(v)

        try:
            response = self.session.post(
                url,
                params=query,
                headers={"Content-Type": "text/plain;charset=utf-8"},
                allow_redirects=True,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Error running '{cmd}': {e}")
            raise ApiError(f"Connection failure on '{cmd}'") from e

        if not response.ok:
            logger.error(f"Error running '{cmd}': HTTP {response.status_code}")
            raise ApiError(f"HTTP Error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Error running '{cmd}': response is not JSON")
            raise ApiError(f"Invalid JSON from '{cmd}'") from e

        if not isinstance(data, dict):
            raise ApiError(f"Unexpected payload type from '{cmd}': {type(data).__name__}")
        return data

    # -------------------------------------------------------------------------
    # Auth script ('sucesso' / 'mensagem' protocol)
    # -------------------------------------------------------------------------

    def login(self, username: str, password: str) -> Dict[str, Any]:
        try:
            data = self.safe_fetch(self.auth_url, "login", {"usuario": username, "senha": password})
        except ApiError:
            return {"result": "error", "message": "Erro de conexão com o servidor"}

        if data.get("sucesso"):
            return {
                "result": "success",
                "full_name": data.get("nome", ""),
                "module": data.get("modulo", ""),
                "role": data.get("funcao", ""),
                "message": data.get("mensagem", ""),
            }
        return {"result": "error", "message": data.get("mensagem") or "Usuário ou senha inválidos"}

    def register(self, registration: Dict[str, Any]) -> Dict[str, Any]:
        try:
            data = self.safe_fetch(self.auth_url, "registrar", registration)
        except ApiError:
            return {"result": "error", "message": "Erro ao realizar cadastro"}

        if data.get("sucesso"):
            return {"result": "success", "message": data.get("mensagem", "")}
        return {"result": "error", "message": data.get("mensagem", "")}

    # -------------------------------------------------------------------------
    # Data script ('result' protocol)
    # -------------------------------------------------------------------------

    def verify_patient(self, name: str, birth_date: str = "") -> Dict[str, Any]:
        """Look up an existing patient by name (and birth date when known)."""
        params = {"nome": name}
        if birth_date:
            params["nascimento"] = birth_date
        try:
            data = self.safe_fetch(self.data_url, "verificar_paciente", params)
        except ApiError:
            return {"result": "error"}

        if data.get("result") == "exists" and isinstance(data.get("p"), dict):
            return {"result": "exists", "patient": _resolve_patient(data["p"])}
        return {"result": "not_found"}

    def load_neighborhoods(self) -> Dict[str, Any]:
        fallback = {"neighborhoods": FALLBACK_NEIGHBORHOODS, "names": []}
        try:
            data = self.safe_fetch(self.data_url, "carregar_lista_bairros")
        except ApiError:
            logger.warning("Using built-in neighborhood table")
            return fallback

        if data.get("bairros"):
            return {"neighborhoods": data["bairros"], "names": data.get("nomes") or []}
        return fallback

    def load_statistics(self) -> Optional[DashboardData]:
        try:
            data = self.safe_fetch(self.data_url, "carregar_estatisticas")
        except ApiError:
            logger.error("Statistics could not be loaded")
            return None
        return DashboardData.from_payload(data)

    def save_response(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        params = {field: payload.get(field, "") for field in SAVE_FIELDS}
        try:
            data = self.safe_fetch(self.data_url, "salvar_samu", params)
        except ApiError:
            return {"result": "error", "message": "Erro de conexão"}

        if data.get("result") == "success":
            logger.info(f"Response saved with id {data.get('id')}")
            return {"result": "success", "id": data.get("id")}
        return {"result": "error", "message": data.get("message", "")}

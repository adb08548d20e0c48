"""
Conexão RAPS - Painel de Gestão
SAMU mental-health response monitoring for Boa Vista - RR.

Views:
- Login / staff registration
- Monitoring dashboard (KPIs, charts, spreadsheet mirror, map)
- New response form with duplicate-patient detection
- Patient intelligence report with risk tier
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import pandas as pd
import plotly.express as px
import streamlit as st
from streamlit_js_eval import get_geolocation

from src.api_client import RapsApiClient
from src.config import CITY_LABEL, LOG_LEVEL, NO, SEX_OPTIONS, YES_NO_OPTIONS, get_maps_api_key
from src.form_utils import (
    build_save_payload,
    calculate_age,
    empty_form,
    format_geolocation,
    geocode_address,
    merge_patient_history,
    parse_place,
    validate_form,
    validate_registration,
    zone_for_neighborhood,
)
from src.map_utils import render_records_map
from src.records import find_patient_history, latest_record, patient_names
from src.report_engine import REPORT_PLACEHOLDER, classify_risk, refresh_report
from src.stats import (
    DashboardData,
    age_series,
    clinical_radar,
    diagnosis_split,
    filter_records,
    kpis,
    medication_split,
    monthly_series,
    records_table,
    sex_series,
    support_split,
    top_neighborhoods,
    weekday_series,
    zone_series,
)
from src.ui_utils import render_history_timeline

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)


# =============================================================================
# Page config
# =============================================================================

st.set_page_config(
    page_title="Conexão RAPS",
    page_icon="🏥",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown(
    """
<style>
.block-container {
    padding-top: 4.5rem !important;
    max-width: 1600px;
}

.fixed-toolbar {
    position: fixed;
    top: 0;
    left: 0;
    width: 100vw;
    z-index: 1;
    background: #003366;
    padding: 0.4rem 1.2rem;
    height: 3.5rem;
    display: flex;
    align-items: center;
    justify-content: space-between;
    box-shadow: 0 1px 3px 0 rgba(0, 0, 0, 0.1);
}

.kpi-card {
    border-radius: 12px;
    padding: 18px;
    text-align: center;
    color: white;
    box-shadow: 0 4px 10px rgba(0, 0, 0, 0.12);
}
.kpi-card .kpi-label {
    font-size: 0.7rem;
    text-transform: uppercase;
    letter-spacing: 1.2px;
    opacity: 0.8;
}
.kpi-card .kpi-value {
    font-size: 2.2rem;
    font-weight: 800;
}
.kpi-total { background: #003366; }
.kpi-recurrence { background: #ED1C24; }
.kpi-raps { background: #00AEEF; }

.tier-banner {
    text-align: center;
    padding: 14px 20px;
    border-radius: 10px;
    margin: 12px 0;
    color: white;
    font-weight: 800;
    letter-spacing: 0.5px;
}
.tier-banner.RED { background: #b91c1c; }
.tier-banner.YELLOW { background: #d97706; }
.tier-banner.GREEN { background: #059669; }
</style>
""",
    unsafe_allow_html=True,
)

CHART_COLORS = ["#003366", "#00AEEF", "#ED1C24", "#FFBB28", "#00C49F", "#8884d8"]
CHART_HEIGHT = 300


# =============================================================================
# Session
# =============================================================================

@dataclass
class UserSession:
    """Logged-in staff member, kept in st.session_state["user"]."""
    full_name: str
    module: str = ""
    role: str = ""


def get_client() -> RapsApiClient:
    if "api_client" not in st.session_state:
        st.session_state.api_client = RapsApiClient()
    return st.session_state.api_client


def current_user() -> Optional[UserSession]:
    return st.session_state.get("user")


# =============================================================================
# Data Loading
# =============================================================================

@st.cache_data(ttl=300, show_spinner=False)
def load_dashboard_data() -> Optional[DashboardData]:
    return RapsApiClient().load_statistics()


@st.cache_data(ttl=3600, show_spinner=False)
def load_neighborhood_table() -> Dict[str, Any]:
    return RapsApiClient().load_neighborhoods()


# =============================================================================
# UI Components
# =============================================================================

def render_header():
    st.markdown(
        f"""
<div class="fixed-toolbar">
  <div style="display: flex; align-items: center; gap: 12px;">
    <div style="font-size: 1.1rem; font-weight: 700; color: white;">CONEXÃO RAPS</div>
    <div style="height: 16px; width: 1px; background: rgba(255,255,255,0.2);"></div>
    <div style="font-size: 0.85rem; color: rgba(255,255,255,0.8);">
      Plataforma de Integração de Dados Assistenciais
    </div>
  </div>
  <div style="font-size: 0.75rem; color: white; font-weight: 600;">{CITY_LABEL}</div>
</div>
""",
        unsafe_allow_html=True,
    )


def render_kpi(label: str, value: str, css_class: str):
    st.markdown(
        f"""
<div class="kpi-card {css_class}">
  <div class="kpi-label">{label}</div>
  <div class="kpi-value">{value}</div>
</div>
""",
        unsafe_allow_html=True,
    )


def _frame(series: List[Dict[str, Any]]) -> pd.DataFrame:
    return pd.DataFrame(series, columns=["name", "value"])


def pie_chart(series: List[Dict[str, Any]], hole: float = 0.0):
    fig = px.pie(
        _frame(series), names="name", values="value", hole=hole,
        color_discrete_sequence=CHART_COLORS,
    )
    fig.update_layout(height=CHART_HEIGHT, margin=dict(t=10, b=10, l=10, r=10))
    st.plotly_chart(fig, use_container_width=True)


def bar_chart(series: List[Dict[str, Any]], color: str, horizontal: bool = False):
    df = _frame(series)
    if horizontal:
        fig = px.bar(df, x="value", y="name", orientation="h", color_discrete_sequence=[color])
        fig.update_yaxes(autorange="reversed")
    else:
        fig = px.bar(df, x="name", y="value", color_discrete_sequence=[color])
    fig.update_layout(height=CHART_HEIGHT, margin=dict(t=10, b=10, l=10, r=10), xaxis_title="", yaxis_title="")
    st.plotly_chart(fig, use_container_width=True)


def line_chart(series: List[Dict[str, Any]]):
    fig = px.line(_frame(series), x="name", y="value", markers=True, color_discrete_sequence=["#003366"])
    fig.update_layout(height=CHART_HEIGHT, margin=dict(t=10, b=10, l=10, r=10), xaxis_title="", yaxis_title="")
    st.plotly_chart(fig, use_container_width=True)


def radar_chart(series: List[Dict[str, Any]]):
    df = pd.DataFrame(series, columns=["subject", "value"])
    fig = px.line_polar(df, r="value", theta="subject", line_close=True, range_r=[0, 100])
    fig.update_traces(fill="toself", line_color="#003366")
    fig.update_layout(height=CHART_HEIGHT, margin=dict(t=30, b=30, l=30, r=30))
    st.plotly_chart(fig, use_container_width=True)


def render_tier_banner(tier: str, label: str):
    st.markdown(f'<div class="tier-banner {tier}">PARECER: {label}</div>', unsafe_allow_html=True)


# =============================================================================
# Login View
# =============================================================================

def render_login():
    st.title("Conexão RAPS")
    st.caption("Painel de Gestão - acesso restrito à equipe")

    tab_login, tab_register = st.tabs(["Login", "Registrar"])
    client = get_client()

    with tab_login:
        with st.form("login_form"):
            username = st.text_input("Usuário", placeholder="Seu usuário")
            password = st.text_input("Senha", type="password", placeholder="Sua senha")
            submitted = st.form_submit_button("Entrar", type="primary", use_container_width=True)

        if submitted:
            if not username or not password:
                st.error("Preencha todos os campos!")
                return
            with st.spinner("Autenticando..."):
                result = client.login(username, password)
            if result["result"] == "success":
                st.session_state.user = UserSession(
                    full_name=result["full_name"],
                    module=result.get("module", ""),
                    role=result.get("role", ""),
                )
                logger.info(f"User '{username}' logged in")
                st.rerun()
            else:
                st.error(result.get("message") or "Erro ao realizar login")

    with tab_register:
        with st.form("register_form"):
            reg = {
                "nomeCompleto": st.text_input("Nome completo"),
                "cpf": st.text_input("CPF"),
                "matricula": st.text_input("Matrícula"),
                "funcao": st.text_input("Função"),
                "usuario": st.text_input("Usuário", key="reg_user"),
                "senha": st.text_input("Senha", type="password", key="reg_pass"),
                "confirmarSenha": st.text_input("Confirmar senha", type="password"),
            }
            submitted = st.form_submit_button("Registrar", use_container_width=True)

        if submitted:
            errors = validate_registration(reg)
            if errors:
                st.error(errors[0])
                return
            with st.spinner("Enviando cadastro..."):
                result = client.register(reg)
            if result["result"] == "success":
                st.success(result.get("message") or "Cadastro realizado!")
            else:
                st.error(result.get("message") or "Erro ao processar o cadastro.")


# =============================================================================
# Dashboard View
# =============================================================================

def render_dashboard(data: DashboardData):
    st.subheader("Dashboard de Monitoramento RAPS")

    total, recurrence_rate, raps_rate = kpis(data)
    cols = st.columns(3)
    with cols[0]:
        render_kpi("Atendimentos Total", str(total), "kpi-total")
    with cols[1]:
        render_kpi("Taxa Reincidência", f"{recurrence_rate}%", "kpi-recurrence")
    with cols[2]:
        render_kpi("Vínculo RAPS", f"{raps_rate}%", "kpi-raps")

    st.markdown("")

    row1 = st.columns(3)
    with row1[0]:
        st.markdown("**GÊNERO**")
        pie_chart(sex_series(data))
    with row1[1]:
        st.markdown("**FAIXA ETÁRIA**")
        bar_chart(age_series(data), "#ED1C24")
    with row1[2]:
        st.markdown("**CASOS POR ZONA**")
        pie_chart(zone_series(data), hole=0.5)

    row2 = st.columns(3)
    with row2[0]:
        st.markdown("**DIAGNÓSTICOS**")
        pie_chart(diagnosis_split(data), hole=0.5)
    with row2[1]:
        st.markdown("**ADESÃO À MEDICAÇÃO**")
        pie_chart(medication_split(data))
    with row2[2]:
        st.markdown("**REDE DE APOIO**")
        bar_chart(support_split(data), "#00AEEF")

    row3 = st.columns([2, 1])
    with row3[0]:
        st.markdown("**VOLUME POR BAIRRO (TOP 10)**")
        bar_chart(top_neighborhoods(data), "#003366", horizontal=True)
    with row3[1]:
        st.markdown("**INDICADORES CLÍNICOS (RADAR)**")
        radar_chart(clinical_radar(data))

    row4 = st.columns(2)
    with row4[0]:
        st.markdown("**ATENDIMENTOS POR DIA DA SEMANA**")
        bar_chart(weekday_series(data), "#00C49F")
    with row4[1]:
        st.markdown("**EVOLUÇÃO MENSAL**")
        line_chart(monthly_series(data))

    st.markdown("---")
    st.markdown("#### Espelho da Planilha: DADOS SAMU")
    term = st.text_input("Filtrar", placeholder="Filtrar por nome, bairro, ID...", label_visibility="collapsed")
    rows = filter_records(data.records, term)
    st.caption(f"{len(rows)} de {len(data.records)} registros")
    st.dataframe(records_table(rows), use_container_width=True, hide_index=True, height=500)

    st.markdown("---")
    st.markdown("#### Monitoramento Geográfico em Tempo Real")
    mode = st.radio("Visualização", ["Pinos", "Calor"], horizontal=True, label_visibility="collapsed")
    render_records_map(data.records, mode="heatmap" if mode == "Calor" else "pins")


# =============================================================================
# Insertion Form View
# =============================================================================

def _form_state() -> Dict[str, str]:
    if "form" not in st.session_state:
        st.session_state.form = empty_form()
    return st.session_state.form


def _check_duplicate(form: Dict[str, str]):
    key = (form.get("nome", ""), form.get("nascimento", ""))
    if not key[0] or not key[1] or st.session_state.get("last_patient_check") == key:
        return
    st.session_state.last_patient_check = key
    result = get_client().verify_patient(*key)
    st.session_state.found_patient = result.get("patient") if result["result"] == "exists" else None


def render_insertion_form(user: UserSession):
    st.subheader("Nova Ocorrência SAMU")

    lookups = load_neighborhood_table()
    table: Dict[str, List[str]] = lookups["neighborhoods"]
    form = _form_state()

    form["nome"] = st.text_input("Nome do Paciente", value=form["nome"], placeholder="NOME COMPLETO").upper()
    known_names = lookups.get("names") or []
    if known_names and form["nome"]:
        suggestions = [n for n in known_names if form["nome"] in str(n).upper()][:5]
        if suggestions:
            st.caption("Pacientes cadastrados: " + ", ".join(suggestions))

    c1, c2, c3 = st.columns(3)
    form["id"] = c1.text_input("ID do Paciente", value=form["id"]).upper()
    birth = c2.date_input("Data de Nascimento", value=None, format="DD/MM/YYYY")
    if birth:
        form["nascimento"] = birth.isoformat()
        form["idade"] = str(calculate_age(birth))
    c3.text_input("Idade", value=form["idade"], disabled=True)

    _check_duplicate(form)
    found = st.session_state.get("found_patient")
    if found:
        st.info("📋 Histórico encontrado! Deseja carregar os dados?")
        if st.button("CARREGAR ÚLTIMOS DADOS?"):
            st.session_state.form = merge_patient_history(form, found, table)
            st.session_state.found_patient = None
            st.success("✅ Dados carregados com sucesso!")
            st.rerun()

    sex_choices = [""] + SEX_OPTIONS
    form["sexo"] = st.selectbox(
        "Sexo", sex_choices,
        index=sex_choices.index(form["sexo"]) if form["sexo"] in sex_choices else 0,
        format_func=lambda v: v or "Selecione",
    )

    st.markdown("**Endereço**")
    a1, a2 = st.columns([3, 1])
    form["endereco"] = a1.text_input("Rua / Local", value=form["endereco"], placeholder="DIGITE A RUA OU LOCAL...").upper()
    form["numero"] = a2.text_input("Número", value=form["numero"]).upper()

    api_key = get_maps_api_key()
    if api_key and st.button("Buscar endereço"):
        place = geocode_address(f"{form['endereco']} {form['numero']}, Boa Vista - RR", api_key)
        if place:
            form.update(parse_place(place, table))
            st.rerun()
        else:
            st.warning("Endereço não encontrado.")

    all_neighborhoods = [""] + [n for names in table.values() for n in names]
    b1, b2 = st.columns(2)
    form["bairro"] = b1.selectbox(
        "Bairro", all_neighborhoods,
        index=all_neighborhoods.index(form["bairro"]) if form["bairro"] in all_neighborhoods else 0,
        format_func=lambda v: v or "Selecione o Bairro",
    )
    form["zona"] = zone_for_neighborhood(form["bairro"], table) or form["zona"]
    b2.text_input("Zona", value=form["zona"], disabled=True)

    g1, g2 = st.columns([3, 1])
    if g2.checkbox("📍 Minha localização", help="Usar minha localização atual"):
        position = format_geolocation(get_geolocation())
        if position:
            form["loc"] = position
        else:
            g2.caption("Aguardando permissão de localização...")
    form["loc"] = g1.text_input("Localização (lat, lng)", value=form["loc"])
    form["ref"] = st.text_input("Ponto de Referência", value=form["ref"]).upper()

    st.markdown("**Dados Clínicos**")
    d1, d2 = st.columns(2)
    diag_choices = [""] + YES_NO_OPTIONS
    form["diag"] = d1.selectbox(
        "Diagnosticado?", diag_choices,
        index=diag_choices.index(form["diag"]) if form["diag"] in diag_choices else 0,
        format_func=lambda v: v or "Selecione",
    )
    form["reinc"] = d2.selectbox(
        "Reincidente?", diag_choices,
        index=diag_choices.index(form["reinc"]) if form["reinc"] in diag_choices else 0,
        format_func=lambda v: v or "Selecione",
    )

    m1, m2, m3 = st.columns(3)
    form["med"] = m1.radio("Faz uso de medicação?", YES_NO_OPTIONS, index=YES_NO_OPTIONS.index(form["med"]), horizontal=True)
    form["fam"] = m2.radio("Possui apoio familiar?", YES_NO_OPTIONS, index=YES_NO_OPTIONS.index(form["fam"]), horizontal=True)
    form["raps"] = m3.radio("Vínculo com a RAPS?", YES_NO_OPTIONS, index=YES_NO_OPTIONS.index(form["raps"]), horizontal=True)

    if form["med"] == NO:
        form["pq_med"] = st.text_input("Por que não usa medicação?", value=form["pq_med"]).upper()
    if form["fam"] == NO:
        form["pq_fam"] = st.text_input("Por que não tem apoio familiar?", value=form["pq_fam"]).upper()

    form["info"] = st.text_area("Observações", value=form["info"]).upper()

    if st.button("SALVAR REGISTRO", type="primary", use_container_width=True):
        errors = validate_form(form)
        if errors:
            st.error(errors[0])
            return
        with st.spinner("Salvando..."):
            result = get_client().save_response(build_save_payload(form, user.full_name))
        if result["result"] == "success":
            st.success("✅ Registro salvo com sucesso!")
            st.session_state.form = empty_form()
            st.session_state.pop("last_patient_check", None)
            load_dashboard_data.clear()
        else:
            st.error("Erro ao salvar.")


# =============================================================================
# Report View
# =============================================================================

def render_report(data: DashboardData):
    st.subheader("Relatório de Inteligência")

    names = patient_names(data.records)
    left, right = st.columns([1, 1.4], gap="large")

    with left:
        selected = st.selectbox(
            "Paciente", [""] + names,
            format_func=lambda v: v or "Selecione um paciente",
        )
        history = find_patient_history(data.records, selected)
        record = latest_record(history)

        if record is not None:
            assessment = classify_risk(record, len(history))
            render_tier_banner(assessment.tier, assessment.label)
            st.metric("Atendimentos", len(history))
            st.markdown("**Linha do tempo**")
            render_history_timeline(history)

        if st.button("GERAR RELATÓRIO", type="primary", use_container_width=True):
            if refresh_report(st.session_state, record, history) is None:
                st.warning("Selecione um paciente com histórico para gerar o relatório.")

    with right:
        report = st.session_state.get("report_text", "")
        st.text_area("Relatório", value=report or REPORT_PLACEHOLDER, height=640, disabled=not report)
        if report:
            st.download_button(
                "Baixar relatório (.txt)",
                data=report.encode("utf-8"),
                file_name="relatorio_raps.txt",
                mime="text/plain",
                use_container_width=True,
            )


# =============================================================================
# Main App
# =============================================================================

def main():
    render_header()

    user = current_user()
    if user is None:
        render_login()
        return

    with st.sidebar:
        st.markdown("### CONEXÃO RAPS")
        st.caption("Painel de Gestão")
        view_mode = st.radio(
            "Menu Principal",
            ["Dashboard", "Nova Ocorrência", "Relatório"],
            label_visibility="collapsed",
        )
        st.markdown("---")
        st.markdown(f"**{user.full_name}**")
        if user.module:
            st.caption(user.module)
        if st.button("Sair", use_container_width=True):
            for key in ("user", "form", "found_patient", "last_patient_check", "report_text"):
                st.session_state.pop(key, None)
            st.rerun()

    if view_mode == "Nova Ocorrência":
        render_insertion_form(user)
        return

    with st.spinner("Carregando dados RAPS..."):
        data = load_dashboard_data()
    if data is None:
        st.error("Erro ao carregar estatísticas do servidor.")
        if st.button("Tentar novamente"):
            load_dashboard_data.clear()
            st.rerun()
        st.stop()

    if view_mode == "Dashboard":
        render_dashboard(data)
    elif view_mode == "Relatório":
        render_report(data)


if __name__ == "__main__":
    main()

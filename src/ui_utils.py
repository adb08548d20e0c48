"""
UI Utilities for Conexão RAPS.
Contains the patient history timeline used beside the report.
"""

from typing import Any, Dict, List

import streamlit as st
from streamlit_timeline import timeline

from .records import ResponseRecord
from .report_engine import compose_address, entry_date
from .stats import parse_entry_datetime


def build_timeline_events(history: List[ResponseRecord]) -> List[Dict[str, Any]]:
    """
    One timeline event per dated response.

    Responses whose entry field carries no readable date are left out.
    """
    events = []
    for idx, r in enumerate(history, 1):
        when = parse_entry_datetime(r.entry)
        if when is None:
            continue
        events.append({
            "start_date": {
                "year": str(when.year), "month": str(when.month), "day": str(when.day),
                "hour": str(when.hour), "minute": str(when.minute), "second": str(when.second),
            },
            "text": {
                "headline": f"Atendimento #{idx}",
                "text": f"{compose_address(r)}<br>Registro: {entry_date(r.entry)}",
            },
            "group": r.zone or "Sem zona",
        })
    return events


def render_history_timeline(history: List[ResponseRecord], height: int = 300):
    events = build_timeline_events(history)
    if not events:
        st.caption("Histórico sem datas de registro para exibir na linha do tempo.")
        return
    timeline({"events": events}, height=height)

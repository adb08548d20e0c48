"""
UI Utility Tests
Timeline event construction for patient history.
"""

import sys
import os
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from src.records import ResponseRecord
from src.ui_utils import build_timeline_events


def test_build_timeline_events():
    history = [
        ResponseRecord(street="RUA A", number="1", neighborhood="CENTRO", zone="ZONA SUL",
                       entry="05/01/2026 14:30 | MARIA"),
        ResponseRecord(street="RUA B", number="2", neighborhood="BURITIS", zone="", entry="sem data"),
        ResponseRecord(street="RUA C", number="3", neighborhood="CAUAME", zone="ZONA NORTE",
                       entry="07/02/2026 | JOSE"),
    ]
    events = build_timeline_events(history)

    assert len(events) == 2
    assert events[0]["start_date"] == {
        "year": "2026", "month": "1", "day": "5", "hour": "14", "minute": "30", "second": "0",
    }
    assert events[0]["text"]["headline"] == "Atendimento #1"
    assert "RUA A, 1 - CENTRO (ZONA SUL)" in events[0]["text"]["text"]
    assert events[0]["group"] == "ZONA SUL"
    assert events[1]["text"]["headline"] == "Atendimento #3"


def test_build_timeline_events_empty():
    assert build_timeline_events([]) == []

import logging
import math
import re
from typing import Any, Dict, List, Optional, Tuple

import folium
import streamlit as st
from folium.plugins import HeatMap
from streamlit_folium import st_folium

from .config import CENTER_LAT, CENTER_LON
from .records import ResponseRecord

logger = logging.getLogger(__name__)


DESTINATION_RE = re.compile(r"destination=(-?\d+\.\d+),(-?\d+\.\d+)")
PAIR_RE = re.compile(r"(-?\d+\.\d+)\s*,\s*(-?\d+\.\d+)")

# Fixed reference units shown on every map
HEALTH_UNITS = {
    "samu": [
        {"id": "samu-central", "title": "BASE CENTRAL SAMU - Av. Sorocaima, 123", "lat": 2.805562, "lng": -60.697472},
        {"id": "samu-carana", "title": "BASE DESCENTRALIZADA SAMU - CARANÃ", "lat": 2.83636, "lng": -60.71392},
        {"id": "samu-olimpico", "title": "BASE DESCENTRALIZADA SAMU - JARDIM OLÍMPICO", "lat": 2.79646, "lng": -60.73426},
    ],
    "ubs": [
        {"id": "ubs-31-marco", "title": "UBS 31 DE MARÇO", "lat": 2.8425, "lng": -60.6720},
        {"id": "ubs-buritis", "title": "UBS BURITIS", "lat": 2.8080, "lng": -60.7200},
        {"id": "ubs-mecejana", "title": "UBS MECEJANA", "lat": 2.8050, "lng": -60.6950},
        {"id": "hgr", "title": "HOSPITAL GERAL DE RORAIMA", "lat": 2.83321, "lng": -60.68881},
    ],
    "caps": [
        {"id": "caps-ii", "title": "CAPS II Antônia Constância", "lat": 2.82321, "lng": -60.69315},
        {"id": "caps-ad", "title": "CAPS AD III", "lat": 2.8150, "lng": -60.6800},
    ],
}

# unit kind -> (folium color, font-awesome icon)
UNIT_ICONS = {
    "samu": ("orange", "ambulance"),
    "ubs": ("blue", "hospital-o"),
    "caps": ("green", "plus"),
}


def _finite_pair(lat: float, lng: float) -> Optional[Tuple[float, float]]:
    # float() accepts "nan" and "inf"
    if math.isfinite(lat) and math.isfinite(lng):
        return lat, lng
    return None


def extract_coords(value: Any) -> Optional[Tuple[float, float]]:
    """
    Pull a (lat, lng) pair out of a GPS cell.

    Accepts "lat, lng", Google Maps links carrying destination=lat,lng, or
    any text embedding a decimal pair. Returns None when nothing parses.
    """
    if not value:
        return None
    text = str(value)

    if "," in text and "http" not in text:
        parts = [p.strip() for p in text.split(",")]
        if len(parts) >= 2:
            try:
                pair = _finite_pair(float(parts[0]), float(parts[1]))
            except ValueError:
                pair = None
            if pair:
                return pair

    match = DESTINATION_RE.search(text) or PAIR_RE.search(text)
    if match:
        return _finite_pair(float(match.group(1)), float(match.group(2)))

    logger.debug(f"No coordinates found in '{text}'")
    return None


def build_markers(records: List[ResponseRecord]) -> List[Dict[str, Any]]:
    markers = []
    for i, r in enumerate(records):
        coords = extract_coords(r.gps)
        if not coords:
            continue
        markers.append({
            "id": f"pac-{i}",
            "lat": coords[0],
            "lng": coords[1],
            "title": r.patient_id,
            "info": {
                "id": r.patient_id,
                "name": r.name,
                "age": r.age,
                "sex": r.sex,
                "address": f"{r.street}, {r.number}" if r.street else "",
                "neighborhood": r.neighborhood,
                "zone": r.zone,
                "diagnosis": r.diagnosis,
                "recurrence": r.recurrence,
                "raps_link": r.raps_link,
            },
        })
    return markers


def compute_bounds(markers: List[Dict[str, Any]]) -> Optional[List[List[float]]]:
    """[[south, west], [north, east]] covering markers and health units."""
    if not markers:
        return None
    points = [(m["lat"], m["lng"]) for m in markers]
    points += [(u["lat"], u["lng"]) for units in HEALTH_UNITS.values() for u in units]
    lats = [p[0] for p in points]
    lngs = [p[1] for p in points]
    return [[min(lats), min(lngs)], [max(lats), max(lngs)]]


def _popup_html(marker: Dict[str, Any]) -> str:
    info = marker["info"]
    return (
        f"<b>{info['id']}</b><br>"
        f"Nome: {info['name']}<br>"
        f"Idade: {info['age']} anos ({info['sex']})<br>"
        f"Bairro: {info['neighborhood']}<br>"
        f"Diagnóstico: {info['diagnosis']}<br>"
        f"Reincidente: {info['recurrence']}<br>"
        f"<small>{marker['lat']:.5f}, {marker['lng']:.5f}</small>"
    )


def build_records_map(records: List[ResponseRecord], mode: str = "pins") -> folium.Map:
    """
    Build the geographic monitoring map.

    Args:
        records: Decoded response records
        mode: "pins" for one marker per response, "heatmap" for density
    """
    markers = build_markers(records)
    m = folium.Map(location=[CENTER_LAT, CENTER_LON], zoom_start=12, tiles="CartoDB positron")

    if mode == "heatmap":
        HeatMap([[mk["lat"], mk["lng"]] for mk in markers], radius=30, min_opacity=0.4).add_to(m)
    else:
        for mk in markers:
            folium.Marker(
                [mk["lat"], mk["lng"]],
                popup=folium.Popup(_popup_html(mk), max_width=300),
                tooltip=mk["title"],
                icon=folium.Icon(color="red", icon="user", prefix="fa"),
            ).add_to(m)

        for kind, units in HEALTH_UNITS.items():
            color, icon = UNIT_ICONS[kind]
            for u in units:
                folium.Marker(
                    [u["lat"], u["lng"]],
                    tooltip=u["title"],
                    icon=folium.Icon(color=color, icon=icon, prefix="fa"),
                ).add_to(m)

    bounds = compute_bounds(markers)
    if bounds:
        m.fit_bounds(bounds)
    return m


def render_records_map(records: List[ResponseRecord], mode: str = "pins", height: int = 550):
    st_folium(build_records_map(records, mode), width="100%", height=height, returned_objects=[])

"""
Country boundaries and the Natural Earth I projection.

Boundaries come from a local Admin-0 GeoJSON FeatureCollection
(e.g. Natural Earth ne_50m_admin_0_countries). Fetching it is the
workflow's job, not ours.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Iterator

from ..observability import get_logger

logger = get_logger(__name__)

ISO_PROPERTIES = ("ISO_A2_EH", "iso_a2", "wb_a2")
NAME_PROPERTIES = ("name", "name_long")

Point = tuple[float, float]
Ring = list[Point]


def load_boundaries(path: Path) -> dict | None:
    """The decoded FeatureCollection, or None if the file is missing."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.warning("Boundary file not found; map will have no countries", path=str(path))
        return None

    if not isinstance(data, dict) or not isinstance(data.get("features"), list):
        raise ValueError(f"{path} is not a GeoJSON FeatureCollection")
    return data


def feature_iso(feature: dict) -> str:
    props = feature.get("properties") or {}
    for key in ISO_PROPERTIES:
        value = props.get(key)
        # Natural Earth uses "-99" for "no code"
        if isinstance(value, str) and value and value != "-99":
            return value.upper()
    return ""


def feature_name(feature: dict) -> str:
    props = feature.get("properties") or {}
    for key in NAME_PROPERTIES:
        value = props.get(key)
        if isinstance(value, str) and value:
            return value
    return feature_iso(feature)


def country_names(collection: dict | None) -> dict[str, str]:
    """Two-letter code -> display name, from feature properties."""
    names: dict[str, str] = {}
    if not collection:
        return names
    for feature in collection["features"]:
        iso = feature_iso(feature)
        if iso:
            names[iso] = feature_name(feature)
    return names


def feature_rings(feature: dict) -> Iterator[Ring]:
    """Every linear ring of a Polygon/MultiPolygon feature, as (lon, lat)."""
    geometry = feature.get("geometry") or {}
    kind = geometry.get("type")
    coordinates: Any = geometry.get("coordinates") or []

    if kind == "Polygon":
        polygons = [coordinates]
    elif kind == "MultiPolygon":
        polygons = coordinates
    else:
        return

    for polygon in polygons:
        for ring in polygon:
            yield [(float(p[0]), float(p[1])) for p in ring]


def natural_earth1_raw(lon: float, lat: float) -> Point:
    """Natural Earth I (Šavrič et al.), unit scale, y up."""
    lam = math.radians(lon)
    phi = math.radians(lat)
    phi2 = phi * phi
    phi4 = phi2 * phi2
    x = lam * (0.8707 - 0.131979 * phi2 + phi4 * (-0.013791 + phi4 * (0.003971 * phi2 - 0.001529 * phi4)))
    y = phi * (1.007226 + phi2 * (0.015085 + phi4 * (-0.044475 + 0.028874 * phi2 - 0.005916 * phi4)))
    return x, y


@dataclass
class Projection:
    """Natural Earth I scaled and translated into SVG coordinates (y down)."""
    scale: float = 1.0
    tx: float = 0.0
    ty: float = 0.0

    def __call__(self, lon: float, lat: float) -> Point:
        x, y = natural_earth1_raw(lon, lat)
        return self.tx + self.scale * x, self.ty - self.scale * y

    @classmethod
    def fit_extent(
        cls,
        extent: tuple[Point, Point],
        rings: Iterable[Ring],
    ) -> "Projection":
        """
        Scale and center so the projected rings fill extent.

        Falls back to the whole sphere's outline when there are no rings.
        """
        (x0, y0), (x1, y1) = extent
        xs: list[float] = []
        ys: list[float] = []
        for ring in rings:
            for lon, lat in ring:
                x, y = natural_earth1_raw(lon, lat)
                xs.append(x)
                ys.append(-y)
        if not xs:
            for lon, lat in ((-180, 0), (180, 0), (0, 90), (0, -90)):
                x, y = natural_earth1_raw(lon, lat)
                xs.append(x)
                ys.append(-y)

        width = max(xs) - min(xs) or 1.0
        height = max(ys) - min(ys) or 1.0
        scale = min((x1 - x0) / width, (y1 - y0) / height)

        tx = x0 + ((x1 - x0) - scale * (max(xs) + min(xs))) / 2
        ty = y0 + ((y1 - y0) - scale * (max(ys) + min(ys))) / 2
        return cls(scale=scale, tx=tx, ty=ty)


def ring_path(ring: Ring, projection: Projection) -> str:
    if len(ring) < 3:
        return ""
    points = [projection(lon, lat) for lon, lat in ring]
    head, *tail = points
    return (
        f"M{head[0]:.1f},{head[1]:.1f}"
        + "".join(f"L{x:.1f},{y:.1f}" for x, y in tail)
        + "Z"
    )


def feature_path(feature: dict, projection: Projection) -> str:
    return "".join(ring_path(ring, projection) for ring in feature_rings(feature))

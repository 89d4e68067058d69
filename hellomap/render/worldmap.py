"""
World map rendering

A large choropleth on the left, a slim stats panel on the right, and a
vertical legend in the map's bottom-right corner. Output is a single SVG
rendered from templates/world.svg.j2.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..core.clock import EPOCH, parse_timestamp
from ..core.intake import flag_emoji
from ..core.projector import LedgerStats
from ..observability import get_logger
from .geo import Projection, country_names, feature_iso, feature_path, feature_rings

logger = get_logger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(enabled_extensions=("svg.j2",)),
    trim_blocks=True,
    lstrip_blocks=True,
)

WIDTH = 1480
HEIGHT = 900
MARGIN = 6
TOP_COUNTRIES = 12

# (threshold, fill) from the darkest bucket down
FILL_BUCKETS = (
    (50, "#2e7d32"),
    (10, "#66bb6a"),
    (1, "#a5d6a7"),
)
EMPTY_FILL = "#ffffff"


def fill_for(count: int) -> str:
    for threshold, color in FILL_BUCKETS:
        if count >= threshold:
            return color
    return EMPTY_FILL


def opacity_for(count: int) -> float:
    return 0.95 if count >= 1 else 0.05


def format_updated_at(value) -> str:
    moment = parse_timestamp(value)
    if not value or moment == EPOCH:
        return str(value or "")
    return moment.strftime("%Y-%m-%d %H:%M:%S UTC")


@dataclass
class Layout:
    width: int = WIDTH
    height: int = HEIGHT
    margin: int = MARGIN

    @property
    def panel_w(self) -> int:
        return round(self.width * 0.18)

    @property
    def panel_x(self) -> int:
        return self.width - self.panel_w - self.margin

    @property
    def panel_h(self) -> int:
        return self.height - 2 * self.margin

    @property
    def map_w(self) -> int:
        return self.width - self.panel_w - 3 * self.margin

    @property
    def map_extent(self):
        top_pad = bot_pad = 40
        return (
            (self.margin, self.margin + top_pad),
            (self.margin + self.map_w, self.height - self.margin - bot_pad),
        )

    @property
    def chip_w(self) -> int:
        return math.floor((self.panel_w - 18 * 2 - 12) / 2)


def build_map_context(
    stats: LedgerStats,
    boundaries: Optional[dict],
    layout: Optional[Layout] = None,
) -> dict:
    """Everything the SVG template needs, computed up front."""
    layout = layout or Layout()
    counts = {c.iso: c.count for c in stats.countries}
    features = boundaries["features"] if boundaries else []
    names = country_names(boundaries)

    projection = Projection.fit_extent(
        layout.map_extent,
        (ring for f in features for ring in feature_rings(f)),
    )
    # Slight downward nudge
    projection.ty += 10

    paths = []
    for feature in features:
        iso = feature_iso(feature)
        d = feature_path(feature, projection)
        if not d:
            continue
        n = counts.get(iso, 0)
        paths.append({"iso": iso, "d": d, "fill": fill_for(n), "opacity": opacity_for(n)})

    legend_rows = [
        {"label": label, "fill": fill_for(value), "opacity": opacity_for(value)}
        for label, value in (("50+", 50), ("10+", 10), ("1+", 1), ("0", 0))
    ]

    top = [
        {"label": f"{flag_emoji(c.iso)} {names.get(c.iso, c.iso)}", "count": c.count}
        for c in stats.countries[:TOP_COUNTRIES]
    ]

    return {
        "layout": layout,
        "paths": paths,
        "legend_rows": legend_rows,
        "legend_x": layout.margin + layout.map_w - 120 - 12,
        "legend_y": layout.height - layout.margin - (10 * 2 + 4 * 26) - 12,
        "total_hellos": stats.total_hellos,
        "total_countries": stats.total_countries,
        "top": top,
        "updated_at": format_updated_at(stats.updated_at),
    }


def render_map(stats: LedgerStats, boundaries: Optional[dict], layout: Optional[Layout] = None) -> str:
    template = _env.get_template("world.svg.j2")
    return template.render(**build_map_context(stats, boundaries, layout))


def write_map(stats: LedgerStats, boundaries: Optional[dict], output_path: Path) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_map(stats, boundaries), encoding="utf-8")
    logger.info(
        f"Built SVG at {output_path}",
        countries=stats.total_countries,
        hellos=stats.total_hellos,
    )
    return output_path

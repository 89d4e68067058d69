# View renderers: README template and SVG world map
from .readme import country_table, render_readme, who_said_hello, write_readme
from .worldmap import Layout, build_map_context, render_map, write_map
from .geo import Projection, country_names, load_boundaries

__all__ = [
    "country_table",
    "render_readme",
    "who_said_hello",
    "write_readme",
    "Layout",
    "build_map_context",
    "render_map",
    "write_map",
    "Projection",
    "country_names",
    "load_boundaries",
]

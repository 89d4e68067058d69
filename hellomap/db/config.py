"""
Storage Configuration

Resolves where the ledger and generated artifacts live.

Environment Variables:
    HELLOMAP_DATA_PATH: Ledger JSON file (default data/visitors.json)
    HELLOMAP_README_TEMPLATE: README template (default README.tpl.md)
    HELLOMAP_README_PATH: Generated README (default README.md)
    HELLOMAP_MAP_PATH: Generated SVG map (default assets/world.svg)
    HELLOMAP_GEOJSON_PATH: Country boundaries (default data/countries.geojson)
    HELLOMAP_WHO_LIMIT: How many claimants the README lists (default 50)

    HELLOMAP_STORE_DRIVER: Which store to use
        - "file" (default)
        - "memory" (tests, dry runs)
"""

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class StoreDriver(str, Enum):
    """Supported ledger store drivers."""
    FILE = "file"
    MEMORY = "memory"


@dataclass
class StoreConfig:
    """Paths and limits for one run."""
    data_path: Path = Path("data/visitors.json")
    readme_template: Path = Path("README.tpl.md")
    readme_path: Path = Path("README.md")
    map_path: Path = Path("assets/world.svg")
    geojson_path: Path = Path("data/countries.geojson")
    who_limit: int = 50
    driver: StoreDriver = StoreDriver.FILE

    @classmethod
    def from_env(cls) -> "StoreConfig":
        """Load configuration from environment variables."""
        who_limit = int(os.getenv("HELLOMAP_WHO_LIMIT", "50"))
        if who_limit < 0:
            raise ValueError(f"HELLOMAP_WHO_LIMIT must be >= 0, got {who_limit}")

        return cls(
            data_path=Path(os.getenv("HELLOMAP_DATA_PATH", "data/visitors.json")),
            readme_template=Path(os.getenv("HELLOMAP_README_TEMPLATE", "README.tpl.md")),
            readme_path=Path(os.getenv("HELLOMAP_README_PATH", "README.md")),
            map_path=Path(os.getenv("HELLOMAP_MAP_PATH", "assets/world.svg")),
            geojson_path=Path(os.getenv("HELLOMAP_GEOJSON_PATH", "data/countries.geojson")),
            who_limit=who_limit,
            driver=get_store_driver(),
        )


def get_store_driver() -> StoreDriver:
    """
    Get the store driver to use.

    Raises:
        ValueError: for an unknown HELLOMAP_STORE_DRIVER value
    """
    explicit = os.getenv("HELLOMAP_STORE_DRIVER", "").lower()

    if not explicit or explicit == "file":
        return StoreDriver.FILE
    if explicit == "memory":
        return StoreDriver.MEMORY

    raise ValueError(
        f"Unknown HELLOMAP_STORE_DRIVER: {explicit}. "
        f"Valid values: file, memory"
    )

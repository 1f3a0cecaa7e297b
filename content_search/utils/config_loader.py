from pathlib import Path
import os
import yaml

# will return the root directory of the package => content_search


def _package_root() -> Path:
    # parents[1] climbs from utils/ up to the package directory
    return Path(__file__).resolve().parents[1]


def load_config(config_path: str | None = None) -> dict:

    env_path = os.getenv("CONFIG_PATH", None)

    if config_path is None:
        config_path = env_path or str(_package_root() / "config" / "config.yaml")

    path = Path(config_path)

    if not path.is_absolute():
        path = _package_root() / path
    if not path.exists():
        raise FileNotFoundError(f"Config file not found at {path}")
    with open(path, "r", encoding="utf-8") as file:
        return yaml.safe_load(file) or {}

import json
from pathlib import Path
from typing import Optional

DEFAULT_SUFFIX = "-pruned"


class PrunerConfig:
    KEYS = ("save_folder", "suffix", "duplicate", "include_inactive", "log_level")

    def __init__(
        self,
        save_folder: Optional[str] = None,
        suffix: str = DEFAULT_SUFFIX,
        duplicate: bool = True,
        include_inactive: bool = True,
        log_level: str = "INFO",
    ):
        """
        save_folder      : where pruned mesh assets go, None -> next to the model
        suffix           : appended to the source mesh name for pruned assets
        duplicate        : edit a copy of the model instead of the model itself
        include_inactive : also process skin components on disabled nodes
        log_level        : logging level name
        """
        self.save_folder = save_folder
        self.suffix = suffix
        self.duplicate = duplicate
        self.include_inactive = include_inactive
        self.log_level = log_level

    def __repr__(self):
        fields = ", ".join(f"{k}={getattr(self, k)!r}" for k in self.KEYS)
        return f"PrunerConfig({fields})"

    def updated(self, **overrides) -> "PrunerConfig":
        """
        Copy with every non-None override applied.
        """
        values = {k: getattr(self, k) for k in self.KEYS}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return PrunerConfig(**values)


def load_config(config_path: str) -> PrunerConfig:
    """
    Load a JSON config file.

    :param config_path: Path to the config file
    :type config_path: str
    :raises FileNotFoundError: If the file does not exist
    :raises ValueError: If the file contains unknown keys
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, "r") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Config root must be an object: {config_path}")

    unknown = sorted(set(data) - set(PrunerConfig.KEYS))
    if unknown:
        raise ValueError(f"Unknown config key(s) in {config_path}: {', '.join(unknown)}")

    return PrunerConfig(**data)

"""
Game configuration.

Tunables live in data/game.yaml; secrets and host settings come from the
environment (loaded from .env by the entry points).
"""

import os
import yaml
from dataclasses import dataclass, field
from pathlib import Path


HUMAN_PLAYER = "Player 1"

DEFAULT_PALETTE = {
    "Player 1": 0x3377CC,
    "AI 1": 0xD2042D,
    "AI 2": 0xCC3333,
}


def parse_color(value) -> int:
    """Parse a palette color given as int, "0x..." hex string or decimal string."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid color: {value!r}")
    if isinstance(value, int):
        return value
    text = str(value).strip().lower()
    if text.startswith("#"):
        return int(text[1:], 16)
    return int(text, 0)


@dataclass
class GameConfig:
    """Session-wide tunables."""
    data_path: Path = Path("data")
    starting_gold: int = 100
    turns_per_tier: int = 5
    highlight_color: int = 0xFFFF66
    palette: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_PALETTE))
    opponents: dict[str, str] = field(default_factory=dict)  # "AI 1" -> archetype
    default_opponent: str = "expansionist"
    level_fetch_attempts: int = 3
    level_fetch_delay: float = 0.5
    save_dir: Path = Path("saves")

    @property
    def level_dir(self) -> Path:
        return self.data_path / "levels"

    @property
    def units_path(self) -> Path:
        return self.data_path / "units.yaml"

    def opponent_for(self, player: str) -> str:
        return self.opponents.get(player, self.default_opponent)

    @classmethod
    def load(cls, data_path: Path | str | None = None) -> "GameConfig":
        """Load config from <data_path>/game.yaml, falling back to defaults."""
        if data_path is None:
            data_path = os.environ.get("HEXCONQUEST_DATA", "data")
        config = cls(data_path=Path(data_path))

        config_file = config.data_path / "game.yaml"
        if not config_file.exists():
            return config

        with open(config_file) as f:
            data = yaml.safe_load(f) or {}

        config.starting_gold = data.get("starting_gold", config.starting_gold)
        config.turns_per_tier = data.get("turns_per_tier", config.turns_per_tier)
        if "highlight_color" in data:
            config.highlight_color = parse_color(data["highlight_color"])
        for player, color in data.get("palette", {}).items():
            config.palette[player] = parse_color(color)
        config.opponents.update(data.get("opponents", {}))
        config.default_opponent = data.get("default_opponent", config.default_opponent)

        fetch = data.get("level_fetch", {})
        config.level_fetch_attempts = fetch.get("attempts", config.level_fetch_attempts)
        config.level_fetch_delay = fetch.get("delay_s", config.level_fetch_delay)

        save_dir = os.environ.get("HEXCONQUEST_SAVES", data.get("save_dir"))
        if save_dir:
            config.save_dir = Path(save_dir)
        return config

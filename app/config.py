import json
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DATA_DIR = Path("data")
DATA_DIR.mkdir(exist_ok=True)

DB_URL = os.getenv("DB_URL", "sqlite:///./data/balance.db")
DEBUG = os.getenv("DEBUG", "false").lower() in {"1", "true", "yes"}
THRESHOLDS_PATH = Path(
    os.getenv(
        "THRESHOLDS_PATH",
        str(Path(__file__).resolve().parent / "rulesets" / "default.json"),
    )
)


def _load_json_list(env_key: str, default: list) -> list:
    raw_value = os.getenv(env_key)
    if not raw_value:
        return default
    try:
        parsed = json.loads(raw_value)
    except json.JSONDecodeError:
        return default
    return parsed if isinstance(parsed, list) else default


def _load_int(env_key: str, default: int) -> int:
    raw_value = os.getenv(env_key)
    if not raw_value:
        return default
    try:
        value = int(raw_value)
    except ValueError:
        return default
    return value if value > 0 else default


DEFAULT_GAME_SIZE = _load_int("DEFAULT_GAME_SIZE", 2000)
GAME_SIZE_OPTIONS = sorted(
    {
        int(value)
        for value in _load_json_list("GAME_SIZE_OPTIONS", [500, 1000, 1500, 2000, 3000])
        if isinstance(value, int) and value > 0
    }
    | {DEFAULT_GAME_SIZE}
)

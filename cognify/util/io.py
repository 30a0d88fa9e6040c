import json
import os
from pathlib import Path
from typing import Any

import appdirs

APP_NAME = "cognify"
DEFAULT_DATA_DIR = Path(appdirs.user_data_dir(APP_NAME))
DEFAULT_STORE_FILE = DEFAULT_DATA_DIR / "sessions.json"
DEFAULT_CONFIG_FILE = DEFAULT_DATA_DIR / "config.json"


def read_json(fpath: str | Path) -> Any:
    """Read and return data from a JSON file.

    Args:
        fpath: Path to the JSON file.

    Returns:
        Data loaded from the JSON file.
    """
    with open(fpath, "r", encoding="utf-8") as f:
        return json.load(f)


def write_json(data: Any, fpath: str | Path) -> None:
    """Write data to a JSON file.

    The data is written to a sibling temporary file first and then moved
    over the target, so readers never see a half-written file.

    Args:
        data: Data to write to the JSON file.
        fpath: Path to the JSON file.
    """
    fpath = Path(fpath)
    fpath.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = fpath.with_name(fpath.name + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=4, ensure_ascii=False)
    os.replace(tmp_path, fpath)

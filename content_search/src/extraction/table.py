from typing import List

import pandas as pd

from content_search.logger import GLOBAL_LOGGER as log


def _flatten_frame(df: pd.DataFrame) -> List[str]:
    rows = []
    for row in df.itertuples(index=False):
        cells = [str(value) for value in row if pd.notna(value)]
        if cells:
            rows.append(" ".join(cells))
    return rows


def flatten_spreadsheet(path: str) -> str:
    """Every sheet, every row: non-empty cells joined by a space, one row per line."""
    sheets = pd.read_excel(path, sheet_name=None, header=None)
    rows: List[str] = []
    for sheet_name, df in sheets.items():
        log.debug("Flattening sheet | file=%s | sheet=%s | rows=%d", path, sheet_name, len(df))
        rows.extend(_flatten_frame(df))
    return "\n".join(rows)


def flatten_csv(path: str) -> str:
    df = pd.read_csv(path, header=None, dtype=str, keep_default_na=False, na_values=[""])
    return "\n".join(_flatten_frame(df))

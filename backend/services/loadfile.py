"""
Load file generation: DAT (Concordance-style) and OPT (Opticon-style).

Both are UTF-8, tab-delimited, CRLF-terminated, with one header row and one
row per produced document. The column sets are currently identical.
"""
from dataclasses import dataclass
from typing import Iterable, Optional

from constants import LOADFILE_COLUMNS

CRLF = "\r\n"


@dataclass
class LoadFileRecord:
    beg_bates: str
    end_bates: str
    image_path: str
    native_path: str
    page_count: int
    control_id: Optional[str] = None


def _render(records: Iterable[LoadFileRecord]) -> str:
    lines = ["\t".join(LOADFILE_COLUMNS)]
    for r in records:
        lines.append(f"{r.beg_bates}\t{r.end_bates}\t{r.image_path}\t{r.native_path}\t{r.page_count}")
    return CRLF.join(lines) + CRLF


def generate_dat(records: Iterable[LoadFileRecord]) -> str:
    return _render(records)


def generate_opt(records: Iterable[LoadFileRecord]) -> str:
    return _render(records)

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Iterable

from errors import DuplicateKey, MalformedForm

# Order of the per-record form arrays posted by the editor page.
FIELDS = ("key", "name", "rss", "image", "category", "description")
INDENT = 3
FILE_MODE = 0o644


@dataclass(frozen=True)
class Record:
    # Field order is the key order in programs.json.
    name: str = ""
    rss: str = ""
    image: str = ""
    description: str = ""
    category: str = ""


def field_name(field: str) -> str:
    return f"records[][{field}]"


def parse_form(form: Any) -> list[tuple[str, Record]]:
    """Zip the posted ``records[][<field>]`` arrays into (key, Record) pairs.

    Everything is posted as parallel arrays, so the i-th value of every array
    belongs to the i-th record. A missing array (other than the keys) reads as
    empty strings.
    """
    key_field = field_name("key")
    if key_field not in form:
        raise MalformedForm("Error: Couldn't parse form data, no records were posted")

    keys = form.getlist(key_field)
    columns: dict[str, list[str]] = {}
    for field in FIELDS[1:]:
        if field_name(field) in form:
            values = form.getlist(field_name(field))
        else:
            values = [""] * len(keys)
        if len(values) != len(keys):
            raise MalformedForm(
                f"Error: Couldn't parse form data, expected {len(keys)} '{field}' values but got {len(values)}"
            )
        columns[field] = values

    pairs: list[tuple[str, Record]] = []
    for i, key in enumerate(keys):
        pairs.append((key, Record(**{field: columns[field][i] for field in FIELDS[1:]})))
    return pairs


def build_catalog(
    pairs: Iterable[tuple[str, Record]], reject_duplicates: bool = True
) -> dict[str, Record]:
    catalog: dict[str, Record] = {}
    for key, record in pairs:
        if key in catalog:
            if reject_duplicates:
                raise DuplicateKey(key)
            # Later duplicates overwrite the earlier entry but keep its position.
        catalog[key] = record
    return catalog


def serialize_catalog(catalog: dict[str, Record]) -> bytes:
    data = {key: asdict(record) for key, record in catalog.items()}
    return json.dumps(data, indent=INDENT, ensure_ascii=False).encode("utf-8")


def read_document(path: Path) -> bytes:
    return path.read_bytes()


def write_document(path: Path, data: bytes) -> None:
    """Replace ``path`` with ``data`` in one step.

    The bytes go to a temporary sibling first, so readers see either the old
    document or the new one, never a half-written file.
    """
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}-", suffix=".tmp", dir=path.parent)
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp, FILE_MODE)
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise

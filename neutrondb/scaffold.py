"""
Scaffolding for new migrations and models.

`generate_migration` writes an empty, timestamped SQL file;
`generate_model` writes a `Model` subclass whose class and table name are
derived from the migration name:

    create_messages_table          -> Message / messages
    add_status_to_orders_table     -> Order / orders
    create_user_settings           -> UserSetting / user_settings
"""

from __future__ import annotations

import re
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

from neutrondb.exceptions import ValidationError
from neutrondb.utils.logging import get_logger

log = get_logger(__name__)

MIGRATION_NAME = re.compile(r"^[a-z0-9]+(?:_[a-z0-9]+)*$")
ACTION_KEYWORDS = (
    "create", "delete", "drop", "add", "update", "alter", "column", "to", "from", "table",
)

MIGRATION_STUB = "-- Migration: {name}\n-- Generated at: {generated_at}\n\n"

MODEL_STUB = '''"""{class_name} model for the `{table}` table."""

from __future__ import annotations

from typing import Optional

from neutrondb import Model


class {class_name}(Model):
    __table__ = "{table}"

    id: Optional[int] = None
'''


def validate_migration_name(name: str) -> str:
    if not MIGRATION_NAME.match(name or ""):
        raise ValidationError(
            f"Invalid migration name {name!r}; use snake_case, e.g. create_messages_table"
        )
    return name


def to_pascal_case(value: str) -> str:
    return "".join(part.capitalize() for part in value.split("_") if part)


def to_snake_case(value: str) -> str:
    return re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", value).lower()


def singularize(word: str) -> str:
    """
    Best-effort English singular of a table-ish word.

    Handles `-ies`, `-sses`/`-xes`/`-ches`/`-shes` and a plain trailing `s`;
    anything ending in `ss` or `us` is returned unchanged. Irregular plurals
    are not handled.
    """
    lower = word.lower()
    if lower.endswith("ies") and len(word) > 3:
        return word[:-3] + ("Y" if word[-3:].isupper() else "y")
    if lower.endswith(("sses", "xes", "ches", "shes")):
        return word[:-2]
    if lower.endswith(("ss", "us")) or not lower.endswith("s"):
        return word
    return word[:-1]


def derive_model_names(migration_name: str) -> Tuple[str, str]:
    """
    Model class name and table name for a migration name.

    Uses the words right before `table` when present (`create_messages_table`,
    `add_column_to_messages_table`); otherwise strips action keywords and
    uses what remains. Falls back to `Model` / `models`.
    """
    parts = validate_migration_name(migration_name).split("_")

    remaining: List[str] = []
    if "table" in parts:
        # The run of non-keyword words right before `table` names it.
        index = parts.index("table")
        while index > 0 and parts[index - 1] not in ACTION_KEYWORDS:
            index -= 1
            remaining.insert(0, parts[index])
    if not remaining:
        remaining = [part for part in parts if part not in ACTION_KEYWORDS]
    if not remaining:
        return "Model", "models"

    table = "_".join(remaining)
    words = [to_pascal_case(part) for part in remaining]
    words[-1] = singularize(words[-1])
    return "".join(words), table


def generate_migration(
    name: str,
    directory: Path | str,
    now: Optional[float] = None,
) -> Path:
    """
    Create `<directory>/<unix_ts>_<name>.sql` with a commented header.

    Raises
    ------
    ValidationError
        If `name` is not snake_case.
    FileExistsError
        If a migration with the same timestamp and name already exists.
    """
    validate_migration_name(name)
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    timestamp = int(now if now is not None else time.time())
    path = directory / f"{timestamp}_{name}.sql"
    if path.exists():
        raise FileExistsError(f"Migration already exists: {path}")

    generated_at = datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")
    path.write_text(MIGRATION_STUB.format(name=name, generated_at=generated_at), encoding="utf-8")
    log.info(f"Migration created: {path.name}", extra={"path": str(path)})
    return path


def generate_model(migration_name: str, directory: Path | str) -> Path:
    """
    Create a model module for the table a migration name refers to.

    Raises
    ------
    FileExistsError
        If the model module already exists; it is never overwritten.
    """
    class_name, table = derive_model_names(migration_name)
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    path = directory / f"{to_snake_case(class_name)}.py"
    if path.exists():
        raise FileExistsError(f"Model {class_name} already exists: {path}")

    path.write_text(MODEL_STUB.format(class_name=class_name, table=table), encoding="utf-8")
    log.info(f"Model created: {path}", extra={"model": class_name, "table": table})
    return path


__all__ = [
    "derive_model_names",
    "generate_migration",
    "generate_model",
    "singularize",
    "to_pascal_case",
    "to_snake_case",
    "validate_migration_name",
]

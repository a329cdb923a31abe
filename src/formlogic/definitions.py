"""Form definitions on disk — YAML files parsed into typed field lists.

A form file holds one form::

    id: order-form
    title: Pizza order
    fields:
      - id: size
        type: dropdown
        options: [Small, Large]
      ...

Keys may be snake_case or the camelCase used by the form builder's JSON.

Usage::

    store = FormStore()             # defaults to forms/ relative to repo root
    store.load()                    # parse every *.yaml / *.yml file

    form = store.get_form("order-form")
    result = FormEvaluator().evaluate(form.fields, answers)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from formlogic.models.field import FormField

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Utility helpers
# ---------------------------------------------------------------------------

def find_repo_root(start: Optional[Path] = None) -> Path:
    """Walk upwards from *start* to find the repo root (dir with pyproject.toml or .git).

    Falls back to cwd if no marker is found.
    """
    p = (start or Path(__file__).resolve()).parent
    for parent in [p, *p.parents]:
        if (parent / "pyproject.toml").exists() or (parent / ".git").exists():
            return parent
    return Path.cwd()


def load_yaml(path: Path | str) -> Any:
    """Load a single YAML file and return the parsed contents."""
    if isinstance(path, str):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing YAML file: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class FormDefinition(BaseModel):
    """A named form and its ordered field list."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    title: str = ""
    description: str = ""
    fields: List[FormField] = Field(default_factory=list)


def parse_fields(raw: Any, source: str = "<memory>") -> list[FormField]:
    """Parse a raw list of field dicts into ``FormField`` models.

    Raises:
        ValueError: if *raw* is not a list of mappings.
    """
    if not isinstance(raw, list):
        raise ValueError(f"Expected a list of fields in {source}, got {type(raw).__name__}")
    fields: list[FormField] = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValueError(f"Field #{i} in {source} is not a mapping")
        fields.append(FormField.model_validate(item))
    return fields


def load_form(path: Path | str) -> FormDefinition:
    """Load one form file.

    A file that is a bare list of fields becomes a form whose id is the file
    stem.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the top level is neither a form mapping nor a field list.
    """
    path = Path(path)
    raw = load_yaml(path)
    if isinstance(raw, list):
        return FormDefinition(id=path.stem, fields=parse_fields(raw, str(path)))
    if not isinstance(raw, dict):
        raise ValueError(f"Unrecognised form layout in {path}")
    data = dict(raw)
    data["fields"] = parse_fields(data.get("fields") or [], str(path))
    data.setdefault("id", path.stem)
    return FormDefinition.model_validate(data)


# ---------------------------------------------------------------------------
# FormStore
# ---------------------------------------------------------------------------

class FormStore:
    """Loads every form file in a directory and provides lookup by form id."""

    def __init__(self, form_dir: str | Path | None = None) -> None:
        if form_dir is None:
            form_dir = find_repo_root() / "forms"
        self._base = Path(form_dir)

        # Populated by load()
        self.forms: dict[str, FormDefinition] = {}

    def load(self) -> None:
        """Parse all ``*.yaml`` / ``*.yml`` files under the form directory.

        Raises:
            FileNotFoundError: if the directory does not exist.
            ValueError: if two files declare the same form id.
        """
        if not self._base.is_dir():
            raise FileNotFoundError(f"Missing form directory: {self._base}")

        paths = sorted([*self._base.glob("*.yaml"), *self._base.glob("*.yml")])
        for path in paths:
            form = load_form(path)
            if form.id in self.forms:
                raise ValueError(f"Duplicate form id '{form.id}' in {path}")
            self.forms[form.id] = form
        logger.info("FormStore loaded: %d forms from %s", len(self.forms), self._base)

    def get_form(self, form_id: str) -> FormDefinition:
        """Look up a form by id.

        Raises:
            KeyError: if no form with that id was loaded.
        """
        return self.forms[form_id]

    def form_ids(self) -> list[str]:
        return sorted(self.forms)

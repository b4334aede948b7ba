"""
Scope data model, category filter resolution and JSON output.
"""

import json
import sys
from dataclasses import dataclass, field
from typing import Dict, List

from bcscope.errors import ConfigError

ALL_CATEGORIES = "all"

CATEGORIES: Dict[str, List[str]] = {
    "url": ["website"],
    "api": ["api"],
    "mobile": ["android", "ios"],
    "android": ["android"],
    "apple": ["ios"],
    "other": ["other"],
    "hardware": ["hardware"],
}


@dataclass(frozen=True)
class ScopeEntry:
    target: str
    description: str = ""
    category: str = ""

    def to_dict(self) -> dict:
        return {"name": self.target, "description": self.description, "category": self.category}


@dataclass
class ProgramData:
    url: str
    name: str = ""
    in_scope: List[ScopeEntry] = field(default_factory=list)
    out_of_scope: List[ScopeEntry] = field(default_factory=list)

    def add(self, entry: ScopeEntry, in_scope: bool) -> None:
        if in_scope:
            self.in_scope.append(entry)
        else:
            self.out_of_scope.append(entry)

    def to_dict(self, include_oos: bool = False) -> dict:
        d = {
            "url": self.url,
            "name": self.name,
            "assets": [e.to_dict() for e in self.in_scope],
        }
        if include_oos:
            d["out_of_scope"] = [e.to_dict() for e in self.out_of_scope]
        return d


def resolve_categories(name: str) -> List[str]:
    selected = CATEGORIES.get((name or "").strip().lower())
    if selected is None:
        raise ConfigError(f"Invalid category {name!r} (choose from: {ALL_CATEGORIES}, {', '.join(CATEGORIES)})")
    return list(selected)


def validate_categories(name: str) -> str:
    """Normalise a --categories value; 'all' disables filtering."""
    value = (name or ALL_CATEGORIES).strip().lower()
    if value != ALL_CATEGORIES:
        resolve_categories(value)
    return value


def make_entry(name, uri, description, category) -> ScopeEntry:
    """Build an entry whose target falls back to the asset name when uri is blank."""
    name = (name or "").strip()
    uri = (uri or "").strip()
    return ScopeEntry(target=uri or name, description=description or "", category=category or "")


def render_programs(programs: List[ProgramData], include_oos: bool = False) -> str:
    return json.dumps([p.to_dict(include_oos) for p in programs])


def print_program_scope(programs: List[ProgramData], include_oos: bool = False, out=None) -> None:
    out = out or sys.stdout
    lines = render_programs(programs, include_oos).rstrip("\n")
    if lines:
        print(lines, file=out, flush=True)

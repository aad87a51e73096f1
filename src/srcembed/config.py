"""Configuration for srcembed.

Settings are optional; every field has a usable default:
- repo_path: repository whose tracked Rust files `expand-tree` rewrites
- output_dir: where expanded files go (None rewrites in place)
- attribute_names: attribute paths that activate embedding
- include: git pathspecs selecting the files to process
"""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator


class Settings(BaseModel):
    """srcembed settings."""

    repo_path: Path = Field(
        default_factory=lambda: Path(".").resolve(),
        description="Path to the repository to expand",
    )
    output_dir: Optional[Path] = Field(
        default=None,
        description="Directory receiving expanded files; None rewrites in place",
    )
    attribute_names: List[str] = Field(
        default_factory=lambda: ["src_embed", "src_embed::src_embed"],
        description="Attribute paths that mark a declaration for embedding",
    )
    include: List[str] = Field(
        default_factory=lambda: ["*.rs"],
        description="Git pathspecs of files to process",
    )
    languages: List[str] = Field(default_factory=lambda: ["rust"])

    @field_validator("repo_path", "output_dir", mode="before")
    def _coerce_path(cls, value: str | Path | None) -> Path | None:
        if value is None:
            return None
        return Path(value).expanduser().resolve()

    @field_validator("attribute_names")
    def _normalize_attribute_names(cls, value: List[str]) -> List[str]:
        names = ["".join(name.split()) for name in value if name and name.strip()]
        if not names:
            raise ValueError("attribute_names must contain at least one attribute path")
        return names


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """Load configuration from YAML if provided, otherwise use defaults."""
    path = config_path or Path(__file__).resolve().parent.parent.parent / "config.yaml"
    if path.exists():
        data = yaml.safe_load(path.read_text()) or {}
    else:
        data = {}
    return Settings(**data)

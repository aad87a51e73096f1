from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List

from ..models.records import Declaration, EmbedSite


class ParserAdapter(ABC):
    language: str

    @abstractmethod
    def parse(self, source: str, path: Path) -> List[EmbedSite]:
        """Return every marked declaration found in the given source."""

    @abstractmethod
    def classify(self, text: str) -> Declaration:
        """Classify a single declaration and derive its name."""

    @abstractmethod
    def embedded_sources(self, source: str) -> Dict[str, str]:
        """Return generated source constants found in already expanded source."""


class ParserRegistry:
    def __init__(self) -> None:
        self._registry: dict[str, ParserAdapter] = {}

    def register(self, adapter: ParserAdapter) -> None:
        self._registry[adapter.language] = adapter

    def get(self, language: str) -> ParserAdapter:
        try:
            return self._registry[language]
        except KeyError as exc:
            raise ValueError(f"No parser registered for {language}") from exc

"""Core data models for ict-lookup."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class BoardResult(Enum):
    PASSED = "passed"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @classmethod
    def from_text(cls, result_text: str) -> "BoardResult":
        """Map the store's result column. Only the literal "Passed" is a pass."""
        return cls.PASSED if result_text == "Passed" else cls.FAILED


@dataclass(frozen=True)
class Product:
    name: str
    product_code: str  # prefix matched against identifier[13:]
    panel_size: int


@dataclass(frozen=True)
class PrimaryRow:
    serial: str
    station: str
    result_text: str
    timestamp: datetime
    log_reference: str


@dataclass(frozen=True)
class SiblingRow:
    result_text: str
    log_reference: str = ""


@dataclass
class Attempt:
    timestamp: datetime
    station: str
    results: list[BoardResult]
    log_references: list[str]

    @classmethod
    def for_position(
        cls,
        panel_size: int,
        position: int,
        station: str,
        result: BoardResult,
        timestamp: datetime,
        log_reference: str,
    ) -> "Attempt":
        results = [BoardResult.UNKNOWN] * panel_size
        results[position] = result
        log_references = [""] * panel_size
        log_references[position] = log_reference
        return cls(
            timestamp=timestamp,
            station=station,
            results=results,
            log_references=log_references,
        )


@dataclass
class Panel:
    panel_size: int
    product_name: str
    generation: int = 0
    serials: list[str] = field(default_factory=list)
    selected_position: int = 0
    attempts: list[Attempt] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.serials


@dataclass
class ScanResult:
    identifier: str
    product_name: str
    panel_size: int
    generation: int
    panel: Optional[Panel] = None
    skipped: dict[int, str] = field(default_factory=dict)
    superseded: bool = False

"""Panel aggregator — owns the panel being inspected and merges board histories."""

from __future__ import annotations

import copy
import logging
import threading
from datetime import datetime
from typing import Optional

from ict_lookup.core.errors import MalformedReference
from ict_lookup.core.models import Attempt, BoardResult, Panel
from ict_lookup.core.serials import generate_siblings

logger = logging.getLogger(__name__)


class PanelAggregator:
    """Holds the current Panel behind a lock.

    A new scan swaps in a fresh Panel and bumps the generation. Ingest
    calls carrying an older generation are dropped, so late results from
    a superseded scan never land in the new Panel. Readers take a
    ``snapshot()`` instead of touching the live Panel.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._generation = 0
        self._panel = Panel(panel_size=0, product_name="")

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def begin(self, panel_size: int, product_name: str) -> int:
        """Replace the current Panel with an empty one; return its generation."""
        if panel_size < 1:
            raise ValueError(f"panel_size must be at least 1, got {panel_size}")
        with self._lock:
            self._generation += 1
            self._panel = Panel(
                panel_size=panel_size,
                product_name=product_name,
                generation=self._generation,
            )
            return self._generation

    def discard(self, generation: int) -> None:
        """Empty the Panel of an aborted scan, if it is still current."""
        with self._lock:
            if generation != self._generation:
                return
            self._panel = Panel(
                panel_size=self._panel.panel_size,
                product_name=self._panel.product_name,
                generation=generation,
            )

    def snapshot(self) -> Panel:
        """Return a deep copy of the current Panel."""
        with self._lock:
            return copy.deepcopy(self._panel)

    def serials(self) -> list[str]:
        with self._lock:
            return list(self._panel.serials)

    def _is_stale(self, generation: Optional[int]) -> bool:
        return generation is not None and generation != self._generation

    def ingest_primary(
        self,
        serial: str,
        position: int,
        station: str,
        result: str,
        timestamp: datetime,
        log_reference: str,
        generation: Optional[int] = None,
    ) -> bool:
        """Append one Attempt from a row of the scanned board's history.

        The first call fixes the panel's serial set and selected position.
        Returns False if ``generation`` no longer owns the Panel.
        """
        with self._lock:
            if self._is_stale(generation):
                logger.debug("Dropping primary row for stale generation %s", generation)
                return False

            panel = self._panel
            if not 0 <= position < panel.panel_size:
                raise MalformedReference(
                    f"Position {position} is outside a {panel.panel_size}-board panel"
                )

            if not panel.serials:
                panel.serials = generate_siblings(serial, position, panel.panel_size)
                panel.selected_position = position
                logger.debug("Serials: %s", panel.serials)

            panel.attempts.append(
                Attempt.for_position(
                    panel.panel_size,
                    position,
                    station,
                    BoardResult.from_text(result),
                    timestamp,
                    log_reference,
                )
            )
            return True

    def ingest_sibling(
        self,
        position: int,
        result: str,
        log_reference: str = "",
        generation: Optional[int] = None,
    ) -> bool:
        """Fill the first Attempt whose slot at ``position`` is still unknown.

        Attempts are most-recent-first, so the n-th call for a position
        lands on the n-th most recent test cycle. Surplus calls are no-ops.
        Returns True only if a slot was filled.
        """
        with self._lock:
            if self._is_stale(generation):
                logger.debug("Dropping sibling row for stale generation %s", generation)
                return False

            panel = self._panel
            if not 0 <= position < panel.panel_size:
                raise MalformedReference(
                    f"Position {position} is outside a {panel.panel_size}-board panel"
                )

            board_result = BoardResult.from_text(result)
            for attempt in panel.attempts:
                if attempt.results[position] is BoardResult.UNKNOWN:
                    attempt.results[position] = board_result
                    attempt.log_references[position] = log_reference
                    return True

            logger.debug("No unknown slot left at position %d; row dropped", position)
            return False

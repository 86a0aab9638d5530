"""Query orchestrator — one primary lookup, then one lookup per sibling board."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from ict_lookup.core.aggregator import PanelAggregator
from ict_lookup.core.catalog import MIN_IDENTIFIER_LENGTH, ProductCatalog
from ict_lookup.core.errors import (
    IctLookupError,
    LookupFailed,
    MalformedReference,
    MalformedSerial,
    NoHistory,
)
from ict_lookup.core.models import ScanResult
from ict_lookup.core.serials import derive_position
from ict_lookup.data.results import RowSource

logger = logging.getLogger(__name__)


class QueryOrchestrator:
    """Runs a scan: resolve product → primary lookup → sibling lookups.

    Every ingest is tagged with the generation returned by
    ``PanelAggregator.begin``; once a newer scan starts, the older scan's
    remaining rows are dropped.
    """

    def __init__(
        self,
        row_source: RowSource,
        catalog: ProductCatalog,
        aggregator: Optional[PanelAggregator] = None,
        max_workers: int = 1,
    ):
        self.row_source = row_source
        self.catalog = catalog
        self.aggregator = aggregator or PanelAggregator()
        self.max_workers = max(1, max_workers)

    def scan(self, identifier: str) -> ScanResult:
        """Look up a scanned DMC and reconcile its whole panel.

        Raises MalformedSerial / MalformedReference if the scanned board's
        own data is unusable and NoHistory if it has never been tested.
        Sibling problems are reported in ``ScanResult.skipped`` instead.
        """
        identifier = identifier.strip()
        if len(identifier) < MIN_IDENTIFIER_LENGTH:
            raise MalformedSerial(
                f"DMC {identifier!r} is shorter than {MIN_IDENTIFIER_LENGTH} characters"
            )

        product_name, panel_size = self.catalog.resolve(identifier)
        generation = self.aggregator.begin(panel_size, product_name)
        result = ScanResult(
            identifier=identifier,
            product_name=product_name,
            panel_size=panel_size,
            generation=generation,
        )
        logger.debug(
            "Scan %d: %s (%s, %d boards)", generation, identifier, product_name, panel_size
        )

        try:
            ingested = self._ingest_primary(identifier, generation)
        except IctLookupError:
            self.aggregator.discard(generation)
            raise

        if ingested and panel_size > 1:
            self._ingest_siblings(generation, result)

        panel = self.aggregator.snapshot()
        if panel.generation != generation:
            logger.debug("Scan %d was superseded by scan %d", generation, panel.generation)
            result.superseded = True
            return result

        result.panel = panel
        return result

    def _ingest_primary(self, identifier: str, generation: int) -> bool:
        """Feed the scanned board's rows. Returns False if superseded."""
        count = 0
        try:
            for row in self.row_source.primary_rows(identifier):
                position = derive_position(row.log_reference)
                accepted = self.aggregator.ingest_primary(
                    row.serial,
                    position,
                    row.station,
                    row.result_text,
                    row.timestamp,
                    row.log_reference,
                    generation=generation,
                )
                if not accepted:
                    return False
                count += 1
        except LookupFailed as e:
            if count == 0:
                raise NoHistory(f"No test history for {identifier}: {e}") from e
            logger.warning("Primary lookup for %s ended early: %s", identifier, e)

        if count == 0:
            raise NoHistory(f"No test history for {identifier}")
        logger.debug("Ingested %d rows for %s", count, identifier)
        return True

    def _ingest_siblings(self, generation: int, result: ScanResult) -> None:
        panel = self.aggregator.snapshot()
        if panel.generation != generation:
            return

        positions = [
            i for i in range(panel.panel_size) if i != panel.selected_position
        ]
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {
                position: pool.submit(
                    self._ingest_sibling, generation, position, panel.serials[position]
                )
                for position in positions
            }
            for position, future in futures.items():
                reason = future.result()
                if reason is not None:
                    result.skipped[position] = reason

    def _ingest_sibling(
        self, generation: int, position: int, serial: str
    ) -> Optional[str]:
        """Merge one sibling's history. Returns a skip reason, or None."""
        try:
            rows = list(self.row_source.sibling_rows(serial))
            for row in rows:
                if row.log_reference:
                    derive_position(row.log_reference)
        except (LookupFailed, MalformedReference, MalformedSerial) as e:
            logger.warning("Skipping position %d (%s): %s", position + 1, serial, e)
            return str(e)

        filled = 0
        for row in rows:
            if self.aggregator.ingest_sibling(
                position, row.result_text, row.log_reference, generation=generation
            ):
                filled += 1
            elif self.aggregator.generation != generation:
                break
        logger.debug(
            "Position %d (%s): %d rows, %d merged", position + 1, serial, len(rows), filled
        )
        return None

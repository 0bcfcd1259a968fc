"""Record Store tool for duplicate evaluation.

This tool holds the reference data the duplicate checker compares against:
sites, project references (PORs), line-item definitions and existing
contracts. Records are seeded once from a JSON file and are read-only
afterwards.
"""

from pathlib import Path
from typing import Iterable, Optional, Union

import msgspec
from loguru import logger

from dupcheck.error_handling import RecordStoreError, handle_errors
from dupcheck.logging_config import log_tool_execution
from dupcheck.models import (
    ContractRecord,
    ContractStatus,
    LineItemDefinition,
    ProjectReference,
    RecordSeed,
    Site,
)


class RecordStore:
    """Read-only lookup and filter operations over seeded contract data."""

    def __init__(self, seed: RecordSeed):
        """Initialize the store from already-decoded seed data.

        Args:
            seed: Decoded seed records
        """
        self._sites = tuple(seed.sites)
        self._project_references = tuple(seed.project_references)
        self._line_items = tuple(seed.line_items)
        self._contracts = tuple(seed.contracts)

        self._sites_by_id = {site.id: site for site in self._sites}
        self._pors_by_id = {por.id: por for por in self._project_references}
        self._line_items_by_id = {item.id: item for item in self._line_items}
        self._contracts_by_id = {contract.id: contract for contract in self._contracts}

        logger.info(
            "Record store seeded",
            site_count=len(self._sites),
            por_count=len(self._project_references),
            line_item_count=len(self._line_items),
            contract_count=len(self._contracts)
        )

    @classmethod
    @handle_errors(RecordStoreError)
    def from_json_file(cls, path: Union[str, Path]) -> "RecordStore":
        """Seed a store from a JSON file.

        Args:
            path: Path to the seed file

        Returns:
            RecordStore instance

        Raises:
            RecordStoreError: If the file is missing or does not match the seed layout
        """
        path = Path(path)
        if not path.exists():
            raise RecordStoreError(f"Seed file not found: {path}")

        try:
            seed = msgspec.json.decode(path.read_bytes(), type=RecordSeed)
        except msgspec.DecodeError as e:
            raise RecordStoreError(f"Invalid seed file {path}: {e}") from e

        return cls(seed)

    @classmethod
    @handle_errors(RecordStoreError)
    def from_json(cls, data: Union[str, bytes]) -> "RecordStore":
        """Seed a store from an in-memory JSON document."""
        try:
            seed = msgspec.json.decode(data, type=RecordSeed)
        except msgspec.DecodeError as e:
            raise RecordStoreError(f"Invalid seed data: {e}") from e
        return cls(seed)

    # Lookups

    def get_site(self, site_id: str) -> Optional[Site]:
        return self._sites_by_id.get(site_id)

    def get_project_reference(self, project_ref_id: str) -> Optional[ProjectReference]:
        return self._pors_by_id.get(project_ref_id)

    def get_line_item(self, line_item_id: str) -> Optional[LineItemDefinition]:
        return self._line_items_by_id.get(line_item_id)

    def get_contract(self, contract_id: str) -> Optional[ContractRecord]:
        return self._contracts_by_id.get(contract_id)

    # Listings (seed order)

    def list_sites(self) -> tuple[Site, ...]:
        return self._sites

    def list_project_references(self) -> tuple[ProjectReference, ...]:
        return self._project_references

    def list_line_items(self) -> tuple[LineItemDefinition, ...]:
        return self._line_items

    def list_contracts(self) -> tuple[ContractRecord, ...]:
        return self._contracts

    @log_tool_execution("record_store_search")
    def search_contracts(
        self,
        site_id: str,
        project_ref_id: str,
        line_item_ids: Iterable[str],
        status: ContractStatus = "awarded"
    ) -> list[ContractRecord]:
        """Find contracts at a site/project pair containing any of the line items.

        Args:
            site_id: Site identifier
            project_ref_id: Project reference (POR) identifier
            line_item_ids: Line-item identifiers to look for
            status: Contract status to match (awarded by default)

        Returns:
            Matching contracts in seed order
        """
        wanted = set(line_item_ids)
        if not wanted:
            return []

        return [
            contract
            for contract in self._contracts
            if contract.status == status
            and contract.site_id == site_id
            and contract.project_ref_id == project_ref_id
            and any(entry.line_item_id in wanted for entry in contract.line_items)
        ]

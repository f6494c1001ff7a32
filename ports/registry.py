from __future__ import annotations

from typing import List, Protocol

from models.registry_record import Filing, RegistryRecord, SearchCandidate


class RegistryClientPort(Protocol):
    def search(self, query: str) -> List[SearchCandidate]:
        ...

    def get_details(self, company_number: str) -> RegistryRecord:
        ...

    def get_filing_history(self, company_number: str) -> List[Filing]:
        ...

from .registry_record import RegistryRecord, SearchCandidate, Filing
from .enriched_company import EnrichedCompany, DerivedEstimates
from .processing_options import ProcessingOptions
from .job import Job, JobItemError, JobKind, JobStatus, JobStateError

__all__ = [
    "RegistryRecord",
    "SearchCandidate",
    "Filing",
    "EnrichedCompany",
    "DerivedEstimates",
    "ProcessingOptions",
    "Job",
    "JobItemError",
    "JobKind",
    "JobStatus",
    "JobStateError",
]

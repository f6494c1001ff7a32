# Namespace for pipeline steps
from .resolve_company import ResolveCompany  # noqa: F401
from .validate_sic_codes import ValidateSicCodes  # noqa: F401
from .estimate_financials import EstimateFinancials  # noqa: F401
from .persist_company import PersistCompany  # noqa: F401
from .fetch_filings import FetchFilings  # noqa: F401

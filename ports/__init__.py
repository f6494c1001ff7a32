from .registry import RegistryClientPort
from .repos import CompaniesRepoPort, JobsRepoPort, FilingsRepoPort

__all__ = [
    "RegistryClientPort",
    "CompaniesRepoPort",
    "JobsRepoPort",
    "FilingsRepoPort",
]

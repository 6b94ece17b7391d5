"""Leasing -- read-side shim over the external property and lease records."""

from rental_modules.leasing.models import Lease, LeaseParties, Property
from rental_modules.leasing.store import LeaseStore, SqlLeaseStore

__all__ = ["Lease", "LeaseParties", "LeaseStore", "Property", "SqlLeaseStore"]

"""
concept-sync: declarative synchronization of independent concepts.

Public API re-exports from kernel/ (machinery) and lib/ (reusable concepts).
"""
from .kernel import *  # noqa: F401, F403
from .kernel import __all__ as _kernel_all
from .lib.api import APIConcept, handle_request

__all__ = list(_kernel_all) + ["APIConcept", "handle_request"]

"""
Lib: reusable concepts.

Concepts here are ordinary classes. They only become reactive once a
SyncEngine instruments them.
"""
from .api import APIConcept, handle_request

__all__ = ["APIConcept", "handle_request"]

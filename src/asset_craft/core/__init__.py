"""
Core business logic layer.

Contains data models, the gemstone ledger, and the generation flow
controller, independent of any user interface.
"""

from .models import AssetRecord, GenerationSession, GenerationStep, PaletteColor
from .ledger import CreditLedger, CreditStore, LocalCreditStore


# GenerationFlow pulls in the catalog and image processing; load it on demand
def __getattr__(name):
    if name == "GenerationFlow":
        from .flow import GenerationFlow
        return GenerationFlow
    if name == "SupabaseCreditStore":
        from .supabase_credits import SupabaseCreditStore
        return SupabaseCreditStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "AssetRecord",
    "GenerationSession",
    "GenerationStep",
    "PaletteColor",
    "CreditLedger",
    "CreditStore",
    "LocalCreditStore",
    "GenerationFlow",
    "SupabaseCreditStore",
]

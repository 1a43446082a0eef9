"""
Normalized NF-e records
"""

from nfex.models.nfe import (
    AdditionalInfo,
    Address,
    AuthorizedParty,
    FiscalEnvironment,
    Identification,
    ImportResult,
    Issuer,
    LineItem,
    NaturalKey,
    NormalizedInvoice,
    PersonType,
    Protocol,
    Recipient,
    Totals,
    Transport,
)

__all__ = [
    'AdditionalInfo',
    'Address',
    'AuthorizedParty',
    'FiscalEnvironment',
    'Identification',
    'ImportResult',
    'Issuer',
    'LineItem',
    'NaturalKey',
    'NormalizedInvoice',
    'PersonType',
    'Protocol',
    'Recipient',
    'Totals',
    'Transport',
]

from nfex.db.connection import Database
from nfex.db.repository import BusinessPartnerRepository, InvoiceRepository

__all__ = ['Database', 'InvoiceRepository', 'BusinessPartnerRepository']

import logging

from nfex.db.connection import Database
from nfex.db.repository import InvoiceRepository
from nfex.exceptions import DuplicateInvoice
from nfex.models.nfe import NaturalKey

logger = logging.getLogger(__name__)


class DuplicateChecker:
    """
    Rejects an invoice whose natural key is already recorded.

    The lookup is a plain read; the invoice header primary key remains the
    guarantee when two imports of the same document race.
    """

    def __init__(self, db: Database):
        self.invoices = InvoiceRepository(db)

    def check(self, key: NaturalKey) -> None:
        """
        Raises:
            DuplicateInvoice: If an invoice with this key exists
        """
        if self.invoices.exists(key):
            logger.debug(f"Duplicate invoice found: {key.describe()}")
            raise DuplicateInvoice(key)

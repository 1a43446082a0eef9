"""
Business Partner Resolver

Finds or prepares the business partner record of an invoice issuer. Existing
partners are never modified; a missing one becomes a write intent committed
together with the invoice.
"""

import logging
from typing import Optional

from nfex.db.connection import Database
from nfex.db.models import BusinessPartner
from nfex.db.repository import BusinessPartnerRepository
from nfex.models.nfe import Issuer, PersonType
from nfex.persistence.unit_of_work import WriteIntent
from nfex.utils.formatting import CPF_LENGTH, format_partner_label, format_tax_id

logger = logging.getLogger(__name__)

DEFAULT_REGISTRATION_TYPE = 'supplier'


def classify_person_type(tax_id: str) -> PersonType:
    """More than 11 digits is a CNPJ (legal entity), otherwise a CPF"""
    return PersonType.LEGAL_ENTITY if len(tax_id) > CPF_LENGTH else PersonType.NATURAL_PERSON


class PartnerResolver:
    """Resolves invoice issuers to per-company business partners"""

    def __init__(self, db: Database, registration_type: str = DEFAULT_REGISTRATION_TYPE):
        self.partners = BusinessPartnerRepository(db)
        self.registration_type = registration_type

    def resolve(self, issuer: Issuer, company_id: str, user_id: str) -> Optional[WriteIntent]:
        """
        Look up the issuer among the company's partners.

        Args:
            issuer: Normalized issuer of the invoice
            company_id: Owning company
            user_id: Acting user, recorded as creator

        Returns:
            None when the partner exists, else the intent that creates it
        """
        tax_id = format_tax_id(issuer.tax_id)
        if self.partners.get_by_tax_id(company_id, tax_id) is not None:
            logger.debug(f"Partner {tax_id} already registered for company {company_id}")
            return None

        name = issuer.name.upper() if issuer.name else None
        logger.debug(f"Registering new partner {tax_id} for company {company_id}")
        return WriteIntent(BusinessPartner, {
            'company_id': company_id,
            'tax_id': tax_id,
            'person_type': classify_person_type(tax_id).value,
            'registration_type': self.registration_type,
            'name': name,
            'label': format_partner_label(name, tax_id),
            'is_supplier': True,
            'editable': True,
            'active': True,
            'created_by': user_id,
        })

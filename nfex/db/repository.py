from typing import Type, TypeVar, Generic, Optional, List, Any

from sqlalchemy import desc, select
from sqlalchemy.orm import selectinload

from nfex.models.nfe import NaturalKey
from nfex.utils.formatting import format_tax_id
from .models import BusinessPartner, InvoiceHeader, InvoiceLineItem
from .connection import Database, Base

T = TypeVar('T', bound=Base)


class BaseRepository(Generic[T]):
    """Base repository class for read access to one model"""

    def __init__(self, model_class: Type[T], db: Database):
        self.model_class = model_class
        self.db = db

    def get(self, ident: Any) -> Optional[T]:
        """Get a record by primary key"""
        with self.db.session() as session:
            return session.get(self.model_class, ident)

    def list(self, **filters) -> List[T]:
        """List records with optional equality filters"""
        with self.db.session() as session:
            query = select(self.model_class)
            for key, value in filters.items():
                query = query.where(getattr(self.model_class, key) == value)
            return list(session.execute(query).scalars())

    def count(self, **filters) -> int:
        """Count records with optional equality filters"""
        return len(self.list(**filters))


class InvoiceRepository(BaseRepository[InvoiceHeader]):
    """Repository for imported invoices"""

    def __init__(self, db: Database):
        super().__init__(InvoiceHeader, db)

    def get_by_key(self, key: NaturalKey) -> Optional[InvoiceHeader]:
        """Point lookup of an invoice header by its natural key"""
        with self.db.session() as session:
            return session.get(InvoiceHeader, (
                key.invoice_number,
                key.series,
                int(key.environment),
                key.company_id,
                key.access_key,
            ))

    def exists(self, key: NaturalKey) -> bool:
        return self.get_by_key(key) is not None

    def get_by_access_key(self, company_id: str, access_key: str) -> Optional[InvoiceHeader]:
        """
        Get an invoice of a company by access key, with its child rows loaded

        Args:
            company_id: Owning company
            access_key: 44-digit chNFe

        Returns:
            InvoiceHeader or None
        """
        with self.db.session() as session:
            query = (
                select(InvoiceHeader)
                .where(InvoiceHeader.company_id == company_id)
                .where(InvoiceHeader.access_key == access_key)
                .options(
                    selectinload(InvoiceHeader.identification),
                    selectinload(InvoiceHeader.issuer),
                    selectinload(InvoiceHeader.recipient),
                    selectinload(InvoiceHeader.authorized_party),
                    selectinload(InvoiceHeader.transport),
                    selectinload(InvoiceHeader.totals),
                    selectinload(InvoiceHeader.additional_info),
                    selectinload(InvoiceHeader.line_items),
                )
            )
            return session.execute(query).scalars().first()

    def list_for_company(self, company_id: str, limit: int = 50, offset: int = 0) -> List[InvoiceHeader]:
        """Invoices of a company, newest first"""
        with self.db.session() as session:
            query = (
                select(InvoiceHeader)
                .where(InvoiceHeader.company_id == company_id)
                .order_by(desc(InvoiceHeader.issued_at), desc(InvoiceHeader.invoice_number))
                .limit(limit)
                .offset(offset)
            )
            return list(session.execute(query).scalars())

    def list_by_issuer(self, company_id: str, issuer_tax_id: str, limit: int = 50) -> List[InvoiceHeader]:
        """Invoices of a company issued by one partner, newest first"""
        with self.db.session() as session:
            query = (
                select(InvoiceHeader)
                .where(InvoiceHeader.company_id == company_id)
                .where(InvoiceHeader.issuer_tax_id == format_tax_id(issuer_tax_id))
                .order_by(desc(InvoiceHeader.issued_at), desc(InvoiceHeader.invoice_number))
                .limit(limit)
            )
            return list(session.execute(query).scalars())

    def get_line_items(self, key: NaturalKey) -> List[InvoiceLineItem]:
        """Line items of an invoice in source order"""
        with self.db.session() as session:
            query = select(InvoiceLineItem).order_by(InvoiceLineItem.item_number)
            for column, value in key.as_dict().items():
                query = query.where(getattr(InvoiceLineItem, column) == value)
            return list(session.execute(query).scalars())


class BusinessPartnerRepository(BaseRepository[BusinessPartner]):
    """Repository for business partners"""

    def __init__(self, db: Database):
        super().__init__(BusinessPartner, db)

    def get_by_tax_id(self, company_id: str, tax_id: str) -> Optional[BusinessPartner]:
        """Get the partner a company registered under a tax id"""
        with self.db.session() as session:
            query = (
                select(BusinessPartner)
                .where(BusinessPartner.company_id == company_id)
                .where(BusinessPartner.tax_id == format_tax_id(tax_id))
            )
            return session.execute(query).scalar_one_or_none()

    def list_for_company(self, company_id: str) -> List[BusinessPartner]:
        """All partners of a company ordered by name"""
        with self.db.session() as session:
            query = (
                select(BusinessPartner)
                .where(BusinessPartner.company_id == company_id)
                .order_by(BusinessPartner.name)
            )
            return list(session.execute(query).scalars())

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKeyConstraint, Integer, Numeric, String, Text,
    UniqueConstraint, Index
)
from sqlalchemy.orm import declared_attr, relationship
from sqlalchemy.types import TypeDecorator

from .connection import Base

NATURAL_KEY_COLUMNS = ('invoice_number', 'series', 'environment', 'company_id', 'access_key')


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime stored as UTC.

    SQLite keeps no offset, so values are converted to UTC on the way in and
    read back as UTC-aware datetimes on every backend.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class NaturalKeyMixin:
    """Columns shared by every invoice row: number, series, environment, company, access key."""

    invoice_number = Column(Integer, primary_key=True)
    series = Column(Integer, primary_key=True)
    environment = Column(Integer, primary_key=True)
    company_id = Column(String(36), primary_key=True)
    access_key = Column(String(44), primary_key=True)

    created_by = Column(String(36), nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)


class InvoiceChildMixin(NaturalKeyMixin):
    """Rows owned by an InvoiceHeader and keyed by the same natural key."""

    @declared_attr
    def __table_args__(cls):
        return (
            ForeignKeyConstraint(
                list(NATURAL_KEY_COLUMNS),
                [f'invoice_header.{column}' for column in NATURAL_KEY_COLUMNS],
                ondelete='CASCADE'
            ),
        )


class InvoiceHeader(NaturalKeyMixin, Base):
    """Denormalized summary of one imported NF-e."""
    __tablename__ = 'invoice_header'

    issued_at = Column(UTCDateTime, nullable=False)
    issuer_tax_id = Column(String(14), nullable=False)
    issuer_name = Column(String(60))
    recipient_tax_id = Column(String(14))
    recipient_name = Column(String(60))
    products_total = Column(Numeric(15, 2), nullable=False)
    invoice_total = Column(Numeric(15, 2), nullable=False)
    protocol_number = Column(String(20))
    protocol_status = Column(Integer, nullable=False)
    protocol_received_at = Column(UTCDateTime)
    protocol_reason = Column(String(255))
    source_xml = Column(Text, nullable=False)
    source_filename = Column(String(255))

    # Relationships
    identification = relationship("InvoiceIdentification", uselist=False, cascade="all", passive_deletes=True)
    issuer = relationship("InvoiceIssuer", uselist=False, cascade="all", passive_deletes=True)
    recipient = relationship("InvoiceRecipient", uselist=False, cascade="all", passive_deletes=True)
    authorized_party = relationship("InvoiceAuthorizedParty", uselist=False, cascade="all", passive_deletes=True)
    transport = relationship("InvoiceTransport", uselist=False, cascade="all", passive_deletes=True)
    totals = relationship("InvoiceTotals", uselist=False, cascade="all", passive_deletes=True)
    additional_info = relationship("InvoiceAdditionalInfo", uselist=False, cascade="all", passive_deletes=True)
    line_items = relationship(
        "InvoiceLineItem",
        cascade="all",
        passive_deletes=True,
        order_by="InvoiceLineItem.item_number"
    )

    __table_args__ = (
        Index('idx_invoice_header_company_issuer', 'company_id', 'issuer_tax_id'),
        Index('idx_invoice_header_company_access_key', 'company_id', 'access_key'),
    )

    def __repr__(self):
        return (
            f"<InvoiceHeader(number={self.invoice_number}, series={self.series}, "
            f"company_id='{self.company_id}', access_key='{self.access_key}')>"
        )


class InvoiceIdentification(InvoiceChildMixin, Base):
    """Projection of infNFe/ide."""
    __tablename__ = 'invoice_identification'

    uf_code = Column(Integer, nullable=False)
    numeric_code = Column(Integer, nullable=False)
    operation_nature = Column(String(60))
    model = Column(Integer, nullable=False)
    issued_at = Column(UTCDateTime, nullable=False)
    departure_at = Column(UTCDateTime)
    operation_type = Column(String(1))
    destination_type = Column(String(1))
    municipality_code = Column(Integer, nullable=False)
    print_format = Column(String(1))
    emission_type = Column(String(1))
    check_digit = Column(Integer, nullable=False)
    purpose = Column(String(1))
    final_consumer = Column(String(1))
    presence = Column(String(1))
    emission_process = Column(String(1))
    process_version = Column(String(20))


class InvoiceIssuer(InvoiceChildMixin, Base):
    """Projection of infNFe/emit."""
    __tablename__ = 'invoice_issuer'

    tax_id = Column(String(14), nullable=False)
    name = Column(String(60))
    trade_name = Column(String(60))
    street = Column(String(60))
    number = Column(String(60))
    complement = Column(String(60))
    district = Column(String(60))
    municipality_code = Column(Integer)
    municipality = Column(String(60))
    state = Column(String(2))
    postal_code = Column(String(8))
    country_code = Column(Integer)
    country = Column(String(60))
    phone = Column(String(14))
    state_registration = Column(String(14))
    tax_regime = Column(String(1))


class InvoiceRecipient(InvoiceChildMixin, Base):
    """Projection of infNFe/dest."""
    __tablename__ = 'invoice_recipient'

    tax_id = Column(String(14))
    name = Column(String(60))
    street = Column(String(60))
    number = Column(String(60))
    complement = Column(String(60))
    district = Column(String(60))
    municipality_code = Column(Integer)
    municipality = Column(String(60))
    state = Column(String(2))
    postal_code = Column(String(8))
    country_code = Column(Integer)
    country = Column(String(60))
    ie_indicator = Column(String(1))
    state_registration = Column(String(14))
    email = Column(String(60))


class InvoiceAuthorizedParty(InvoiceChildMixin, Base):
    """Projection of infNFe/autXML."""
    __tablename__ = 'invoice_authorized_party'

    tax_id = Column(String(14))


class InvoiceTransport(InvoiceChildMixin, Base):
    """Projection of infNFe/transp."""
    __tablename__ = 'invoice_transport'

    freight_mode = Column(String(1))
    carrier_tax_id = Column(String(14))
    carrier_name = Column(String(60))
    carrier_state_registration = Column(String(14))
    carrier_address = Column(String(60))
    carrier_municipality = Column(String(60))
    carrier_state = Column(String(2))
    volume_count = Column(Integer)
    gross_weight = Column(Numeric(15, 3))
    net_weight = Column(Numeric(15, 3))


class InvoiceTotals(InvoiceChildMixin, Base):
    """Projection of infNFe/total/ICMSTot."""
    __tablename__ = 'invoice_totals'

    icms_base = Column(Numeric(15, 2))
    icms_value = Column(Numeric(15, 2))
    icms_st_base = Column(Numeric(15, 2))
    icms_st_value = Column(Numeric(15, 2))
    products_value = Column(Numeric(15, 2), nullable=False)
    freight_value = Column(Numeric(15, 2))
    insurance_value = Column(Numeric(15, 2))
    discount_value = Column(Numeric(15, 2))
    import_tax_value = Column(Numeric(15, 2))
    ipi_value = Column(Numeric(15, 2))
    pis_value = Column(Numeric(15, 2))
    cofins_value = Column(Numeric(15, 2))
    other_value = Column(Numeric(15, 2))
    invoice_value = Column(Numeric(15, 2), nullable=False)


class InvoiceAdditionalInfo(InvoiceChildMixin, Base):
    """Projection of infNFe/infAdic."""
    __tablename__ = 'invoice_additional_info'

    complementary_info = Column(Text)
    fiscal_info = Column(Text)


class InvoiceLineItem(InvoiceChildMixin, Base):
    """One infNFe/det entry."""
    __tablename__ = 'invoice_line_item'

    item_number = Column(Integer, primary_key=True)
    source_item_number = Column(Integer)
    product_code = Column(String(60))
    ean = Column(String(14))
    description = Column(String(120))
    ncm = Column(String(8))
    cest = Column(String(7))
    cfop = Column(Integer, nullable=False)
    unit = Column(String(6))
    quantity = Column(Numeric(15, 4), nullable=False)
    unit_value = Column(Numeric(21, 10), nullable=False)
    total_value = Column(Numeric(15, 2), nullable=False)
    tax_unit = Column(String(6))
    tax_quantity = Column(Numeric(15, 4), nullable=False)
    tax_unit_value = Column(Numeric(21, 10), nullable=False)
    freight = Column(Numeric(15, 2))
    insurance = Column(Numeric(15, 2))
    discount = Column(Numeric(15, 2))
    other = Column(Numeric(15, 2))
    totals_flag = Column(Integer, nullable=False)
    additional_info = Column(Text)

    def __repr__(self):
        return f"<InvoiceLineItem(access_key='{self.access_key}', item={self.item_number}, code='{self.product_code}')>"


class BusinessPartner(Base):
    """Counterparty registered per company, shared by every invoice it appears on."""
    __tablename__ = 'business_partner'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    company_id = Column(String(36), nullable=False)
    tax_id = Column(String(14), nullable=False)
    person_type = Column(String(1), nullable=False)
    registration_type = Column(String(20), nullable=False)
    name = Column(String(60))
    label = Column(String(100))
    is_supplier = Column(Boolean, nullable=False, default=False)
    editable = Column(Boolean, nullable=False, default=True)
    active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String(36), nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('company_id', 'tax_id', name='uq_business_partner_company_tax_id'),
    )

    def __repr__(self):
        return f"<BusinessPartner(company_id='{self.company_id}', tax_id='{self.tax_id}', type='{self.person_type}')>"

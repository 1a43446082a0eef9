"""
NF-e Data Models

Typed, normalized projections of an inbound NF-e document. The mapper builds
these from the parsed XML tree; every value the document may omit is an
explicit Optional so absence is always a deliberate None, never a placeholder.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class FiscalEnvironment(IntEnum):
    """tpAmb: environment the invoice was authorized in"""
    PRODUCTION = 1
    TEST = 2


class PersonType(str, Enum):
    """Business partner classification"""
    LEGAL_ENTITY = "J"
    NATURAL_PERSON = "F"


class NaturalKey(BaseModel):
    """Identifies one invoice across the whole store"""
    model_config = ConfigDict(frozen=True)

    invoice_number: int
    series: int
    environment: FiscalEnvironment
    company_id: str = Field(..., min_length=1)
    access_key: str = Field(..., min_length=1)

    def as_dict(self) -> Dict[str, Any]:
        """Column values shared by the header and all of its child rows"""
        return {
            'invoice_number': self.invoice_number,
            'series': self.series,
            'environment': int(self.environment),
            'company_id': self.company_id,
            'access_key': self.access_key,
        }

    def describe(self) -> str:
        return (
            f"number={self.invoice_number} series={self.series} "
            f"environment={int(self.environment)} company={self.company_id} "
            f"access_key={self.access_key}"
        )


class Address(BaseModel):
    """enderEmit / enderDest"""
    model_config = ConfigDict(str_strip_whitespace=True)

    street: Optional[str] = None
    number: Optional[str] = None
    complement: Optional[str] = None
    district: Optional[str] = None
    municipality_code: Optional[int] = None
    municipality: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country_code: Optional[int] = None
    country: Optional[str] = None
    phone: Optional[str] = None


class Identification(BaseModel):
    """ide"""
    model_config = ConfigDict(str_strip_whitespace=True)

    invoice_number: int
    series: int
    environment: FiscalEnvironment
    uf_code: int
    numeric_code: int
    operation_nature: Optional[str] = None
    model: int
    issued_at: datetime
    departure_at: Optional[datetime] = None
    operation_type: Optional[str] = None
    destination_type: Optional[str] = None
    municipality_code: int
    print_format: Optional[str] = None
    emission_type: Optional[str] = None
    check_digit: int
    purpose: Optional[str] = None
    final_consumer: Optional[str] = None
    presence: Optional[str] = None
    emission_process: Optional[str] = None
    process_version: Optional[str] = None


class Issuer(BaseModel):
    """emit"""
    model_config = ConfigDict(str_strip_whitespace=True)

    tax_id: str = Field(..., min_length=1)
    name: Optional[str] = None
    trade_name: Optional[str] = None
    address: Address = Field(default_factory=Address)
    state_registration: Optional[str] = None
    tax_regime: Optional[str] = None


class Recipient(BaseModel):
    """dest"""
    model_config = ConfigDict(str_strip_whitespace=True)

    tax_id: Optional[str] = None
    name: Optional[str] = None
    address: Address = Field(default_factory=Address)
    ie_indicator: Optional[str] = None
    state_registration: Optional[str] = None
    email: Optional[str] = None


class AuthorizedParty(BaseModel):
    """autXML"""
    tax_id: Optional[str] = None


class Transport(BaseModel):
    """transp"""
    model_config = ConfigDict(str_strip_whitespace=True)

    freight_mode: Optional[str] = None
    carrier_tax_id: Optional[str] = None
    carrier_name: Optional[str] = None
    carrier_state_registration: Optional[str] = None
    carrier_address: Optional[str] = None
    carrier_municipality: Optional[str] = None
    carrier_state: Optional[str] = None
    volume_count: Optional[int] = None
    gross_weight: Optional[Decimal] = None
    net_weight: Optional[Decimal] = None


class Totals(BaseModel):
    """total/ICMSTot"""
    icms_base: Optional[Decimal] = None
    icms_value: Optional[Decimal] = None
    icms_st_base: Optional[Decimal] = None
    icms_st_value: Optional[Decimal] = None
    products_value: Decimal
    freight_value: Optional[Decimal] = None
    insurance_value: Optional[Decimal] = None
    discount_value: Optional[Decimal] = None
    import_tax_value: Optional[Decimal] = None
    ipi_value: Optional[Decimal] = None
    pis_value: Optional[Decimal] = None
    cofins_value: Optional[Decimal] = None
    other_value: Optional[Decimal] = None
    invoice_value: Decimal


class AdditionalInfo(BaseModel):
    """infAdic"""
    complementary_info: Optional[str] = None
    fiscal_info: Optional[str] = None


class LineItem(BaseModel):
    """One det entry"""
    model_config = ConfigDict(str_strip_whitespace=True)

    item_number: int = Field(..., ge=1)
    source_item_number: Optional[int] = None
    product_code: Optional[str] = None
    ean: Optional[str] = None
    description: Optional[str] = None
    ncm: Optional[str] = None
    cest: Optional[str] = None
    cfop: int
    unit: Optional[str] = None
    quantity: Decimal
    unit_value: Decimal
    total_value: Decimal
    tax_unit: Optional[str] = None
    tax_quantity: Decimal
    tax_unit_value: Decimal
    freight: Optional[Decimal] = None
    insurance: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    other: Optional[Decimal] = None
    totals_flag: int
    additional_info: Optional[str] = None


class Protocol(BaseModel):
    """protNFe/infProt"""
    model_config = ConfigDict(str_strip_whitespace=True)

    access_key: str = Field(..., min_length=1)
    protocol_number: Optional[str] = None
    status: int
    received_at: Optional[datetime] = None
    reason: Optional[str] = None


class NormalizedInvoice(BaseModel):
    """Flat, typed view of one NF-e, ready to be turned into rows"""

    identification: Identification
    issuer: Issuer
    recipient: Recipient
    authorized_party: AuthorizedParty
    line_items: List[LineItem] = Field(default_factory=list)
    transport: Transport
    totals: Totals
    additional_info: AdditionalInfo
    protocol: Protocol

    def natural_key(self, company_id: str) -> NaturalKey:
        """Natural key of this invoice when imported on behalf of company_id"""
        return NaturalKey(
            invoice_number=self.identification.invoice_number,
            series=self.identification.series,
            environment=self.identification.environment,
            company_id=company_id,
            access_key=self.protocol.access_key,
        )


class ImportResult(BaseModel):
    """Summary of a successful import"""

    natural_key: NaturalKey
    line_item_count: int
    partner_created: bool
    missing_optional: List[str] = Field(default_factory=list)
    stage_times: Dict[str, int] = Field(default_factory=dict)

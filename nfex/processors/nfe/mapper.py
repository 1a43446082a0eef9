"""
NF-e Field Mapper

Projects a structurally validated NF-e tree onto the typed records of
nfex.models.nfe. Handles:
- Integer, decimal and ISO-8601 datetime coercion
- CNPJ/CPF normalization (digits only, CNPJ first)
- Single or repeated det / autXML / vol entries

Absent required values raise MissingRequiredField; present values that cannot
be coerced raise InvalidFieldValue. No value is ever defaulted.
"""

import logging
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from nfex.exceptions import InvalidFieldValue, MissingRequiredField
from nfex.models.nfe import (
    AdditionalInfo,
    Address,
    AuthorizedParty,
    FiscalEnvironment,
    Identification,
    Issuer,
    LineItem,
    NormalizedInvoice,
    Protocol,
    Recipient,
    Totals,
    Transport,
)
from nfex.processors.nfe.parser import TEXT_KEY
from nfex.utils.formatting import format_tax_id

logger = logging.getLogger(__name__)

INTEGER_PATTERN = re.compile(r'^[+-]?\d+$')
DECIMAL_PATTERN = re.compile(r'^[+-]?(\d+(\.\d*)?|\.\d+)$')

# Integer columns are 32-bit on PostgreSQL
INTEGER_MIN = -2 ** 31
INTEGER_MAX = 2 ** 31 - 1


def as_list(value: Any) -> List[Any]:
    """A node that may repeat, always as a list"""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


class FieldReader:
    """
    Typed accessor over one node of the parsed tree.

    Every accessor takes a key relative to the node and reports failures with
    the full dot path, so errors point at the exact source field.
    """

    def __init__(self, node: Any, path: str):
        if isinstance(node, list):
            node = node[0] if node else None
        self.node = node if isinstance(node, dict) else {}
        self.path = path

    def child(self, key: str) -> 'FieldReader':
        return FieldReader(self.node.get(key), f"{self.path}.{key}")

    def raw(self, key: str) -> Any:
        return self.node.get(key)

    def text(self, key: str) -> Optional[str]:
        value = self.node.get(key)
        if isinstance(value, list):
            value = value[0] if value else None
        if isinstance(value, dict):
            value = value.get(TEXT_KEY)
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    def required_text(self, key: str) -> str:
        value = self.text(key)
        if value is None:
            raise MissingRequiredField(f"{self.path}.{key}")
        return value

    def optional_int(self, key: str) -> Optional[int]:
        value = self.text(key)
        if value is None:
            return None
        if not INTEGER_PATTERN.match(value):
            raise InvalidFieldValue(f"{self.path}.{key}", value, 'integer')
        number = int(value)
        if not INTEGER_MIN <= number <= INTEGER_MAX:
            raise InvalidFieldValue(f"{self.path}.{key}", value, 'integer within 32 bits')
        return number

    def required_int(self, key: str) -> int:
        value = self.optional_int(key)
        if value is None:
            raise MissingRequiredField(f"{self.path}.{key}")
        return value

    def optional_decimal(self, key: str) -> Optional[Decimal]:
        value = self.text(key)
        if value is None:
            return None
        if not DECIMAL_PATTERN.match(value):
            raise InvalidFieldValue(f"{self.path}.{key}", value, 'decimal')
        try:
            return Decimal(value)
        except InvalidOperation:
            raise InvalidFieldValue(f"{self.path}.{key}", value, 'decimal') from None

    def required_decimal(self, key: str) -> Decimal:
        value = self.optional_decimal(key)
        if value is None:
            raise MissingRequiredField(f"{self.path}.{key}")
        return value

    def optional_datetime(self, key: str) -> Optional[datetime]:
        value = self.text(key)
        if value is None:
            return None
        try:
            # fromisoformat only understands the Z suffix from Python 3.11 on
            if value.endswith('Z'):
                value = value[:-1] + '+00:00'
            return datetime.fromisoformat(value)
        except ValueError:
            raise InvalidFieldValue(f"{self.path}.{key}", value, 'ISO-8601 datetime') from None

    def required_datetime(self, key: str) -> datetime:
        value = self.optional_datetime(key)
        if value is None:
            raise MissingRequiredField(f"{self.path}.{key}")
        return value

    def tax_id(self) -> Optional[str]:
        """CNPJ with CPF as fallback, digits only"""
        return format_tax_id(self.text('CNPJ')) or format_tax_id(self.text('CPF'))


class NFeMapper:
    """
    Maps a parsed NF-e tree to a NormalizedInvoice.

    The tree must already have passed StructuralValidator; the mapper still
    raises MissingRequiredField for absent leaf values it cannot do without.
    """

    def map(self, tree: Dict[str, Any]) -> NormalizedInvoice:
        """
        Build the normalized invoice.

        Args:
            tree: Parsed document rooted at ``nfeProc``

        Returns:
            NormalizedInvoice with every record populated

        Raises:
            MissingRequiredField: If a required leaf value is absent
            InvalidFieldValue: If a present value cannot be coerced
        """
        root = FieldReader(tree.get('nfeProc'), 'nfeProc')
        inf = root.child('NFe').child('infNFe')

        invoice = NormalizedInvoice(
            identification=self._identification(inf.child('ide')),
            issuer=self._issuer(inf.child('emit')),
            recipient=self._recipient(inf.child('dest')),
            authorized_party=self._authorized_party(inf),
            line_items=self._line_items(inf),
            transport=self._transport(inf.child('transp')),
            totals=self._totals(inf.child('total').child('ICMSTot')),
            additional_info=self._additional_info(inf.child('infAdic')),
            protocol=self._protocol(root.child('protNFe').child('infProt')),
        )

        logger.debug(
            f"Mapped invoice {invoice.identification.invoice_number}/{invoice.identification.series} "
            f"with {len(invoice.line_items)} line items"
        )
        return invoice

    def _identification(self, ide: FieldReader) -> Identification:
        environment = ide.required_int('tpAmb')
        try:
            environment = FiscalEnvironment(environment)
        except ValueError:
            raise InvalidFieldValue(f"{ide.path}.tpAmb", environment, '1 or 2') from None

        return Identification(
            invoice_number=ide.required_int('nNF'),
            series=ide.required_int('serie'),
            environment=environment,
            uf_code=ide.required_int('cUF'),
            numeric_code=ide.required_int('cNF'),
            operation_nature=ide.text('natOp'),
            model=ide.required_int('mod'),
            issued_at=ide.required_datetime('dhEmi'),
            departure_at=ide.optional_datetime('dhSaiEnt'),
            operation_type=ide.text('tpNF'),
            destination_type=ide.text('idDest'),
            municipality_code=ide.required_int('cMunFG'),
            print_format=ide.text('tpImp'),
            emission_type=ide.text('tpEmis'),
            check_digit=ide.required_int('cDV'),
            purpose=ide.text('finNFe'),
            final_consumer=ide.text('indFinal'),
            presence=ide.text('indPres'),
            emission_process=ide.text('procEmi'),
            process_version=ide.text('verProc'),
        )

    def _address(self, node: FieldReader, with_phone: bool = True) -> Address:
        return Address(
            street=node.text('xLgr'),
            number=node.text('nro'),
            complement=node.text('xCpl'),
            district=node.text('xBairro'),
            municipality_code=node.optional_int('cMun'),
            municipality=node.text('xMun'),
            state=node.text('UF'),
            postal_code=node.text('CEP'),
            country_code=node.optional_int('cPais'),
            country=node.text('xPais'),
            phone=node.text('fone') if with_phone else None,
        )

    def _issuer(self, emit: FieldReader) -> Issuer:
        tax_id = emit.tax_id()
        if not tax_id:
            raise MissingRequiredField(f"{emit.path}.CNPJ")

        return Issuer(
            tax_id=tax_id,
            name=emit.text('xNome'),
            trade_name=emit.text('xFant'),
            address=self._address(emit.child('enderEmit')),
            state_registration=emit.text('IE'),
            tax_regime=emit.text('CRT'),
        )

    def _recipient(self, dest: FieldReader) -> Recipient:
        return Recipient(
            tax_id=dest.tax_id(),
            name=dest.text('xNome'),
            address=self._address(dest.child('enderDest'), with_phone=False),
            ie_indicator=dest.text('indIEDest'),
            state_registration=dest.text('IE'),
            email=dest.text('email'),
        )

    def _authorized_party(self, inf: FieldReader) -> AuthorizedParty:
        # Only the first autXML entry is kept
        return AuthorizedParty(tax_id=inf.child('autXML').tax_id())

    def _line_items(self, inf: FieldReader) -> List[LineItem]:
        items = []
        for position, det in enumerate(as_list(inf.raw('det')), start=1):
            entry = FieldReader(det, f"{inf.path}.det[{position}]")
            prod = entry.child('prod')
            items.append(LineItem(
                item_number=position,
                source_item_number=entry.optional_int('nItem'),
                product_code=prod.text('cProd'),
                ean=prod.text('cEAN'),
                description=prod.text('xProd'),
                ncm=prod.text('NCM'),
                cest=prod.text('CEST'),
                cfop=prod.required_int('CFOP'),
                unit=prod.text('uCom'),
                quantity=prod.required_decimal('qCom'),
                unit_value=prod.required_decimal('vUnCom'),
                total_value=prod.required_decimal('vProd'),
                tax_unit=prod.text('uTrib'),
                tax_quantity=prod.required_decimal('qTrib'),
                tax_unit_value=prod.required_decimal('vUnTrib'),
                freight=prod.optional_decimal('vFrete'),
                insurance=prod.optional_decimal('vSeg'),
                discount=prod.optional_decimal('vDesc'),
                other=prod.optional_decimal('vOutro'),
                totals_flag=prod.required_int('indTot'),
                additional_info=entry.text('infAdProd'),
            ))
        return items

    def _transport(self, transp: FieldReader) -> Transport:
        carrier = transp.child('transporta')
        volume = transp.child('vol')
        return Transport(
            freight_mode=transp.text('modFrete'),
            carrier_tax_id=carrier.tax_id(),
            carrier_name=carrier.text('xNome'),
            carrier_state_registration=carrier.text('IE'),
            carrier_address=carrier.text('xEnder'),
            carrier_municipality=carrier.text('xMun'),
            carrier_state=carrier.text('UF'),
            volume_count=volume.optional_int('qVol'),
            gross_weight=volume.optional_decimal('pesoB'),
            net_weight=volume.optional_decimal('pesoL'),
        )

    def _totals(self, icms: FieldReader) -> Totals:
        return Totals(
            icms_base=icms.optional_decimal('vBC'),
            icms_value=icms.optional_decimal('vICMS'),
            icms_st_base=icms.optional_decimal('vBCST'),
            icms_st_value=icms.optional_decimal('vST'),
            products_value=icms.required_decimal('vProd'),
            freight_value=icms.optional_decimal('vFrete'),
            insurance_value=icms.optional_decimal('vSeg'),
            discount_value=icms.optional_decimal('vDesc'),
            import_tax_value=icms.optional_decimal('vII'),
            ipi_value=icms.optional_decimal('vIPI'),
            pis_value=icms.optional_decimal('vPIS'),
            cofins_value=icms.optional_decimal('vCOFINS'),
            other_value=icms.optional_decimal('vOutro'),
            invoice_value=icms.required_decimal('vNF'),
        )

    def _additional_info(self, inf_adic: FieldReader) -> AdditionalInfo:
        return AdditionalInfo(
            complementary_info=inf_adic.text('infCpl'),
            fiscal_info=inf_adic.text('infAdFisco'),
        )

    def _protocol(self, inf_prot: FieldReader) -> Protocol:
        return Protocol(
            access_key=inf_prot.required_text('chNFe'),
            protocol_number=inf_prot.text('nProt'),
            status=inf_prot.required_int('cStat'),
            received_at=inf_prot.optional_datetime('dhRecbto'),
            reason=inf_prot.text('xMotivo'),
        )

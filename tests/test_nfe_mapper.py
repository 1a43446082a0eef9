"""
Tests for the NF-e field mapper
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from nfex.exceptions import InvalidFieldValue, InvalidInput, MissingRequiredField
from nfex.models.nfe import FiscalEnvironment
from nfex.processors.nfe.mapper import FieldReader, NFeMapper
from nfex.processors.nfe.parser import parse_document
from tests.nfe_samples import (
    AUTHORIZED_CNPJ,
    CARRIER_CNPJ,
    ISSUER_CNPJ,
    RECIPIENT_CNPJ,
    build_nfe_xml,
)


def map_document(content: bytes):
    return NFeMapper().map(parse_document(content))


class TestFieldReader:
    """Coercion of individual values"""

    def setup_method(self):
        self.reader = FieldReader({
            'count': '12',
            'negative': '-3',
            'amount': '10.50',
            'bad': 'abc',
            'blank': '  ',
            'when': '2024-03-15T10:30:00-03:00',
            'utc': '2024-03-15T13:30:00Z',
            'with_attr': {'unit': 'kg', '_': '7'},
            'CPF': '123.456.789-09',
        }, 'root')

    def test_integers(self):
        assert self.reader.required_int('count') == 12
        assert self.reader.optional_int('negative') == -3
        assert self.reader.optional_int('missing') is None

    def test_integer_rejects_decimal_text(self):
        with pytest.raises(InvalidFieldValue) as exc_info:
            self.reader.required_int('amount')
        assert exc_info.value.path == 'root.amount'

    def test_integer_outside_32_bits(self):
        reader = FieldReader({'high': '2147483648', 'low': '-2147483649', 'edge': '2147483647'}, 'root')
        assert reader.required_int('edge') == 2147483647
        for key in ('high', 'low'):
            with pytest.raises(InvalidFieldValue) as exc_info:
                reader.optional_int(key)
            assert exc_info.value.path == f'root.{key}'

    def test_decimal_rejects_digit_separators(self):
        reader = FieldReader({'value': '1_000', 'integer': '1_000'}, 'root')
        with pytest.raises(InvalidFieldValue):
            reader.optional_decimal('value')
        with pytest.raises(InvalidFieldValue):
            reader.optional_int('integer')

    def test_decimal_rejects_exponent(self):
        reader = FieldReader({'value': '1e3'}, 'root')
        with pytest.raises(InvalidFieldValue):
            reader.required_decimal('value')

    def test_decimals(self):
        assert self.reader.required_decimal('amount') == Decimal('10.50')
        assert self.reader.optional_decimal('missing') is None

    def test_unparsable_decimal_raises_even_when_optional(self):
        with pytest.raises(InvalidFieldValue):
            self.reader.optional_decimal('bad')

    def test_non_finite_decimal_is_rejected(self):
        reader = FieldReader({'value': 'NaN'}, 'root')
        with pytest.raises(InvalidFieldValue):
            reader.optional_decimal('value')

    def test_blank_counts_as_absent(self):
        assert self.reader.text('blank') is None
        with pytest.raises(MissingRequiredField) as exc_info:
            self.reader.required_decimal('blank')
        assert exc_info.value.path == 'root.blank'

    def test_datetimes(self):
        assert self.reader.required_datetime('when') == datetime(
            2024, 3, 15, 10, 30, tzinfo=timezone(timedelta(hours=-3))
        )
        assert self.reader.optional_datetime('utc') == datetime(2024, 3, 15, 13, 30, tzinfo=timezone.utc)
        with pytest.raises(InvalidFieldValue):
            self.reader.optional_datetime('bad')

    def test_text_with_attributes(self):
        assert self.reader.required_int('with_attr') == 7

    def test_tax_id_falls_back_to_cpf(self):
        assert self.reader.tax_id() == '12345678909'

    def test_invalid_field_value_is_invalid_input(self):
        with pytest.raises(InvalidInput):
            self.reader.required_int('bad')


class TestNFeMapper:
    """Mapping of complete documents"""

    def test_identification(self):
        invoice = map_document(build_nfe_xml(nNF='42', serie='3', tpAmb='1'))
        ide = invoice.identification
        assert ide.invoice_number == 42
        assert ide.series == 3
        assert ide.environment == FiscalEnvironment.PRODUCTION
        assert ide.uf_code == 35
        assert ide.model == 55
        assert ide.municipality_code == 3550308
        assert ide.operation_nature == 'Venda de mercadoria'
        assert ide.departure_at is None

    def test_parties(self):
        invoice = map_document(build_nfe_xml())
        assert invoice.issuer.tax_id == ISSUER_CNPJ
        assert invoice.issuer.name == 'Acme Ferragens Ltda'
        assert invoice.issuer.trade_name is None
        assert invoice.issuer.address.municipality_code == 3550308
        assert invoice.issuer.address.phone == '1133334444'
        assert invoice.recipient.tax_id == RECIPIENT_CNPJ
        assert invoice.recipient.email is None
        assert invoice.recipient.address.state == 'RJ'
        assert invoice.authorized_party.tax_id == AUTHORIZED_CNPJ

    def test_issuer_with_cpf(self):
        invoice = map_document(build_nfe_xml(issuer_tax_id='12345678909'))
        assert invoice.issuer.tax_id == '12345678909'

    def test_transport_totals_and_protocol(self):
        invoice = map_document(build_nfe_xml(chNFe='KEY9', vNF='31.90'))
        assert invoice.transport.carrier_tax_id == CARRIER_CNPJ
        assert invoice.transport.volume_count == 2
        assert invoice.transport.gross_weight == Decimal('11.000')
        assert invoice.totals.invoice_value == Decimal('31.90')
        assert invoice.totals.icms_value == Decimal('4.50')
        assert invoice.additional_info.complementary_info == 'Pedido 4512'
        assert invoice.additional_info.fiscal_info is None
        assert invoice.protocol.access_key == 'KEY9'
        assert invoice.protocol.status == 100

    def test_single_line_item(self):
        invoice = map_document(build_nfe_xml())
        assert len(invoice.line_items) == 1
        item = invoice.line_items[0]
        assert item.item_number == 1
        assert item.source_item_number == 1
        assert item.cfop == 5102
        assert item.quantity == Decimal('10')
        assert item.total_value == Decimal('25.00')
        assert item.freight is None

    def test_line_items_keep_source_order(self):
        invoice = map_document(build_nfe_xml(items=[
            {'cProd': 'A'},
            {'cProd': 'B', 'vFrete': '1.50', 'infAdProd': 'Lote 7'},
            {'cProd': 'C'},
        ]))
        assert [item.product_code for item in invoice.line_items] == ['A', 'B', 'C']
        assert [item.item_number for item in invoice.line_items] == [1, 2, 3]
        assert invoice.line_items[1].freight == Decimal('1.50')
        assert invoice.line_items[1].additional_info == 'Lote 7'

    def test_unparsable_line_item_quantity(self):
        with pytest.raises(InvalidFieldValue) as exc_info:
            map_document(build_nfe_xml(items=[{}, {'qCom': 'abc'}]))
        assert exc_info.value.path == 'nfeProc.NFe.infNFe.det[2].prod.qCom'

    def test_missing_line_item_cfop(self):
        with pytest.raises(MissingRequiredField) as exc_info:
            map_document(build_nfe_xml(items=[{'CFOP': None}]))
        assert exc_info.value.path == 'nfeProc.NFe.infNFe.det[1].prod.CFOP'

    def test_unknown_environment(self):
        with pytest.raises(InvalidFieldValue) as exc_info:
            map_document(build_nfe_xml(tpAmb='3'))
        assert exc_info.value.path == 'nfeProc.NFe.infNFe.ide.tpAmb'

    def test_missing_issuer_tax_id(self):
        tree = parse_document(build_nfe_xml())
        del tree['nfeProc']['NFe']['infNFe']['emit']['CNPJ']
        with pytest.raises(MissingRequiredField) as exc_info:
            NFeMapper().map(tree)
        assert exc_info.value.path == 'nfeProc.NFe.infNFe.emit.CNPJ'

    def test_repeated_authorized_parties_keep_first(self):
        tree = parse_document(build_nfe_xml())
        inf = tree['nfeProc']['NFe']['infNFe']
        inf['autXML'] = [{'CNPJ': AUTHORIZED_CNPJ}, {'CPF': '12345678909'}]
        assert NFeMapper().map(tree).authorized_party.tax_id == AUTHORIZED_CNPJ

    def test_natural_key(self):
        invoice = map_document(build_nfe_xml())
        key = invoice.natural_key('C1')
        assert key.as_dict() == {
            'invoice_number': 1,
            'series': 1,
            'environment': 2,
            'company_id': 'C1',
            'access_key': 'KEY1',
        }

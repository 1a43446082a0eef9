"""
Tests for the NF-e XML tree parser
"""

import pytest

from nfex.exceptions import DocumentParseError
from nfex.processors.nfe.parser import TEXT_KEY, parse_document
from tests.nfe_samples import build_nfe_xml


class TestParseDocument:
    """Shape of the tree produced from XML bytes"""

    def test_root_is_keyed_by_local_name(self):
        tree = parse_document(build_nfe_xml())
        assert list(tree.keys()) == ['nfeProc']

    def test_attributes_are_merged_with_children(self):
        tree = parse_document(build_nfe_xml(chNFe='KEY1'))
        inf = tree['nfeProc']['NFe']['infNFe']
        assert inf['Id'] == 'NFeKEY1'
        assert inf['versao'] == '4.00'
        assert inf['ide']['nNF'] == '1'

    def test_single_element_stays_a_dict(self):
        tree = parse_document(build_nfe_xml())
        det = tree['nfeProc']['NFe']['infNFe']['det']
        assert isinstance(det, dict)
        assert det['nItem'] == '1'
        assert det['prod']['cProd'] == 'P001'

    def test_repeated_elements_become_a_list(self):
        tree = parse_document(build_nfe_xml(items=[{'cProd': 'A'}, {'cProd': 'B'}, {'cProd': 'C'}]))
        det = tree['nfeProc']['NFe']['infNFe']['det']
        assert isinstance(det, list)
        assert [entry['prod']['cProd'] for entry in det] == ['A', 'B', 'C']

    def test_text_next_to_attributes_goes_under_text_key(self):
        tree = parse_document(b'<root><value unit="kg">12.5</value></root>')
        assert tree['root']['value'] == {'unit': 'kg', TEXT_KEY: '12.5'}

    def test_empty_element_is_empty_string(self):
        tree = parse_document(b'<root><empty/></root>')
        assert tree['root']['empty'] == ''

    def test_malformed_xml_raises(self):
        with pytest.raises(DocumentParseError) as exc_info:
            parse_document(b'<nfeProc><NFe></nfeProc>', 'broken.xml')
        assert exc_info.value.details['filename'] == 'broken.xml'

    def test_non_xml_raises(self):
        with pytest.raises(DocumentParseError):
            parse_document(b'this is not xml at all')

    def test_external_entities_are_not_resolved(self):
        content = (
            b'<?xml version="1.0"?>'
            b'<!DOCTYPE root [<!ENTITY secret SYSTEM "file:///etc/passwd">]>'
            b'<root><value>&secret;</value></root>'
        )
        tree = parse_document(content)
        assert 'root:' not in str(tree)

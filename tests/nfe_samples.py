"""
Sample NF-e documents for tests.

build_nfe_xml renders a complete, authorized NF-e (nfeProc) with one line item
per entry of ``items``; keyword arguments tweak the identifying fields.
"""

from lxml import etree

NFE_NAMESPACE = 'http://www.portalfiscal.inf.br/nfe'

ISSUER_CNPJ = '11222333000181'
RECIPIENT_CNPJ = '99888777000166'
AUTHORIZED_CNPJ = '55444333000122'
CARRIER_CNPJ = '44555666000177'

DEFAULT_ITEM = {
    'cProd': 'P001',
    'cEAN': '7891234567895',
    'xProd': 'Parafuso sextavado 10mm',
    'NCM': '73181500',
    'CFOP': '5102',
    'uCom': 'UN',
    'qCom': '10.0000',
    'vUnCom': '2.5000000000',
    'vProd': '25.00',
    'uTrib': 'UN',
    'qTrib': '10.0000',
    'vUnTrib': '2.5000000000',
    'indTot': '1',
}


def _item_xml(position, item):
    fields = {**DEFAULT_ITEM, **item}
    info = fields.pop('infAdProd', None)
    prod = ''.join(
        f'<{tag}>{value}</{tag}>' for tag, value in fields.items() if value is not None
    )
    extra = f'<infAdProd>{info}</infAdProd>' if info else ''
    return f'<det nItem="{position}"><prod>{prod}</prod>{extra}</det>'


def build_nfe_xml(
    nNF='1',
    serie='1',
    tpAmb='2',
    chNFe='KEY1',
    issuer_tax_id=ISSUER_CNPJ,
    issuer_name='Acme Ferragens Ltda',
    items=None,
    include_delivery=False,
    vNF='25.00',
    vProd='25.00'
) -> bytes:
    """Render an authorized NF-e document as UTF-8 bytes"""
    items = items if items is not None else [{}]
    det = ''.join(_item_xml(position, item) for position, item in enumerate(items, start=1))
    issuer_tag = 'CNPJ' if len(issuer_tax_id) > 11 else 'CPF'
    delivery = ''
    if include_delivery:
        delivery = (
            '<retirada><CNPJ>11222333000181</CNPJ><xLgr>Rua das Flores</xLgr><nro>100</nro>'
            '<xBairro>Centro</xBairro><cMun>3550308</cMun><xMun>Sao Paulo</xMun><UF>SP</UF></retirada>'
            '<entrega><CNPJ>99888777000166</CNPJ><xLgr>Av. Brasil</xLgr><nro>2000</nro>'
            '<xBairro>Jardim</xBairro><cMun>3304557</cMun><xMun>Rio de Janeiro</xMun><UF>RJ</UF></entrega>'
        )

    xml = f"""<?xml version="1.0" encoding="UTF-8"?>
<nfeProc xmlns="{NFE_NAMESPACE}" versao="4.00">
  <NFe>
    <infNFe Id="NFe{chNFe}" versao="4.00">
      <ide>
        <cUF>35</cUF>
        <cNF>12345678</cNF>
        <natOp>Venda de mercadoria</natOp>
        <mod>55</mod>
        <serie>{serie}</serie>
        <nNF>{nNF}</nNF>
        <dhEmi>2024-03-15T10:30:00-03:00</dhEmi>
        <tpNF>1</tpNF>
        <idDest>1</idDest>
        <cMunFG>3550308</cMunFG>
        <tpImp>1</tpImp>
        <tpEmis>1</tpEmis>
        <cDV>5</cDV>
        <tpAmb>{tpAmb}</tpAmb>
        <finNFe>1</finNFe>
        <indFinal>0</indFinal>
        <indPres>1</indPres>
        <procEmi>0</procEmi>
        <verProc>ERP 1.0</verProc>
      </ide>
      <emit>
        <{issuer_tag}>{issuer_tax_id}</{issuer_tag}>
        <xNome>{issuer_name}</xNome>
        <enderEmit>
          <xLgr>Rua das Flores</xLgr>
          <nro>100</nro>
          <xBairro>Centro</xBairro>
          <cMun>3550308</cMun>
          <xMun>Sao Paulo</xMun>
          <UF>SP</UF>
          <CEP>01001000</CEP>
          <cPais>1058</cPais>
          <xPais>Brasil</xPais>
          <fone>1133334444</fone>
        </enderEmit>
        <IE>123456789012</IE>
        <CRT>3</CRT>
      </emit>
      <dest>
        <CNPJ>{RECIPIENT_CNPJ}</CNPJ>
        <xNome>Cliente Exemplo SA</xNome>
        <enderDest>
          <xLgr>Av. Brasil</xLgr>
          <nro>2000</nro>
          <xBairro>Jardim</xBairro>
          <cMun>3304557</cMun>
          <xMun>Rio de Janeiro</xMun>
          <UF>RJ</UF>
          <CEP>20040002</CEP>
          <cPais>1058</cPais>
          <xPais>Brasil</xPais>
        </enderDest>
        <indIEDest>1</indIEDest>
        <IE>987654321</IE>
      </dest>
      {delivery}
      <autXML><CNPJ>{AUTHORIZED_CNPJ}</CNPJ></autXML>
      {det}
      <total>
        <ICMSTot>
          <vBC>25.00</vBC>
          <vICMS>4.50</vICMS>
          <vBCST>0.00</vBCST>
          <vST>0.00</vST>
          <vProd>{vProd}</vProd>
          <vFrete>0.00</vFrete>
          <vSeg>0.00</vSeg>
          <vDesc>0.00</vDesc>
          <vII>0.00</vII>
          <vIPI>0.00</vIPI>
          <vPIS>0.41</vPIS>
          <vCOFINS>1.90</vCOFINS>
          <vOutro>0.00</vOutro>
          <vNF>{vNF}</vNF>
        </ICMSTot>
        <retTrib>
          <vRetPIS>0.00</vRetPIS>
        </retTrib>
      </total>
      <transp>
        <modFrete>0</modFrete>
        <transporta>
          <CNPJ>{CARRIER_CNPJ}</CNPJ>
          <xNome>Transportes Rapidos Ltda</xNome>
          <IE>111222333</IE>
          <xEnder>Rod. Anhanguera km 20</xEnder>
          <xMun>Campinas</xMun>
          <UF>SP</UF>
        </transporta>
        <vol>
          <qVol>2</qVol>
          <pesoL>10.500</pesoL>
          <pesoB>11.000</pesoB>
        </vol>
      </transp>
      <infAdic>
        <infCpl>Pedido 4512</infCpl>
      </infAdic>
    </infNFe>
    <Signature xmlns="http://www.w3.org/2000/09/xmldsig#">
      <SignatureValue>c2lnbmF0dXJl</SignatureValue>
    </Signature>
  </NFe>
  <protNFe versao="4.00">
    <infProt>
      <tpAmb>{tpAmb}</tpAmb>
      <chNFe>{chNFe}</chNFe>
      <dhRecbto>2024-03-15T10:31:12-03:00</dhRecbto>
      <nProt>135240000000001</nProt>
      <cStat>100</cStat>
      <xMotivo>Autorizado o uso da NF-e</xMotivo>
    </infProt>
  </protNFe>
</nfeProc>
"""
    return xml.encode('utf-8')


def remove_element(content: bytes, path: str) -> bytes:
    """
    Drop the element at a dot-separated local-name path, e.g.
    ``nfeProc.NFe.infNFe.emit.enderEmit``.
    """
    root = etree.fromstring(content)
    steps = path.split('.')[1:]
    element = root
    for step in steps:
        element = element.find(f'{{{NFE_NAMESPACE}}}{step}')
    element.getparent().remove(element)
    return etree.tostring(root, xml_declaration=True, encoding='UTF-8')

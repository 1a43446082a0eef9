"""
Formatting helpers for Brazilian tax identifiers and partner labels.
"""

import re
from typing import Optional

CPF_LENGTH = 11
CNPJ_LENGTH = 14


def format_tax_id(value: Optional[str]) -> Optional[str]:
    """
    Canonical form of a CNPJ or CPF: digits only.

    Returns None when the value is absent or holds no digits.
    """
    if value is None:
        return None
    digits = re.sub(r'\D', '', str(value))
    return digits or None


def mask_tax_id(tax_id: str) -> str:
    """Render a digit-only tax id with the usual CNPJ/CPF punctuation"""
    digits = format_tax_id(tax_id) or ''
    if len(digits) == CNPJ_LENGTH:
        return f"{digits[:2]}.{digits[2:5]}.{digits[5:8]}/{digits[8:12]}-{digits[12:]}"
    if len(digits) == CPF_LENGTH:
        return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"
    return digits


def format_partner_label(name: Optional[str], tax_id: Optional[str]) -> str:
    """
    Display label for a business partner: upper-cased name and masked tax id.

    >>> format_partner_label('Acme Ltda', '11222333000181')
    'ACME LTDA - 11.222.333/0001-81'
    """
    parts = []
    if name and name.strip():
        parts.append(' '.join(name.split()).upper())
    if tax_id:
        parts.append(mask_tax_id(tax_id))
    return ' - '.join(parts)

"""
NF-e processing: XML parsing, structural validation and field mapping
"""

from nfex.processors.nfe.mapper import NFeMapper
from nfex.processors.nfe.parser import parse_document
from nfex.processors.nfe.validator import (
    OPTIONAL_PATHS,
    REQUIRED_PATHS,
    StructuralValidator,
    ValidationReport,
)

__all__ = [
    'NFeMapper',
    'parse_document',
    'StructuralValidator',
    'ValidationReport',
    'REQUIRED_PATHS',
    'OPTIONAL_PATHS',
]

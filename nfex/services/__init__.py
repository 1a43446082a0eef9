from nfex.services.duplicate_checker import DuplicateChecker
from nfex.services.import_service import ImportRequest, NFeImportService
from nfex.services.partner_resolver import PartnerResolver

__all__ = ['DuplicateChecker', 'PartnerResolver', 'ImportRequest', 'NFeImportService']

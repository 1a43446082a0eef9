"""
NFeX - NF-e Import Library

Imports authorized Brazilian electronic invoices (NF-e XML) into a relational
store, together with the issuer's business partner record, in one atomic write.

Basic usage:
    from nfex import AuthorizationContext, ImportRequest, NFeImportService

    service = NFeImportService()
    result = await service.import_document(ImportRequest(
        content=open('nota.xml', 'rb').read(),
        auth=AuthorizationContext(user_id='u1', company_ids=['c1']),
        filename='nota.xml'
    ))
    print(result.natural_key.describe())
"""
from nfex.context import AuthorizationContext
from nfex.services.import_service import ImportRequest, NFeImportService

__version__ = '0.1.0'

__all__ = ['AuthorizationContext', 'ImportRequest', 'NFeImportService', '__version__']

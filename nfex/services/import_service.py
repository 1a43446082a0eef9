"""
NF-e Import Service

Single entry point for importing an authorized NF-e document:
parse -> validate -> map -> duplicate check -> partner -> persist

Every stage fails fast with a typed NFeImportError. Store access is
synchronous SQLAlchemy, so the two lookups and the final commit run in the
default executor; nothing else suspends.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from nfex.config.nfex_config import NFeXConfig
from nfex.context import AuthorizationContext
from nfex.db.connection import Database
from nfex.db.models import (
    InvoiceAdditionalInfo,
    InvoiceAuthorizedParty,
    InvoiceHeader,
    InvoiceIdentification,
    InvoiceIssuer,
    InvoiceLineItem,
    InvoiceRecipient,
    InvoiceTotals,
    InvoiceTransport,
)
from nfex.exceptions import InvalidInput, NFeImportError, PersistenceFailure
from nfex.models.nfe import ImportResult, NaturalKey, NormalizedInvoice
from nfex.persistence.unit_of_work import UnitOfWork, WriteIntent
from nfex.processors.nfe.mapper import NFeMapper
from nfex.processors.nfe.parser import parse_document
from nfex.processors.nfe.validator import StructuralValidator
from nfex.services.duplicate_checker import DuplicateChecker
from nfex.services.partner_resolver import DEFAULT_REGISTRATION_TYPE, PartnerResolver

logger = logging.getLogger(__name__)


class ImportStage(str, Enum):
    """Import pipeline stages"""
    RECEIVE = "receive"
    PARSE = "parse"
    VALIDATE = "validate"
    MAP = "map"
    DUPLICATE_CHECK = "duplicate_check"
    RESOLVE_PARTNER = "resolve_partner"
    PERSIST = "persist"
    COMPLETE = "complete"


@dataclass
class ImportRequest:
    """
    One document to import.

    Attributes:
        content: Raw XML bytes
        auth: Authorization context of the caller
        filename: Original filename, stored beside the document
        company_id: Owning company; must be one of auth.company_ids. Defaults
            to the first authorized company.
    """
    content: bytes
    auth: AuthorizationContext
    filename: Optional[str] = None
    company_id: Optional[str] = None


@dataclass
class ImportContext:
    """State carried through the stages of one import"""
    request: ImportRequest
    company_id: Optional[str] = None
    text: Optional[str] = None
    tree: Optional[Dict[str, Any]] = None
    invoice: Optional[NormalizedInvoice] = None
    key: Optional[NaturalKey] = None
    partner_intent: Optional[WriteIntent] = None
    missing_optional: List[str] = field(default_factory=list)
    current_stage: ImportStage = ImportStage.RECEIVE
    stage_times: Dict[str, int] = field(default_factory=dict)


def _address_columns(address, include_phone: bool = True) -> Dict[str, Any]:
    columns = address.model_dump()
    if not include_phone:
        columns.pop('phone', None)
    return columns


def build_unit_of_work(
    invoice: NormalizedInvoice,
    key: NaturalKey,
    user_id: str,
    source_xml: str,
    source_filename: Optional[str] = None,
    partner_intent: Optional[WriteIntent] = None
) -> UnitOfWork:
    """
    Turn a normalized invoice into its ordered write batch.

    Order: header, identification, issuer, partner, recipient, authorized
    party, line items, transport, totals, additional info.
    """
    common = {**key.as_dict(), 'created_by': user_id}
    ide = invoice.identification

    header = WriteIntent(InvoiceHeader, {
        **common,
        'issued_at': ide.issued_at,
        'issuer_tax_id': invoice.issuer.tax_id,
        'issuer_name': invoice.issuer.name,
        'recipient_tax_id': invoice.recipient.tax_id,
        'recipient_name': invoice.recipient.name,
        'products_total': invoice.totals.products_value,
        'invoice_total': invoice.totals.invoice_value,
        'protocol_number': invoice.protocol.protocol_number,
        'protocol_status': invoice.protocol.status,
        'protocol_received_at': invoice.protocol.received_at,
        'protocol_reason': invoice.protocol.reason,
        'source_xml': source_xml,
        'source_filename': source_filename,
    })

    identification = WriteIntent(InvoiceIdentification, {
        **common,
        **ide.model_dump(exclude={'invoice_number', 'series', 'environment'}),
    })

    issuer = WriteIntent(InvoiceIssuer, {
        **common,
        **invoice.issuer.model_dump(exclude={'address'}),
        **_address_columns(invoice.issuer.address),
    })

    recipient = WriteIntent(InvoiceRecipient, {
        **common,
        **invoice.recipient.model_dump(exclude={'address'}),
        **_address_columns(invoice.recipient.address, include_phone=False),
    })

    line_items = [
        WriteIntent(InvoiceLineItem, {**common, **item.model_dump()})
        for item in invoice.line_items
    ]

    return (
        UnitOfWork()
        .add(header)
        .add(identification)
        .add(issuer)
        .add_optional(partner_intent)
        .add(recipient)
        .add(WriteIntent(InvoiceAuthorizedParty, {**common, **invoice.authorized_party.model_dump()}))
        .extend(line_items)
        .add(WriteIntent(InvoiceTransport, {**common, **invoice.transport.model_dump()}))
        .add(WriteIntent(InvoiceTotals, {**common, **invoice.totals.model_dump()}))
        .add(WriteIntent(InvoiceAdditionalInfo, {**common, **invoice.additional_info.model_dump()}))
    )


class NFeImportService:
    """
    Imports NF-e documents on behalf of an authorized company.

    Usage:
        service = NFeImportService(db)
        result = await service.import_document(ImportRequest(
            content=xml_bytes,
            auth=AuthorizationContext(user_id='u1', company_ids=['c1']),
            filename='nota.xml'
        ))
    """

    def __init__(self, db: Optional[Database] = None, config: Optional[NFeXConfig] = None):
        self.config = config or NFeXConfig()
        self.db = db or Database(self.config)
        self.validator = StructuralValidator()
        self.mapper = NFeMapper()
        self.duplicate_checker = DuplicateChecker(self.db)
        self.partner_resolver = PartnerResolver(
            self.db,
            registration_type=self.config.get('import.default_registration_type', DEFAULT_REGISTRATION_TYPE)
        )

    async def import_document(self, request: ImportRequest) -> ImportResult:
        """
        Import one NF-e document atomically.

        Args:
            request: Document bytes plus authorization

        Returns:
            ImportResult summarizing what was written

        Raises:
            InvalidInput: No bytes, undecodable bytes, or no usable company
            DocumentParseError: Malformed XML
            MissingRequiredField: A mandatory block or value is absent
            InvalidFieldValue: A value cannot be coerced to its type
            DuplicateInvoice: The natural key is already recorded
            PersistenceFailure: The atomic write did not succeed
        """
        ctx = ImportContext(request=request)
        start_time = time.time()

        try:
            self._run_stage(ctx, ImportStage.RECEIVE, self._stage_receive)
            self._run_stage(ctx, ImportStage.PARSE, self._stage_parse)
            self._run_stage(ctx, ImportStage.VALIDATE, self._stage_validate)
            self._run_stage(ctx, ImportStage.MAP, self._stage_map)
            await self._run_store_stage(ctx, ImportStage.DUPLICATE_CHECK, self._stage_duplicate_check)
            await self._run_store_stage(ctx, ImportStage.RESOLVE_PARTNER, self._stage_resolve_partner)
            line_count = await self._run_store_stage(ctx, ImportStage.PERSIST, self._stage_persist)
        except PersistenceFailure as e:
            logger.error(f"Import failed at stage {ctx.current_stage.value}: {str(e)}")
            raise
        except NFeImportError as e:
            logger.warning(f"Import rejected at stage {ctx.current_stage.value}: {str(e)}")
            raise

        ctx.current_stage = ImportStage.COMPLETE
        total_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Imported invoice {ctx.key.describe()} with {line_count} line items in {total_ms}ms"
            f" (stages: {ctx.stage_times})"
        )

        return ImportResult(
            natural_key=ctx.key,
            line_item_count=line_count,
            partner_created=ctx.partner_intent is not None,
            missing_optional=ctx.missing_optional,
            stage_times=dict(ctx.stage_times),
        )

    def _run_stage(self, ctx: ImportContext, stage: ImportStage, handler):
        ctx.current_stage = stage
        stage_start = time.time()
        result = handler(ctx)
        ctx.stage_times[stage.value] = int((time.time() - stage_start) * 1000)
        return result

    async def _run_store_stage(self, ctx: ImportContext, stage: ImportStage, handler):
        # SQLAlchemy is sync, so store stages run in the default executor
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._run_stage, ctx, stage, handler)

    def _stage_receive(self, ctx: ImportContext) -> None:
        request = ctx.request
        if not request.content:
            raise InvalidInput("No document content supplied")

        try:
            text = request.content.decode('utf-8')
        except UnicodeDecodeError as e:
            raise InvalidInput("Document is not valid UTF-8", {'reason': str(e)}) from e

        if not text.strip():
            raise InvalidInput("Document content is blank")

        company_id = request.auth.resolve_company(request.company_id)
        if company_id is None:
            if request.company_id is not None:
                raise InvalidInput(
                    "Caller is not authorized for the requested company",
                    {'company_id': request.company_id}
                )
            raise InvalidInput("Caller has no authorized company")

        ctx.text = text
        ctx.company_id = company_id

    def _stage_parse(self, ctx: ImportContext) -> None:
        ctx.tree = parse_document(ctx.request.content, ctx.request.filename)

    def _stage_validate(self, ctx: ImportContext) -> None:
        report = self.validator.validate(ctx.tree)
        ctx.missing_optional = report.missing_optional

    def _stage_map(self, ctx: ImportContext) -> None:
        ctx.invoice = self.mapper.map(ctx.tree)
        ctx.key = ctx.invoice.natural_key(ctx.company_id)

    def _stage_duplicate_check(self, ctx: ImportContext) -> None:
        self.duplicate_checker.check(ctx.key)

    def _stage_resolve_partner(self, ctx: ImportContext) -> None:
        ctx.partner_intent = self.partner_resolver.resolve(
            ctx.invoice.issuer,
            ctx.company_id,
            ctx.request.auth.user_id
        )

    def _stage_persist(self, ctx: ImportContext) -> int:
        unit_of_work = build_unit_of_work(
            ctx.invoice,
            ctx.key,
            ctx.request.auth.user_id,
            ctx.text,
            ctx.request.filename,
            ctx.partner_intent
        )
        unit_of_work.commit(self.db)
        return len(ctx.invoice.line_items)

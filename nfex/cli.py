"""
NFeX CLI commands

This module provides the command-line interface for importing and browsing
NF-e documents.
"""

import asyncio
from pathlib import Path

import click

from nfex.config.nfex_config import NFeXConfig
from nfex.context import AuthorizationContext
from nfex.db.connection import Database
from nfex.db.repository import BusinessPartnerRepository, InvoiceRepository
from nfex.exceptions import NFeImportError
from nfex.services.import_service import ImportRequest, NFeImportService
from nfex.utils.formatting import mask_tax_id
from nfex.utils.logging_setup import configure_logging


def _load_config(ctx) -> NFeXConfig:
    options = ctx.obj or {}
    if options.get('config'):
        config = NFeXConfig.from_file(options['config'])
    else:
        config = NFeXConfig()
    if options.get('db_path'):
        config.set('database.type', 'sqlite')
        config.set('database.path', options['db_path'])
    configure_logging(config, options.get('log_level'))
    return config


@click.group()
@click.option('--config', type=click.Path(exists=True), help='Path to configuration file')
@click.option('--db-path', type=click.Path(), help='SQLite database path')
@click.option('--log-level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']), help='Logging level')
@click.pass_context
def cli(ctx, config, db_path, log_level):
    """NFeX command-line interface"""
    ctx.obj = {'config': config, 'db_path': db_path, 'log_level': log_level}


@cli.command()
@click.pass_context
def init(ctx):
    """Create the database tables"""
    config = _load_config(ctx)
    db = Database(config)
    try:
        db.create_tables()
    finally:
        db.close()
    click.echo(f"Database initialized ({config.get('database.type')})")


@cli.command('import')
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@click.option('--user', 'user_id', required=True, help='Acting user id')
@click.option('--company', 'company_ids', multiple=True, required=True, help='Authorized company id (repeatable)')
@click.option('--as-company', 'as_company', help='Import on behalf of this authorized company')
@click.pass_context
def import_file(ctx, file, user_id, company_ids, as_company):
    """Import an NF-e XML file"""
    config = _load_config(ctx)
    db = Database(config)
    path = Path(file)
    request = ImportRequest(
        content=path.read_bytes(),
        auth=AuthorizationContext(user_id=user_id, company_ids=list(company_ids)),
        filename=path.name,
        company_id=as_company,
    )
    try:
        result = asyncio.run(NFeImportService(db, config).import_document(request))
    except NFeImportError as e:
        click.echo(f'Error: {e.message}', err=True)
        ctx.exit(1)
    finally:
        db.close()

    key = result.natural_key
    click.echo(f'Imported invoice {key.invoice_number}/{key.series} ({key.access_key}) for company {key.company_id}')
    click.echo(f'Line items: {result.line_item_count}')
    if result.partner_created:
        click.echo('New business partner registered')
    for path_name in result.missing_optional:
        click.echo(f'Optional block absent: {path_name}')


@cli.command('list')
@click.option('--company', 'company_id', required=True, help='Company id')
@click.option('--limit', type=int, default=50, show_default=True, help='Maximum number of invoices')
@click.option('--issuer', 'issuer_tax_id', help='Only invoices from this issuer CNPJ/CPF')
@click.pass_context
def list_invoices(ctx, company_id, limit, issuer_tax_id):
    """List imported invoices of a company"""
    db = Database(_load_config(ctx))
    try:
        repository = InvoiceRepository(db)
        if issuer_tax_id:
            invoices = repository.list_by_issuer(company_id, issuer_tax_id, limit=limit)
        else:
            invoices = repository.list_for_company(company_id, limit=limit)
    finally:
        db.close()

    if not invoices:
        click.echo('No invoices found')
        return

    for invoice in invoices:
        click.echo(
            f"{invoice.invoice_number:>9}/{invoice.series:<3} "
            f"{invoice.issued_at:%Y-%m-%d} {invoice.access_key} "
            f"{mask_tax_id(invoice.issuer_tax_id)} {invoice.invoice_total}"
        )


@cli.command()
@click.argument('access_key')
@click.option('--company', 'company_id', required=True, help='Company id')
@click.pass_context
def show(ctx, access_key, company_id):
    """Show one imported invoice"""
    db = Database(_load_config(ctx))
    try:
        invoice = InvoiceRepository(db).get_by_access_key(company_id, access_key)
        partner = None
        if invoice is not None:
            partner = BusinessPartnerRepository(db).get_by_tax_id(company_id, invoice.issuer_tax_id)
    finally:
        db.close()

    if invoice is None:
        click.echo(f'Error: invoice {access_key} not found for company {company_id}', err=True)
        ctx.exit(1)

    click.echo(f'Invoice:   {invoice.invoice_number} series {invoice.series} (environment {invoice.environment})')
    click.echo(f'Access key: {invoice.access_key}')
    click.echo(f'Issued at: {invoice.issued_at}')
    click.echo(f'Issuer:    {partner.label if partner else invoice.issuer_name}')
    click.echo(f'Recipient: {invoice.recipient_name or "-"}')
    click.echo(f'Protocol:  {invoice.protocol_number or "-"} ({invoice.protocol_status})')
    click.echo(f'Total:     {invoice.invoice_total}')
    click.echo('Items:')
    for item in invoice.line_items:
        click.echo(f'  {item.item_number:>3} {item.product_code or "":<15} {item.quantity} x {item.unit_value} = {item.total_value}  {item.description or ""}')


if __name__ == '__main__':
    cli()

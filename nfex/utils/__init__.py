from nfex.utils.formatting import format_tax_id, format_partner_label, mask_tax_id

__all__ = ['format_tax_id', 'format_partner_label', 'mask_tax_id']

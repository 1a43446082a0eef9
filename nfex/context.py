from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class AuthorizationContext:
    """
    Context object carrying the already-authorized caller through an import.

    Attributes:
        user_id: Identifier of the acting user, recorded on every created row
        company_ids: Companies the caller may import on behalf of, in the order
            the authorization layer resolved them
    """
    user_id: str
    company_ids: List[str] = field(default_factory=list)

    def resolve_company(self, company_id: Optional[str] = None) -> Optional[str]:
        """
        Pick the owning company for an import.

        Returns the explicit company when it is authorized, the first authorized
        company when none is requested, and None otherwise.
        """
        if company_id is not None:
            return company_id if self.can_act_for(company_id) else None
        return self.company_ids[0] if self.company_ids else None

    def can_act_for(self, company_id: str) -> bool:
        """Check if the caller may act on behalf of a company."""
        return company_id in self.company_ids

"""
NF-e Structural Validator

Checks that every mandatory substructure of a parsed NF-e tree is present
before any field is read from it. The required and optional paths are plain
data, so adding a mandatory block means editing a list, not control flow.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from nfex.exceptions import MissingRequiredField

logger = logging.getLogger(__name__)

INF_NFE = 'nfeProc.NFe.infNFe'

REQUIRED_PATHS: List[str] = [
    'nfeProc',
    'nfeProc.NFe',
    INF_NFE,
    f'{INF_NFE}.ide',
    f'{INF_NFE}.emit',
    f'{INF_NFE}.emit.enderEmit',
    f'{INF_NFE}.dest',
    f'{INF_NFE}.dest.enderDest',
    f'{INF_NFE}.autXML',
    f'{INF_NFE}.det',
    f'{INF_NFE}.transp',
    f'{INF_NFE}.transp.transporta',
    f'{INF_NFE}.transp.vol',
    f'{INF_NFE}.total',
    f'{INF_NFE}.total.ICMSTot',
    f'{INF_NFE}.infAdic',
    'nfeProc.protNFe',
    'nfeProc.protNFe.infProt',
]

OPTIONAL_PATHS: List[str] = [
    f'{INF_NFE}.avulsa',
    f'{INF_NFE}.retirada',
    f'{INF_NFE}.entrega',
]


def is_absent(value: Any) -> bool:
    """A node is absent when missing, None, an empty string or an empty list"""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, list):
        return len(value) == 0
    return False


def find_missing(tree: Dict[str, Any], path: str) -> Optional[str]:
    """
    Walk a dot-separated path through the tree.

    Returns None when the whole path exists, otherwise the shortest prefix of
    the path that is absent. Lists are walked through their first element.
    """
    node: Any = tree
    walked: List[str] = []
    for segment in path.split('.'):
        walked.append(segment)
        if isinstance(node, list):
            node = node[0] if node else None
        value = node.get(segment) if isinstance(node, dict) else None
        if is_absent(value):
            return '.'.join(walked)
        node = value
    return None


@dataclass
class ValidationReport:
    """Outcome of a successful structural check"""
    checked_paths: int = 0
    missing_optional: List[str] = field(default_factory=list)


class StructuralValidator:
    """
    Validates the shape of a parsed NF-e tree.

    Required paths fail fast: the first absent one raises MissingRequiredField
    naming the highest missing ancestor. Optional paths are only recorded.
    """

    def __init__(
        self,
        required_paths: Optional[Sequence[str]] = None,
        optional_paths: Optional[Sequence[str]] = None
    ):
        self.required_paths = list(required_paths if required_paths is not None else REQUIRED_PATHS)
        self.optional_paths = list(optional_paths if optional_paths is not None else OPTIONAL_PATHS)

    def validate(self, tree: Dict[str, Any]) -> ValidationReport:
        """
        Check the tree against the configured paths.

        Args:
            tree: Parsed document tree

        Returns:
            ValidationReport listing the absent optional paths

        Raises:
            MissingRequiredField: On the first absent required path
        """
        report = ValidationReport()

        for path in self.required_paths:
            missing = find_missing(tree, path)
            if missing:
                logger.info(f"Document rejected, required path missing: {missing}")
                raise MissingRequiredField(missing)
            report.checked_paths += 1

        for path in self.optional_paths:
            missing = find_missing(tree, path)
            if missing:
                logger.debug(f"Optional path absent: {path}")
                report.missing_optional.append(path)
            report.checked_paths += 1

        return report

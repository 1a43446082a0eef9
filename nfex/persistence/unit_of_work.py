"""
Unit of Work

Collects the rows of one import as write intents and commits them together.
Either every intent is written or none is: any storage error rolls the whole
batch back and surfaces as PersistenceFailure.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Type

from sqlalchemy.exc import SQLAlchemyError

from nfex.db.connection import Database
from nfex.exceptions import PersistenceFailure

logger = logging.getLogger(__name__)


@dataclass
class WriteIntent:
    """One row to insert: a model class and its column values"""
    model: Type
    values: Dict[str, Any] = field(default_factory=dict)

    def build(self):
        return self.model(**self.values)

    def describe(self) -> str:
        return self.model.__tablename__


class UnitOfWork:
    """
    Ordered batch of write intents executed in a single transaction.

    Intents are flushed one by one in insertion order, so rows that depend on
    an earlier row (child tables on the invoice header) are always written
    after it.
    """

    def __init__(self):
        self.intents: List[WriteIntent] = []

    def __len__(self) -> int:
        return len(self.intents)

    def add(self, intent: WriteIntent) -> 'UnitOfWork':
        self.intents.append(intent)
        return self

    def add_optional(self, intent: Optional[WriteIntent]) -> 'UnitOfWork':
        """Add an intent unless it is None"""
        if intent is not None:
            self.intents.append(intent)
        return self

    def extend(self, intents: Iterable[WriteIntent]) -> 'UnitOfWork':
        for intent in intents:
            self.add(intent)
        return self

    def commit(self, db: Database) -> int:
        """
        Write every intent atomically.

        Args:
            db: Database to write to

        Returns:
            Number of rows written

        Raises:
            PersistenceFailure: If the batch is empty or any write fails; in the
                latter case nothing from the batch is kept
        """
        if not self.intents:
            raise PersistenceFailure("empty write batch")

        try:
            with db.transaction() as session:
                for intent in self.intents:
                    session.add(intent.build())
                    session.flush()
        except SQLAlchemyError as e:
            logger.debug(f"Rolled back batch of {len(self.intents)} rows: {str(e)}")
            raise PersistenceFailure(str(e), e) from e
        except (TypeError, ValueError, OverflowError) as e:
            # Rows the model or the driver refuses before the database sees them
            logger.debug(f"Rolled back batch of {len(self.intents)} rows: {str(e)}")
            raise PersistenceFailure(str(e), e) from e

        logger.debug(f"Committed batch: {', '.join(intent.describe() for intent in self.intents)}")
        return len(self.intents)

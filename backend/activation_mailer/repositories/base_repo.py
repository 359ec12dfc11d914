"""
Base repository with strict per-shop isolation.

CRITICAL: All shop-scoped reads and writes carry the shop_id of the
verified request. A record owned by another shop is never returned.
"""

import logging
from typing import TypeVar, Generic, Optional
from abc import ABC, abstractmethod

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from activation_mailer.db_base import Base

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Base)


class ShopIsolationError(Exception):
    """Raised when a record belonging to another shop is accessed."""
    pass


class ShopScopedRepository(Generic[T], ABC):
    """
    Base repository with mandatory shop_id enforcement.

    All queries are automatically scoped by shop_id.
    """

    def __init__(self, db_session: Session, shop_id: str):
        """
        Initialize repository with shop context.

        Args:
            db_session: SQLAlchemy database session
            shop_id: Shop identifier from the verified request context

        Raises:
            ValueError: If shop_id is empty or None
        """
        if not shop_id:
            raise ValueError("shop_id is required and cannot be empty")

        self.db_session = db_session
        self.shop_id = str(shop_id)
        self._model_class = self._get_model_class()

    @abstractmethod
    def _get_model_class(self) -> type[T]:
        """Return the SQLAlchemy model class for this repository."""
        pass

    def _scoped_query(self):
        return self.db_session.query(self._model_class).filter(
            self._model_class.shop_id == self.shop_id
        )

    def get_by_id(self, entity_id: str) -> Optional[T]:
        """Get entity by ID, scoped to shop."""
        return self._scoped_query().filter(
            self._model_class.id == str(entity_id)
        ).first()

    def get_owned(self, entity_id: str) -> Optional[T]:
        """
        Get entity by ID and verify it belongs to this shop.

        Unlike get_by_id, a record that exists under another shop is an
        error rather than a miss.

        Raises:
            ShopIsolationError: If the record belongs to another shop
        """
        entity = self.db_session.query(self._model_class).filter(
            self._model_class.id == str(entity_id)
        ).first()
        if entity is None:
            return None

        if str(entity.shop_id) != self.shop_id:
            logger.error(
                "Shop ownership mismatch detected",
                extra={
                    "entity_type": self._model_class.__name__,
                    "entity_id": str(entity_id),
                    "owner_shop_id": str(entity.shop_id),
                    "current_shop_id": self.shop_id,
                }
            )
            raise ShopIsolationError(
                f"{self._model_class.__name__} {entity_id} does not belong to shop {self.shop_id}"
            )
        return entity

    def find_first(self, **filters) -> Optional[T]:
        """Find the first entity matching equality filters, scoped to shop."""
        query = self._scoped_query()
        for column, value in filters.items():
            query = query.filter(getattr(self._model_class, column) == value)
        return query.first()

    def create(self, entity_data: dict) -> T:
        """
        Create new entity with shop_id enforced.

        SECURITY: shop_id from entity_data is IGNORED.
        Repository shop_id is ALWAYS used.
        """
        if "shop_id" in entity_data:
            removed = entity_data.pop("shop_id")
            if str(removed) != self.shop_id:
                logger.warning(
                    "shop_id found in entity_data, removing it",
                    extra={
                        "repository_shop_id": self.shop_id,
                        "removed_shop_id": str(removed),
                    }
                )

        entity_data["shop_id"] = self.shop_id
        entity = self._model_class(**entity_data)
        self.db_session.add(entity)

        try:
            self.db_session.commit()
            self.db_session.refresh(entity)
        except SQLAlchemyError as e:
            self.db_session.rollback()
            logger.error(
                "Failed to create entity",
                extra={
                    "shop_id": self.shop_id,
                    "entity_type": self._model_class.__name__,
                    "error": str(e),
                }
            )
            raise

        logger.info(
            "Entity created",
            extra={
                "shop_id": self.shop_id,
                "entity_id": getattr(entity, "id", None),
                "entity_type": self._model_class.__name__,
            }
        )
        return entity

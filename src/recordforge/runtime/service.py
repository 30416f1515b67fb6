"""
CRUD service.

Request-level operations composing permission checks, payload validation and
persistence for one model. Records leaving the service never carry password
fields.
"""

from __future__ import annotations

import builtins
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from recordforge.core.errors import PermissionDeniedError
from recordforge.runtime.repository import PersistenceEngine, Record
from recordforge.runtime.validator import Validator
from recordforge.specs.entity import ModelSpec
from recordforge.specs.query import QueryParams

logger = logging.getLogger(__name__)

# (model_name, verb, policy_token) -> allowed?
PermissionChecker = Callable[[str, str, str], bool]


# =============================================================================
# Password Handling
# =============================================================================


def strip_password_fields(model: ModelSpec, records: Iterable[Record]) -> list[Record]:
    """Return copies of the records without password-typed columns."""
    hidden = set(model.password_fields)
    if not hidden:
        return list(records)
    return [{k: v for k, v in record.items() if k not in hidden} for record in records]


def drop_empty_passwords(model: ModelSpec, payload: Mapping[str, Any]) -> dict[str, Any]:
    """
    Remove password keys set to None or "" from an update payload.

    An empty password in an edit form means "keep the current one".
    """
    hidden = set(model.password_fields)
    return {k: v for k, v in payload.items() if not (k in hidden and v in (None, ""))}


# =============================================================================
# Service
# =============================================================================


class CRUDService:
    """
    Generic CRUD service for one model.

    Provides create, read, update, delete, list and bulk operations on top of
    a :class:`PersistenceEngine` whose schema has already been created.
    """

    def __init__(
        self,
        model_name: str,
        engine: PersistenceEngine,
        validator: Validator,
        permission_checker: PermissionChecker | None = None,
    ):
        self.model_name = model_name
        self.engine = engine
        self.validator = validator
        self.permission_checker = permission_checker
        self.model: ModelSpec = validator.schema.require_model(model_name)

    def _check(self, verb: str) -> None:
        if self.permission_checker is None:
            return
        policy = self.model.permissions.policy_for(verb)
        if not self.permission_checker(self.model_name, verb, policy):
            logger.info("Permission denied: %s %s (policy=%s)", verb, self.model_name, policy)
            raise PermissionDeniedError(self.model_name, verb)

    def _public(self, record: Record) -> Record:
        return strip_password_fields(self.model, [record])[0]

    def create(self, data: Mapping[str, Any]) -> Record:
        """
        Validate and insert a record, returning it as stored.

        Raises:
            PermissionDeniedError, FieldValidationError, ConstraintViolationError
        """
        self._check("create")
        return self._create(data)

    def _create(self, data: Mapping[str, Any]) -> Record:
        self.validator.validate_create(self.model_name, data)
        new_id = self.engine.create(self.model_name, data)
        return self._public(self.engine.get(self.model_name, new_id))

    def read(self, id: Any) -> Record:
        """
        Read a record by primary key.

        Raises:
            RecordNotFoundError: If no row matches
        """
        self._check("read")
        return self._public(self.engine.get(self.model_name, id))

    def update(self, id: Any, data: Mapping[str, Any]) -> Record:
        """
        Apply a partial update and return the record as stored.

        Empty password values are dropped before validation. A payload that
        ends up empty leaves the row untouched.

        Raises:
            RecordNotFoundError: If no row matches
        """
        self._check("update")
        payload = drop_empty_passwords(self.model, data)
        self.validator.validate_update(self.model_name, payload)
        if payload:
            self.engine.update(self.model_name, id, payload)
        return self._public(self.engine.get(self.model_name, id))

    def delete(self, id: Any) -> bool:
        """Delete a record. Returns False if it did not exist."""
        self._check("delete")
        return self.engine.delete(self.model_name, id)

    def list(self, params: QueryParams | None = None) -> dict[str, Any]:
        """
        List records with pagination metadata.

        Returns:
            {"items": [...], "meta": {page, page_size, total_count, total_pages}}
        """
        self._check("read")
        params = params or QueryParams()
        items = self.engine.query(self.model_name, params)
        total = self.engine.count(self.model_name, params.filters, params.search)

        if params.page_size > 0:
            total_pages = -(-total // params.page_size)
        else:
            total_pages = 1 if total else 0

        return {
            "items": strip_password_fields(self.model, items),
            "meta": {
                "page": params.page,
                "page_size": params.page_size,
                "total_count": total,
                "total_pages": total_pages,
            },
        }

    def bulk_create(self, items: Iterable[Mapping[str, Any]]) -> builtins.list[Record]:
        """
        Create several records in order, stopping at the first failure.

        Records created before the failure stay committed.
        """
        self._check("create")
        return [self._create(item) for item in items]

    def bulk_delete(self, ids: Iterable[Any]) -> int:
        """Delete several records. Returns how many existed."""
        self._check("delete")
        return sum(1 for id in ids if self.engine.delete(self.model_name, id))

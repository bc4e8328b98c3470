"""
Active Record base model for neutrondb.

Subclasses declare their table and a fixed set of typed columns as pydantic
fields; field declaration order is column order. Query state lives in
`QueryBuilder`, never on the record, so every declared field is persisted.

    class User(Model):
        __table__ = "users"

        id: Optional[int] = None
        email: str
        role: Optional[str] = None

    User.bind(connection)
    user = User(email="foo@example.com")
    user.save()                      # INSERT, sets user.id
    user.role = "admin"
    user.save()                      # UPDATE ... WHERE id = :id
    User.where("role", "=", "admin").exists()

A record is persisted iff its primary-key field is not None; `save()` routes
to INSERT or UPDATE on that alone.
"""
from __future__ import annotations

from typing import Any, ClassVar, Dict, List, Mapping, Optional, Type, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, PrivateAttr

from neutrondb.domain.query import QueryBuilder, validate_identifier
from neutrondb.exceptions import ConnectionError, ExecutionError, ValidationError
from neutrondb.infrastructure.connection import Connection
from neutrondb.utils.logging import get_logger

log = get_logger(__name__)

M = TypeVar("M", bound="Model")


class Model(BaseModel):
    """
    Base class for table-backed records.

    Class attributes
    ----------------
    __table__ : str
        Table name (required on concrete models).
    __primary_key__ : str
        Primary-key field name, default ``id``. Must be a declared field.
    __connection__ : Connection | None
        Class-level connection set with `bind()`; used when neither an explicit
        connection nor the record's own connection is available.
    """

    __table__: ClassVar[str]
    __primary_key__: ClassVar[str] = "id"
    __connection__: ClassVar[Optional[Connection]] = None

    model_config = ConfigDict(
        validate_assignment=True,
        extra="ignore",
        arbitrary_types_allowed=False,
    )

    _connection: Optional[Connection] = PrivateAttr(default=None)

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        table = getattr(cls, "__table__", None)
        if table is None:
            # Abstract intermediate model.
            return
        validate_identifier(table, "table")
        primary_key = validate_identifier(cls.__primary_key__, "primary key")
        for name in cls.model_fields:
            validate_identifier(name, "column")
        if primary_key not in cls.model_fields:
            raise ValidationError(
                f"{cls.__name__} declares primary key {primary_key!r} but has no such field"
            )

    # -- connection handling ----------------------------------------------------

    @classmethod
    def bind(cls, connection: Optional[Connection]) -> None:
        """Set (or with None, clear) the default connection for this model class."""
        cls.__connection__ = connection

    @classmethod
    def _class_connection(cls, connection: Optional[Connection] = None) -> Connection:
        resolved = connection or cls.__connection__
        if resolved is None:
            raise ConnectionError(
                f"No database connection available for {cls.__name__}; "
                f"pass connection= or call {cls.__name__}.bind(connection)"
            )
        return resolved

    def _resolve_connection(self, connection: Optional[Connection] = None) -> Connection:
        return type(self)._class_connection(connection or self._connection)

    @classmethod
    def _hydrate(cls: Type[M], row: Mapping[str, Any], connection: Connection) -> M:
        try:
            record = cls.model_validate(dict(row))
        except pydantic.ValidationError as exc:
            raise ExecutionError(
                f"Row from table {cls.__table__} does not fit {cls.__name__}: {exc}",
                table=cls.__table__,
            ) from exc
        record._connection = connection
        return record

    # -- query entry points -----------------------------------------------------

    @classmethod
    def query(cls: Type[M], connection: Optional[Connection] = None) -> QueryBuilder[M]:
        """A fresh builder with empty query state."""
        return QueryBuilder(cls, cls._class_connection(connection))

    @classmethod
    def where(
        cls: Type[M],
        column: str,
        operator: str,
        value: Any,
        connection: Optional[Connection] = None,
    ) -> QueryBuilder[M]:
        return cls.query(connection).where(column, operator, value)

    @classmethod
    def find(cls: Type[M], id: Any, connection: Optional[Connection] = None) -> Optional[M]:
        """Record whose primary key equals `id`, or None."""
        return cls.query(connection).where(cls.__primary_key__, "=", id).one()

    @classmethod
    def all(cls: Type[M], connection: Optional[Connection] = None) -> List[M]:
        return cls.query(connection).get()

    # -- persistence ------------------------------------------------------------

    @property
    def primary_key(self) -> Any:
        return getattr(self, self.__primary_key__)

    @property
    def is_persisted(self) -> bool:
        return self.primary_key is not None

    def _column_values(self) -> Dict[str, Any]:
        """Every non-key column in declaration order."""
        values = self.model_dump(mode="python")
        values.pop(self.__primary_key__, None)
        return values

    def _execute(self, connection: Connection, sql: str, params: Dict[str, Any]) -> int:
        try:
            return connection.execute(sql, params)
        except ExecutionError as exc:
            raise ExecutionError(
                f"Statement on table {self.__table__} failed: {exc.message}",
                statement=sql,
                table=self.__table__,
            ) from exc

    def save(self: M, connection: Optional[Connection] = None) -> M:
        """
        INSERT when the primary key is unset, UPDATE otherwise.

        On INSERT the backend-assigned identifier is written back to the
        primary-key field. An UPDATE matching no rows is not an error. If the
        statement fails the record is left untouched.
        """
        conn = self._resolve_connection(connection)
        if self.is_persisted:
            self._update(conn)
        else:
            self._insert(conn)
        self._connection = conn
        return self

    def _insert(self, conn: Connection) -> None:
        table = self.__table__
        values = self._column_values()
        if values:
            columns = ", ".join(conn.quote(name) for name in values)
            markers = ", ".join(conn.placeholder(name) for name in values)
            sql = f"INSERT INTO {conn.quote(table)} ({columns}) VALUES ({markers})"
        else:
            sql = conn.backend.insert_default_values(table)
        self._execute(conn, sql, values)
        new_id = conn.last_insert_id()
        setattr(self, self.__primary_key__, new_id)
        log.debug("Inserted record", extra={"table": table, "id": new_id})

    def _update(self, conn: Connection) -> None:
        table, key = self.__table__, self.__primary_key__
        values = self._column_values()
        if not values:
            return
        assignments = ", ".join(f"{conn.quote(name)} = {conn.placeholder(name)}" for name in values)
        params = dict(values)
        params[key] = self.primary_key
        sql = (
            f"UPDATE {conn.quote(table)} SET {assignments} "
            f"WHERE {conn.quote(key)} = {conn.placeholder(key)}"
        )
        affected = self._execute(conn, sql, params)
        log.debug("Updated record", extra={"table": table, "id": self.primary_key, "affected": affected})

    def delete(self: M, connection: Optional[Connection] = None) -> M:
        """
        DELETE the row matching the primary key, then clear the key.

        Deleting a record that was never saved does nothing.
        """
        conn = self._resolve_connection(connection)
        if not self.is_persisted:
            return self
        table, key = self.__table__, self.__primary_key__
        sql = f"DELETE FROM {conn.quote(table)} WHERE {conn.quote(key)} = {conn.placeholder(key)}"
        affected = self._execute(conn, sql, {key: self.primary_key})
        log.debug("Deleted record", extra={"table": table, "id": self.primary_key, "affected": affected})
        setattr(self, key, None)
        return self


__all__ = ["Model"]

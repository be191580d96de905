"""Backend query interface shared by the hosted and local strategies."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..core.exceptions import ExternalServiceError


@dataclass
class BackendError:
    """Error reported by a backend call."""

    message: str
    code: Optional[str] = None
    status: Optional[int] = None


@dataclass
class QueryResult:
    """Outcome of a backend call: ``data`` or ``error``, never an exception."""

    data: Any = None
    error: Optional[BackendError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def rows(self) -> List[Dict[str, Any]]:
        if self.data is None:
            return []
        if isinstance(self.data, list):
            return self.data
        return [self.data]

    def first(self) -> Optional[Dict[str, Any]]:
        rows = self.rows()
        return rows[0] if rows else None

    def raise_for_error(self) -> "QueryResult":
        if self.error is not None:
            raise ExternalServiceError(
                self.error.message,
                details={"code": self.error.code, "status": self.error.status},
            )
        return self

    @classmethod
    def failure(cls, message: str, code: str = None, status: int = None) -> "QueryResult":
        return cls(error=BackendError(message=message, code=code, status=status))


@dataclass
class TableQuery:
    """Chainable description of one table operation.

    Built with ``backend.table(name)`` and run with ``await query.execute()``.
    """

    backend: "Backend"
    table: str
    operation: str = "select"
    columns: str = "*"
    payload: Any = None
    filters: List[Tuple[str, Any]] = field(default_factory=list)
    ordering: List[Tuple[str, bool]] = field(default_factory=list)
    row_limit: Optional[int] = None

    def select(self, columns: str = "*") -> "TableQuery":
        self.columns = columns
        return self

    def insert(self, rows: Any) -> "TableQuery":
        self.operation = "insert"
        self.payload = rows if isinstance(rows, list) else [rows]
        return self

    def update(self, values: Dict[str, Any]) -> "TableQuery":
        self.operation = "update"
        self.payload = dict(values)
        return self

    def delete(self) -> "TableQuery":
        self.operation = "delete"
        return self

    def eq(self, column: str, value: Any) -> "TableQuery":
        self.filters.append((column, value))
        return self

    def order(self, column: str, ascending: bool = True) -> "TableQuery":
        self.ordering.append((column, ascending))
        return self

    def limit(self, count: int) -> "TableQuery":
        self.row_limit = count
        return self

    async def execute(self) -> QueryResult:
        return await self.backend.execute(self)


class AuthAPI(ABC):
    """Identity operations (sign up, sign in, sign out)."""

    @abstractmethod
    async def sign_up(self, email: str, password: str, metadata: Dict[str, Any] = None) -> QueryResult:
        ...

    @abstractmethod
    async def sign_in_with_password(self, email: str, password: str) -> QueryResult:
        ...

    @abstractmethod
    async def sign_out(self, access_token: str = None) -> QueryResult:
        ...

    @abstractmethod
    async def get_user(self, access_token: str = None) -> QueryResult:
        ...


class AdminAPI(ABC):
    """Privileged identity operations."""

    @abstractmethod
    async def delete_user(self, user_id: str) -> QueryResult:
        ...

    @abstractmethod
    async def confirm_email(self, user_id: str) -> QueryResult:
        ...


class Backend(ABC):
    """A relational store with an identity service."""

    name: str = "backend"

    def table(self, name: str) -> TableQuery:
        return TableQuery(backend=self, table=name)

    @property
    @abstractmethod
    def auth(self) -> AuthAPI:
        ...

    @property
    @abstractmethod
    def admin(self) -> AdminAPI:
        ...

    @abstractmethod
    async def execute(self, query: TableQuery) -> QueryResult:
        """Run a table query."""

    @abstractmethod
    async def ping(self) -> bool:
        """Return True when the backend answers."""

    async def close(self) -> None:
        return None

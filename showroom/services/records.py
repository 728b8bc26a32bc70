"""Record store adapter for listing rows kept in Airtable."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, Protocol, Sequence
from urllib.parse import quote

import httpx

from showroom.config import Settings
from showroom.utils.errors import RecordNotFoundError, RecordStoreError
from showroom.utils.time import parse_iso_utc, to_iso

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

Record = dict[str, Any]
SortSpec = Sequence[tuple[str, str]]


# --- Filter expressions ---------------------------------------------------


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


class Filter:
    """Base filter expression, rendered to an Airtable formula."""

    def to_formula(self) -> str:  # pragma: no cover - interface
        raise NotImplementedError

    def matches(self, fields: Mapping[str, Any]) -> bool:  # pragma: no cover - interface
        raise NotImplementedError


@dataclass(frozen=True)
class Eq(Filter):
    field: str
    value: str

    def to_formula(self) -> str:
        return f"{{{self.field}}}={_quote(self.value)}"

    def matches(self, fields: Mapping[str, Any]) -> bool:
        current = fields.get(self.field)
        return ("" if current is None else str(current)) == self.value


@dataclass(frozen=True)
class IsTrue(Filter):
    field: str

    def to_formula(self) -> str:
        return f"{{{self.field}}}=TRUE()"

    def matches(self, fields: Mapping[str, Any]) -> bool:
        return bool(fields.get(self.field))


@dataclass(frozen=True)
class IsBlank(Filter):
    field: str

    def to_formula(self) -> str:
        return f"{{{self.field}}}=BLANK()"

    def matches(self, fields: Mapping[str, Any]) -> bool:
        value = fields.get(self.field)
        return value is None or value == "" or value == []


@dataclass(frozen=True)
class Before(Filter):
    field: str
    moment: datetime

    def to_formula(self) -> str:
        return f"IS_BEFORE({{{self.field}}}, {_quote(to_iso(self.moment))})"

    def matches(self, fields: Mapping[str, Any]) -> bool:
        value = fields.get(self.field)
        if not value:
            return False
        try:
            return parse_iso_utc(str(value)) < self.moment
        except ValueError:
            return False


class And(Filter):
    def __init__(self, *clauses: Filter) -> None:
        self.clauses = clauses

    def to_formula(self) -> str:
        return "AND(" + ", ".join(clause.to_formula() for clause in self.clauses) + ")"

    def matches(self, fields: Mapping[str, Any]) -> bool:
        return all(clause.matches(fields) for clause in self.clauses)


class Or(Filter):
    def __init__(self, *clauses: Filter) -> None:
        self.clauses = clauses

    def to_formula(self) -> str:
        return "OR(" + ", ".join(clause.to_formula() for clause in self.clauses) + ")"

    def matches(self, fields: Mapping[str, Any]) -> bool:
        return any(clause.matches(fields) for clause in self.clauses)


# --- Store interface ------------------------------------------------------


def _segment(value: str | None) -> str:
    """Encode one URL path segment; record ids arrive from request input."""

    return quote(value or "", safe="")


class RecordStore(Protocol):
    def get(self, record_id: str) -> Record: ...

    def patch(self, record_id: str, fields: Mapping[str, Any]) -> Record: ...

    def query(
        self,
        where: Filter | None = None,
        *,
        sort: SortSpec | None = None,
        page_size: int = MAX_PAGE_SIZE,
        max_records: int | None = None,
    ) -> list[Record]: ...


class AirtableRecordStore:
    """Listing table accessed through the Airtable REST API."""

    def __init__(self, settings: Settings, client: httpx.Client | None = None) -> None:
        self.settings = settings
        self._table_url = "/".join(
            (
                settings.AIRTABLE_API_URL.rstrip("/"),
                _segment(settings.AIRTABLE_BASE_ID),
                _segment(settings.AIRTABLE_TABLE),
            )
        )
        self._client = client or httpx.Client(timeout=settings.HTTP_TIMEOUT_SECONDS)

    @property
    def configured(self) -> bool:
        return bool(self.settings.AIRTABLE_API_KEY and self.settings.AIRTABLE_BASE_ID)

    def close(self) -> None:
        self._client.close()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.AIRTABLE_API_KEY}",
            "Content-Type": "application/json",
        }

    def _request(
        self,
        method: str,
        url: str,
        *,
        operation: str,
        record_id: str | None = None,
        params: Iterable[tuple[str, str]] | None = None,
        json: Any = None,
    ) -> dict[str, Any]:
        if not self.configured:
            raise RecordStoreError(
                "Record store is not configured; set AIRTABLE_API_KEY and AIRTABLE_BASE_ID.",
                operation=operation,
                retryable=False,
            )
        try:
            response = self._client.request(
                method, url, headers=self._headers(), params=list(params or []), json=json
            )
        except httpx.TimeoutException as exc:
            logger.warning(
                "Airtable request timed out",
                extra={"operation": operation, "listing_id": record_id},
            )
            raise RecordStoreError("Record store timed out", operation=operation) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "Airtable request failed",
                extra={"operation": operation, "listing_id": record_id, "error": str(exc)},
            )
            raise RecordStoreError("Record store unreachable", operation=operation) from exc

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code == 404 and record_id is not None:
            raise RecordNotFoundError(record_id, operation=operation)
        if response.is_error:
            message = _error_message(data) or f"Airtable error {response.status_code}"
            logger.error(
                "Airtable request rejected",
                extra={
                    "operation": operation,
                    "listing_id": record_id,
                    "status_code": response.status_code,
                    "upstream_message": message,
                },
            )
            raise RecordStoreError(
                message,
                operation=operation,
                status_code=response.status_code,
                retryable=response.status_code >= 500 or response.status_code == 429,
            )
        return data if isinstance(data, dict) else {}

    def get(self, record_id: str) -> Record:
        return self._request(
            "GET", f"{self._table_url}/{_segment(record_id)}", operation="get", record_id=record_id
        )

    def patch(self, record_id: str, fields: Mapping[str, Any]) -> Record:
        return self._request(
            "PATCH",
            f"{self._table_url}/{_segment(record_id)}",
            operation="patch",
            record_id=record_id,
            json={"fields": dict(fields)},
        )

    def query(
        self,
        where: Filter | None = None,
        *,
        sort: SortSpec | None = None,
        page_size: int = MAX_PAGE_SIZE,
        max_records: int | None = None,
    ) -> list[Record]:
        """Return matching records, following the ``offset`` cursor across pages."""

        base_params: list[tuple[str, str]] = [
            ("pageSize", str(max(1, min(page_size, MAX_PAGE_SIZE))))
        ]
        if where is not None:
            base_params.append(("filterByFormula", where.to_formula()))
        if max_records is not None:
            base_params.append(("maxRecords", str(max_records)))
        if self.settings.AIRTABLE_VIEW:
            base_params.append(("view", self.settings.AIRTABLE_VIEW))
        for index, (field, direction) in enumerate(sort or ()):
            base_params.append((f"sort[{index}][field]", field))
            base_params.append((f"sort[{index}][direction]", direction))

        records: list[Record] = []
        offset: str | None = None
        while True:
            params = list(base_params)
            if offset:
                params.append(("offset", offset))
            data = self._request("GET", self._table_url, operation="query", params=params)
            records.extend(data.get("records") or [])
            if max_records is not None and len(records) >= max_records:
                return records[:max_records]
            offset = data.get("offset")
            if not offset:
                return records


def _error_message(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    if isinstance(error, dict):
        return error.get("message") or error.get("type")
    if isinstance(error, str):
        return error
    return None


__all__ = [
    "Filter",
    "Eq",
    "Before",
    "IsTrue",
    "IsBlank",
    "And",
    "Or",
    "Record",
    "RecordStore",
    "AirtableRecordStore",
]

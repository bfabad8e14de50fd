"""Test history models and the store interface."""

from datetime import datetime

from pydantic import BaseModel

from api_route_explorer.testing.base import TestRequest, TestResult


class Caller(BaseModel):
    """Who issued a test, as reported by the host."""

    user_id: str | None = None
    ip_address: str = ""
    user_agent: str = ""


class TestLogEntry(BaseModel):
    """One executed test. Never mutated once stored."""

    id: int | None = None
    endpoint: str
    method: str
    status_code: int
    response_time_ms: int
    user_id: str | None = None
    ip_address: str = ""
    user_agent: str = ""
    request_data: dict = {}
    response_data: dict = {}
    created_at: datetime

    @classmethod
    def from_test(cls, request: TestRequest, result: TestResult, caller: Caller, created_at: datetime) -> "TestLogEntry":
        return cls(
            endpoint=request.url,
            method=request.method,
            status_code=result.status_code,
            response_time_ms=result.response_time_ms,
            user_id=caller.user_id,
            ip_address=caller.ip_address,
            user_agent=caller.user_agent,
            request_data={"headers": request.headers, "body": request.body},
            response_data=result.model_dump(mode="json"),
            created_at=created_at,
        )


class EndpointCount(BaseModel):
    endpoint: str
    count: int


class HourCount(BaseModel):
    hour: int
    count: int


class HistoryStats(BaseModel):
    total_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    avg_response_time_ms: float = 0
    top_endpoints: list[EndpointCount] = []
    status_code_histogram: dict[int, int] = {}
    hourly_histogram: list[HourCount] = []


class HistoryStore:
    """Append-only log of executed tests.

    Implementations raise PersistenceError for every storage failure and
    must tolerate concurrent appends.
    """

    def append(self, entry: TestLogEntry) -> TestLogEntry:
        raise NotImplementedError

    def list_entries(self, limit: int = 20, offset: int = 0) -> list[TestLogEntry]:
        raise NotImplementedError

    def get(self, entry_id: int) -> TestLogEntry | None:
        raise NotImplementedError

    def truncate(self) -> int:
        raise NotImplementedError

    def delete_older_than(self, days: int) -> int:
        raise NotImplementedError

    def stats(self) -> HistoryStats:
        raise NotImplementedError

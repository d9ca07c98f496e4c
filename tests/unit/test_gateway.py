"""Unit tests for the data gateway and entity repositories."""

from datetime import date
from unittest.mock import AsyncMock

import httpx
import orjson
import pytest
from pydantic import ValidationError as PydanticValidationError

from educms.backends.base import BackendKind
from educms.backends.rest import RestBackend
from educms.backends.table import TableBackend
from educms.errors import ConfigurationError, ConflictError, TransportError, ValidationError
from educms.models.student import Student, StudentStatus
from educms.normalize.gateway import BackendSelector, DataGateway, create_gateway

TABLE_ROWS = [
    {
        "id": "st-1",
        "student_id": "S1001",
        "name": "Ada",
        "email": "ada@school.test",
        "grade": "10",
        "section": "A",
        "enrollment_date": "2024-09-01",
        "status": "graduated",
        "phone": "555-0100",
        "created_at": "2025-09-01T08:30:00+00:00",
        "updated_at": "2025-09-01T08:30:00+00:00",
    },
    {
        "id": "st-2",
        "student_id": "S1002",
        "name": "Grace",
        "email": "grace@school.test",
        "grade": "11",
        "section": "B",
        "enrollment_date": "2023-09-01",
        "status": "active",
        "phone": None,
        "created_at": "2025-08-01T08:30:00+00:00",
        "updated_at": "2025-08-01T08:30:00+00:00",
    },
    {
        "id": "st-3",
        "student_id": "S1003",
        "name": "Alan",
        "email": "alan@school.test",
        "grade": "12",
        "section": "A",
        "enrollment_date": "2022-09-01",
        "status": "withdrawn",
        "phone": "555-0102",
        "created_at": "2025-07-01T08:30:00+00:00",
        "updated_at": "2025-07-01T08:30:00+00:00",
    },
]

REST_CODES = {"active": 1, "graduated": 4, "withdrawn": 6}


def to_rest(row: dict) -> dict:
    """The same student as the REST API would send it."""
    return {
        "id": row["id"],
        "studentId": row["student_id"],
        "name": row["name"],
        "email": row["email"],
        "grade": row["grade"],
        "section": row["section"],
        "enrollmentDate": row["enrollment_date"],
        "status": REST_CODES[row["status"]],
        "phoneNumber": row["phone"],
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }


def json_response(status_code: int, data) -> httpx.Response:
    return httpx.Response(status_code, content=orjson.dumps(data))


@pytest.fixture
def table_transport(recorder):
    def handler(request):
        if request.url.params.get("id"):
            wanted = request.url.params["id"].removeprefix("eq.")
            return json_response(200, [r for r in TABLE_ROWS if r["id"] == wanted])
        return json_response(200, TABLE_ROWS)

    return recorder(handler)


@pytest.fixture
def rest_transport(recorder, make_envelope):
    rest_rows = [to_rest(row) for row in TABLE_ROWS]

    def handler(request):
        parts = request.url.path.rstrip("/").split("/")
        if parts[-1] != "students":
            match = [r for r in rest_rows if r["id"] == parts[-1]]
            if not match:
                return json_response(404, make_envelope(success=False, message="not found"))
            return json_response(200, make_envelope(match[0]))

        number = int(request.url.params["pageNumber"])
        size = int(request.url.params["pageSize"])
        items = rest_rows[(number - 1) * size : number * size]
        total_pages = -(-len(rest_rows) // size)
        return json_response(
            200,
            make_envelope(
                {
                    "items": items,
                    "totalCount": len(rest_rows),
                    "pageNumber": number,
                    "pageSize": size,
                    "totalPages": total_pages,
                    "hasPreviousPage": number > 1,
                    "hasNextPage": number < total_pages,
                }
            ),
        )

    return recorder(handler)


def table_gateway(settings, transport) -> DataGateway:
    return DataGateway(BackendSelector(kind=BackendKind.TABLE), TableBackend(settings, transport))


def rest_gateway(settings, transport) -> DataGateway:
    return DataGateway(BackendSelector(kind=BackendKind.REST), RestBackend(settings, transport))


class TestBackendSelection:
    """Tests for binding the gateway to one backend."""

    def test_selector_from_settings(self, settings):
        """Test the flag picks the REST backend."""
        assert BackendSelector.from_settings(settings).kind is BackendKind.TABLE
        settings.use_rest_backend = True
        assert BackendSelector.from_settings(settings).kind is BackendKind.REST

    def test_selector_is_immutable(self):
        """Test the selector cannot be changed after creation."""
        selector = BackendSelector(kind=BackendKind.TABLE)
        with pytest.raises(PydanticValidationError):
            selector.kind = BackendKind.REST

    def test_mismatched_backend_rejected(self, settings):
        """Test a client that does not match the selector is refused."""
        with pytest.raises(ConfigurationError):
            DataGateway(BackendSelector(kind=BackendKind.REST), TableBackend(settings))

    def test_create_gateway(self, settings):
        """Test the factory builds the client named by settings."""
        settings.use_rest_backend = True
        gateway = create_gateway(settings)
        assert isinstance(gateway.backend, RestBackend)
        assert gateway.backend_name == "rest"
        assert gateway.students.backend is gateway.documents.backend


class TestRepositoryReads:
    """Tests for canonical reads."""

    @pytest.mark.asyncio
    async def test_get_all_table(self, settings, table_transport):
        """Test a flat list is normalized."""
        transport, _ = table_transport
        students = await table_gateway(settings, transport).students.get_all()

        assert [s.id for s in students] == ["st-1", "st-2", "st-3"]
        assert students[0].status is StudentStatus.GRADUATED
        assert students[0].phone_number == "555-0100"

    @pytest.mark.asyncio
    async def test_get_all_rest_follows_pages(self, settings, rest_transport):
        """Test paged results are flattened into one sequence."""
        transport, requests = rest_transport
        students = await rest_gateway(settings, transport).students.get_all()

        assert [s.id for s in students] == ["st-1", "st-2", "st-3"]
        assert [r.url.params["pageNumber"] for r in requests] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_backends_agree(self, settings, table_transport, rest_transport):
        """Test both backends yield identical canonical entities."""
        table_students = await table_gateway(settings, table_transport[0]).students.get_all()
        rest_students = await rest_gateway(settings, rest_transport[0]).students.get_all()

        assert table_students == rest_students

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", ["table", "rest"])
    async def test_get_by_id_idempotent(self, settings, table_transport, rest_transport, kind):
        """Test repeated reads return equal entities."""
        if kind == "table":
            gateway = table_gateway(settings, table_transport[0])
        else:
            gateway = rest_gateway(settings, rest_transport[0])

        first = await gateway.students.get_by_id("st-2")
        second = await gateway.students.get_by_id("st-2")

        assert first == second
        assert first.enrollment_date == date(2023, 9, 1)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", ["table", "rest"])
    async def test_get_by_id_missing_returns_none(
        self, settings, table_transport, rest_transport, kind
    ):
        """Test a missing entity yields None instead of an error."""
        if kind == "table":
            gateway = table_gateway(settings, table_transport[0])
        else:
            gateway = rest_gateway(settings, rest_transport[0])

        assert await gateway.students.get_by_id("nobody") is None


class TestRepositoryWrites:
    """Tests for canonical writes."""

    @pytest.mark.asyncio
    async def test_create_validates_before_network(self, settings, recorder):
        """Test a missing required field never reaches the backend."""
        transport, requests = recorder(lambda r: json_response(201, []))
        gateway = table_gateway(settings, transport)

        with pytest.raises(ValidationError):
            await gateway.students.create({"name": "Ada"})
        assert requests == []

    @pytest.mark.asyncio
    async def test_create_accepts_legacy_aliases(self, settings, recorder):
        """Test camelCase input is translated to table columns."""
        transport, requests = recorder(lambda r: json_response(201, [TABLE_ROWS[0]]))
        gateway = table_gateway(settings, transport)

        student = await gateway.students.create(
            {
                "studentId": "S1001",
                "name": "Ada",
                "email": "ada@school.test",
                "grade": "10",
                "section": "A",
                "phoneNumber": "555-0100",
            }
        )

        assert isinstance(student, Student)
        body = orjson.loads(requests[0].content)
        assert body["student_id"] == "S1001"
        assert body["phone"] == "555-0100"
        assert "studentId" not in body

    @pytest.mark.asyncio
    async def test_update_missing_returns_none(self, settings, recorder):
        """Test updating an unknown entity yields None."""
        transport, _ = recorder(lambda r: json_response(200, []))
        gateway = table_gateway(settings, transport)

        assert await gateway.students.update("nobody", {"name": "X"}) is None

    @pytest.mark.asyncio
    async def test_update_without_changes(self, settings, recorder):
        """Test an update with no recognised fields is rejected."""
        transport, requests = recorder(lambda r: json_response(200, []))
        gateway = table_gateway(settings, transport)

        with pytest.raises(ValidationError):
            await gateway.students.update("st-1", {"unknown": 1})
        assert requests == []

    @pytest.mark.asyncio
    async def test_delete_reports_existence(self, settings, recorder):
        """Test delete returns whether a row was removed."""
        transport, _ = recorder(
            lambda r: json_response(200, [TABLE_ROWS[0]] if "st-1" in str(r.url) else [])
        )
        gateway = table_gateway(settings, transport)

        assert await gateway.students.delete("st-1") is True
        assert await gateway.students.delete("nobody") is False

    @pytest.mark.asyncio
    async def test_error_kind_passes_through(self, settings, recorder):
        """Test backend errors reach the caller with their kind."""
        transport, _ = recorder(
            lambda r: json_response(409, {"code": "23505", "message": "duplicate key"})
        )
        gateway = table_gateway(settings, transport)

        with pytest.raises(ConflictError):
            await gateway.students.create(
                {
                    "student_id": "S1001",
                    "name": "Ada",
                    "email": "ada@school.test",
                    "grade": "10",
                    "section": "A",
                }
            )

    @pytest.mark.asyncio
    async def test_update_avatar(self, settings):
        """Test avatar updates report unknown students as False."""
        backend = TableBackend(settings)
        backend.update_avatar = AsyncMock(return_value=None)
        gateway = DataGateway(BackendSelector(kind=BackendKind.TABLE), backend)

        assert await gateway.students.update_avatar("st-1", "https://cdn.test/a.png") is True
        backend.update_avatar.assert_awaited_once_with("st-1", "https://cdn.test/a.png")


class TestHealthCheck:
    """Tests for the gateway health check."""

    @pytest.mark.asyncio
    async def test_healthy(self, settings):
        """Test a reachable backend is reported healthy."""
        backend = TableBackend(settings)
        backend.health_check = AsyncMock(return_value={"student_count": 3})
        gateway = DataGateway(BackendSelector(kind=BackendKind.TABLE), backend)

        status = await gateway.health_check()

        assert status.backend == "table"
        assert status.status == "healthy"
        assert status.details == {"student_count": 3}

    @pytest.mark.asyncio
    async def test_unhealthy_does_not_raise(self, settings):
        """Test an unreachable backend is reported, not raised."""
        backend = TableBackend(settings)
        backend.health_check = AsyncMock(side_effect=TransportError("connection refused"))
        gateway = DataGateway(BackendSelector(kind=BackendKind.TABLE), backend)

        status = await gateway.health_check()

        assert status.status == "unhealthy"
        assert status.details["kind"] == "transport"
        assert "connection refused" not in status.details["error"]

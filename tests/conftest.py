import pytest
from fastapi.testclient import TestClient

from fake_platform import FakePlatform, RecordingService, app, get_platform
from formquery.api.admin import AdminClient
from formquery.api.client import HttpDataService
from formquery.core.schemas import FieldType, FormField, FormSchema

TEST_TOKEN = "test-token-123"

PARTNERS = FormSchema(
    id="cpartners",
    database_id="d1",
    label="Partners",
    elements=[
        FormField(id="name", label="Name", code="name", key=True),
        FormField(id="code", label="Code", code="code"),
    ],
)

ACTIVITIES = FormSchema(
    id="cactivities",
    database_id="d1",
    label="Activities",
    elements=[
        FormField(id="f_sector", label="Sector Name", code="sector"),
        FormField(id="f_org", label="Org", code="org"),
        FormField(
            id="f_partner",
            label="Partner",
            code="partner",
            type=FieldType.REFERENCE,
            reference_form_id="cpartners",
        ),
        FormField(id="f_district", label="District Name", code="district"),
        FormField(id="f_benef", label="Beneficiaries", code="benef", type=FieldType.QUANTITY),
    ],
)

SECTORS = FormSchema(
    id="csectors",
    database_id="d1",
    label="Sectors",
    elements=[
        FormField(id="s", label="Sector"),
        FormField(id="o", label="Org"),
    ],
)

NUMBERS = FormSchema(
    id="cnumbers",
    database_id="d1",
    label="Numbers",
    elements=[FormField(id="n", label="N", type=FieldType.QUANTITY)],
)


# Fresh platform for every test so writes never leak between tests
@pytest.fixture(scope="function")
def platform():
    fake = FakePlatform(token=TEST_TOKEN)
    fake.add_form(
        PARTNERS,
        [
            {"@id": "p1", "name": "UNICEF", "code": "UNI"},
            {"@id": "p2", "name": "Save the Children", "code": "SCF"},
        ],
    )
    fake.add_form(
        ACTIVITIES,
        [
            {
                "@id": "r1",
                "@lastEditTime": 1700000001.0,
                "f_sector": "Nutrition",
                "f_org": "B",
                "f_partner": "p1",
                "f_district": "Gulu",
                "f_benef": 120,
            },
            {
                "@id": "r2",
                "@lastEditTime": 1700000002.0,
                "f_sector": "WASH",
                "f_org": "A",
                "f_partner": "p2",
                "f_district": "Lira",
                "f_benef": 80,
            },
            {
                "@id": "r3",
                "@lastEditTime": 1700000003.0,
                "f_sector": "Nutrition",
                "f_org": "A",
                "f_partner": "p2",
                "f_district": "Gulu",
                "f_benef": 45,
            },
        ],
    )
    fake.add_form(
        SECTORS,
        [
            {"@id": "a", "s": "Nutrition", "o": "B"},
            {"@id": "b", "s": "WASH", "o": "A"},
            {"@id": "c", "s": "Nutrition", "o": "A"},
        ],
    )
    fake.add_form(NUMBERS, [{"@id": f"n{i}", "n": i} for i in range(1, 11)])
    return fake


# Non-HTTP service with a call counter
@pytest.fixture(scope="function")
def recording_service(platform):
    return RecordingService(platform)


# HTTP client talking to the fake platform in-process
@pytest.fixture(scope="function")
def http_client(platform):
    app.dependency_overrides[get_platform] = lambda: platform

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def data_service(http_client):
    return HttpDataService(api_token=TEST_TOKEN, http_client=http_client)


@pytest.fixture(scope="function")
def admin(http_client):
    return AdminClient(api_token=TEST_TOKEN, http_client=http_client)

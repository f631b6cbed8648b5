"""
pytest configuration and fixtures for the Meadow endpoints test suite
An in-memory Book scope served through the full FastAPI stack
"""

import pytest
import pytest_asyncio
import httpx

from meadow_endpoints import InMemoryDAL, MeadowEndpoints, create_app
from meadow_endpoints.models.session import UserSession
from meadow_endpoints.utils.auth import generate_session_token

BOOK_SCHEMA = [
    {"Column": "IDBook", "Type": "AutoIdentity"},
    {"Column": "GUIDBook", "Type": "AutoGUID"},
    {"Column": "CreateDate", "Type": "CreateDate"},
    {"Column": "CreatingIDUser", "Type": "CreateIDUser"},
    {"Column": "UpdateDate", "Type": "UpdateDate"},
    {"Column": "UpdatingIDUser", "Type": "UpdateIDUser"},
    {"Column": "Deleted", "Type": "Deleted"},
    {"Column": "DeleteDate", "Type": "DeleteDate"},
    {"Column": "DeletingIDUser", "Type": "DeleteIDUser"},
    {"Column": "IDCustomer", "Type": "Integer"},
    {"Column": "Title", "Type": "String"},
    {"Column": "Type", "Type": "String"},
    {"Column": "PublicationYear", "Type": "Integer"}
]

BOOK_JSON_SCHEMA = {
    "title": "Book",
    "type": "object",
    "properties": {
        "IDBook": {"type": "integer"},
        "Title": {"type": "string"},
        "Type": {"type": "string"},
        "PublicationYear": {"type": "integer"}
    },
    "required": ["Title"]
}

BOOK_DEFAULT = {"Title": "", "Type": "Paperback", "PublicationYear": 0}

# (creating user, record) - IDBook 1..6 in this order
SEED_BOOKS = [
    (1, {"Title": "Dune", "Type": "Paperback", "PublicationYear": 1965, "IDCustomer": 1}),
    (1, {"Title": "The Left Hand of Darkness", "Type": "Hardcover", "PublicationYear": 1969, "IDCustomer": 1}),
    (2, {"Title": "Neuromancer", "Type": "Paperback", "PublicationYear": 1984, "IDCustomer": 2}),
    (2, {"Title": "The Great Gatsby", "Type": "Hardcover", "PublicationYear": 1925, "IDCustomer": 2}),
    (3, {"Title": "Kindred", "Type": "Paperback", "PublicationYear": 1979, "IDCustomer": 1}),
    (3, {"Title": "Beloved", "Type": "Hardcover", "PublicationYear": 1987, "IDCustomer": 2})
]


@pytest_asyncio.fixture(scope="function")
async def book_dal():
    """Book DAL seeded with six records"""
    dal = InMemoryDAL("Book", BOOK_SCHEMA, json_schema=BOOK_JSON_SCHEMA, default_object=BOOK_DEFAULT)
    for id_user, record in SEED_BOOKS:
        await dal.do_create(dal.query.add_record(dict(record)).set_id_user(id_user))
    return dal


@pytest.fixture
def authorization_mode():
    """Override with parametrize to run a test under another mode"""
    return "Disabled"


@pytest.fixture
def book_endpoints(book_dal, authorization_mode):
    return MeadowEndpoints(book_dal, authorization_mode=authorization_mode)


@pytest.fixture
def user_session():
    return UserSession(session_id="test-session", logged_in=True, user_id=1, user_role_index=1, customer_id=1)


@pytest.fixture
def user_token():
    """Session token for user 1 (role User, customer 1)"""
    return generate_session_token(user_id=1, role_index=1, customer_id=1, session_id="test-session")


@pytest_asyncio.fixture(scope="function")
async def client(book_endpoints, user_token):
    """HTTP client logged in as user 1"""
    app = create_app(book_endpoints)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"Authorization": f"Bearer {user_token}"}
    ) as http_client:
        yield http_client


@pytest_asyncio.fixture(scope="function")
async def anonymous_client(book_endpoints):
    """HTTP client with no session"""
    app = create_app(book_endpoints)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client


@pytest.fixture
def context(book_endpoints, user_session):
    """Bare request context for service level tests"""
    return book_endpoints.create_context(user_session=user_session, url="/test", request_id="req-1")

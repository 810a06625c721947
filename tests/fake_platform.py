"""
In-process stand-in for the remote platform, used by the tests.

Serves the same endpoints the clients call, backed by plain dicts. It applies
equality filters, a single sort and an offset/limit window the way the real
service does, and counts every query it receives.
"""

import uuid
from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, status
from pydantic import BaseModel

from formquery.core.schemas import (
    ColumnInfo,
    DatabaseUser,
    FormSchema,
    FormTree,
    QueryRequest,
    QueryResponse,
    Role,
    SortDirection,
    UserInvite,
)


class FakePlatform:
    def __init__(self, token: str):
        self.token = token
        self.forms: Dict[str, FormSchema] = {}
        self.records: Dict[str, List[Dict[str, Any]]] = {}
        self.roles: Dict[str, Dict[str, Role]] = {}
        self.users: Dict[str, Dict[str, DatabaseUser]] = {}
        self.queries: List[QueryRequest] = []

    def add_form(self, schema: FormSchema, records=()):
        self.forms[schema.id] = schema
        self.records[schema.id] = [dict(record) for record in records]

    # =========================
    # Query execution
    # =========================
    def find_column(self, form: FormSchema, name: str) -> ColumnInfo:
        for column in form.columns():
            if name in (column.label, column.code, column.id):
                return column
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST, f"Unknown column '{name}' in form {form.id}"
        )

    def reference_value(self, form_id: str, record_id: Optional[str]):
        if record_id is None:
            return None
        for record in self.records.get(form_id, []):
            if record["@id"] == record_id:
                return {
                    "id": record_id,
                    "code": record.get("code"),
                    "label": record.get("name"),
                }
        return {"id": record_id, "code": None, "label": None}

    def wire_row(self, form: FormSchema, record: Dict[str, Any]) -> Dict[str, Any]:
        row = {"@id": record["@id"], "@lastEditTime": record.get("@lastEditTime")}
        for column in form.columns():
            value = record.get(column.id)
            if column.is_reference:
                value = self.reference_value(column.reference_form_id, value)
            row[column.id] = value
        return row

    def run_query(self, request: QueryRequest) -> QueryResponse:
        self.queries.append(request)

        form = self.forms.get(request.form_id)
        if form is None:
            raise HTTPException(
                status.HTTP_404_NOT_FOUND, f"Form {request.form_id} not found"
            )

        rows = [self.wire_row(form, record) for record in self.records[form.id]]

        def plain(row, column):
            value = row.get(column.id)
            return value.get("label") if isinstance(value, dict) else value

        for predicate in request.filters:
            column = self.find_column(form, predicate.column)
            rows = [row for row in rows if plain(row, column) == predicate.value]

        if request.sort:
            column = self.find_column(form, request.sort.column)
            present = [row for row in rows if plain(row, column) is not None]
            missing = [row for row in rows if plain(row, column) is None]
            present.sort(
                key=lambda row: plain(row, column),
                reverse=request.sort.direction == SortDirection.DESC,
            )
            rows = present + missing

        start = request.window.offset
        stop = None if request.window.limit is None else start + request.window.limit
        return QueryResponse(columns=form.columns(), rows=rows[start:stop])


class RecordingService:
    """Remote data service that skips HTTP and counts calls."""

    def __init__(self, platform: FakePlatform):
        self.platform = platform
        self.requests: List[QueryRequest] = []

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def fetch_rows(self, request: QueryRequest) -> QueryResponse:
        self.requests.append(request)
        return self.platform.run_query(request)


# =========================
# HTTP surface
# =========================
def get_platform() -> FakePlatform:
    raise RuntimeError("get_platform must be overridden by the test fixtures")


def check_token(
    platform: Annotated[FakePlatform, Depends(get_platform)],
    authorization: Annotated[Optional[str], Header()] = None,
) -> FakePlatform:
    if authorization != f"Bearer {platform.token}":
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid or missing API token")
    return platform


platform_dep = Annotated[FakePlatform, Depends(check_token)]

router = APIRouter(prefix="/resources")


class RoleAssignment(BaseModel):
    role_id: str


@router.post("/query/rows", response_model=QueryResponse)
def query_rows(query_request: QueryRequest, platform: platform_dep):
    return platform.run_query(query_request)


@router.get("/form/{form_id}/schema", response_model=FormSchema)
def get_schema(form_id: str, platform: platform_dep):
    if form_id not in platform.forms:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"Form {form_id} not found")
    return platform.forms[form_id]


@router.get("/form/{form_id}/tree", response_model=FormTree)
def get_tree(form_id: str, platform: platform_dep):
    if form_id not in platform.forms:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"Form {form_id} not found")

    root = platform.forms[form_id]
    forms = {form_id: root}
    for field in root.elements:
        if field.reference_form_id in platform.forms:
            forms[field.reference_form_id] = platform.forms[field.reference_form_id]
    return FormTree(root_form_id=form_id, forms=forms)


@router.post("/forms", status_code=status.HTTP_201_CREATED)
def add_form(schema: FormSchema, platform: platform_dep):
    if schema.id in platform.forms:
        raise HTTPException(status.HTTP_409_CONFLICT, f"Form {schema.id} already exists")
    platform.add_form(schema)
    return {"id": schema.id}


@router.put("/form/{form_id}/schema")
def update_schema(form_id: str, schema: FormSchema, platform: platform_dep):
    if form_id not in platform.forms:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"Form {form_id} not found")
    if schema.id != form_id:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Schema id does not match URL")
    platform.forms[form_id] = schema
    return {"id": form_id}


@router.delete("/form/{form_id}")
def delete_form(form_id: str, platform: platform_dep):
    if platform.forms.pop(form_id, None) is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"Form {form_id} not found")
    platform.records.pop(form_id, None)
    return {"message": f"Deleted form {form_id}"}


@router.post("/databases/{database_id}/roles", status_code=status.HTTP_201_CREATED)
def add_role(database_id: str, role: Role, platform: platform_dep):
    roles = platform.roles.setdefault(database_id, {})
    if role.id in roles:
        raise HTTPException(status.HTTP_409_CONFLICT, f"Role {role.id} already exists")
    for grant in role.grants:
        if grant.resource_id not in platform.forms and grant.resource_id != database_id:
            raise HTTPException(
                status.HTTP_400_BAD_REQUEST, f"Unknown resource {grant.resource_id}"
            )
    roles[role.id] = role
    return {"id": role.id}


@router.put("/databases/{database_id}/roles/{role_id}")
def update_role(database_id: str, role_id: str, role: Role, platform: platform_dep):
    roles = platform.roles.get(database_id, {})
    if role_id not in roles:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"Role {role_id} not found")
    roles[role_id] = role
    return {"id": role_id}


@router.delete("/databases/{database_id}/roles/{role_id}")
def delete_role(database_id: str, role_id: str, platform: platform_dep):
    roles = platform.roles.get(database_id, {})
    if role_id not in roles:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"Role {role_id} not found")
    if any(u.role_id == role_id for u in platform.users.get(database_id, {}).values()):
        raise HTTPException(status.HTTP_409_CONFLICT, f"Role {role_id} is still assigned")
    del roles[role_id]
    return {"message": f"Deleted role {role_id}"}


@router.get("/databases/{database_id}/users", response_model=List[DatabaseUser])
def list_users(database_id: str, platform: platform_dep):
    return list(platform.users.get(database_id, {}).values())


@router.post(
    "/databases/{database_id}/users",
    response_model=DatabaseUser,
    status_code=status.HTTP_201_CREATED,
)
def add_user(database_id: str, invite: UserInvite, platform: platform_dep):
    if invite.role_id not in platform.roles.get(database_id, {}):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, f"Unknown role {invite.role_id}")

    users = platform.users.setdefault(database_id, {})
    if any(user.email == invite.email for user in users.values()):
        raise HTTPException(status.HTTP_409_CONFLICT, "User already exists")

    user = DatabaseUser(
        user_id=uuid.uuid4().hex[:12],
        email=invite.email,
        name=invite.name,
        role_id=invite.role_id,
        pending=True,
    )
    users[user.user_id] = user
    return user


@router.put("/databases/{database_id}/users/{user_id}/role")
def assign_role(
    database_id: str, user_id: str, assignment: RoleAssignment, platform: platform_dep
):
    users = platform.users.get(database_id, {})
    if user_id not in users:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"User {user_id} not found")
    if assignment.role_id not in platform.roles.get(database_id, {}):
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST, f"Unknown role {assignment.role_id}"
        )
    users[user_id] = users[user_id].model_copy(update={"role_id": assignment.role_id})
    return {"user_id": user_id, "role_id": assignment.role_id}


@router.delete("/databases/{database_id}/users/{user_id}")
def delete_user(database_id: str, user_id: str, platform: platform_dep):
    if platform.users.get(database_id, {}).pop(user_id, None) is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"User {user_id} not found")
    return {"message": f"Removed user {user_id}"}


app = FastAPI(title="Fake form platform")
app.include_router(router)

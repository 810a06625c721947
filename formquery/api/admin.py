# formquery/api/admin.py
"""
ADMINISTRATION - Form schemas, roles and database users

One method = one remote call. The server does all validation and permission
checks; failures come back as RemoteWriteError (writes) or RemoteQueryError
(reads) with the server's diagnostic attached.

These calls are not idempotent in general, so nothing here retries or rolls
back. To add many users, loop and decide yourself what to do on failure:

    for invite in invites:
        try:
            admin.add_database_user(database_id, invite)
        except RemoteWriteError as error:
            failed.append((invite.email, error.payload))
"""

import logging
from typing import List

from pydantic import ValidationError

from formquery.api.client import RemoteClient
from formquery.core.exceptions import RemoteQueryError, RemoteWriteError
from formquery.core.schemas import DatabaseUser, FormSchema, Role, UserInvite

logger = logging.getLogger(__name__)


class AdminClient(RemoteClient):
    # =========================
    # FORMS
    # =========================
    def get_form_schema(self, form_id: str) -> FormSchema:
        data = self._request("GET", f"/resources/form/{form_id}/schema")
        try:
            return FormSchema.model_validate(data)
        except ValidationError as error:
            raise RemoteQueryError(
                f"Schema for {form_id} does not have the expected shape",
                payload=error.errors(include_url=False),
            ) from error

    def add_form(self, schema: FormSchema) -> None:
        self._request(
            "POST",
            "/resources/forms",
            RemoteWriteError,
            json=schema.model_dump(mode="json"),
        )
        logger.info(f"Added form {schema.id} to database {schema.database_id}")

    def update_form_schema(self, schema: FormSchema) -> None:
        self._request(
            "PUT",
            f"/resources/form/{schema.id}/schema",
            RemoteWriteError,
            json=schema.model_dump(mode="json"),
        )
        logger.info(f"Updated schema of form {schema.id}")

    def delete_form(self, form_id: str) -> None:
        self._request("DELETE", f"/resources/form/{form_id}", RemoteWriteError)
        logger.info(f"Deleted form {form_id}")

    # =========================
    # ROLES
    # =========================
    def add_role(self, database_id: str, role: Role) -> None:
        self._request(
            "POST",
            f"/resources/databases/{database_id}/roles",
            RemoteWriteError,
            json=role.model_dump(mode="json"),
        )
        logger.info(f"Added role {role.id} to database {database_id}")

    def update_role(self, database_id: str, role: Role) -> None:
        self._request(
            "PUT",
            f"/resources/databases/{database_id}/roles/{role.id}",
            RemoteWriteError,
            json=role.model_dump(mode="json"),
        )
        logger.info(f"Updated role {role.id} in database {database_id}")

    def delete_role(self, database_id: str, role_id: str) -> None:
        self._request(
            "DELETE",
            f"/resources/databases/{database_id}/roles/{role_id}",
            RemoteWriteError,
        )
        logger.info(f"Deleted role {role_id} from database {database_id}")

    # =========================
    # USERS
    # =========================
    def get_database_users(self, database_id: str) -> List[DatabaseUser]:
        data = self._request("GET", f"/resources/databases/{database_id}/users")
        try:
            return [DatabaseUser.model_validate(user) for user in data or []]
        except ValidationError as error:
            raise RemoteQueryError(
                f"User list for {database_id} does not have the expected shape",
                payload=error.errors(include_url=False),
            ) from error

    def add_database_user(self, database_id: str, invite: UserInvite) -> DatabaseUser:
        data = self._request(
            "POST",
            f"/resources/databases/{database_id}/users",
            RemoteWriteError,
            json=invite.model_dump(mode="json"),
        )
        logger.info(f"Invited {invite.email} to database {database_id} as {invite.role_id}")
        try:
            return DatabaseUser.model_validate(data)
        except ValidationError as error:
            raise RemoteWriteError(
                f"Invitation of {invite.email} returned an unexpected body",
                payload=error.errors(include_url=False),
            ) from error

    def update_user_role(self, database_id: str, user_id: str, role_id: str) -> None:
        self._request(
            "PUT",
            f"/resources/databases/{database_id}/users/{user_id}/role",
            RemoteWriteError,
            json={"role_id": role_id},
        )
        logger.info(f"Assigned role {role_id} to user {user_id} in {database_id}")

    def delete_database_user(self, database_id: str, user_id: str) -> None:
        self._request(
            "DELETE",
            f"/resources/databases/{database_id}/users/{user_id}",
            RemoteWriteError,
        )
        logger.info(f"Removed user {user_id} from database {database_id}")

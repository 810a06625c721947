from datetime import datetime
from typing import Optional, List, Dict, Any, Union
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, EmailStr, model_validator


Scalar = Union[str, int, float, bool, None]


# =========================
# Enums
# =========================
class FieldType(str, Enum):
    FREE_TEXT = "FREE_TEXT"
    NARRATIVE = "NARRATIVE"
    QUANTITY = "QUANTITY"
    DATE = "DATE"
    ENUMERATED = "ENUMERATED"
    REFERENCE = "REFERENCE"
    CALCULATED = "CALCULATED"
    SERIAL = "SERIAL"
    ATTACHMENT = "ATTACHMENT"
    GEOPOINT = "GEOPOINT"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class ColumnNames(str, Enum):
    LABEL = "label"
    CODE = "code"
    ID = "id"


class MatchKind(str, Enum):
    EXACT = "exact"
    PREFIX = "prefix"
    SUFFIX = "suffix"
    CONTAINS = "contains"


class Permission(str, Enum):
    VIEW = "VIEW"
    ADD_RECORD = "ADD_RECORD"
    EDIT_RECORD = "EDIT_RECORD"
    DELETE_RECORD = "DELETE_RECORD"
    BULK_DELETE = "BULK_DELETE"
    EXPORT_RECORDS = "EXPORT_RECORDS"
    LOCK_RECORDS = "LOCK_RECORDS"
    ADD_RESOURCE = "ADD_RESOURCE"
    EDIT_RESOURCE = "EDIT_RESOURCE"
    DELETE_RESOURCE = "DELETE_RESOURCE"
    MANAGE_USERS = "MANAGE_USERS"
    MANAGE_ROLES = "MANAGE_ROLES"
    AUDIT = "AUDIT"


# =========================
# COLUMN METADATA
# =========================
class ColumnInfo(BaseModel):
    """Column metadata as reported by the remote data service."""

    id: str
    label: str
    code: Optional[str] = None
    type: FieldType = FieldType.FREE_TEXT
    reference_form_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_reference(self) -> bool:
        return self.type == FieldType.REFERENCE


class ColumnStyle(BaseModel):
    """
    Which columns a materialized Table carries and how they are named.

    The style never changes which rows come back or in which order, only the
    shape of the resulting Table:

        record_id          adds "_id" as the first column
        last_edited_time   adds "_lastEditTime" after the record id
        reference_codes    adds "<name> Code" right after each reference column
        reference_ids      adds "<name> ID" right after each reference column

    Names stay unique. Columns are named in order, and a column whose name (or
    one of its "Code"/"ID" companions) is already taken becomes
    "<name> (<code or id>)", e.g. two fields labelled "Name" come out as
    "Name" and "Name (f2)".
    """

    column_names: ColumnNames = ColumnNames.LABEL
    record_id: bool = False
    last_edited_time: bool = False
    reference_codes: bool = False
    reference_ids: bool = False

    model_config = ConfigDict(frozen=True)

    @classmethod
    def minimal(cls) -> "ColumnStyle":
        return cls()

    @classmethod
    def pretty(cls) -> "ColumnStyle":
        return cls(record_id=True, reference_codes=True)

    @classmethod
    def complete(cls) -> "ColumnStyle":
        return cls(
            record_id=True,
            last_edited_time=True,
            reference_codes=True,
            reference_ids=True,
        )


# =========================
# QUERY WIRE FORMAT
# =========================
class SelectMatcher(BaseModel):
    kind: MatchKind
    value: str


class FilterPredicate(BaseModel):
    column: str
    value: Scalar


class SortSpec(BaseModel):
    column: str
    direction: SortDirection = SortDirection.ASC


class WindowSpec(BaseModel):
    offset: int = Field(default=0, ge=0)
    limit: Optional[int] = Field(default=None, ge=0)


class QueryRequest(BaseModel):
    """Everything the remote service needs to run one query, in one request."""

    form_id: str
    select: Optional[List[SelectMatcher]] = None
    filters: List[FilterPredicate] = []
    sort: Optional[SortSpec] = None
    window: WindowSpec = WindowSpec()


class QueryResponse(BaseModel):
    """
    Rows are keyed by column id. Record metadata travels under "@id" and
    "@lastEditTime"; reference values are objects with id, code and label.
    """

    columns: List[ColumnInfo]
    rows: List[Dict[str, Any]] = []


# =========================
# FORM SCHEMA
# =========================
class FormField(BaseModel):
    id: str = Field(min_length=1)
    label: str = Field(min_length=1)
    code: Optional[str] = None
    type: FieldType = FieldType.FREE_TEXT
    description: Optional[str] = None
    required: bool = False
    key: bool = False
    reference_form_id: Optional[str] = None
    options: List[str] = []

    @model_validator(mode="after")
    def check_type_parameters(self) -> "FormField":
        if self.type == FieldType.REFERENCE and not self.reference_form_id:
            raise ValueError("Reference fields need a reference_form_id")
        if self.type != FieldType.REFERENCE and self.reference_form_id:
            raise ValueError("Only reference fields can have a reference_form_id")
        if self.options and self.type != FieldType.ENUMERATED:
            raise ValueError("Only enumerated fields can have options")
        return self

    def to_column(self) -> ColumnInfo:
        return ColumnInfo(
            id=self.id,
            label=self.label,
            code=self.code,
            type=self.type,
            reference_form_id=self.reference_form_id,
        )


class FormSchema(BaseModel):
    id: str = Field(min_length=1)
    database_id: str = Field(min_length=1)
    label: str = Field(min_length=1)
    parent_form_id: Optional[str] = None
    elements: List[FormField] = []

    def add_field(self, field: FormField) -> "FormSchema":
        """
        Return a copy of the schema with one more field.

        Field ids and codes must stay unique within a form, the server would
        reject the schema otherwise.
        """
        for existing in self.elements:
            if existing.id == field.id:
                raise ValueError(f"Field id '{field.id}' already exists in {self.id}")
            if field.code and existing.code == field.code:
                raise ValueError(
                    f"Field code '{field.code}' already exists in {self.id}"
                )
        return self.model_copy(update={"elements": [*self.elements, field]})

    def columns(self) -> List[ColumnInfo]:
        return [element.to_column() for element in self.elements]


class FormTree(BaseModel):
    """A form together with the forms it references or nests."""

    root_form_id: str
    forms: Dict[str, FormSchema] = {}

    @property
    def root(self) -> Optional[FormSchema]:
        return self.forms.get(self.root_form_id)


# =========================
# ROLES / USERS
# =========================
class Grant(BaseModel):
    resource_id: str = Field(min_length=1)
    operations: List[Permission] = Field(min_length=1)
    # Optional record-level formula, e.g. "Partner == @user.partner"
    filter: Optional[str] = None
    optional: bool = False


class Role(BaseModel):
    id: str = Field(pattern=r"^[a-z0-9_]+$")
    label: str = Field(min_length=1)
    grants: List[Grant] = []
    parameters: Dict[str, str] = {}


class UserInvite(BaseModel):
    email: EmailStr
    name: str = Field(min_length=1)
    role_id: str
    locale: str = "en"
    role_parameters: Dict[str, str] = {}


class DatabaseUser(BaseModel):
    user_id: str
    email: EmailStr
    name: str
    role_id: str
    pending: bool = False
    last_login: Optional[datetime] = None

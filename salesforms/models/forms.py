"""Form-related Pydantic models"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, Any, Optional, List
from datetime import datetime
from enum import Enum

from salesforms.exceptions import ValidationError

UPLOADS_URL_PREFIX = "/uploads/"


class FormType(str, Enum):
    """Closed set of form templates, by region and language"""
    CA_FORM_1 = "CaForm1"
    CA_FORM_2 = "CaForm2"
    CA_FORM_3 = "CaForm3"
    CA_FORM_4 = "CaForm4"
    CA_FORM_5 = "CaForm5"
    CA_FORM_6 = "CaForm6"
    CA_FORM_7 = "CaForm7"
    CA_FORM_8 = "CaForm8"
    CA_FORM_9 = "CaForm9"
    CA_FORM_10 = "CaForm10"
    CA_FORM_1_FR = "CaForm1Fr"
    CA_FORM_2_FR = "CaForm2Fr"
    CA_FORM_3_FR = "CaForm3Fr"
    CA_FORM_4_FR = "CaForm4Fr"
    CA_FORM_5_FR = "CaForm5Fr"
    CA_FORM_6_FR = "CaForm6Fr"
    CA_FORM_7_FR = "CaForm7Fr"
    CA_FORM_8_FR = "CaForm8Fr"
    CA_FORM_9_FR = "CaForm9Fr"
    CA_FORM_10_FR = "CaForm10Fr"
    US_FORM_1 = "USForm1"
    US_FORM_2 = "USForm2"
    US_FORM_3 = "USForm3"
    US_FORM_4 = "USForm4"
    US_FORM_5 = "USForm5"
    US_FORM_6 = "USForm6"
    US_FORM_7 = "USForm7"
    US_FORM_8 = "USForm8"
    US_FORM_9 = "USForm9"
    US_FORM_10 = "USForm10"


class FormStatus(str, Enum):
    """Form processing status; any value may follow any other"""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    PROCESSED = "processed"
    REJECTED = "rejected"


FORM_TYPES = frozenset(t.value for t in FormType)
FORM_STATUSES = frozenset(s.value for s in FormStatus)


class Attachment(BaseModel):
    """Stored upload attached to a form"""
    filename: str
    mimetype: Optional[str] = None
    size: Optional[int] = None
    url: Optional[str] = None


class Form(BaseModel):
    """A submitted sales form, as stored"""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    owner_id: str = Field(..., alias="user")
    form_type: str = Field(..., alias="formType")
    title: str
    fields: Dict[str, Any] = Field(default_factory=dict)
    attachments: List[Attachment] = Field(default_factory=list)
    status: str = FormStatus.SUBMITTED.value
    submitted_at: Optional[datetime] = Field(None, alias="submittedAt")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Form":
        """Build a Form from a storage row (snake_case columns)"""
        return cls(
            id=str(row["id"]),
            owner_id=str(row["user_id"]),
            form_type=row["form_type"],
            title=row["title"],
            fields=row.get("fields") or {},
            attachments=row.get("attachments") or [],
            status=row.get("status") or FormStatus.SUBMITTED.value,
            submitted_at=row.get("submitted_at"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_response(self) -> Dict[str, Any]:
        """JSON-ready representation using the API's camelCase keys"""
        return self.model_dump(by_alias=True, mode="json")


class FormSubmitRequest(BaseModel):
    """Form submission request (JSON body)"""
    form_type: Optional[str] = Field(None, alias="formType")
    title: Optional[str] = None
    fields: Optional[Dict[str, Any]] = None


class FormUpdateRequest(BaseModel):
    """Partial form update (JSON body)"""
    title: Optional[str] = None
    status: Optional[str] = None
    fields: Optional[Dict[str, Any]] = None


class FormSearchRequest(BaseModel):
    """
    Search filters; every filter is optional

    Any non-null fieldValue is an active filter, including "", 0 and false.
    """
    form_type: Optional[str] = Field(None, alias="formType")
    field_name: Optional[str] = Field(None, alias="fieldName")
    field_value: Optional[Any] = Field(None, alias="fieldValue")


def validate_new_form(form_type: Optional[str], title: Optional[str]) -> None:
    """Check the attributes every new form must carry"""
    if not form_type or not title:
        missing = "formType" if not form_type else "title"
        raise ValidationError("Form type and title are required", field=missing)
    if form_type not in FORM_TYPES:
        raise ValidationError(f"Invalid form type: {form_type}", field="formType")


def attachment_url(filename: str) -> str:
    return f"{UPLOADS_URL_PREFIX}{filename}"


def derive_attachment_urls(attachments: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Fill in the public url of every attachment that lacks one

    Attachments that already carry a url are returned unchanged, so the
    derivation can run before every save.

    Args:
        attachments: Attachment records ({filename, mimetype, size, url?})

    Returns:
        New list of attachment records, in the same order
    """
    derived = []
    for attachment in attachments:
        record = dict(attachment)
        if not record.get("url") and record.get("filename"):
            record["url"] = attachment_url(record["filename"])
        derived.append(record)
    return derived


def merge_fields(existing: Optional[Dict[str, Any]], incoming: Dict[str, Any]) -> Dict[str, Any]:
    """Shallow key-level union; incoming values win, nested values are replaced whole"""
    return {**(existing or {}), **incoming}

"""Sales form endpoints"""
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError as PydanticValidationError
from starlette.datastructures import UploadFile
from typing import Any, AsyncIterator, Dict, List, Tuple, Type
from contextlib import asynccontextmanager
import json
import logging

from salesforms.exceptions import FormError, ValidationError
from salesforms.middleware.auth import get_current_user
from salesforms.models.forms import (
    Form,
    FormSearchRequest,
    FormSubmitRequest,
    FormUpdateRequest,
    validate_new_form,
)
from salesforms.services.attachment_store import UPLOAD_FIELD_NAME
from salesforms.services.form_service import FormService, get_form_service

logger = logging.getLogger(__name__)
router = APIRouter()

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


def _parse_fields_text(value: str) -> Dict[str, Any]:
    try:
        parsed = json.loads(value) if value else {}
    except ValueError:
        raise ValidationError("fields must be a JSON object", field="fields")
    if not isinstance(parsed, dict):
        raise ValidationError("fields must be a JSON object", field="fields")
    return parsed


def _split_form(form) -> Tuple[Dict[str, Any], List[UploadFile]]:
    payload: Dict[str, Any] = {}
    fields: Dict[str, Any] = {}
    files: List[UploadFile] = []

    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            if key != UPLOAD_FIELD_NAME:
                raise ValidationError(f"Unexpected file field: {key}", field=key)
            # Browsers send an empty part when no file was picked
            if value.filename:
                files.append(value)
        elif key == "fields":
            fields.update(_parse_fields_text(value))
        elif key.startswith("fields[") and key.endswith("]"):
            fields[key[len("fields["):-1]] = value
        else:
            payload[key] = value

    if fields:
        payload["fields"] = fields
    return payload, files


@asynccontextmanager
async def _request_payload(request: Request) -> AsyncIterator[Tuple[Dict[str, Any], List[UploadFile]]]:
    """
    Read a JSON or multipart request body

    Multipart bodies carry the dynamic answers either as one `fields` part
    holding a JSON object or as `fields[name]` parts, and uploads as
    `attachments` file parts.

    Yields:
        The body as a dict and the uploaded files; a multipart form and
        its spooled files are closed when the block exits
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        try:
            payload, files = _split_form(form)
            yield payload, files
        finally:
            await form.close()
        return

    body = await request.body()
    if not body:
        yield {}, []
        return
    try:
        payload = json.loads(body)
    except ValueError:
        raise ValidationError("Request body must be valid JSON")
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    if isinstance(payload.get("fields"), str):
        payload["fields"] = _parse_fields_text(payload["fields"])
    yield payload, []


def _validate_body(model: Type[BaseModel], payload: Dict[str, Any]):
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(f"{field}: {first.get('msg')}", field=field or None)


def _one(form: Form, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": True, "data": form.to_response()}
    )


def _many(forms: List[Form]) -> Dict[str, Any]:
    return {
        "success": True,
        "count": len(forms),
        "data": [form.to_response() for form in forms]
    }


@router.post("")
async def submit_form(
    request: Request,
    auth_data: Dict = Depends(get_current_user),
    service: FormService = Depends(get_form_service)
):
    """Submit a new form, with up to five image attachments"""
    async with _request_payload(request) as (payload, files):
        body = _validate_body(FormSubmitRequest, payload)

        # Reject before anything is written to disk
        validate_new_form(body.form_type, body.title)

        stored = await service.attachment_store.save(files)

    try:
        form = service.submit(
            auth_data["user_id"],
            body.form_type,
            body.title,
            fields=body.fields,
            attachments=stored
        )
    except FormError:
        service.attachment_store.discard(stored)
        raise

    return _one(form, status.HTTP_201_CREATED)


@router.get("")
async def get_forms(
    auth_data: Dict = Depends(get_current_user),
    service: FormService = Depends(get_form_service)
):
    """Get all forms for the current user, newest first"""
    return _many(service.list_forms(auth_data["user_id"]))


@router.get("/type/{form_type}")
async def get_forms_by_type(
    form_type: str,
    auth_data: Dict = Depends(get_current_user),
    service: FormService = Depends(get_form_service)
):
    """Get the current user's forms of one type"""
    return _many(service.list_by_type(auth_data["user_id"], form_type))


@router.post("/search")
async def search_forms(
    request: Request,
    auth_data: Dict = Depends(get_current_user),
    service: FormService = Depends(get_form_service)
):
    """Search the current user's forms by type and/or a dynamic field value"""
    async with _request_payload(request) as (payload, _):
        body = _validate_body(FormSearchRequest, payload)

    forms = service.search(
        auth_data["user_id"],
        form_type=body.form_type,
        field_name=body.field_name,
        field_value=body.field_value
    )
    return _many(forms)


@router.get("/{form_id}")
async def get_form(
    form_id: str,
    auth_data: Dict = Depends(get_current_user),
    service: FormService = Depends(get_form_service)
):
    """Get a single form"""
    return _one(service.get(auth_data["user_id"], form_id))


@router.put("/{form_id}")
async def update_form(
    form_id: str,
    request: Request,
    auth_data: Dict = Depends(get_current_user),
    service: FormService = Depends(get_form_service)
):
    """Update title, status or fields of a form and append new attachments"""
    async with _request_payload(request) as (payload, files):
        body = _validate_body(FormUpdateRequest, payload)
        stored = await service.attachment_store.save(files)

    try:
        form = service.update(
            auth_data["user_id"],
            form_id,
            title=body.title,
            status=body.status,
            fields=body.fields,
            attachments=stored
        )
    except FormError:
        service.attachment_store.discard(stored)
        raise

    return _one(form)


@router.delete("/{form_id}")
async def delete_form(
    form_id: str,
    auth_data: Dict = Depends(get_current_user),
    service: FormService = Depends(get_form_service)
):
    """Delete a form and its attachment files"""
    service.delete(auth_data["user_id"], form_id)
    return {"success": True, "data": {}}

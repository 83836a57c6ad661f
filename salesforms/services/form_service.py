"""Form lifecycle: submit, update, delete and search owner-scoped forms"""
from fastapi import Depends
from typing import Any, Dict, List, Optional
import logging

from salesforms.database import FormRepository, get_form_repository
from salesforms.exceptions import NotFoundError, ValidationError
from salesforms.models.forms import (
    Form,
    FormStatus,
    FORM_STATUSES,
    derive_attachment_urls,
    merge_fields,
    validate_new_form,
)
from salesforms.services.attachment_store import AttachmentStore, get_attachment_store

logger = logging.getLogger(__name__)


def _attachment_records(uploads: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    return [
        {
            "filename": upload["filename"],
            "mimetype": upload.get("mimetype"),
            "size": upload.get("size")
        }
        for upload in (uploads or [])
    ]


class FormService:
    """
    Owner-scoped form lifecycle

    Every operation takes the requesting owner's id and never touches a
    form belonging to anyone else; a form owned by another user is
    reported exactly like a missing one.
    """

    def __init__(self, repository: FormRepository, attachment_store: AttachmentStore):
        self.repository = repository
        self.attachment_store = attachment_store

    def _load(self, owner_id: str, form_id: str) -> Form:
        form = self.repository.find_one(owner_id, form_id)
        if not form:
            raise NotFoundError(form_id)
        return form

    def submit(
        self,
        owner_id: str,
        form_type: Optional[str],
        title: Optional[str],
        fields: Optional[Dict[str, Any]] = None,
        attachments: Optional[List[Dict[str, Any]]] = None
    ) -> Form:
        """
        Create a form with status `submitted`

        Args:
            owner_id: Submitting user
            form_type: One of the FormType values
            title: Free-text label
            fields: Dynamic answers; stored as given, empty if absent
            attachments: Upload records already written by the attachment store

        Raises:
            ValidationError: formType or title missing, or formType unknown
        """
        validate_new_form(form_type, title)

        form = self.repository.create(
            owner_id,
            form_type,
            title,
            fields=dict(fields or {}),
            attachments=derive_attachment_urls(_attachment_records(attachments)),
            status=FormStatus.SUBMITTED.value
        )
        logger.info(f"Form {form.id} ({form.form_type}) submitted by {owner_id}")
        return form

    def get(self, owner_id: str, form_id: str) -> Form:
        return self._load(owner_id, form_id)

    def list_forms(self, owner_id: str) -> List[Form]:
        return self.repository.find_all_by_owner(owner_id)

    def list_by_type(self, owner_id: str, form_type: str) -> List[Form]:
        return self.repository.find_by_owner_and_type(owner_id, form_type)

    def search(
        self,
        owner_id: str,
        form_type: Optional[str] = None,
        field_name: Optional[str] = None,
        field_value: Any = None
    ) -> List[Form]:
        return self.repository.search(
            owner_id,
            form_type=form_type,
            field_name=field_name,
            field_value=field_value
        )

    def update(
        self,
        owner_id: str,
        form_id: str,
        title: Optional[str] = None,
        status: Optional[str] = None,
        fields: Optional[Dict[str, Any]] = None,
        attachments: Optional[List[Dict[str, Any]]] = None
    ) -> Form:
        """
        Partially update a form

        Each part is optional and applied independently: a non-empty title
        replaces the old one, status is replaced without any transition
        check, fields are merged key by key with incoming values winning,
        and new attachments are appended after the existing ones.

        Raises:
            NotFoundError: No form with this id for this owner
            ValidationError: status is not a known value
        """
        form = self._load(owner_id, form_id)

        patch: Dict[str, Any] = {}
        if title:
            patch["title"] = title

        if status:
            if status not in FORM_STATUSES:
                raise ValidationError(f"Invalid status: {status}", field="status")
            patch["status"] = status

        if fields:
            patch["fields"] = merge_fields(form.fields, fields)

        existing = [attachment.model_dump() for attachment in form.attachments]
        new_records = _attachment_records(attachments)
        if existing or new_records:
            patch["attachments"] = derive_attachment_urls(existing + new_records)

        updated = self.repository.update(owner_id, form_id, patch)
        if not updated:
            # Deleted between the load and the write
            raise NotFoundError(form_id)

        logger.info(f"Form {form_id} updated by {owner_id}: {sorted(patch)}")
        return updated

    def _remove_attachment_files(self, form: Form) -> int:
        """Best-effort removal of a form's stored files; never raises"""
        removed = 0
        for attachment in form.attachments:
            try:
                if self.attachment_store.remove(attachment.filename):
                    removed += 1
            except Exception as e:
                logger.warning(f"Skipping attachment {attachment.filename} of form {form.id}: {e}")
        return removed

    def delete(self, owner_id: str, form_id: str) -> None:
        """
        Delete a form and its stored attachment files

        File cleanup runs first and cannot fail the operation; the document
        is removed afterwards regardless of how many files were removed.

        Raises:
            NotFoundError: No form with this id for this owner
        """
        form = self._load(owner_id, form_id)

        removed = self._remove_attachment_files(form)

        if not self.repository.delete(owner_id, form_id):
            raise NotFoundError(form_id)

        logger.info(
            f"Form {form_id} deleted by {owner_id} "
            f"({removed}/{len(form.attachments)} attachment files removed)"
        )


def get_form_service(
    repository: FormRepository = Depends(get_form_repository),
    attachment_store: AttachmentStore = Depends(get_attachment_store)
) -> FormService:
    """FastAPI dependency providing the form service"""
    return FormService(repository, attachment_store)

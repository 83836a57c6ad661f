"""Database connection and the form repository"""
from supabase import create_client, Client
from postgrest.exceptions import APIError
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, List, Optional
import httpx
import logging
import uuid

from salesforms.config import get_settings
from salesforms.exceptions import UpstreamStorageError
from salesforms.models.forms import Form, FormStatus, validate_new_form

logger = logging.getLogger(__name__)


@lru_cache()
def get_supabase_admin() -> Client:
    """
    Service role client (bypasses RLS - every query must filter by owner)
    """
    settings = get_settings()
    return create_client(
        settings.supabase_url,
        settings.supabase_service_role_key
    )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


def _same_value(stored: Any, wanted: Any) -> bool:
    # JSON keeps booleans and numbers apart; Python would equate True and 1
    return stored == wanted and isinstance(stored, bool) == isinstance(wanted, bool)


class FormRepository:
    """
    Form documents in a Supabase table, one row per form

    The dynamic `fields` map and the `attachments` list live in JSONB
    columns. All reads and writes are scoped by `user_id`.
    """

    def __init__(self, client: Client, table: str = "forms"):
        self.client = client
        self.table = table

    def _query(self):
        return self.client.table(self.table)

    def _execute(self, query, action: str):
        try:
            return query.execute()
        except (APIError, httpx.HTTPError) as e:
            logger.error(f"Form {action} failed: {e}")
            raise UpstreamStorageError() from e

    def create(
        self,
        owner_id: str,
        form_type: str,
        title: str,
        fields: Optional[Dict[str, Any]] = None,
        attachments: Optional[List[Dict[str, Any]]] = None,
        status: str = FormStatus.SUBMITTED.value
    ) -> Form:
        """Insert a new form, raising ValidationError on a bad type or missing title"""
        validate_new_form(form_type, title)

        now = _now()
        row = {
            "id": str(uuid.uuid4()),
            "user_id": owner_id,
            "form_type": form_type,
            "title": title,
            "fields": fields or {},
            "attachments": attachments or [],
            "status": status,
            "submitted_at": now,
            "created_at": now,
            "updated_at": now
        }
        result = self._execute(self._query().insert(row), "insert")
        return Form.from_row(result.data[0] if result.data else row)

    def find_all_by_owner(self, owner_id: str) -> List[Form]:
        query = self._query().select("*").eq("user_id", owner_id).order(
            "submitted_at", desc=True
        )
        result = self._execute(query, "list")
        return [Form.from_row(row) for row in (result.data or [])]

    def find_by_owner_and_type(self, owner_id: str, form_type: str) -> List[Form]:
        query = self._query().select("*").eq("user_id", owner_id).eq(
            "form_type", form_type
        ).order("submitted_at", desc=True)
        result = self._execute(query, "list by type")
        return [Form.from_row(row) for row in (result.data or [])]

    def find_one(self, owner_id: str, form_id: str) -> Optional[Form]:
        # A malformed id cannot match any row; don't let Postgres reject it as a cast error
        if not _is_uuid(form_id):
            return None

        query = self._query().select("*").eq("id", form_id).eq(
            "user_id", owner_id
        ).limit(1)
        result = self._execute(query, "lookup")
        if not result.data:
            return None
        return Form.from_row(result.data[0])

    def update(self, owner_id: str, form_id: str, patch: Dict[str, Any]) -> Optional[Form]:
        """Apply a column patch to one form, returning the stored result"""
        if not _is_uuid(form_id):
            return None

        values = dict(patch)
        values["updated_at"] = _now()
        query = self._query().update(values).eq("id", form_id).eq("user_id", owner_id)
        result = self._execute(query, "update")
        if not result.data:
            return None
        return Form.from_row(result.data[0])

    def delete(self, owner_id: str, form_id: str) -> bool:
        if not _is_uuid(form_id):
            return False

        query = self._query().delete().eq("id", form_id).eq("user_id", owner_id)
        result = self._execute(query, "delete")
        return bool(result.data)

    def search(
        self,
        owner_id: str,
        form_type: Optional[str] = None,
        field_name: Optional[str] = None,
        field_value: Any = None
    ) -> List[Form]:
        """
        Find an owner's forms by type and/or one dynamic field value

        Args:
            owner_id: Owning user id
            form_type: Exact form type, if given
            field_name: Top-level key in `fields`; used only with field_value
            field_value: Exact value that fields[field_name] must equal. Any
                non-null value filters, including "", 0 and false; only a
                missing or null value leaves the field filter off

        Returns:
            Matching forms, newest submission first
        """
        query = self._query().select("*").eq("user_id", owner_id)

        if form_type:
            query = query.eq("form_type", form_type)

        match_field = bool(field_name) and field_value is not None
        if match_field:
            # JSONB containment narrows server side; equality is re-checked below
            query = query.contains("fields", {field_name: field_value})

        query = query.order("submitted_at", desc=True)
        result = self._execute(query, "search")

        forms = [Form.from_row(row) for row in (result.data or [])]
        if match_field:
            forms = [
                form for form in forms
                if field_name in form.fields and _same_value(form.fields[field_name], field_value)
            ]
        return forms


def get_form_repository() -> FormRepository:
    """FormRepository bound to the service role client"""
    settings = get_settings()
    return FormRepository(get_supabase_admin(), settings.forms_table)

import copy
import os
import tempfile
from datetime import datetime, timedelta, timezone

# Settings are read at import time; seed them before the app is imported
os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-role-key")
os.environ.setdefault("SUPABASE_ANON_KEY", "anon-key")
os.environ.setdefault("FILE_UPLOAD_PATH", tempfile.mkdtemp(prefix="salesforms-uploads-"))

import pytest
from fastapi import Request
from starlette.testclient import TestClient

from salesforms.main import app
from salesforms.middleware.auth import get_current_user
from salesforms.models.forms import Form, FormStatus, validate_new_form
from salesforms.services.attachment_store import AttachmentStore
from salesforms.services.form_service import FormService, get_form_service

OWNER_A = "11111111-1111-1111-1111-111111111111"
OWNER_B = "22222222-2222-2222-2222-222222222222"


class InMemoryFormRepository:
    """FormRepository contract over a dict, with a deterministic clock"""

    def __init__(self):
        self.rows = {}
        self.ids = 0
        self.epoch = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.ticks = 0

    def _now(self):
        self.ticks += 1
        return (self.epoch + timedelta(minutes=self.ticks)).isoformat()

    def _owned(self, owner_id):
        rows = [row for row in self.rows.values() if row["user_id"] == owner_id]
        rows.sort(key=lambda row: row["submitted_at"], reverse=True)
        return rows

    def _form(self, row):
        return Form.from_row(copy.deepcopy(row))

    def create(self, owner_id, form_type, title, fields=None, attachments=None,
               status=FormStatus.SUBMITTED.value):
        validate_new_form(form_type, title)
        self.ids += 1
        now = self._now()
        row = {
            "id": f"00000000-0000-0000-0000-{self.ids:012d}",
            "user_id": owner_id,
            "form_type": form_type,
            "title": title,
            "fields": copy.deepcopy(fields or {}),
            "attachments": copy.deepcopy(attachments or []),
            "status": status,
            "submitted_at": now,
            "created_at": now,
            "updated_at": now,
        }
        self.rows[row["id"]] = row
        return self._form(row)

    def find_all_by_owner(self, owner_id):
        return [self._form(row) for row in self._owned(owner_id)]

    def find_by_owner_and_type(self, owner_id, form_type):
        return [self._form(row) for row in self._owned(owner_id) if row["form_type"] == form_type]

    def find_one(self, owner_id, form_id):
        row = self.rows.get(form_id)
        if not row or row["user_id"] != owner_id:
            return None
        return self._form(row)

    def update(self, owner_id, form_id, patch):
        row = self.rows.get(form_id)
        if not row or row["user_id"] != owner_id:
            return None
        row.update(copy.deepcopy(patch))
        row["updated_at"] = self._now()
        return self._form(row)

    def delete(self, owner_id, form_id):
        row = self.rows.get(form_id)
        if not row or row["user_id"] != owner_id:
            return False
        del self.rows[form_id]
        return True

    def search(self, owner_id, form_type=None, field_name=None, field_value=None):
        rows = self._owned(owner_id)
        if form_type:
            rows = [row for row in rows if row["form_type"] == form_type]
        if field_name and field_value is not None:
            rows = [
                row for row in rows
                if field_name in row["fields"] and row["fields"][field_name] == field_value
            ]
        return [self._form(row) for row in rows]


@pytest.fixture
def repository():
    return InMemoryFormRepository()


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path


@pytest.fixture
def attachment_store(upload_dir):
    return AttachmentStore(str(upload_dir), max_file_size=1024, max_files=5)


@pytest.fixture
def service(repository, attachment_store):
    return FormService(repository, attachment_store)


async def header_user(request: Request):
    # Tests pick the requesting owner with a header
    return {"user_id": request.headers.get("X-Test-User", OWNER_A)}


@pytest.fixture
def client(service):
    app.dependency_overrides[get_form_service] = lambda: service
    app.dependency_overrides[get_current_user] = header_user
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client(service):
    app.dependency_overrides[get_form_service] = lambda: service
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()

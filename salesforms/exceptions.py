"""Form error taxonomy, translated to JSON responses in middleware.error_handler"""
from typing import Optional


class FormError(Exception):
    """Base class for errors surfaced to API callers"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(FormError):
    """Missing or invalid client input"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(FormError):
    """No form matches (id, owner).

    Raised the same way whether the id is unknown or belongs to another
    owner, so callers cannot probe for other tenants' forms.
    """

    status_code = 404

    def __init__(self, form_id: str):
        super().__init__(f"Form not found with id of {form_id}")
        self.form_id = form_id


class UpstreamStorageError(FormError):
    """Document store failure"""

    status_code = 500

    def __init__(self, message: str = "Database error"):
        super().__init__(message)

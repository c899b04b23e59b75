"""
Enrollment and catalog failures.

The `code` is surfaced verbatim as the JSON `error` field; `detail` names the
missing aggregate (`course_not_found`, `student_not_found`, ...).
"""
from __future__ import annotations


class CatalogError(Exception):
    code = "bad_request"
    status_code = 400

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.code)
        self.detail = detail

    def to_payload(self) -> dict:
        payload = {"error": self.code}
        if self.detail:
            payload["detail"] = self.detail
        return payload


class NotFound(CatalogError):
    code = "not_found"
    status_code = 404


class AlreadyEnrolled(CatalogError):
    code = "already_enrolled"
    status_code = 409


class NotEnrolled(CatalogError):
    code = "not_enrolled"
    status_code = 409


__all__ = ["CatalogError", "NotFound", "AlreadyEnrolled", "NotEnrolled"]

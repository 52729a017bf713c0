"""
Error taxonomy for the administrative data service.

Every error carries the HTTP status the dispatcher answers with and the
message placed in the ``{"error": ...}`` body.
"""


class PropdeskError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthorized(PropdeskError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class AccessDenied(PropdeskError):
    status_code = 403

    def __init__(self, message: str = "Access denied: Super Admin only"):
        super().__init__(message)


class TableNotAllowed(PropdeskError):
    def __init__(self, table):
        super().__init__(f"Table '{table}' is not allowed")


class InvalidIdentifier(PropdeskError):
    def __init__(self, name):
        super().__init__(f"Invalid identifier: {name}")


class InvalidColumnType(PropdeskError):
    def __init__(self, column_type):
        super().__init__(f"Invalid column type: {column_type}")


class InvalidEnumValue(PropdeskError):
    def __init__(self, value):
        super().__init__(f"Invalid enum value: {value}")


class ProtectedColumnViolation(PropdeskError):
    def __init__(self, column):
        super().__init__(f"Cannot delete protected column: {column}")


class UnknownAction(PropdeskError):
    def __init__(self, action):
        super().__init__(f"Unknown action: {action}")


class DatastoreError(PropdeskError):
    """A failure reported by the underlying database, already sanitized for clients."""


class ColumnAddFailed(DatastoreError):
    pass


class ColumnDropFailed(DatastoreError):
    pass


class EnumValueAddFailed(DatastoreError):
    pass

"""
Errori di dominio restituiti dai service.

Il livello HTTP li traduce in status code; nessuno espone dettagli dello storage.
Solo Transient è ritentabile dal chiamante.
"""


class AssignmentError(Exception):
    code = "error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class ValidationError(AssignmentError):
    code = "validation_error"


class Forbidden(AssignmentError, PermissionError):
    code = "forbidden"


class NotFound(AssignmentError):
    code = "not_found"


class InvalidTransition(AssignmentError):
    code = "invalid_transition"

    def __init__(self, current: str, target: str):
        super().__init__(f"Invalid status transition from {current} to {target}")
        self.current = current
        self.target = target


class InvalidState(AssignmentError):
    code = "invalid_state"


class DeadlinePassed(AssignmentError):
    code = "deadline_passed"


class AlreadySubmitted(AssignmentError):
    code = "already_submitted"


class Transient(AssignmentError):
    code = "transient"

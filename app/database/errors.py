from contextlib import contextmanager

from pymongo.errors import ConnectionFailure, DuplicateKeyError, ExecutionTimeout, PyMongoError, WTimeoutError


class StoreError(Exception):
    """Errore del livello di persistenza: non deve mai uscire dai service."""


class DuplicateSubmissionError(StoreError):
    """Violazione del vincolo unico (assignmentId, studentId)."""


class StoreUnavailable(StoreError):
    """Database irraggiungibile, operazione scaduta lato server o transazione in conflitto."""


@contextmanager
def translate_mongo_errors():
    try:
        yield
    except DuplicateKeyError as e:
        raise DuplicateSubmissionError(str(e)) from e
    except (ConnectionFailure, ExecutionTimeout, WTimeoutError) as e:
        raise StoreUnavailable(type(e).__name__) from e
    except PyMongoError as e:
        # es. WriteConflict (112) dentro una transazione: il chiamante può ritentare
        if e.has_error_label("TransientTransactionError"):
            raise StoreUnavailable(type(e).__name__) from e
        raise

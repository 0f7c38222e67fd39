from visits.errors import ErrorKind, StoreError, classify_backend_error


class FakeAPIError(Exception):
    def __init__(self, message, code=None):
        super().__init__(message)
        self.message = message
        self.code = code


def test_permission_code_is_classified():
    error = classify_backend_error(FakeAPIError("new row violates row-level security policy", "42501"), "carga")
    assert error.kind is ErrorKind.PERMISSION
    assert error.code == "42501"


def test_missing_function_is_missing_schema():
    exc = FakeAPIError("Could not find the function public.delete_visits_by_month", "PGRST202")
    assert classify_backend_error(exc, "borrado").kind is ErrorKind.MISSING_SCHEMA


def test_connection_and_timeout_errors():
    assert classify_backend_error(ConnectionError("refused"), "lectura").kind is ErrorKind.NETWORK
    assert classify_backend_error(TimeoutError(), "lectura").kind is ErrorKind.TIMEOUT


def test_unknown_errors_keep_code_and_message():
    error = classify_backend_error(FakeAPIError("invalid input syntax for type date", "22007"), "carga")
    assert error.kind is ErrorKind.BACKEND
    assert "22007" in error.message
    assert "invalid input syntax" in error.message


def test_unique_violation_is_duplicate():
    exc = FakeAPIError('duplicate key value violates unique constraint "executives_name_key"', "23505")
    assert classify_backend_error(exc, "creación de ejecutiva").kind is ErrorKind.DUPLICATE


def test_store_errors_pass_through():
    original = StoreError("ya clasificado", ErrorKind.NOT_FOUND)
    assert classify_backend_error(original, "x") is original

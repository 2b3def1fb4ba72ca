import contextvars

_caller: contextvars.ContextVar[str] = contextvars.ContextVar("caller", default="-")
_request_id: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")


def set_caller(caller: str) -> None:
    _caller.set(caller)


def get_caller() -> str:
    return _caller.get()


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


def get_request_id() -> str:
    return _request_id.get()


def clear_context() -> None:
    _caller.set("-")
    _request_id.set("-")

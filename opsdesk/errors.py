from functools import wraps

from flask import jsonify
from loguru import logger


class OpsDeskError(Exception):
    status_code = 500


class ValidationError(OpsDeskError, ValueError):
    status_code = 400


class NotFoundError(OpsDeskError, LookupError):
    status_code = 404


class ImportDataError(OpsDeskError):
    def __init__(self, path: str, line_no: int, detail: str):
        super().__init__(f"{path}:{line_no}: {detail}")
        self.path = path
        self.line_no = line_no


def error_response(message: str, status_code: int):
    return jsonify({"success": False, "error": message}), status_code


def handle_errors(failure_message: str):
    """
    Route boundary: client errors keep their message, everything else is
    logged and reported as `failure_message` with a 500.
    """

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            try:
                return view(*args, **kwargs)
            except OpsDeskError as e:
                if e.status_code < 500:
                    return error_response(str(e), e.status_code)
                logger.exception(f"{failure_message}: {e}")
                return error_response(failure_message, 500)
            except Exception:
                logger.exception(failure_message)
                return error_response(failure_message, 500)

        return wrapper

    return decorator

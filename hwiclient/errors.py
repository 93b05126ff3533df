"""
Errors and Error Codes
**********************

Every failure surfaced by :mod:`hwiclient` is an exception that subclasses :class:`HWIClientError`.
Each error belongs to exactly one :class:`ErrorCategory`, inferred from the numeric code HWI reported
(see :func:`category_for_code`). The original code and message are kept for diagnostics.

The command line tool converts these exceptions into dictionaries that look like ``{"error": "<msg>", "code": <code>}``,
the same shape the ``hwi`` tool itself produces.
"""

from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Type

# Error codes, as reported by HWI
NO_DEVICE_TYPE = -1 #: Device type was not specified
MISSING_ARGUMENTS = -2 #: Arguments are missing
DEVICE_CONN_ERROR = -3 #: Error connecting to the device
UNKNOWN_DEVICE_TYPE = -4 #: Device type is unknown
INVALID_TX = -5 #: Transaction is invalid
NO_PASSWORD = -6 #: No password provided, but one is needed
BAD_ARGUMENT = -7 #: Bad, malformed, or conflicting argument was provided
NOT_IMPLEMENTED = -8 #: Function is not implemented
UNAVAILABLE_ACTION = -9 #: Function is not available for this device
DEVICE_ALREADY_INIT = -10 #: Device is already initialized
DEVICE_ALREADY_UNLOCKED = -11 #: Device is already unlocked
DEVICE_NOT_READY = -12 #: Device is not ready
UNKNOWN_ERROR = -13 #: An unknown error occurred
ACTION_CANCELED = -14 #: Action was canceled by the user
DEVICE_BUSY = -15 #: Device is busy
NEED_TO_BE_ROOT = -16 #: User needs to be root to perform action
HELP_TEXT = -17 #: Help text was requested by the user
DEVICE_NOT_INITIALIZED = -18 #: Device is not initialized


class ErrorCategory(Enum):
    """
    The closed set of failure kinds a caller has to distinguish
    """
    INVALID_ARGUMENT = "invalid_argument" #: Malformed input caught before anything was sent to the library
    DEVICE_NOT_FOUND = "device_not_found" #: No matching device
    DEVICE_CONN_ERROR = "device_conn_error" #: Transport level failure
    ACTION_CANCELED = "action_canceled" #: The user declined on the device
    UNSUPPORTED_COMMAND = "unsupported_command" #: The device or library does not implement the command
    BAD_ARGUMENT = "bad_argument" #: The library rejected a well formed argument
    UNKNOWN = "unknown" #: Anything else, including failures of the backend itself

    def __str__(self) -> str:
        return self.value


_CODE_CATEGORIES = {
    NO_DEVICE_TYPE: ErrorCategory.DEVICE_NOT_FOUND,
    UNKNOWN_DEVICE_TYPE: ErrorCategory.DEVICE_NOT_FOUND,
    DEVICE_CONN_ERROR: ErrorCategory.DEVICE_CONN_ERROR,
    DEVICE_BUSY: ErrorCategory.DEVICE_CONN_ERROR,
    ACTION_CANCELED: ErrorCategory.ACTION_CANCELED,
    NOT_IMPLEMENTED: ErrorCategory.UNSUPPORTED_COMMAND,
    UNAVAILABLE_ACTION: ErrorCategory.UNSUPPORTED_COMMAND,
    BAD_ARGUMENT: ErrorCategory.BAD_ARGUMENT,
    MISSING_ARGUMENTS: ErrorCategory.BAD_ARGUMENT,
    INVALID_TX: ErrorCategory.BAD_ARGUMENT,
}


def category_for_code(code: Optional[int]) -> ErrorCategory:
    """
    Map an HWI error code to its :class:`ErrorCategory`.

    :param code: The code reported by HWI, or ``None`` if there was none
    :return: The category. Unrecognized and missing codes are :attr:`ErrorCategory.UNKNOWN`.
    """
    if code is None:
        return ErrorCategory.UNKNOWN
    return _CODE_CATEGORIES.get(code, ErrorCategory.UNKNOWN)


# Exceptions
class HWIClientError(Exception):
    """
    Generic exception type produced by hwiclient.
    Subclassed once per :class:`ErrorCategory`.

    Contains a message, the category and the HWI error code.
    """
    category = ErrorCategory.UNKNOWN
    default_code = UNKNOWN_ERROR

    def __init__(self, msg: str, code: Optional[int] = None) -> None:
        """
        :param msg: The error message
        :param code: The HWI error code. Defaults to the class's :attr:`default_code`.
        """
        Exception.__init__(self, msg)
        self.msg = msg
        self.code = self.default_code if code is None else code

    def get_code(self) -> int:
        """
        Get the error code for this Error

        :return: The error code
        """
        return self.code

    def get_msg(self) -> str:
        """
        Get the error message for this Error

        :return: The error message
        """
        return self.msg

    def __str__(self) -> str:
        return self.msg

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.msg!r}, code={self.code})"


class InvalidArgumentError(HWIClientError):
    """
    :class:`HWIClientError` for :attr:`ErrorCategory.INVALID_ARGUMENT`.
    Raised before any call is made to the library.
    """
    category = ErrorCategory.INVALID_ARGUMENT
    default_code = BAD_ARGUMENT


class DeviceNotFoundError(HWIClientError):
    """
    :class:`HWIClientError` for :attr:`ErrorCategory.DEVICE_NOT_FOUND`
    """
    category = ErrorCategory.DEVICE_NOT_FOUND
    default_code = NO_DEVICE_TYPE


class DeviceConnError(HWIClientError):
    """
    :class:`HWIClientError` for :attr:`ErrorCategory.DEVICE_CONN_ERROR`
    """
    category = ErrorCategory.DEVICE_CONN_ERROR
    default_code = DEVICE_CONN_ERROR


class ActionCanceledError(HWIClientError):
    """
    :class:`HWIClientError` for :attr:`ErrorCategory.ACTION_CANCELED`
    """
    category = ErrorCategory.ACTION_CANCELED
    default_code = ACTION_CANCELED


class UnsupportedCommandError(HWIClientError):
    """
    :class:`HWIClientError` for :attr:`ErrorCategory.UNSUPPORTED_COMMAND`
    """
    category = ErrorCategory.UNSUPPORTED_COMMAND
    default_code = NOT_IMPLEMENTED


class BadArgumentError(HWIClientError):
    """
    :class:`HWIClientError` for :attr:`ErrorCategory.BAD_ARGUMENT`
    """
    category = ErrorCategory.BAD_ARGUMENT
    default_code = BAD_ARGUMENT


class UnknownError(HWIClientError):
    """
    :class:`HWIClientError` for :attr:`ErrorCategory.UNKNOWN`.
    Also used for failures of the backend itself, e.g. ``hwilib`` not being importable.
    """
    category = ErrorCategory.UNKNOWN
    default_code = UNKNOWN_ERROR


_CATEGORY_CLASSES: Dict[ErrorCategory, Type[HWIClientError]] = {
    cls.category: cls for cls in (
        InvalidArgumentError,
        DeviceNotFoundError,
        DeviceConnError,
        ActionCanceledError,
        UnsupportedCommandError,
        BadArgumentError,
        UnknownError,
    )
}


def lift_error(msg: str, code: Optional[int] = None) -> HWIClientError:
    """
    Build the exception for an error payload reported by HWI.

    :param msg: The error message
    :param code: The HWI error code, if one was reported
    :return: An instance of the :class:`HWIClientError` subclass for the code's category
    """
    cls = _CATEGORY_CLASSES[category_for_code(code)]
    return cls(msg, code)


def lift_exception(e: BaseException) -> HWIClientError:
    """
    Convert an exception raised by a backend into an :class:`HWIClientError`.

    Exceptions that already are :class:`HWIClientError` are returned unchanged.
    Exceptions shaped like HWI's ``HWWError`` (having ``get_code`` and ``get_msg``) are lifted by their code.
    :class:`OSError` is a transport failure. Everything else is :class:`UnknownError`.
    """
    if isinstance(e, HWIClientError):
        return e
    get_code = getattr(e, "get_code", None)
    get_msg = getattr(e, "get_msg", None)
    if callable(get_code) and callable(get_msg):
        return lift_error(str(get_msg()), get_code())
    if isinstance(e, OSError):
        return DeviceConnError(str(e) or type(e).__name__)
    return UnknownError(str(e) or type(e).__name__)


@contextmanager
def handle_errors(
    msg: Optional[str] = None,
    result: Optional[Dict[str, Any]] = None,
    code: int = UNKNOWN_ERROR,
    debug: bool = False,
) -> Iterator[None]:
    """
    Context manager to catch all Exceptions and HWIClientErrors to return them as dictionaries containing the error message and code.

    :param msg: Error message prefix. Attached to the beginning of each error message
    :param result: The dictionary to put the resulting error in
    :param code: The default error code to use for Exceptions
    :param debug: Whether to also print out the traceback for debugging purposes
    """
    if result is None:
        result = {}

    if msg is None:
        msg = ""
    else:
        msg = msg + " "

    try:
        yield

    except HWIClientError as e:
        result['error'] = msg + e.get_msg()
        result['code'] = e.get_code()
    except Exception as e:
        result['error'] = msg + str(e)
        result['code'] = code
        if debug:
            import traceback
            traceback.print_exc()

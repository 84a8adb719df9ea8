"""Enumerated settings accepted by the Ceyear 4051B.

Each setting the instrument takes from a fixed list is a closed ``str`` enum.
Free text is converted at the boundary with ``parse``, which matches
case-insensitively and raises ``ValidationError`` for anything else.

The wire text for a free-text argument is the caller's own string, so
``set_unit("dbm")`` sends ``dbm``; only the check ignores case.
"""

from enum import Enum

from sa_errors import RangeError, ValidationError

TRACE_RANGE = (1, 6)
MARKER_RANGE = (1, 12)

_LABELS = {
    "PowerUnit": "unit",
    "TraceFormat": "format",
    "TriggerSource": "trigger",
    "DetectorType": "detector type",
    "TraceMode": "trace mode",
}


class _Option(str, Enum):

    @classmethod
    def parse(cls, value):
        """Convert a member or free text to a member of this enum.

        Parameters
        ----------
        value : str or _Option
            Member, or text matching a member value in any case. Members of
            other option enums are rejected.

        Returns
        -------
        _Option
            The matching member

        Raises
        ------
        ValidationError
            If `value` does not name a member
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str) and not isinstance(value, Enum):
            wanted = value.upper()
            for member in cls:
                if member.value == wanted:
                    return member
        allowed = ", ".join(member.value for member in cls)
        raise ValidationError(
            f"Invalid {_LABELS[cls.__name__]}: {value!r}. Must be one of: {allowed}")


class PowerUnit(_Option):
    DBM = "DBM"
    DBMV = "DBMV"
    DBMA = "DBMA"
    V = "V"
    W = "W"
    A = "A"
    DBUV = "DBUV"
    DBUA = "DBUA"
    DBUVM = "DBUVM"
    DBUAM = "DBUAM"
    DBPT = "DBPT"
    DBG = "DBG"


class TraceFormat(_Option):
    ASCII = "ASCII"
    INTEGER32 = "INTEGER32"
    REAL32 = "REAL32"
    REAL64 = "REAL64"


class TriggerSource(_Option):
    IMMEDIATE = "IMMEDIATE"
    EXTERNAL1 = "EXTERNAL1"
    EXTERNAL2 = "EXTERNAL2"
    LINE = "LINE"
    FRAME = "FRAME"
    RFBURST = "RFBURST"
    VIDEO = "VIDEO"
    IF = "IF"
    ALARM = "ALARM"
    LAN = "LAN"
    IQMAG = "IQMAG"
    IDEMOD = "IDEMOD"
    QDEMOD = "QDEMOD"
    IINPUT = "IINPUT"
    QINPUT = "QINPUT"
    AIQMAG = "AIQMAG"


class DetectorType(_Option):
    NORMAL = "NORMAL"
    POSITIVE = "POSITIVE"
    NEGATIVE = "NEGATIVE"
    SAMPLE = "SAMPLE"
    AVERAGE = "AVERAGE"
    RMS = "RMS"


class TraceMode(_Option):
    WRITE = "WRITE"
    MAXHOLD = "MAXHOLD"
    MINHOLD = "MINHOLD"
    VIEW = "VIEW"
    BLANK = "BLANK"
    AVERAGE = "AVERAGE"


def command_text(option_cls, value):
    """Validate `value` against `option_cls` and return the text to send.

    Parameters
    ----------
    option_cls : type
        One of the option enums in this module
    value : str or _Option
        Value supplied by the caller

    Returns
    -------
    str
        `value` itself for free text, the member value for a member

    Raises
    ------
    ValidationError
        If `value` is not in the allow-list of `option_cls`
    """
    member = option_cls.parse(value)
    if isinstance(value, option_cls):
        return member.value
    return str(value)


def _check_index(kind, value, bounds):
    low, high = bounds
    if isinstance(value, bool) or not isinstance(value, int):
        raise RangeError(f"Invalid {kind} number: {value!r}. Must be an integer.")
    if value < low or value > high:
        raise RangeError(
            f"Invalid {kind} number: {value}. Must be between {low} and {high}.")
    return value


def check_trace_num(trace_num):
    """Return `trace_num` if it is 1-6, else raise RangeError."""
    return _check_index("trace", trace_num, TRACE_RANGE)


def check_marker_num(marker_num):
    """Return `marker_num` if it is 1-12, else raise RangeError."""
    return _check_index("marker", marker_num, MARKER_RANGE)

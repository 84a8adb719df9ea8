"""Exception types raised by the spectrum analyzer tools.

Classes
-------
SpectrumAnalyzerError
    Base class for every error raised by this package
UnsupportedInterfaceError
    Connection string uses a scheme other than GPIB board/address
InstrumentConnectionError
    Transport failed to open, send or query
ValidationError
    Enumerated argument outside its allow-list
RangeError
    Trace or marker index outside the instrument's range
ParseError
    Instrument reply could not be read as a number
InstrumentReportedError
    Instrument error queue reported a fault (strict mode only)
SessionClosedError
    Session used after close()
"""


class SpectrumAnalyzerError(Exception):
    """Base class for spectrum analyzer errors."""


class UnsupportedInterfaceError(SpectrumAnalyzerError, ValueError):
    """Raised when the connection string is not a GPIB address."""


class InstrumentConnectionError(SpectrumAnalyzerError, ConnectionError):
    """Raised when the transport fails while opening, writing or reading."""


class ValidationError(SpectrumAnalyzerError, ValueError):
    """Raised when an option is not one the instrument accepts.

    Nothing is sent to the instrument when this is raised.
    """


class RangeError(ValidationError):
    """Raised when a trace or marker number is out of range."""


class ParseError(SpectrumAnalyzerError, ValueError):
    """Raised when a reply is not a valid floating point value.

    Parameters
    ----------
    reply : str
        The raw reply that failed to parse
    token : str or None, optional
        The offending token within the reply, by default None
    """

    def __init__(self, reply, token=None):
        self.reply = reply
        self.token = token
        if token is None:
            msg = f"Could not parse instrument reply: {reply!r}"
        else:
            msg = f"Could not parse {token!r} in instrument reply: {reply!r}"
        super().__init__(msg)


class InstrumentReportedError(SpectrumAnalyzerError):
    """Raised by a strict session when :SYSTem:ERRor? reports a fault.

    Parameters
    ----------
    message : str
        Error queue entry as returned by the instrument
    """

    def __init__(self, message):
        self.message = message
        super().__init__(f"Instrument reported error: {message}")


class SessionClosedError(SpectrumAnalyzerError, RuntimeError):
    """Raised when a closed session is used again."""

"""GPIB transport for the spectrum analyzer session.

The session only needs three calls from its transport: ``send`` a command,
``query`` a command and read the reply, and ``close``. ``VisaTransport``
provides them on top of a pyvisa resource; tests pass any object with the same
methods.

Only GPIB board/address connection strings are supported. The instrument
manual also describes a raw socket form (``TCPIP0::<ip>::5025::SOCKET``),
which is rejected with ``UnsupportedInterfaceError``.
"""

import logging
import re
from dataclasses import dataclass
from typing import Protocol

import pyvisa
from pyvisa.errors import VisaIOError

from sa_errors import InstrumentConnectionError, UnsupportedInterfaceError

log = logging.getLogger(__name__)

_GPIB_RE = re.compile(r"^GPIB(\d*)::(\d+)(?:::INSTR)?$", re.IGNORECASE)


class Transport(Protocol):
    def send(self, command: str) -> None: ...

    def query(self, command: str) -> str: ...

    def close(self) -> None: ...


@dataclass(frozen=True)
class GpibAddress:
    board: int
    address: int

    @property
    def resource_name(self) -> str:
        return f"GPIB{self.board}::{self.address}::INSTR"


def parse_address(text):
    """Parse a ``GPIB<board>::<address>`` connection string.

    Parameters
    ----------
    text : str
        Connection string, e.g. ``"GPIB0::18"`` or ``"GPIB0::18::INSTR"``.
        An omitted board number means board 0.

    Returns
    -------
    GpibAddress
        Board index and primary address

    Raises
    ------
    UnsupportedInterfaceError
        If `text` is not a GPIB connection string

    Examples
    --------
    >>> parse_address("GPIB0::18")
    GpibAddress(board=0, address=18)
    """
    match = _GPIB_RE.match(text.strip()) if isinstance(text, str) else None
    if match is None:
        raise UnsupportedInterfaceError(
            f"Only GPIB interfaces are currently supported, got {text!r}")
    board = int(match.group(1)) if match.group(1) else 0
    return GpibAddress(board=board, address=int(match.group(2)))


class VisaTransport:
    """pyvisa-backed transport to one instrument.

    Parameters
    ----------
    resource : pyvisa.resources.MessageBasedResource
        Open VISA resource
    """

    def __init__(self, resource):
        self._resource = resource

    @classmethod
    def open(cls, address, timeout_ms=5000, resource_manager=None):
        """Open a VISA session to the instrument at `address`.

        Parameters
        ----------
        address : GpibAddress
            Parsed connection address
        timeout_ms : int, optional
            I/O timeout in milliseconds, by default 5000
        resource_manager : pyvisa.ResourceManager or None, optional
            Resource manager to use; a default one is created when None

        Returns
        -------
        VisaTransport
            Transport wrapping the opened resource

        Raises
        ------
        InstrumentConnectionError
            If the VISA library cannot open the resource
        """
        try:
            rm = resource_manager or pyvisa.ResourceManager()
            resource = rm.open_resource(address.resource_name)
            resource.timeout = timeout_ms
        except (VisaIOError, OSError, ValueError) as e:
            raise InstrumentConnectionError(
                f"Could not open {address.resource_name}: {e}") from e
        log.info("Opened GPIB device at address %d on board %d",
                 address.address, address.board)
        return cls(resource)

    def send(self, command):
        try:
            self._resource.write(command)
        except (VisaIOError, OSError) as e:
            raise InstrumentConnectionError(f"Write of {command!r} failed: {e}") from e

    def query(self, command):
        try:
            reply = self._resource.query(command)
        except (VisaIOError, OSError) as e:
            raise InstrumentConnectionError(f"Query {command!r} failed: {e}") from e
        return reply.strip()

    def close(self):
        self._resource.close()

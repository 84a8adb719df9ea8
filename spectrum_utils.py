"""Shared utilities for the Ceyear 4051B spectrum analyzer scripts.

This module provides the instrument session used by every script, together with
the interactive prompts and plotting helpers the scripts share.

Classes
-------
AnalyzerState
    Last values this session requested from the instrument
SpectrumAnalyzer
    Session object driving one Ceyear 4051B over GPIB

Functions
---------
prompt_sa_settings : function
    Interactive user input for measurement parameters
apply_settings : function
    Configure a session from prompted settings
pick_resource : function
    Interactive selection among the GPIB instruments VISA can see
add_connection_args : function
    Add the --config/--address options shared by the scripts
connect_from_args : function
    Open a session from parsed command line arguments
plot_trace : function
    Plot a trace with a save-to-CSV button
plot_waterfall : function
    Draw a waterfall of successive traces
"""

import datetime
import logging
import numbers
import time
import warnings
from dataclasses import asdict, dataclass

import matplotlib.pyplot as plt
import pyvisa
from matplotlib.widgets import Button, TextBox

from sa_config import load_config, setup_logging
from sa_errors import InstrumentReportedError, SessionClosedError, ValidationError
from sa_export import (frequency_axis, parse_float, parse_trace,
                       write_trace_csv)
from sa_options import (DetectorType, PowerUnit, TraceFormat, TraceMode,
                        TriggerSource, check_marker_num, check_trace_num,
                        command_text)
from sa_transport import VisaTransport, parse_address

log = logging.getLogger(__name__)

DEFAULT_ADDRESS = "GPIB0::18"
NO_ERROR = "+0"


@dataclass
class AnalyzerState:
    """Configuration last requested by this session.

    The values mirror what was sent, not what the instrument reports back,
    except for bandwidths read back in auto mode.
    """
    center_freq: float = 0.0      # GHz
    span_freq: float = 0.0        # MHz
    points: int = 1001
    reference_level: float = 0.0  # dBm
    attenuation: int = 0          # dB, manual attenuation only
    rbw: float = 0.0              # Hz
    vbw: float = 0.0              # Hz
    detector_type: str = "NORMAL"
    trace_mode: str = "WRITE"     # trace 1 only


class SpectrumAnalyzer:
    """Session for controlling a Ceyear 4051B spectrum analyzer over GPIB.

    Opening the session identifies, resets and clears the instrument. Every
    setter finishes by polling the instrument error queue and returns whether
    an error was reported; with ``strict_errors=True`` a reported error raises
    ``InstrumentReportedError`` instead.

    Parameters
    ----------
    address : str, optional
        GPIB connection string, by default 'GPIB0::18'
    transport : sa_transport.Transport or None, optional
        Already open transport with ``send``, ``query`` and ``close``; a
        ``VisaTransport`` is opened when None
    timeout_ms : int, optional
        VISA I/O timeout, by default 5000
    reset_settle_s : float, optional
        Delay after ``*RST`` before the next command, by default 0.5
    manufacturer : str, optional
        Token expected in the first ``*IDN?`` field, by default 'Ceyear'
    strict_errors : bool, optional
        Raise on instrument-reported errors, by default False

    Attributes
    ----------
    transport : object
        Transport owned by this session

    Raises
    ------
    UnsupportedInterfaceError
        If `address` is not a GPIB connection string
    InstrumentConnectionError
        If the transport fails while opening or initialising

    Examples
    --------
    >>> sa = SpectrumAnalyzer('GPIB0::18')
    >>> sa.set_freq(2.4, 100)
    False
    >>> readings = sa.shot(5)
    >>> sa.close()
    """

    def __init__(self, address=DEFAULT_ADDRESS, *, transport=None, timeout_ms=5000,
                 reset_settle_s=0.5, manufacturer="Ceyear", strict_errors=False):
        gpib = parse_address(address)
        self._address = address
        self._state = AnalyzerState()
        self._closed = False
        self.reset_settle_s = reset_settle_s
        self.manufacturer = manufacturer
        self.strict_errors = strict_errors
        if transport is None:
            transport = VisaTransport.open(gpib, timeout_ms=timeout_ms)
        self.transport = transport

        try:
            identify_string = self.check_identify()
            self.reset()
            self.clear()
        except Exception:
            self._closed = True
            try:
                transport.close()
            except Exception:
                log.exception("Failed to close transport after initialisation error")
            raise
        log.info("Connected to: %s", identify_string)

    @classmethod
    def from_config(cls, config, transport=None):
        """Create a session from the ``analyzer`` section of a loaded config."""
        opts = config["analyzer"]
        return cls(
            opts["address"],
            transport=transport,
            timeout_ms=opts["timeout_ms"],
            reset_settle_s=opts["reset_settle_s"],
            manufacturer=opts["manufacturer"],
            strict_errors=opts["strict_errors"],
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if not self._closed:
            self.close()

    @property
    def address(self):
        return self._address

    @property
    def closed(self):
        return self._closed

    @property
    def state(self):
        """Copy of the cached configuration."""
        return AnalyzerState(**asdict(self._state))

    @property
    def center_freq(self):
        return self._state.center_freq

    @property
    def span_freq(self):
        return self._state.span_freq

    @property
    def points(self):
        return self._state.points

    @property
    def reference_level(self):
        return self._state.reference_level

    @property
    def attenuation(self):
        return self._state.attenuation

    @property
    def rbw(self):
        return self._state.rbw

    @property
    def vbw(self):
        return self._state.vbw

    @property
    def detector_type(self):
        return self._state.detector_type

    @property
    def trace_mode(self):
        return self._state.trace_mode

    def _check_open(self):
        if self._closed:
            raise SessionClosedError(f"Session to {self._address} is closed")

    def _send(self, command):
        self._check_open()
        log.debug("-> %s", command)
        self.transport.send(command)

    def _query(self, command):
        self._check_open()
        reply = self.transport.query(command)
        log.debug("%s <- %s", command, reply)
        return reply

    def _option(self, option_cls, value):
        """Return the wire text for an enumerated option.

        An invalid value still polls the error queue, like every setter, before
        the ValidationError propagates. Nothing is sent, and a queued
        instrument error never replaces the ValidationError.
        """
        self._check_open()
        try:
            return command_text(option_cls, value)
        except ValidationError as e:
            log.error("%s", e)
            self._poll_error(raise_strict=False)
            raise

    def check_identify(self):
        """Query the instrument identification string.

        Returns
        -------
        str
            Full ``*IDN?`` reply, e.g. 'Ceyear,4051B,SN123,1.0'

        Warns
        -----
        UserWarning
            If the manufacturer field does not name the expected vendor
        """
        idn = self._query("*IDN?")
        idn_parts = idn.split(",")
        if self.manufacturer.lower() in idn_parts[0].lower():
            model = idn_parts[1] if len(idn_parts) > 1 else "?"
            log.info("Spectrum Analyzer %s is connected.", model)
        else:
            msg = f"Connected device may not be a {self.manufacturer} instrument: {idn}"
            log.warning(msg)
            warnings.warn(msg, stacklevel=2)
        return idn

    def reset(self):
        """Reset the instrument and wait for it to settle."""
        self._send("*RST")
        time.sleep(self.reset_settle_s)

    def clear(self):
        """Clear the status registers and error queue."""
        self._send("*CLS")

    def close(self):
        """Close the connection.

        Raises
        ------
        SessionClosedError
            If the session was already closed
        """
        self._check_open()
        self._closed = True
        self.transport.close()
        log.info("Connection to spectrum analyzer closed.")

    def check_error(self):
        """Poll the instrument error queue.

        Any reply not starting with '+0' is logged and the queue is cleared.

        Returns
        -------
        bool
            True if the instrument reported an error

        Raises
        ------
        InstrumentReportedError
            Only when the session was opened with ``strict_errors=True``
        """
        return self._poll_error(raise_strict=self.strict_errors)

    def _poll_error(self, raise_strict):
        error_msg = self._query(":SYSTem:ERRor?")
        if error_msg.startswith(NO_ERROR):
            return False
        log.error("Error: %s", error_msg)
        self._send("*CLS")
        if raise_strict:
            raise InstrumentReportedError(error_msg)
        return True

    def set_freq(self, center_freq, span_freq=500):
        """Set center frequency (GHz) and span (MHz).

        Returns
        -------
        bool
            True if the instrument reported an error
        """
        self._check_open()
        self._state.center_freq = float(center_freq)
        self._state.span_freq = float(span_freq)
        self._send(f":FREQuency:CENTer {center_freq} GHz")
        self._send(f":FREQuency:SPAN {span_freq} MHz")
        return self.check_error()

    def set_sweep(self, sweep_type="sweep", points=1001):
        """Set the sweep type and number of sweep points.

        Raises
        ------
        ValueError
            If `points` is not an integer of at least 1; nothing is sent
        """
        self._check_open()
        if isinstance(points, bool) or not isinstance(points, numbers.Integral) or points < 1:
            raise ValueError(f"Invalid sweep points: {points!r}. Must be an integer >= 1.")
        self._state.points = int(points)
        self._send(f":SWEep:TYPE {sweep_type}")
        self._send(f":SWEep:POINts {points}")
        return self.check_error()

    def set_unit(self, unit="DBM"):
        """Set the amplitude unit, one of ``PowerUnit``.

        The unit text is sent as given; only the check is case-insensitive.
        """
        unit = self._option(PowerUnit, unit)
        self._send(f":UNIT:POWer {unit}")
        return self.check_error()

    def set_format(self, data_type="ASCII"):
        """Set the trace data format, one of ``TraceFormat``."""
        data_type = self._option(TraceFormat, data_type)
        self._send(f":FORMat:TRACe {data_type}")
        return self.check_error()

    def set_trigger(self, trigger="IMMEDIATE"):
        """Set the trigger source, one of ``TriggerSource``."""
        trigger = self._option(TriggerSource, trigger)
        self._send(f":TRIGger:SOURce {trigger}")
        return self.check_error()

    def reset_trace(self):
        """Preset all traces."""
        self._send(":TRACe:PRESet:ALL")
        return self.check_error()

    def set_reference_level(self, level):
        """Set the reference level in dBm."""
        self._check_open()
        self._state.reference_level = float(level)
        self._send(f":DISPlay:WINDow:TRACe:Y:RLEVel {level} dBm")
        return self.check_error()

    def set_attenuation(self, attenuation, auto=False):
        """Set RF input attenuation in dB, or switch to auto attenuation.

        Parameters
        ----------
        attenuation : int
            Attenuation in dB, ignored when `auto` is True
        auto : bool, optional
            Let the instrument choose, by default False

        Returns
        -------
        bool
            True if the instrument reported an error
        """
        if auto:
            self._send(":SENSe:POWer:RF:ATTenuation:AUTO ON")
        else:
            self._check_open()
            self._state.attenuation = int(attenuation)
            self._send(f":SENSe:POWer:RF:ATTenuation {attenuation} dB")
            self._send(":SENSe:POWer:RF:ATTenuation:AUTO OFF")
        return self.check_error()

    def set_detector(self, detector_type="NORMAL"):
        """Set the detector for trace 1, one of ``DetectorType``."""
        text = self._option(DetectorType, detector_type)
        self._state.detector_type = text.upper()
        self._send(f":DETector:TRACe1 {text}")
        return self.check_error()

    def set_trace_mode(self, mode="WRITE", trace_num=1):
        """Set the mode of trace `trace_num` (1-6), one of ``TraceMode``.

        Only trace 1's mode is cached.
        """
        check_trace_num(trace_num)
        text = self._option(TraceMode, mode)
        if trace_num == 1:
            self._state.trace_mode = text.upper()
        self._send(f":TRACe{trace_num}:MODE {text}")
        return self.check_error()

    def set_bandwidth(self, rbw=0.0, vbw=0.0, auto=True):
        """Set resolution and video bandwidth.

        In auto mode both bandwidths are coupled and the values the instrument
        picked are read back into the cache. Otherwise each of `rbw` and `vbw`
        that is greater than zero is set and its auto coupling switched off.

        Parameters
        ----------
        rbw : float, optional
            Resolution bandwidth in Hz, 0 leaves it unchanged, by default 0.0
        vbw : float, optional
            Video bandwidth in Hz, 0 leaves it unchanged, by default 0.0
        auto : bool, optional
            Use automatic bandwidths, by default True

        Returns
        -------
        bool
            True if the instrument reported an error

        Raises
        ------
        ParseError
            If a read-back bandwidth is not a number
        """
        if auto:
            self._send(":BANDwidth:RESolution:AUTO ON")
            self._send(":BANDwidth:VIDeo:AUTO ON")
            self._state.rbw = parse_float(self._query(":BANDwidth:RESolution?"))
            self._state.vbw = parse_float(self._query(":BANDwidth:VIDeo?"))
        else:
            self._check_open()
            if rbw > 0.0:
                self._state.rbw = float(rbw)
                self._send(f":BANDwidth:RESolution {rbw} Hz")
                self._send(":BANDwidth:RESolution:AUTO OFF")
            if vbw > 0.0:
                self._state.vbw = float(vbw)
                self._send(f":BANDwidth:VIDeo {vbw} Hz")
                self._send(":BANDwidth:VIDeo:AUTO OFF")
        return self.check_error()

    def measure(self):
        """Trigger one sweep and read trace 1.

        Blocks on ``*OPC?`` until the sweep completes. The reply is parsed as
        ASCII, so the trace format should be ASCII.

        Returns
        -------
        list of float
            Trace 1 values

        Raises
        ------
        ParseError
            If any value in the reply is not a number
        """
        self._send("*SRE 32")
        self._send("*ESE 1")
        self._send(":INITiate")
        self._query("*OPC?")
        response = self._query(":TRACe:DATA? TRACE1")
        data = parse_trace(response)
        log.debug("Measured %d points", len(data))
        return data

    def single_sweep(self):
        """Switch to single sweep mode and run one sweep to completion."""
        self._send(":INITiate:CONTinuous OFF")
        self._send(":INITiate")
        self._query("*OPC?")

    def shot(self, n=10, freq=0.0):
        """Take `n` marker amplitude readings at one frequency.

        Each reading is a ``*TRG`` followed by a marker query; readings are
        strictly sequential. A single bad reading fails the whole call.

        Parameters
        ----------
        n : int, optional
            Number of readings, by default 10
        freq : float, optional
            Frequency in GHz; 0.0 uses the cached center frequency

        Returns
        -------
        list of float
            `n` readings in acquisition order

        Raises
        ------
        ParseError
            If any reading is not a number
        """
        if n < 0:
            raise ValueError(f"Number of readings must be >= 0, got {n}")
        self._check_open()
        measurement_freq = self._state.center_freq if freq == 0.0 else float(freq)
        self._send(f":CALCulate:MARKer:X:POSition {measurement_freq} GHz")
        data = []
        for _ in range(n):
            self._send("*TRG")
            data.append(parse_float(self._query(":CALCulate:MARKer:Y?")))
        self.check_error()
        return data

    def set_marker(self, marker_num=1, freq=0.0, trace_num=1):
        """Turn on a normal marker on a trace and position it.

        Parameters
        ----------
        marker_num : int, optional
            Marker number 1-12, by default 1
        freq : float, optional
            Frequency in GHz; 0 or less puts the marker at the center
            frequency, by default 0.0
        trace_num : int, optional
            Trace number 1-6, by default 1

        Returns
        -------
        bool
            True if the instrument reported an error

        Raises
        ------
        RangeError
            If `marker_num` or `trace_num` is out of range
        """
        check_marker_num(marker_num)
        check_trace_num(trace_num)
        marker = f":CALCulate:MARKer{marker_num}"
        self._send(f"{marker}:STATe ON")
        self._send(f"{marker}:MODE POSition")
        self._send(f"{marker}:TRACe {trace_num}")
        if freq <= 0.0:
            self._send(f"{marker}:X:CENTer")
        else:
            self._send(f"{marker}:X {freq} GHz")
        return self.check_error()

    def get_marker_data(self, marker_num=1):
        """Read a marker's frequency and amplitude.

        Returns
        -------
        tuple[float, float]
            Frequency in Hz and amplitude in the current unit
        """
        check_marker_num(marker_num)
        marker = f":CALCulate:MARKer{marker_num}"
        self._send(f"{marker}:STATe ON")
        freq = parse_float(self._query(f"{marker}:X?"))
        ampl = parse_float(self._query(f"{marker}:Y?"))
        return freq, ampl

    def peak_search(self, marker_num=1):
        """Move a marker to the trace maximum and read it."""
        check_marker_num(marker_num)
        self._send(f":CALCulate:MARKer{marker_num}:MAXimum")
        return self.get_marker_data(marker_num)

    def trace_frequencies(self, n_points):
        """Frequency axis in GHz for an `n_points` trace at the cached settings."""
        return frequency_axis(self._state.center_freq, self._state.span_freq, n_points)

    def header_metadata(self):
        """Cached settings as used in the trace CSV header."""
        meta = asdict(self._state)
        del meta["attenuation"]
        return meta

    def save_trace_data(self, filename, trace_num=1, include_header=True):
        """Read a trace in ASCII and save it to CSV.

        The frequency column is rebuilt from the cached center frequency and
        span, not read from the instrument.

        Parameters
        ----------
        filename : str or Path
            Destination CSV file
        trace_num : int, optional
            Trace number 1-6, by default 1
        include_header : bool, optional
            Write the ``#`` metadata header, by default True

        Returns
        -------
        str or Path
            `filename`

        Raises
        ------
        RangeError
            If `trace_num` is out of range
        ParseError
            If the trace reply is not a list of numbers
        """
        check_trace_num(trace_num)
        self._send(":FORMat:TRACe:DATA ASCii")
        response = self._query(f":TRACe:DATA? TRACE{trace_num}")
        y_data = parse_trace(response)
        x_data = self.trace_frequencies(len(y_data))
        metadata = self.header_metadata() if include_header else None
        write_trace_csv(filename, x_data, y_data, metadata=metadata)
        log.info("Trace data saved to: %s", filename)
        return filename


def prompt_sa_settings(include_avg=False):
    """Prompt user for standard spectrum analyzer settings.

    Interactive function to collect measurement parameters with sensible
    defaults. Blank bandwidth or attenuation answers leave them on auto.

    Parameters
    ----------
    include_avg : bool, optional
        Whether to prompt for number of traces to average, by default False

    Returns
    -------
    dict
        Dictionary containing measurement settings with keys:
        - center : float, center frequency in GHz
        - span : float, span in MHz
        - points : int, sweep points
        - rbw : float or None, resolution bandwidth in Hz (None = auto)
        - ref_level : float, reference level in dBm
        - att : int or None, attenuation in dB (None = auto)
        - n_avg : int or None, number of averages (only if include_avg=True)

    Examples
    --------
    >>> settings = prompt_sa_settings()
    >>> settings = prompt_sa_settings(include_avg=True)
    """
    center = _prompt_number("Enter center frequency in GHz [default: 2.4]: ", 2.4)
    span = _prompt_number("Enter span in MHz [default: 100]: ", 100.0)
    points = int(_prompt_number("Enter sweep points [default: 1001]: ", 1001))
    rbw = _prompt_number("Enter RBW in Hz (blank for auto): ", None)
    ref_level = _prompt_number("Enter reference level in dBm [default: 0]: ", 0.0)
    att = _prompt_number("Set attenuation in dB (blank for auto): ", None)
    if att is not None:
        att = int(att)
    n_avg = None
    if include_avg:
        n_avg = int(_prompt_number("Enter number of traces to average [default: 4]: ", 4))
        if n_avg < 1:
            print("Invalid number, using default of 4.")
            n_avg = 4
    return {
        "center": center,
        "span": span,
        "points": points,
        "rbw": rbw,
        "ref_level": ref_level,
        "att": att,
        "n_avg": n_avg,
    }


def _prompt_number(prompt, default):
    text = input(prompt).strip()
    if not text:
        return default
    try:
        return float(text)
    except ValueError:
        print(f"Invalid number. Using {default}.")
        return default


def apply_settings(sa, settings):
    """Configure `sa` from a ``prompt_sa_settings`` dictionary."""
    sa.set_freq(settings["center"], settings["span"])
    sa.set_sweep("sweep", settings["points"])
    sa.set_reference_level(settings["ref_level"])
    if settings["att"] is None:
        sa.set_attenuation(0, auto=True)
    else:
        sa.set_attenuation(settings["att"])
    if settings["rbw"] is None:
        sa.set_bandwidth()
    else:
        sa.set_bandwidth(rbw=settings["rbw"], auto=False)
    sa.set_format("ASCII")


def pick_resource():
    """Interactive selection among the GPIB instruments visible to VISA.

    Returns
    -------
    str
        Selected VISA resource string, e.g. 'GPIB0::18::INSTR'

    Raises
    ------
    SystemExit
        If no GPIB instruments are found
    """
    rm = pyvisa.ResourceManager()
    instruments = [res for res in rm.list_resources() if res.upper().startswith("GPIB")]
    if not instruments:
        print("No GPIB instruments found.")
        raise SystemExit(1)
    print("Available GPIB resources:")
    for idx, res in enumerate(instruments):
        print(f"  [{idx}] {res}")
    while True:
        try:
            choice = int(input("Select resource number: "))
            if 0 <= choice < len(instruments):
                return instruments[choice]
        except ValueError:
            pass
        print("Invalid selection. Try again.")


def add_connection_args(parser):
    """Add the connection options shared by the measurement scripts."""
    parser.add_argument('-c', '--config', help="YAML configuration file")
    parser.add_argument('-a', '--address',
                        help="GPIB address, e.g. GPIB0::18 ('pick' to choose interactively)")
    return parser


def connect_from_args(args):
    """Set up logging and open a session from parsed command line arguments.

    The address comes from --address, else from the configuration file.

    Returns
    -------
    SpectrumAnalyzer
        Open session
    """
    cfg = load_config(args.config)
    setup_logging(cfg["logging"]["level"], cfg["logging"]["file"])
    if args.address == 'pick':
        cfg["analyzer"]["address"] = pick_resource()
    elif args.address:
        cfg["analyzer"]["address"] = args.address
    print(f"Connecting to spectrum analyzer at {cfg['analyzer']['address']}...")
    return SpectrumAnalyzer.from_config(cfg)


def plot_trace(freq, data, title="Spectrum Trace", metadata=None):
    """Plot a trace with interactive save functionality.

    A TextBox and Save button above the plot save the figure (PNG) and the
    trace (CSV with metadata header) under a timestamped name.

    Parameters
    ----------
    freq : array-like
        Frequency values in GHz
    data : array-like
        Amplitude values in dBm
    title : str, optional
        Plot title, by default 'Spectrum Trace'
    metadata : dict or None, optional
        Header fields for the saved CSV, e.g. ``sa.header_metadata()``
    """
    fig, ax = plt.subplots()
    plt.subplots_adjust(top=0.82, bottom=0.13)  # Make space for widgets
    ax.plot(freq, data)
    ax.set_xlabel('Frequency (GHz)')
    ax.set_ylabel('Power (dBm)')
    ax.set_title(title)

    axbox = plt.axes([0.65, 0.88, 0.2, 0.06])
    text_box = TextBox(axbox, 'File name:', initial="")
    ax_save = plt.axes([0.87, 0.88, 0.1, 0.06])
    btn_save = Button(ax_save, 'Save')

    def save_handler(_):
        user_name = text_box.text.strip()
        if not user_name:
            print("No name entered. Not saving.")
            return
        iso_date = (datetime.datetime.now()
                    .isoformat(timespec='seconds')
                    .replace(':', '-'))
        base = f"{iso_date}_{user_name}"
        fig.savefig(base + ".png")
        write_trace_csv(base + ".csv", freq, data, metadata=metadata or {})
        print(f"Saved plot as {base}.png and data as {base}.csv")

    btn_save.on_clicked(save_handler)
    plt.show()


def plot_waterfall(ax, freq, waterfall, title="Live Spectrum Waterfall"):
    """Draw a waterfall (time x frequency) image on `ax`.

    Parameters
    ----------
    ax : matplotlib.axes.Axes
        Axes to draw on; cleared first
    freq : array-like
        Frequency values in GHz
    waterfall : np.ndarray
        2D array of amplitudes, one row per trace
    title : str, optional
        Plot title

    Returns
    -------
    matplotlib.image.AxesImage
        The drawn image
    """
    ax.clear()
    im = ax.imshow(waterfall, aspect='auto', origin='lower',
                   extent=[freq[0], freq[-1], 0, waterfall.shape[0]], cmap='viridis')
    ax.set_xlabel('Frequency (GHz)')
    ax.set_ylabel('Time (trace index)')
    ax.set_title(title)
    return im

"""Trace parsing and CSV export for the Ceyear 4051B.

Saved files are UTF-8 text: an optional block of ``#`` metadata lines, then a
``Frequency (GHz),Power (dBm)`` table with one row per trace point.
"""

import csv
import datetime
from pathlib import Path

import numpy as np

from sa_errors import ParseError

TITLE = "Ceyear 4051B Spectrum Analyzer Trace Data"
COLUMNS = ["Frequency (GHz)", "Power (dBm)"]

# (metadata key, header label, unit suffix)
_HEADER_FIELDS = [
    ("date", "Date", ""),
    ("center_freq", "Center Frequency", " GHz"),
    ("span_freq", "Span", " MHz"),
    ("rbw", "RBW", " Hz"),
    ("vbw", "VBW", " Hz"),
    ("reference_level", "Reference Level", " dBm"),
    ("detector_type", "Detector", ""),
    ("trace_mode", "Trace Mode", ""),
    ("points", "Points", ""),
]


def parse_float(reply):
    """Parse a single numeric reply such as ``"-42.1"`` or ``"1.0E5"``."""
    try:
        return float(reply.strip())
    except (ValueError, AttributeError) as e:
        raise ParseError(reply) from e


def parse_trace(reply):
    """Split a comma-separated ASCII trace reply into floats.

    Parameters
    ----------
    reply : str
        Reply to ``:TRACe:DATA?`` in ASCII format

    Returns
    -------
    list of float
        Trace values in instrument order

    Raises
    ------
    ParseError
        If the reply is empty or any token is not a number
    """
    if not reply.strip():
        raise ParseError(reply)
    values = []
    for token in reply.split(","):
        try:
            values.append(float(token.strip()))
        except ValueError as e:
            raise ParseError(reply, token) from e
    return values


def frequency_axis(center_ghz, span_mhz, n_points):
    """Reconstruct the trace frequency axis in GHz.

    The span is in MHz, so ``span / 2000`` is half the span in GHz.

    Parameters
    ----------
    center_ghz : float
        Center frequency in GHz
    span_mhz : float
        Span in MHz
    n_points : int
        Number of trace points

    Returns
    -------
    np.ndarray
        `n_points` evenly spaced frequencies from center - span/2 to center + span/2
    """
    freq_start = center_ghz - span_mhz / 2000
    freq_stop = center_ghz + span_mhz / 2000
    return np.linspace(freq_start, freq_stop, n_points)


def write_trace_csv(path, freqs, powers, metadata=None):
    """Write a trace to CSV, with a ``#`` header when metadata is given.

    Parameters
    ----------
    path : str or Path
        Destination file
    freqs : array-like
        Frequencies in GHz
    powers : array-like
        Power values, same length as `freqs`
    metadata : dict or None, optional
        Values for the header block, keyed as in ``_HEADER_FIELDS``; a missing
        ``date`` is filled with the current time. No header when None.

    Returns
    -------
    str or Path
        `path`, unchanged
    """
    out_path = Path(path)
    with out_path.open("w", newline="", encoding="utf-8") as f:
        if metadata is not None:
            meta = dict(metadata)
            meta.setdefault(
                "date", datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S"))
            f.write(f"# {TITLE}\n")
            for key, label, unit in _HEADER_FIELDS:
                f.write(f"# {label}: {meta.get(key, '')}{unit}\n")
            f.write("#\n")
        writer = csv.writer(f, lineterminator="\n")
        writer.writerow(COLUMNS)
        for freq, power in zip(freqs, powers):
            writer.writerow([float(freq), float(power)])
    return path


def read_trace_csv(path):
    """Load a trace CSV written by ``write_trace_csv``.

    Returns
    -------
    tuple[dict, np.ndarray, np.ndarray]
        Header fields (label -> text, units stripped), frequencies (GHz) and powers
    """
    units = {label: unit for _, label, unit in _HEADER_FIELDS}
    metadata = {}
    freqs = []
    powers = []
    with Path(path).open("r", encoding="utf-8") as f:
        for line in f:
            line = line.rstrip("\n")
            if line.startswith("#"):
                label, sep, value = line[1:].strip().partition(":")
                if sep:
                    value = value.strip()
                    unit = units.get(label, "").strip()
                    if unit and value.endswith(unit):
                        value = value[:-len(unit)].strip()
                    metadata[label] = value
                continue
            if not line or line == ",".join(COLUMNS):
                continue
            freq, power = line.split(",")
            freqs.append(float(freq))
            powers.append(float(power))
    return metadata, np.array(freqs), np.array(powers)

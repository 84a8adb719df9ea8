"""Spectrum Analyzer Trace File Reader.

This module loads trace CSV files saved by the spectrum analyzer scripts,
prints the metadata header and plots the trace.

Dependencies
------------
matplotlib : library
    For plotting
sa_export : module
    CSV reader for saved traces
"""

import os

import matplotlib.pyplot as plt

from sa_export import read_trace_csv


def build_title(meta):
    """Build a plot title from trace metadata.

    Parameters
    ----------
    meta : dict
        Header fields as returned by ``read_trace_csv``

    Returns
    -------
    str
        Title such as 'Loaded Trace (Center: 2.4 GHz, Span: 100.0 MHz, Detector: RMS)'
    """
    details = []
    if meta.get('Center Frequency'):
        details.append(f"Center: {meta['Center Frequency']} GHz")
    if meta.get('Span'):
        details.append(f"Span: {meta['Span']} MHz")
    if meta.get('Detector'):
        details.append(f"Detector: {meta['Detector']}")
    if meta.get('Trace Mode') and meta['Trace Mode'] != 'WRITE':
        details.append(f"Mode: {meta['Trace Mode']}")
    title = 'Loaded Trace'
    if details:
        title += f" ({', '.join(details)})"
    return title


def main():
    """Load and display a saved trace file.

    Examples
    --------
    >>> main()
    Enter filename to load (with or without .csv): sweep_2.4GHz_20250101_120000

    --- Metadata ---
    Date: 2025-01-01 12:00:00
    Center Frequency: 2.4
    ...
    """
    fname = input("Enter filename to load (with or without .csv): ").strip()
    if not fname.endswith('.csv'):
        fname += '.csv'
    if not os.path.exists(fname):
        print(f"File not found: {fname}")
        return
    meta, freq, power = read_trace_csv(fname)

    print("\n--- Metadata ---")
    if meta:
        for k, v in meta.items():
            print(f"{k}: {v}")
    else:
        print("No metadata found.")

    if len(freq) == 0:
        print("No plottable data found in file.")
        return
    plt.plot(freq, power)
    plt.xlabel('Frequency (GHz)')
    plt.ylabel('Power (dBm)')
    plt.title(build_title(meta))
    plt.show()


if __name__ == "__main__":
    main()

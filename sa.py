"""Spectrum Analyzer Repeated Readings Tool.

This script connects to a Ceyear 4051B, configures center frequency, span,
power unit and trigger source, then takes a number of marker readings at one
frequency and prints them with basic statistics.

Dependencies
------------
numpy : library
    For reading statistics
spectrum_utils : module
    Local utilities for spectrum analyzer operations

Usage
-----
    python sa.py --address GPIB0::18 --center 2.4 --span 100 -n 10
"""

import argparse

import numpy as np

from spectrum_utils import add_connection_args, connect_from_args


def summarize(readings):
    """Compute statistics of a list of power readings.

    Parameters
    ----------
    readings : array-like
        Power readings in dBm

    Returns
    -------
    dict
        mean, std, min, max and range of the readings
    """
    values = np.asarray(readings, dtype=np.float64)
    return {
        "mean": float(values.mean()),
        "std": float(values.std(ddof=1)) if len(values) > 1 else 0.0,
        "min": float(values.min()),
        "max": float(values.max()),
        "range": float(values.max() - values.min()),
    }


def main():
    """Execute the repeated readings workflow.

    Examples
    --------
    >>> main()
    Connecting to spectrum analyzer at GPIB0::18...
    Taking 10 measurements...
      Measurement 1: -42.1 dBm
    ...
    """
    parser = argparse.ArgumentParser(
        description="Repeated marker readings",
        epilog="Take N power readings at one frequency and print statistics."
    )
    add_connection_args(parser)
    parser.add_argument('--center', type=float, default=2.4, help="Center frequency in GHz")
    parser.add_argument('--span', type=float, default=100, help="Span in MHz")
    parser.add_argument('--freq', type=float, default=0.0,
                        help="Reading frequency in GHz (default: center)")
    parser.add_argument('--unit', default="DBM", help="Power unit")
    parser.add_argument('--trigger', default="IMMEDIATE", help="Trigger source")
    parser.add_argument('-n', type=int, default=10, dest='n', help="Number of readings")
    args = parser.parse_args()

    sa = connect_from_args(args)
    try:
        sa.set_freq(args.center, args.span)
        sa.set_unit(args.unit)
        sa.set_trigger(args.trigger)

        print(f"\nTaking {args.n} measurements...")
        results = sa.shot(args.n, args.freq)
    finally:
        sa.close()

    print("\nMeasurement Results (dBm):")
    for i, power in enumerate(results, start=1):
        print(f"  Measurement {i}: {power} dBm")

    if results:
        stats = summarize(results)
        print("\nStatistics:")
        print(f"  Mean Power: {stats['mean']:.3f} dBm")
        print(f"  Standard Deviation: {stats['std']:.3f} dB")
        print(f"  Minimum Power: {stats['min']:.3f} dBm")
        print(f"  Maximum Power: {stats['max']:.3f} dBm")
        print(f"  Range: {stats['range']:.3f} dB")


if __name__ == "__main__":
    main()

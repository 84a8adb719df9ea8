"""Spectrum Analyzer Frequency Sweep Tool.

This script performs a single sweep around a center frequency, saves the trace
to a timestamped CSV file with a metadata header and plots it.

Dependencies
------------
matplotlib : library
    For plotting the sweep
spectrum_utils : module
    Local utilities for spectrum analyzer operations

Usage
-----
    python sa_sweep.py --center 2.4 --span 200 --points 401
"""

import argparse
import datetime

import matplotlib.pyplot as plt

from spectrum_utils import add_connection_args, connect_from_args


def run_sweep(sa, center, span, points, out_dir="."):
    """Configure a sweep, acquire it and save the trace.

    Parameters
    ----------
    sa : SpectrumAnalyzer
        Connected spectrum analyzer instance
    center : float
        Center frequency in GHz
    span : float
        Span in MHz
    points : int
        Number of sweep points
    out_dir : str, optional
        Directory for the CSV file, by default current directory

    Returns
    -------
    tuple[np.ndarray, list of float, str]
        Frequency axis (GHz), trace values (dBm) and CSV file name
    """
    sa.set_freq(center, span)
    sa.set_sweep("sweep", points)
    sa.set_unit("DBM")
    sa.set_format("ASCII")

    print(f"\nPerforming frequency sweep from {center - span / 2000} GHz "
          f"to {center + span / 2000} GHz...")
    sweep_data = sa.measure()
    freq_points = sa.trace_frequencies(len(sweep_data))

    stamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    filename = f"{out_dir}/sweep_{center}GHz_{stamp}.csv"
    sa.save_trace_data(filename, trace_num=1)
    return freq_points, sweep_data, filename


def main():
    """Execute the frequency sweep workflow."""
    parser = argparse.ArgumentParser(
        description="Frequency sweep",
        epilog="Sweep around a center frequency, save the trace to CSV and plot it."
    )
    add_connection_args(parser)
    parser.add_argument('--center', type=float, default=2.4, help="Center frequency in GHz")
    parser.add_argument('--span', type=float, default=200, help="Span in MHz")
    parser.add_argument('--points', type=int, default=401, help="Sweep points")
    parser.add_argument('--out', default=".", help="Output directory")
    parser.add_argument('--no-plot', action='store_true', help="Skip the plot")
    args = parser.parse_args()

    sa = connect_from_args(args)
    try:
        freq_points, sweep_data, filename = run_sweep(
            sa, args.center, args.span, args.points, args.out)
    finally:
        sa.close()
    print(f"Data saved to: {filename}")

    if not args.no_plot:
        plt.plot(freq_points, sweep_data)
        plt.xlabel('Frequency (GHz)')
        plt.ylabel('Power (dBm)')
        plt.title(f"Frequency Sweep: {args.center} GHz ± {args.span / 2} MHz")
        plt.show()


if __name__ == "__main__":
    main()

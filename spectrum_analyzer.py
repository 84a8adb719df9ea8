"""Spectrum Analyzer Control Tool (Combined).

This unified script provides single trace acquisition, trace averaging, live
waterfall display and a peak comparison between a normal and a max-hold trace
on a Ceyear 4051B. Users select the measurement through an interactive menu.

Dependencies
------------
numpy : library
    For data averaging and the waterfall buffer
matplotlib : library
    For plotting, data visualization, and real-time animation
spectrum_utils : module
    Local utilities for spectrum analyzer operations

Notes
-----
Modes:
- Single trace: Basic spectrum measurement
- Averaged trace: Multiple trace averaging for noise reduction
- Live waterfall: Real-time spectral evolution display
- Peak compare: Normal vs max-hold trace peaks, both traces saved to CSV
"""

import argparse
import datetime

import matplotlib.animation as animation
import matplotlib.pyplot as plt
import numpy as np

from sa_errors import ParseError, SpectrumAnalyzerError
from spectrum_utils import (add_connection_args, apply_settings, connect_from_args,
                            plot_trace, plot_waterfall, prompt_sa_settings)

MODES = {1: 'single', 2: 'average', 3: 'waterfall', 4: 'peaks'}


def prompt_measurement_mode():
    """Prompt user to select measurement mode.

    Returns
    -------
    str
        Selected mode: 'single', 'average', 'waterfall' or 'peaks'
    """
    print("\nSelect measurement mode:")
    print("  [1] Single trace")
    print("  [2] Averaged trace")
    print("  [3] Live waterfall")
    print("  [4] Peak compare (normal vs max hold)")

    while True:
        try:
            choice = int(input("Enter choice (1-4): "))
            if choice in MODES:
                return MODES[choice]
            print("Invalid choice. Please enter 1, 2, 3, or 4.")
        except ValueError:
            print("Invalid input. Please enter a number 1-4.")


def average_traces(sa, n_avg):
    """Acquire `n_avg` traces and return their mean.

    Parameters
    ----------
    sa : SpectrumAnalyzer
        Connected spectrum analyzer instance
    n_avg : int
        Number of traces to average, at least 1

    Returns
    -------
    np.ndarray
        Mean trace
    """
    avg_data = np.array(sa.measure(), dtype=np.float64)
    for i in range(1, n_avg):
        print(f"Trace {i+1}/{n_avg}")
        avg_data += np.array(sa.measure(), dtype=np.float64)
    return avg_data / n_avg


def run_single_trace(sa, settings):
    """Acquire and plot a single trace."""
    print("\n=== Single Trace Measurement ===")
    data = sa.measure()
    freq = sa.trace_frequencies(len(data))
    plot_trace(freq, data, title=f"Spectrum Trace ({settings['center']} GHz)",
               metadata=sa.header_metadata())


def run_averaged_trace(sa, settings):
    """Acquire several traces, average them on the host and plot the result."""
    print("\n=== Averaged Trace Measurement ===")
    n_avg = settings["n_avg"]
    print(f"Acquiring {n_avg} traces for averaging...")
    avg_data = average_traces(sa, n_avg)
    print("Averaging complete!")
    freq = sa.trace_frequencies(len(avg_data))
    plot_trace(freq, avg_data,
               title=f"Spectrum Trace ({settings['center']} GHz, Averages: {n_avg})",
               metadata=sa.header_metadata())


def waterfall_updater(sa, waterfall, im, stop):
    """Build the FuncAnimation callback for the live waterfall.

    Each frame measures one trace, rolls it into `waterfall` and redraws `im`.
    An unreadable trace is skipped. Any other session error calls `stop` and
    the display freezes on the last good frame.

    Returns
    -------
    callable
        ``update(frame)`` returning an empty artist list
    """
    def update(_):
        nonlocal waterfall
        try:
            new_data = sa.measure()
        except ParseError as e:
            print(f"Skipping unreadable trace: {e}")
            return []
        except SpectrumAnalyzerError as e:
            print(f"Waterfall stopped: {e}")
            stop()
            return []
        waterfall = np.roll(waterfall, -1, axis=0)
        waterfall[-1, :] = new_data
        im.set_data(waterfall)
        im.set_clim(waterfall.min(), waterfall.max())
        return []

    return update


def run_live_waterfall(sa, settings):
    """Run a live waterfall display until the plot window is closed."""
    print("\n=== Live Waterfall Display ===")
    print("Starting live waterfall... Close plot window to stop.")

    n_traces = 100  # Number of lines in the waterfall

    data = sa.measure()
    freq = sa.trace_frequencies(len(data))
    waterfall = np.full((n_traces, len(data)), np.min(data))
    waterfall[-1, :] = data

    fig, ax = plt.subplots()
    im = plot_waterfall(ax, freq, waterfall)
    cbar = fig.colorbar(im, ax=ax)
    cbar.set_label('Power (dBm)')

    ani = None
    update = waterfall_updater(sa, waterfall, im, stop=lambda: ani.event_source.stop())
    ani = animation.FuncAnimation(fig, update, interval=200, blit=False,
                                  cache_frame_data=False)
    plt.show()


def run_peak_compare(sa, settings, n_sweeps=5):
    """Compare the trace 1 peak with the peak of a max-hold trace 2.

    Trace 1 is cleared-and-written each sweep, trace 2 holds the maximum over
    `n_sweeps` sweeps. Both traces are saved to CSV.

    Returns
    -------
    dict
        Peak frequencies (Hz), powers (dBm) and saved file names
    """
    print("\n=== Peak Compare ===")
    sa.set_detector("RMS")
    sa.set_trace_mode("WRITE", 1)
    sa.set_trace_mode("MAXHOLD", 2)

    print("- First sweep for trace 1 (normal)")
    sa.single_sweep()
    print(f"- {n_sweeps} sweeps for trace 2 (max hold)")
    for i in range(n_sweeps):
        print(f"  Sweep {i+1} of {n_sweeps}")
        sa.single_sweep()

    sa.set_marker(1, 0.0, 1)
    freq1, power1 = sa.peak_search(1)
    sa.set_marker(2, 0.0, 2)
    freq2, power2 = sa.peak_search(2)

    print("\nPeak Results:")
    print(f"  Trace 1 (normal): {freq1 / 1e9} GHz at {power1} dBm")
    print(f"  Trace 2 (max hold): {freq2 / 1e9} GHz at {power2} dBm")
    print(f"  Difference: {power2 - power1} dB")

    timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    trace1_file = sa.save_trace_data(f"trace1_{timestamp}.csv", 1)
    trace2_file = sa.save_trace_data(f"trace2_maxhold_{timestamp}.csv", 2)
    print(f"Saved {trace1_file} and {trace2_file}")
    return {
        "trace1": (freq1, power1),
        "trace2": (freq2, power2),
        "files": (trace1_file, trace2_file),
    }


def main():
    """Execute the unified spectrum analyzer measurement workflow.

    The user selects a mode, the analyzer is opened and configured from the
    interactive settings, and the selected measurement runs. The connection is
    always closed at the end.
    """
    parser = argparse.ArgumentParser(description="Spectrum Analyzer Control Tool")
    add_connection_args(parser)
    args = parser.parse_args()

    print("Spectrum Analyzer Control Tool")
    print("=" * 40)

    mode = prompt_measurement_mode()

    print("\n=== Instrument Connection ===")
    sa = connect_from_args(args)

    try:
        print("\n=== Measurement Configuration ===")
        settings = prompt_sa_settings(include_avg=(mode == 'average'))
        apply_settings(sa, settings)

        if mode == 'single':
            run_single_trace(sa, settings)
        elif mode == 'average':
            run_averaged_trace(sa, settings)
        elif mode == 'waterfall':
            run_live_waterfall(sa, settings)
        elif mode == 'peaks':
            run_peak_compare(sa, settings)
    except SpectrumAnalyzerError as e:
        print(f"Measurement failed: {e}")
        raise
    finally:
        sa.close()
        print("\nMeasurement complete. Connection closed.")


if __name__ == "__main__":
    main()

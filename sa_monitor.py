"""Spectrum Analyzer Signal Power Monitor.

This script watches the power at one frequency for a fixed duration, printing
each reading and logging it to a timestamped CSV file.

Dependencies
------------
spectrum_utils : module
    Local utilities for spectrum analyzer operations

Usage
-----
    python sa_monitor.py --freq 2.4 --duration 10 --interval 0.5
"""

import argparse
import csv
import datetime
import time

from spectrum_utils import add_connection_args, connect_from_args


def monitor(sa, writer, duration, interval, clock=time.monotonic, sleep=time.sleep):
    """Take one reading every `interval` seconds for `duration` seconds.

    Parameters
    ----------
    sa : SpectrumAnalyzer
        Connected and configured spectrum analyzer
    writer : csv.writer
        Receives one ``[timestamp, power]`` row per reading
    duration : float
        Monitoring time in seconds
    interval : float
        Pause between readings in seconds
    clock, sleep : callable, optional
        Time source and sleep function

    Returns
    -------
    int
        Number of readings taken
    """
    count = 0
    start = clock()
    while clock() - start < duration:
        power = sa.shot(1)[0]
        timestamp = datetime.datetime.now().strftime("%H:%M:%S.%f")[:-3]
        print(f"{timestamp},{power}")
        writer.writerow([timestamp, power])
        count += 1
        sleep(interval)
    return count


def main():
    """Execute the signal monitoring workflow."""
    parser = argparse.ArgumentParser(
        description="Signal power monitor",
        epilog="Log power at one frequency over time."
    )
    add_connection_args(parser)
    parser.add_argument('--freq', type=float, default=2.4, help="Frequency in GHz")
    parser.add_argument('--duration', type=float, default=10.0, help="Seconds to monitor")
    parser.add_argument('--interval', type=float, default=0.5, help="Seconds between readings")
    args = parser.parse_args()

    log_file = f"signal_power_log_{datetime.datetime.now():%Y%m%d_%H%M%S}.csv"
    sa = connect_from_args(args)
    try:
        # Zero span for faster readings
        sa.set_freq(args.freq, 0)
        sa.set_unit("DBM")

        print(f"\nMonitoring signal at {args.freq} GHz for {args.duration} seconds...")
        print("Timestamp,Power (dBm)")
        with open(log_file, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f, lineterminator="\n")
            writer.writerow(["Timestamp", "Power (dBm)"])
            count = monitor(sa, writer, args.duration, args.interval)
    finally:
        sa.close()

    print(f"\nMonitoring completed! {count} readings logged to: {log_file}")


if __name__ == "__main__":
    main()

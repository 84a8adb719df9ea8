from collections import defaultdict, deque

import pytest

from sa_errors import InstrumentConnectionError
from spectrum_utils import SpectrumAnalyzer

IDN = "Ceyear,4051B,SN123,1.0"
NO_ERROR = '+0,"No error"'


class FakeTransport:
    """Scripted transport recording every send and query.

    Queries are answered from per-command queues first (see ``queue``), then
    from the fixed ``replies`` map.
    """

    def __init__(self, replies=None, fail_on=None):
        self.replies = {
            "*IDN?": IDN,
            ":SYSTem:ERRor?": NO_ERROR,
            "*OPC?": "1",
        }
        self.replies.update(replies or {})
        self.queued = defaultdict(deque)
        self.fail_on = set(fail_on or ())
        self.log = []
        self.close_count = 0

    def queue(self, command, *replies):
        self.queued[command].extend(replies)

    def send(self, command):
        if command in self.fail_on:
            raise InstrumentConnectionError(f"Write of {command!r} failed")
        self.log.append(("send", command))

    def query(self, command):
        if command in self.fail_on:
            raise InstrumentConnectionError(f"Query {command!r} failed")
        self.log.append(("query", command))
        if self.queued[command]:
            return self.queued[command].popleft()
        return self.replies[command]

    def close(self):
        self.close_count += 1

    @property
    def sends(self):
        return [cmd for kind, cmd in self.log if kind == "send"]

    @property
    def queries(self):
        return [cmd for kind, cmd in self.log if kind == "query"]

    def clear_log(self):
        self.log.clear()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def sa(transport):
    analyzer = SpectrumAnalyzer("GPIB0::18", transport=transport, reset_settle_s=0)
    transport.clear_log()
    return analyzer

import logging

import pytest

from conftest import IDN, FakeTransport
from sa_config import load_config
from sa_errors import (InstrumentConnectionError, SessionClosedError,
                       UnsupportedInterfaceError)
from spectrum_utils import AnalyzerState, SpectrumAnalyzer


def test_open_identifies_resets_and_clears():
    transport = FakeTransport()
    sa = SpectrumAnalyzer("GPIB0::18", transport=transport, reset_settle_s=0)
    assert transport.log == [("query", "*IDN?"), ("send", "*RST"), ("send", "*CLS")]
    assert sa.address == "GPIB0::18"
    assert not sa.closed


def test_identify_returns_full_string(sa):
    assert sa.check_identify() == IDN


def test_identify_other_vendor_warns_but_returns():
    other = "Keysight Technologies,N9000B,MY123,A.01"
    transport = FakeTransport({"*IDN?": other})
    with pytest.warns(UserWarning, match="may not be a Ceyear instrument"):
        sa = SpectrumAnalyzer("GPIB0::18", transport=transport, reset_settle_s=0)
    with pytest.warns(UserWarning):
        assert sa.check_identify() == other


def test_reset_waits_for_settle(sa, transport, monkeypatch):
    delays = []
    monkeypatch.setattr("spectrum_utils.time.sleep", delays.append)
    sa.reset_settle_s = 0.5
    sa.reset()
    assert transport.sends == ["*RST"]
    assert delays == [0.5]


def test_clear_sends_cls(sa, transport):
    sa.clear()
    assert transport.sends == ["*CLS"]


@pytest.mark.parametrize("address", [
    "TCPIP0::192.168.2.2::5025::SOCKET",
    "USB0::0x1234::0x5678::SN1::INSTR",
    "GPIB0",
    "",
])
def test_unsupported_interface_opens_nothing(address):
    transport = FakeTransport()
    with pytest.raises(UnsupportedInterfaceError):
        SpectrumAnalyzer(address, transport=transport, reset_settle_s=0)
    assert transport.log == []


@pytest.mark.parametrize("failing", ["*IDN?", "*RST", "*CLS"])
def test_failed_initialisation_closes_transport(failing):
    transport = FakeTransport(fail_on=[failing])
    with pytest.raises(InstrumentConnectionError):
        SpectrumAnalyzer("GPIB0::18", transport=transport, reset_settle_s=0)
    assert transport.close_count == 1


def test_failed_initialisation_keeps_original_error_when_close_fails():
    class BrokenClose(FakeTransport):
        def close(self):
            super().close()
            raise InstrumentConnectionError("close failed")

    transport = BrokenClose(fail_on=["*RST"])
    with pytest.raises(InstrumentConnectionError, match=r"Write of '\*RST' failed"):
        SpectrumAnalyzer("GPIB0::18", transport=transport, reset_settle_s=0)
    assert transport.close_count == 1


def test_close_releases_transport_once(sa, transport):
    sa.close()
    assert sa.closed
    assert transport.close_count == 1
    with pytest.raises(SessionClosedError):
        sa.close()
    assert transport.close_count == 1


@pytest.mark.parametrize("call", [
    lambda sa: sa.set_freq(1.0),
    lambda sa: sa.set_unit("DBM"),
    lambda sa: sa.set_attenuation(10),
    lambda sa: sa.measure(),
    lambda sa: sa.shot(3),
    lambda sa: sa.check_error(),
    lambda sa: sa.get_marker_data(1),
    lambda sa: sa.reset(),
])
def test_operations_fail_after_close(sa, transport, call):
    sa.close()
    transport.clear_log()
    with pytest.raises(SessionClosedError):
        call(sa)
    assert transport.log == []


def test_closed_session_leaves_cache_untouched(sa):
    sa.set_freq(2.4, 100)
    sa.close()
    with pytest.raises(SessionClosedError):
        sa.set_freq(5.8, 20)
    assert (sa.center_freq, sa.span_freq) == (2.4, 100.0)


def test_context_manager_closes(transport):
    with SpectrumAnalyzer("GPIB0::18", transport=transport, reset_settle_s=0) as sa:
        sa.set_freq(1.0)
    assert sa.closed
    assert transport.close_count == 1


def test_context_manager_after_explicit_close(transport):
    with SpectrumAnalyzer("GPIB0::18", transport=transport, reset_settle_s=0) as sa:
        sa.close()
    assert transport.close_count == 1


def test_initial_state_defaults(sa):
    assert sa.state == AnalyzerState()
    assert sa.points == 1001
    assert sa.detector_type == "NORMAL"
    assert sa.trace_mode == "WRITE"


def test_state_is_a_copy(sa):
    state = sa.state
    state.center_freq = 99.0
    assert sa.center_freq == 0.0


def test_from_config(tmp_path):
    cfg_file = tmp_path / "analyzer.yaml"
    cfg_file.write_text("analyzer:\n  address: GPIB1::20\n  strict_errors: true\n"
                        "  reset_settle_s: 0\n", encoding="utf-8")
    cfg = load_config(cfg_file)
    transport = FakeTransport()
    sa = SpectrumAnalyzer.from_config(cfg, transport=transport)
    assert sa.address == "GPIB1::20"
    assert sa.strict_errors
    assert sa.manufacturer == "Ceyear"


def test_connection_is_logged(caplog):
    caplog.set_level(logging.INFO, logger="spectrum_utils")
    SpectrumAnalyzer("GPIB0::18", transport=FakeTransport(), reset_settle_s=0)
    assert f"Connected to: {IDN}" in caplog.text
    assert "4051B is connected" in caplog.text

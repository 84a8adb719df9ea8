import pytest

from sa_errors import ParseError, RangeError

ERROR_QUERY = ":SYSTem:ERRor?"


def test_measure_sequence_and_parse(sa, transport):
    transport.queue(":TRACe:DATA? TRACE1", "-50.5,-49.25,-60,1.5E1")
    assert sa.measure() == [-50.5, -49.25, -60.0, 15.0]
    assert transport.log == [
        ("send", "*SRE 32"),
        ("send", "*ESE 1"),
        ("send", ":INITiate"),
        ("query", "*OPC?"),
        ("query", ":TRACe:DATA? TRACE1"),
    ]


@pytest.mark.parametrize("reply", ["-50.5,abc,-60", "", "-50.5,,-60", "#42000"])
def test_measure_rejects_bad_trace(sa, transport, reply):
    transport.queue(":TRACe:DATA? TRACE1", reply)
    with pytest.raises(ParseError):
        sa.measure()


def test_shot_returns_readings_in_order(sa, transport):
    transport.queue(":CALCulate:MARKer:Y?", "-42.1", "-43.0", "-41.5")
    assert sa.shot(3, 0.0) == [-42.1, -43.0, -41.5]


def test_shot_round_trips(sa, transport):
    transport.queue(":CALCulate:MARKer:Y?", "-1", "-2", "-3", "-4")
    sa.shot(4, 5.8)
    assert transport.log[0] == ("send", ":CALCulate:MARKer:X:POSition 5.8 GHz")
    pairs = transport.log[1:-1]
    assert pairs == [("send", "*TRG"), ("query", ":CALCulate:MARKer:Y?")] * 4
    assert transport.log[-1] == ("query", ERROR_QUERY)


def test_shot_defaults_to_cached_center(sa, transport):
    sa.set_freq(2.45, 100)
    transport.clear_log()
    transport.queue(":CALCulate:MARKer:Y?", "-30")
    sa.shot(1)
    assert transport.sends[0] == ":CALCulate:MARKer:X:POSition 2.45 GHz"


def test_shot_zero_readings(sa, transport):
    assert sa.shot(0) == []
    assert transport.sends == [":CALCulate:MARKer:X:POSition 0.0 GHz"]
    assert transport.queries == [ERROR_QUERY]


def test_shot_negative_count(sa, transport):
    with pytest.raises(ValueError):
        sa.shot(-1)
    assert transport.log == []


def test_shot_aborts_on_bad_reading(sa, transport):
    transport.queue(":CALCulate:MARKer:Y?", "-42.1", "overload", "-41.5")
    with pytest.raises(ParseError):
        sa.shot(3)
    assert transport.sends.count("*TRG") == 2
    assert ERROR_QUERY not in transport.queries


@pytest.mark.parametrize("reply,had_error", [
    ('+0,"No error"', False),
    ("+0", False),
    ("+0000", False),
    ('-113,"Undefined header"', True),
    ('-222,"Data out of range"', True),
    ("0", True),
    ("", True),
    ('"+0"', True),
])
def test_check_error(sa, transport, reply, had_error):
    transport.queue(ERROR_QUERY, reply)
    assert sa.check_error() is had_error
    if had_error:
        assert transport.sends == ["*CLS"]
    else:
        assert transport.sends == []


def test_check_error_logs_message(sa, transport, caplog):
    transport.queue(ERROR_QUERY, '-113,"Undefined header"')
    sa.check_error()
    assert 'Error: -113,"Undefined header"' in caplog.text


def test_set_marker_at_frequency(sa, transport):
    assert sa.set_marker(3, 2.45, 2) is False
    assert transport.sends == [
        ":CALCulate:MARKer3:STATe ON",
        ":CALCulate:MARKer3:MODE POSition",
        ":CALCulate:MARKer3:TRACe 2",
        ":CALCulate:MARKer3:X 2.45 GHz",
    ]


@pytest.mark.parametrize("freq", [0.0, -1.0])
def test_set_marker_at_center(sa, transport, freq):
    sa.set_marker(1, freq)
    assert transport.sends[-1] == ":CALCulate:MARKer1:X:CENTer"


@pytest.mark.parametrize("marker_num,trace_num", [(0, 1), (13, 1), (1, 0), (1, 7)])
def test_set_marker_range(sa, transport, marker_num, trace_num):
    with pytest.raises(RangeError):
        sa.set_marker(marker_num, 1.0, trace_num)
    assert transport.log == []


def test_get_marker_data(sa, transport):
    transport.queue(":CALCulate:MARKer2:X?", "2.45E9")
    transport.queue(":CALCulate:MARKer2:Y?", "-35.7")
    assert sa.get_marker_data(2) == (2.45e9, -35.7)
    assert transport.log == [
        ("send", ":CALCulate:MARKer2:STATe ON"),
        ("query", ":CALCulate:MARKer2:X?"),
        ("query", ":CALCulate:MARKer2:Y?"),
    ]


@pytest.mark.parametrize("marker_num", [0, 13])
def test_get_marker_data_range(sa, transport, marker_num):
    with pytest.raises(RangeError):
        sa.get_marker_data(marker_num)
    assert transport.log == []


def test_peak_search(sa, transport):
    transport.queue(":CALCulate:MARKer1:X?", "2.4E9")
    transport.queue(":CALCulate:MARKer1:Y?", "-20")
    assert sa.peak_search(1) == (2.4e9, -20.0)
    assert transport.sends[0] == ":CALCulate:MARKer1:MAXimum"


def test_single_sweep(sa, transport):
    sa.single_sweep()
    assert transport.log == [
        ("send", ":INITiate:CONTinuous OFF"),
        ("send", ":INITiate"),
        ("query", "*OPC?"),
    ]

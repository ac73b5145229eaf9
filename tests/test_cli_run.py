import io

import pytest


class ReadingSerial:
    """Fake open serial port that replays a byte string, then times out."""
    def __init__(self, data=b"", interrupt_after=None):
        self.data = bytearray(data)
        self.interrupt_after = interrupt_after
        self.reads = 0
        self.settings = None
        self.close_calls = 0

    def apply_settings(self, d):
        self.settings = dict(d)

    def close(self):
        self.close_calls += 1

    def read(self, size):
        self.reads += 1
        if self.interrupt_after is not None and self.reads > self.interrupt_after:
            raise KeyboardInterrupt
        if not self.data:
            return b""
        b = bytes(self.data[:1])
        del self.data[:1]
        return b


def _opener_for(ser, device="/dev/ttyFAKE0"):
    def opener(name):
        if name != device:
            raise OSError(2, f"could not open port {name}")
        return ser
    return opener


@pytest.fixture
def fake_clock(monkeypatch):
    m = load_module()
    t = {"now": 50.0}

    def tick():
        t["now"] += 0.01
        return t["now"]

    monkeypatch.setattr(m.time, "monotonic", tick, raising=True)
    return m


def _patch_locator(monkeypatch, m, ser):
    real = m.PortLocator
    monkeypatch.setattr(m.cli, "PortLocator", lambda logger: real(logger, opener=_opener_for(ser)), raising=True)
    monkeypatch.setattr(m.cli, "serial", object(), raising=True)


def test_run_endhex_newline_prints_up_to_terminator(fake_clock):
    m = fake_clock
    ser = ReadingSerial(b"ab\ncd")
    args, _ = m.parse_args(["/port", "/dev/ttyFAKE0", "/endhex", "0A", "/quiet"])
    logger = m.JsonLogger(verbosity=args.verbosity)
    sink = io.BytesIO()

    rc = m.run(args, logger, locator=m.PortLocator(logger, opener=_opener_for(ser)), sink=m.ConsoleSink(sink))

    assert rc == 0
    assert sink.getvalue() == b"ab"
    assert ser.close_calls == 1


def test_main_byte_limit_closes_port_once(fake_clock, monkeypatch, capsysbinary):
    m = fake_clock
    ser = ReadingSerial(b"hello world")
    _patch_locator(monkeypatch, m, ser)

    rc = m.main(["/port", "/dev/ttyFAKE0", "/charcount", "5", "/baudrate", "38400"])

    captured = capsysbinary.readouterr()
    assert rc == 0
    assert captured.out == b"hello"
    assert ser.close_calls == 1
    assert ser.settings["baudrate"] == 38400
    assert b"Opening /dev/ttyFAKE0 at 38400 baud" in captured.err
    assert b"Closing serial port...OK" in captured.err


def test_main_idle_timeout_on_silent_port(fake_clock, monkeypatch, capsysbinary):
    m = fake_clock
    ser = ReadingSerial(b"")
    _patch_locator(monkeypatch, m, ser)

    rc = m.main(["/port", "/dev/ttyFAKE0", "/timeout", "200", "/quiet"])

    captured = capsysbinary.readouterr()
    assert rc == 0
    assert captured.out == b""
    assert captured.err == b""
    assert ser.close_calls == 1


def test_main_interrupt_exits_0_and_closes(fake_clock, monkeypatch, capsysbinary):
    m = fake_clock
    ser = ReadingSerial(b"abc", interrupt_after=2)
    _patch_locator(monkeypatch, m, ser)

    rc = m.main(["/port", "/dev/ttyFAKE0"])

    captured = capsysbinary.readouterr()
    assert rc == 0
    assert captured.out == b"ab"
    assert ser.close_calls == 1
    assert b"interrupted" in captured.err


def test_main_no_port_found_exits_1(fake_clock, monkeypatch, capsys):
    m = fake_clock
    _patch_locator(monkeypatch, m, ReadingSerial())

    rc = m.main(["/quiet"])

    assert rc == 1
    err = capsys.readouterr().err
    assert "NoPortFound" in err
    assert "could not open serial port" in err


def test_main_explicit_device_unavailable_exits_1(fake_clock, monkeypatch, capsys):
    m = fake_clock
    _patch_locator(monkeypatch, m, ReadingSerial())

    rc = m.main(["/devnum", "4"])

    assert rc == 1
    assert "PortUnavailable" in capsys.readouterr().err


def test_main_configuration_failure_exits_1_and_closes(fake_clock, monkeypatch, capsys):
    m = fake_clock

    class RejectingSerial(ReadingSerial):
        def apply_settings(self, d):
            raise ValueError("Not a valid baudrate: 12345678")

    ser = RejectingSerial()
    _patch_locator(monkeypatch, m, ser)

    rc = m.main(["/port", "/dev/ttyFAKE0"])

    err = capsys.readouterr().err
    assert rc == 1
    assert "ConfigurationFailed" in err
    assert "Closing serial port...OK" in err
    assert ser.close_calls == 1


def test_main_keystrokes_without_backend_exits_1(fake_clock, monkeypatch, capsys):
    m = fake_clock
    from comprint import keystrokes

    ser = ReadingSerial(b"abc")
    _patch_locator(monkeypatch, m, ser)
    monkeypatch.setattr(keystrokes, "load_keyboard", lambda: None, raising=True)

    rc = m.main(["/port", "/dev/ttyFAKE0", "/keystrokes"])

    assert rc == 1
    assert "KeystrokesUnavailable" in capsys.readouterr().err
    # The port is never opened when keystrokes cannot be emitted.
    assert ser.reads == 0

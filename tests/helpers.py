"""
Shared test helpers: snapshot factory and a scripted serial port.
"""

from typing import Iterable, Optional

from spcduino.spc.parser import Snapshot


def make_snapshot(
    memory: Optional[bytes] = None,
    dsp: Optional[bytes] = None,
    **registers,
) -> Snapshot:
    """
    Build a Snapshot with plausible defaults.

    Memory defaults to a ramp (no long runs) with the top page filled with
    0xAA so the boot stub fits at 0xFF90. The echo buffer is at 0x8000.
    """
    if memory is None:
        ram = bytearray(i & 0xFF for i in range(0x10000))
        ram[0xFF00:0xFFC0] = b"\xAA" * 0xC0
        ram[0xF4:0xF8] = bytes([0x11, 0x22, 0x33, 0x44])
        memory = bytes(ram)
    if dsp is None:
        regs = bytearray(128)
        regs[0x6D] = 0x80       # ESA
        regs[0x7D] = 0x02       # EDL: 4KB
        regs[0x6C] = 0x20       # FLG
        regs[0x47] = 0x5A
        regs[0x4C] = 0xFF       # KON
        dsp = bytes(regs)

    values = dict(pc=0x1234, a=0x01, x=0x02, y=0x03, psw=0x04, sp=0xEF)
    values.update(registers)
    return Snapshot(program_memory=memory, dsp_registers=dsp, **values)


class FakePort:
    """
    Scripted stand-in for serial.Serial.

    Writes are recorded slice by slice. Everything written between two
    reads is collected into one entry of ``frames``. Each read(1) returns
    the next queued response byte, or b"" when the queue is empty.
    Every assignment to ``timeout`` is recorded in ``timeout_changes``.
    """

    def __init__(self, responses: Iterable[int] = (), is_open: bool = True):
        self.responses = list(responses)
        self.is_open = is_open
        self._timeout = 1.0
        self.timeout_changes: list[float] = []
        self.port = "/dev/ttyFAKE"
        self.baudrate = 115200
        self.writes: list[bytes] = []
        self.flushes = 0
        self.frames: list[bytes] = []
        self.reads = 0
        self.close_after_reads: Optional[int] = None
        self._pending = bytearray()

    @property
    def timeout(self) -> float:
        return self._timeout

    @timeout.setter
    def timeout(self, value: float) -> None:
        self.timeout_changes.append(value)
        self._timeout = value

    def open(self) -> None:
        self.is_open = True

    def close(self) -> None:
        self.is_open = False

    def reset_input_buffer(self) -> None:
        pass

    def reset_output_buffer(self) -> None:
        pass

    def write(self, data: bytes) -> int:
        self.writes.append(bytes(data))
        self._pending.extend(data)
        return len(data)

    def flush(self) -> None:
        self.flushes += 1

    def read(self, size: int = 1) -> bytes:
        if self._pending:
            self.frames.append(bytes(self._pending))
            self._pending.clear()
        self.reads += 1
        if self.close_after_reads is not None and self.reads >= self.close_after_reads:
            self.is_open = False
        if self.responses:
            return bytes([self.responses.pop(0)])
        return b""

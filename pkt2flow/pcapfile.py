"""Reading and writing of classic pcap capture files."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import BinaryIO, Iterator

MAGIC_USEC = 0xA1B2C3D4
MAGIC_NSEC = 0xA1B23C4D
LINKTYPE_ETHERNET = 1

_GLOBAL_FORMAT = "IHHiIII"
_RECORD_FORMAT = "IIII"
_GLOBAL_SIZE = struct.calcsize("<" + _GLOBAL_FORMAT)
_RECORD_SIZE = struct.calcsize("<" + _RECORD_FORMAT)


class PcapError(Exception):
    """Raised when a capture file cannot be opened or is not a pcap file."""


@dataclass(frozen=True)
class PcapHeader:
    """Global header of a capture file."""

    snaplen: int = 65535
    linktype: int = LINKTYPE_ETHERNET
    version_major: int = 2
    version_minor: int = 4
    thiszone: int = 0
    sigfigs: int = 0
    nanosecond: bool = False
    byteorder: str = "<"

    def pack(self) -> bytes:
        """The header as it is stored at the start of a file."""
        magic = MAGIC_NSEC if self.nanosecond else MAGIC_USEC
        return struct.pack(
            self.byteorder + _GLOBAL_FORMAT,
            magic,
            self.version_major,
            self.version_minor,
            self.thiszone,
            self.sigfigs,
            self.snaplen,
            self.linktype,
        )


@dataclass(frozen=True)
class PcapRecord:
    """One captured packet with its timestamp in microseconds."""

    ts_sec: int
    ts_usec: int
    data: bytes
    orig_len: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", bytes(self.data))
        if self.orig_len is None:
            object.__setattr__(self, "orig_len", len(self.data))

    @property
    def caplen(self) -> int:
        """Number of bytes captured."""
        return len(self.data)

    def pack(self, header: PcapHeader) -> bytes:
        """The record as stored in a file that starts with ``header``."""
        fraction = self.ts_usec * 1000 if header.nanosecond else self.ts_usec
        return (
            struct.pack(
                header.byteorder + _RECORD_FORMAT,
                self.ts_sec,
                fraction,
                len(self.data),
                self.orig_len,
            )
            + self.data
        )


class PcapReader:
    """Iterates over the records of a capture file opened in binary mode."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        raw = stream.read(_GLOBAL_SIZE)
        if len(raw) < _GLOBAL_SIZE:
            raise PcapError(
                f"truncated dump file; tried to read {_GLOBAL_SIZE} file header "
                f"bytes, only got {len(raw)}"
            )
        for byteorder in ("<", ">"):
            (magic,) = struct.unpack(byteorder + "I", raw[:4])
            if magic in (MAGIC_USEC, MAGIC_NSEC):
                break
        else:
            raise PcapError("unknown file format")
        (_, major, minor, zone, sigfigs, snaplen, linktype) = struct.unpack(
            byteorder + _GLOBAL_FORMAT, raw
        )
        if major != 2:
            raise PcapError(f"unsupported pcap savefile version {major}.{minor}")
        self.header = PcapHeader(
            snaplen=snaplen,
            linktype=linktype,
            version_major=major,
            version_minor=minor,
            thiszone=zone,
            sigfigs=sigfigs,
            nanosecond=magic == MAGIC_NSEC,
            byteorder=byteorder,
        )

    def __iter__(self) -> Iterator[PcapRecord]:
        record_format = self.header.byteorder + _RECORD_FORMAT
        while True:
            raw = self._stream.read(_RECORD_SIZE)
            if len(raw) < _RECORD_SIZE:
                return
            sec, fraction, caplen, orig_len = struct.unpack(record_format, raw)
            data = self._stream.read(caplen)
            if len(data) < caplen:
                return
            usec = fraction // 1000 if self.header.nanosecond else fraction
            yield PcapRecord(sec, usec, data, orig_len)
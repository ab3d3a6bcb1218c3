"""Command line entry point: split a capture file into per-flow files."""

from __future__ import annotations

import getopt
import sys
from dataclasses import dataclass, replace
from pathlib import Path

from .decode import IPPROTO_TCP, IPPROTO_UDP, DecodeError, decode_ethernet
from .flows import FLOW_TIMEOUT, DumpFlags, DumpStatus, FlowTable
from .naming import new_file_name
from .pcapfile import PcapError, PcapReader

PROG = "pkt2flow"
VERSION = "1.2"
DEFAULT_OUTPUT_DIR = "pkt2flow.out"
_EXIT_USAGE = 255

_FOLDERS = {
    DumpStatus.TCP_SYN: "tcp_syn",
    DumpStatus.TCP_NOSYN: "tcp_nosyn",
    DumpStatus.UDP: "udp",
    DumpStatus.UNSET: "others",
}


@dataclass
class Options:
    """Settings taken from the command line."""

    readfile: str
    outputdir: str = DEFAULT_OUTPUT_DIR
    allowed: DumpFlags = DumpFlags.NONE


def _usage() -> None:
    sys.stderr.write(
        f"Name: {PROG}\n"
        f"Version: {VERSION}\n"
        "Program to seperate the packets into flows (UDP or TCP).\n\n"
        f"Usage: {PROG} [-huvx] [-o outdir] pcapfile\n\n"
        "Options:\n"
        "\t-h\tprint this help and exit\n"
        "\t-u\talso dump (U)DP flows\n"
        "\t-v\talso dump the in(v)alid TCP flows without the SYN option\n"
        "\t-x\talso dump non-UDP/non-TCP IP flows\n"
        "\t-o\t(o)utput directory\n"
    )


def parse_args(argv: list[str]) -> Options:
    """Parse the arguments after the program name; exit on misuse."""
    try:
        opts, args = getopt.gnu_getopt(list(argv), "uvxo:h")
    except getopt.GetoptError as exc:
        print(f"{PROG}: {exc.msg}", file=sys.stderr)
        _usage()
        raise SystemExit(_EXIT_USAGE) from None

    outputdir = DEFAULT_OUTPUT_DIR
    allowed = DumpFlags.NONE
    flags = {"-u": DumpFlags.UDP, "-v": DumpFlags.TCP_NOSYN, "-x": DumpFlags.OTHER}
    for opt, value in opts:
        if opt == "-h":
            _usage()
            raise SystemExit(_EXIT_USAGE)
        if opt == "-o":
            outputdir = value
        else:
            allowed |= flags[opt]

    if not args:
        print("pcap file not given", file=sys.stderr)
        _usage()
        raise SystemExit(1)
    return Options(args[0], outputdir, allowed)


def flow_path(outputdir: str | Path, status: DumpStatus, file_name: str) -> Path:
    """Path of a flow's dump file, creating its folder when missing."""
    folder = Path(outputdir) / _FOLDERS[status]
    for directory in (*reversed(folder.parents), folder):
        if not directory.is_dir():
            directory.mkdir(mode=0o700)
    return folder / file_name


def _status_for(protocol: int, syn: bool) -> DumpStatus:
    if protocol == IPPROTO_TCP:
        return DumpStatus.TCP_SYN if syn else DumpStatus.TCP_NOSYN
    if protocol == IPPROTO_UDP:
        return DumpStatus.UDP
    return DumpStatus.UNSET


def split_trace(path: str | Path, outputdir: str | Path, allowed: DumpFlags) -> FlowTable:
    """Append every accepted packet of ``path`` to its flow's file.

    Returns the table of flows seen. Raises PcapError when the trace
    cannot be opened and OSError when an output folder cannot be made.
    """
    allowed = DumpFlags(allowed)
    try:
        stream = open(path, "rb")
    except OSError as exc:
        raise PcapError(f"{path}: {exc.strerror}") from exc

    table = FlowTable()
    with stream:
        reader = PcapReader(stream)
        out_header = replace(
            reader.header,
            version_major=2,
            version_minor=4,
            thiszone=0,
            sigfigs=0,
            nanosecond=False,
        )
        for record in reader:
            try:
                key, syn = decode_ethernet(record.data)
            except DecodeError:
                continue

            if key.protocol == IPPROTO_UDP:
                if not allowed & DumpFlags.UDP:
                    continue
            elif key.protocol != IPPROTO_TCP and not allowed & DumpFlags.OTHER:
                continue

            pair = table.find(key)
            if pair is None:
                if key.protocol == IPPROTO_TCP and not syn and not allowed & DumpFlags.TCP_NOSYN:
                    continue
                pair = table.register(key)
                pair.pdf.status = _status_for(key.protocol, syn)

            pdf = pair.pdf
            if pdf.pkts == 0:
                pdf.file_name = new_file_name(key, record.ts_sec)
                pdf.start_time = record.ts_sec
            else:
                elapsed = record.ts_sec - pdf.start_time
                if elapsed < 0 or elapsed >= FLOW_TIMEOUT:
                    pdf.reset()
                    pdf.file_name = new_file_name(key, record.ts_sec)
                    pdf.start_time = record.ts_sec
                    pdf.status = _status_for(key.protocol, syn)

            target = flow_path(outputdir, pdf.status, pdf.file_name)
            try:
                out = open(target, "ab")
            except OSError:
                print(f"Failed to open output file '{target}'", file=sys.stderr)
            else:
                with out:
                    if pdf.pkts == 0:
                        out.write(out_header.pack())
                    out.write(record.pack(out_header))
            pdf.pkts += 1
    return table


def main(argv: list[str] | None = None) -> int:
    """Run the command; returns the exit status."""
    if argv is None:
        argv = sys.argv[1:]
    options = parse_args(argv)
    try:
        split_trace(options.readfile, options.outputdir, options.allowed)
    except PcapError as exc:
        print(f"error opening tracefile {options.readfile}: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"making directory error: {exc.filename}", file=sys.stderr)
        return _EXIT_USAGE
    return 0


if __name__ == "__main__":
    sys.exit(main())
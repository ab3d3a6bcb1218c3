# pkt2flow

Split a packet capture into flows. Every TCP, UDP or other IP flow in a
pcap trace is written to a pcap file of its own, and the files are sorted
into folders by flow type.

## Installation

    pip install .

## Usage

    pkt2flow [-huvx] [-o outdir] pcapfile

Options:

- `-h` print help and exit (exit status 255)
- `-u` also dump UDP flows
- `-v` also dump TCP flows whose first packet seen carried no SYN
- `-x` also dump non-UDP/non-TCP IP flows
- `-o` output directory (default `pkt2flow.out`)

TCP flows that begin with a SYN are always dumped. Packets that are not
IPv4 or IPv6 over Ethernet (optionally with one 802.1Q VLAN tag), or that
are too short to decode, are skipped.

If no capture file is given, or it cannot be opened or read as a pcap
file, the command prints an error and exits with status 1.

## Output

Files land in a sub-folder of the output directory chosen by flow type;
missing folders are created with mode `0700`:

- `tcp_syn/` TCP flows that began with a SYN
- `tcp_nosyn/` TCP flows seen without a SYN (with `-v`)
- `udp/` UDP flows (with `-u`)
- `others/` other IP flows (with `-x`)

Each file is named after the flow's addresses, ports and first-packet
timestamp, for example `10.0.0.1_1234_10.0.0.2_80_1400000000.pcap`.
Flows captured on an 802.1Q VLAN get a `_vlan` suffix. Both directions
of a conversation go into the same file. When a packet arrives 30
minutes or more after the flow's first packet (or earlier than it), the
flow is started afresh in a new file.

Packets are appended to existing files, so running twice into the same
output directory adds to the files already there. Output files are
classic microsecond pcap files (version 2.4) carrying the input's
snapshot length and link type.

## Library use

```python
from pkt2flow.cli import split_trace
from pkt2flow.flows import DumpFlags

table = split_trace("trace.pcap", "out", DumpFlags.UDP | DumpFlags.OTHER)
print(len(table), "flows")
```

- `pkt2flow.pcapfile.PcapReader` iterates over the `PcapRecord`s of a
  classic pcap file (either byte order, micro- or nanosecond timestamps);
  `PcapHeader.pack` and `PcapRecord.pack` write them back.
- `pkt2flow.decode.decode_ethernet` returns a frame's `FlowKey` and
  whether it carries a TCP SYN, raising `DecodeError` otherwise.
- `pkt2flow.flows.FlowTable` keeps track of flows regardless of
  direction; `pkt2flow.naming.new_file_name` builds the file names.

## Limitations

Only classic pcap files are read; pcapng is not supported. Every packet
is decoded as an Ethernet frame whatever link type the file declares.
There is no live capture from a network interface.

## Tests

    pip install .[test]
    pytest
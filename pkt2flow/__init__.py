"""Split a pcap trace into one pcap file per network flow."""

__version__ = "1.2"
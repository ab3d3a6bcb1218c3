[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pkt2flow"
version = "1.2"
description = "Split a pcap trace into one pcap file per TCP, UDP or other IP flow"
requires-python = ">=3.10"
dependencies = []
keywords = ["pcap", "flow", "tcp", "udp", "network", "traffic", "trace"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
pkt2flow = "pkt2flow.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["pkt2flow"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

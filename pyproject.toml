[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cxpnet"
version = "0.1.0"
description = "A small reactor-style TCP networking library: event polls, acceptors, connections, connectors and a server"
requires-python = ">=3.10"
dependencies = []
keywords = ["tcp", "networking", "reactor", "event-loop", "nonblocking", "server", "client"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
cxpnet-client = "cxpnet.client:main"

[tool.hatch.build.targets.wheel]
packages = ["cxpnet"]

[tool.pytest.ini_options]
addopts = "-ra"

[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "skywire"
version = "0.1.0"
description = "Overlay network building blocks: secp256k1 keys, stcp transport with a signed handshake, transport entries and settlement, log stores and visor configuration"
requires-python = ">=3.10"
dependencies = [
    "cryptography",
]
keywords = ["networking", "overlay", "transport", "p2p", "handshake", "stcp", "secp256k1"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["skywire"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true

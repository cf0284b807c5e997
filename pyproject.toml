[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "remproxy"
version = "0.1.0"
description = "Proxy building blocks: SOCKS5 authentication, a Trojan server, KCP statistics and scheduling, cipher and address helpers"
requires-python = ">=3.10"
keywords = ["socks5", "trojan", "proxy", "tunnel", "kcp", "aes", "clash"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Proxy Servers",
    "Topic :: System :: Networking",
]
dependencies = [
    "cryptography",
    "psutil",
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["remproxy"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

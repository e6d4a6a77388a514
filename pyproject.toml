[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "waydisplays"
version = "1.9.1"
description = "Configuration model, mode selection, YAML IPC messaging, pid file and socket helpers for a Wayland display arrangement daemon"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = ["wayland", "displays", "outputs", "monitors", "ipc", "yaml"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: POSIX",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Desktop Environment",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["waydisplays"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

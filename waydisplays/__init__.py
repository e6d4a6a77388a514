"""Configuration model, mode selection, YAML IPC messaging, pid file and socket helpers for Wayland display arrangement."""

__version__ = "1.9.1"

__all__ = ["cfg_yaml", "ipc_yaml", "mode", "models", "process", "sockets"]
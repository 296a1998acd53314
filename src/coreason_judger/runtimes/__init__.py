from .local import LocalProcess, LocalRuntime

__all__ = ["LocalProcess", "LocalRuntime"]

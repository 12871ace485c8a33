from . import artifacts, compile, generate, jobs

__all__ = ["artifacts", "compile", "generate", "jobs"]

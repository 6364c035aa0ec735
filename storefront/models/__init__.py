# Models package
from .local_state import LocalStateEntry

__all__ = ["LocalStateEntry"]

from .app import FinQuizApp

__all__ = ["FinQuizApp"]

"""quizsmith: turns learning material into mixed-format quizzes and grades the answers."""

__version__ = "0.1.0"

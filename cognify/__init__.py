"""Top-level package for the cognify voice tutor.

Cognify turns an uploaded document into a study index, holds a spoken
question/answer dialogue about it with a language model, evaluates the
learner's answers and tracks mastery across persisted sessions.
"""

__all__ = [
    "config",
    "dialogue",
    "errors",
    "features",
    "store",
    "util",
    "voice",
]

"""Code-generation backends."""

import logging

from vibesprint.executors.base import TIMEOUT_EXIT_CODE, TIMEOUT_SECONDS, Executor
from vibesprint.executors.codex import CODEX_MODELS, CodexExecutor
from vibesprint.executors.kiro import KIRO_MODELS, KiroExecutor

logger = logging.getLogger(__name__)

EXECUTORS = ("kiro", "codex")

# model:* and executor:* labels created on every tracker so users can pick overrides.
OVERRIDE_LABELS = [f"model:{m}" for m in (*KIRO_MODELS, *CODEX_MODELS)] + [f"executor:{e}" for e in EXECUTORS]


def create_executor(name: str | None) -> Executor:
    match name:
        case "codex":
            return CodexExecutor()
        case "kiro" | None:
            return KiroExecutor()
        case _:
            logger.warning("Unknown executor '%s', falling back to kiro", name)
            return KiroExecutor()


__all__ = [
    "CODEX_MODELS",
    "EXECUTORS",
    "KIRO_MODELS",
    "OVERRIDE_LABELS",
    "TIMEOUT_EXIT_CODE",
    "TIMEOUT_SECONDS",
    "CodexExecutor",
    "Executor",
    "KiroExecutor",
    "create_executor",
]

"""OpenAI Codex CLI backend."""

import re

from vibesprint.executors.base import Executor
from vibesprint.parsing import strip_ansi

CODEX_MODELS = (
    "gpt-5.2-codex",
    "gpt-5.2",
    "gpt-5.1-codex-max",
    "gpt-5.1-codex-mini",
)

_TOKENS_RE = re.compile(r"Tokens?\s*(?:used)?:?\s*(\d[\d,]*)", re.IGNORECASE)


class CodexExecutor(Executor):
    name = "codex"
    binary = "codex"
    install_hint = "Run: npm install -g @openai/codex"
    models = CODEX_MODELS

    def build_command(self, model: str | None) -> list[str]:
        argv = [self.binary, "--ask-for-approval", "never"]
        if model:
            argv += ["-m", model]
        return argv + ["exec", "--sandbox", "danger-full-access"]

    def parse_telemetry(self, output: str) -> dict:
        matches = _TOKENS_RE.findall(strip_ansi(output))
        if not matches:
            return {}
        return {"tokens_used": int(matches[-1].replace(",", ""))}

"""kiro-cli backend."""

import re

from vibesprint.executors.base import Executor
from vibesprint.parsing import strip_ansi

KIRO_MODELS = (
    "auto",
    "claude-sonnet-4.5",
    "claude-sonnet-4",
    "claude-haiku-4.5",
    "claude-opus-4.5",
)

# ▸ Credits: 0.42 • Time: 1m 5s   or   ▸ Credits: 0.1 • Time: 45s
_CREDITS_RE = re.compile(r"▸\s*Credits:\s*(\d+(?:\.\d+)?)\s*•\s*Time:\s*(\d+)m?\s*(\d+)?s")


class KiroExecutor(Executor):
    name = "kiro"
    binary = "kiro-cli"
    install_hint = "See: https://kiro.dev/docs/cli/installation"
    models = KIRO_MODELS

    def build_command(self, model: str | None) -> list[str]:
        argv = [self.binary, "chat", "--no-interactive", "--trust-all-tools"]
        if model and model != "auto":
            argv += ["--model", model]
        return argv

    def parse_telemetry(self, output: str) -> dict:
        matches = _CREDITS_RE.findall(strip_ansi(output))
        if not matches:
            return {}
        credits, first, second = matches[-1]
        seconds = int(first) * 60 + int(second) if second else int(first)
        return {"credits": float(credits), "time_seconds": seconds}

"""Heuristic step durations, in seconds, for parsed pipelines."""

from __future__ import annotations

# (prefix of `uses`, seconds); first match wins
ACTION_DURATIONS: tuple[tuple[str, float], ...] = (
    ("actions/checkout", 12.0),
    ("actions/setup-", 15.0),
    ("actions/cache", 10.0),
    ("docker/build-push-action", 300.0),
    ("actions/upload-artifact", 15.0),
    ("actions/download-artifact", 15.0),
)
GENERIC_ACTION_SECS = 20.0

# (substrings of the lower-cased command, seconds); first match wins
COMMAND_DURATIONS: tuple[tuple[tuple[str, ...], float], ...] = (
    (("npm install", "npm ci", "yarn install", "pnpm install"), 180.0),
    (("pip install", "pip3 install", "poetry install"), 120.0),
    (("bundle install",), 150.0),
    (("composer install",), 90.0),
    (("cargo build",), 300.0),
    (("npm run build", "yarn build", "pnpm build"), 240.0),
    (("npm test", "pytest", "cargo test", "jest", "rspec", "go test"), 300.0),
    (("npm run lint", "eslint", "clippy", "rubocop", "flake8", "ruff"), 60.0),
    (("docker build",), 300.0),
    (("docker push",), 60.0),
    (("deploy", "kubectl", "terraform", "helm"), 120.0),
    (("apt-get", "apk add"), 45.0),
)
GENERIC_COMMAND_SECS = 30.0
UNKNOWN_STEP_SECS = 10.0


def estimate_action_duration(uses: str) -> float:
    for prefix, secs in ACTION_DURATIONS:
        if uses.startswith(prefix):
            return secs
    return GENERIC_ACTION_SECS


def estimate_command_duration(run: str) -> float:
    cmd = run.lower()
    for needles, secs in COMMAND_DURATIONS:
        if any(n in cmd for n in needles):
            return secs
    return GENERIC_COMMAND_SECS


def estimate_step_duration(uses: str | None, run: str | None) -> float:
    """Duration guess for a step from its action reference or command."""
    if uses:
        return estimate_action_duration(uses)
    if run:
        return estimate_command_duration(run)
    return UNKNOWN_STEP_SECS

import shlex
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Priority: ./.env > ../.env
cwd = Path.cwd()
local_env = cwd / ".env"
parent_env = cwd.parent / ".env"

env_file = None
if local_env.exists():
    env_file = local_env
elif parent_env.exists():
    env_file = parent_env

if env_file:
    load_dotenv(env_file, override=False)


class PlayboxConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PLAYBOX_",
        env_file=env_file,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    archive_url: str = "http://localhost:8080/go.zip"
    toolchain_dir: str = "/go"
    toolchain_bin_subdir: str = "bin"
    workspace_dir: str = "playground"
    source_file: str = "main.go"

    build_command: str = "go build -v ."
    run_command: str = "./playground"
    format_command: str = "go fmt ."
    init_command: str = "go mod init playground"
    init_marker: str = "go.mod"

    fetch_timeout_s: float = 60.0
    step_deadline_s: Optional[float] = None
    console_history_lines: int = 5000
    subscriber_queue_size: int = 1000
    log_level: str = "INFO"
    gateway_port: int = 3000

    def toolchain_bin(self) -> str:
        return str(Path(self.toolchain_dir) / self.toolchain_bin_subdir)


def load_config() -> PlayboxConfig:
    return PlayboxConfig()


def split_command(command: str) -> List[str]:
    """Split a shell-style command string into argv; empty strings are rejected."""
    argv = shlex.split(command)
    if not argv:
        raise ValueError("Empty command")
    return argv

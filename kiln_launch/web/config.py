"""Configuration loading for the launch web host."""

from __future__ import annotations

from dataclasses import dataclass

from kiln_launch.adapters.env_file import env_int, env_str, parse_env_file


@dataclass(frozen=True, slots=True)
class WebConfig:
    """Runtime configuration for booting the HTTP service."""

    host: str = "127.0.0.1"
    port: int = 8780
    data_dir: str = ".kiln_data"
    env_file: str = ".env"
    seed_scenario: str = "empty"
    log_level: str = "INFO"

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def uses_memory_store(self) -> bool:
        return not self.data_dir


def load_web_config(env_file: str = ".env") -> WebConfig:
    """Load web config from env file with safe parsing defaults."""

    env = parse_env_file(env_file)

    return WebConfig(
        host=env_str(env, "KILN_HOST", "127.0.0.1"),
        port=env_int(env, "KILN_PORT", default=8780, minimum=0),
        data_dir=env.get("KILN_DATA_DIR", ".kiln_data").strip(),
        env_file=env_file,
        seed_scenario=env_str(env, "KILN_SCENARIO", "empty"),
        log_level=env_str(env, "KILN_LOG_LEVEL", "INFO").upper(),
    )

"""Application configuration."""

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Settings shared by the wizard and dashboard, loaded from environment variables."""

    # Development mode: human readable logs instead of JSON lines
    dev_mode: bool = True

    # Logging
    log_level: str = "info"

    # Project layout (PROJECT_ROOT is exported by the install scripts and systemd units)
    project_root: str | None = None
    default_install_dir: str = "/opt/kaspa-aio"
    state_file: str = ".kaspa-aio/installation-state.json"
    state_watch_poll_seconds: float = 1.0

    # Kaspa node port discovery
    kaspa_node_host: str = "localhost"
    kaspa_node_port: int = 16110
    kaspa_node_fallback_ports: list[int] = [16110, 16111]
    port_probe_timeout_seconds: float = 5.0
    port_retry_interval_seconds: float = 30.0

    # Container runtime (Docker Engine API over its unix socket)
    docker_socket: str = "/var/run/docker.sock"
    docker_timeout_seconds: float = 5.0
    runtime_availability_ttl_seconds: float = 30.0

    # Cross-launch between the two web tools
    wizard_host: str = "localhost"
    wizard_port: int = 3000
    dashboard_host: str = "localhost"
    dashboard_port: int = 8080
    navigation_state_max_chars: int = 2000

    @model_validator(mode="after")
    def _validate_ports(self) -> "Settings":
        for port in (self.kaspa_node_port, self.wizard_port, self.dashboard_port,
                     *self.kaspa_node_fallback_ports):
            if not 0 < port < 65536:
                raise ValueError(f"Port out of range: {port}")
        return self

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()

"""Configuration schema using Pydantic."""

from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings


class Base(BaseModel):
    """Base model that accepts both camelCase and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NodeConfig(Base):
    """Network and chat settings for the local node."""

    port: int = Field(default=8888, ge=0, le=65535)  # Well-known UDP port shared by all nodes
    bind_host: str = "0.0.0.0"              # Interface to bind the UDP endpoint on
    broadcast_address: str = "255.255.255.255"  # Destination for presence announcements
    room: str = Field(default="public", min_length=1)  # Room joined at startup
    node_address: str = ""                  # Identity override (auto-detected from the LAN interface if empty)
    announce_interval: float = Field(default=0.0, ge=0)  # Seconds between presence re-announcements. 0 = once at startup.


class LoggingConfig(Base):
    """Console logging and diagnostics buffer."""

    level: str = "INFO"             # Console log level
    diagnostics_lines: int = Field(default=200, ge=1)  # Log lines kept for the front end


class Config(BaseSettings):
    """Root configuration for lanchat."""

    node: NodeConfig = Field(default_factory=NodeConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(env_prefix="LANCHAT_", env_nested_delimiter="__")

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        # Environment variables take precedence over values from the config file.
        return env_settings, init_settings, dotenv_settings, file_secret_settings

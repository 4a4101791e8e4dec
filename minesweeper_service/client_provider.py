"""Service settings and the Temporal client built from them."""
import os
import pathlib
import platform
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping, Optional

from temporalio.client import Client
from temporalio.envconfig import ClientConfig


DEFAULT_TASK_QUEUE = "minesweeper-task-queue"
CONFIG_FILE = "temporalio/temporal.toml"


@dataclass(frozen=True)
class ServiceSettings:
    """Everything the server and worker read from the environment."""
    address: str = "localhost:7233"
    namespace: str = "default"
    task_queue: str = DEFAULT_TASK_QUEUE
    profile: Optional[str] = None
    inactivity_hours: float = 24
    port: int = 3000

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ServiceSettings":
        env = os.environ if env is None else env
        return cls(
            address=env.get("TEMPORAL_ADDRESS", cls.address),
            namespace=env.get("TEMPORAL_NAMESPACE", cls.namespace),
            task_queue=env.get("TEMPORAL_TASK_QUEUE", cls.task_queue),
            profile=env.get("TEMPORAL_PROFILE") or None,
            inactivity_hours=float(env.get("GAME_INACTIVITY_HOURS", cls.inactivity_hours)),
            port=int(env.get("PORT", cls.port)),
        )

    @property
    def inactivity_timeout(self) -> timedelta:
        """How long a game may sit without moves before its workflow closes."""
        return timedelta(hours=self.inactivity_hours)


def get_task_queue() -> str:
    return ServiceSettings.from_env().task_queue


def get_inactivity_timeout() -> timedelta:
    return ServiceSettings.from_env().inactivity_timeout


async def get_temporal_client(settings: Optional[ServiceSettings] = None) -> Client:
    """Connect with a temporal.toml profile when one is named and present,
    otherwise with the configured address and namespace."""
    settings = settings or ServiceSettings.from_env()
    config_file_path = get_config_file_path()
    if settings.profile and config_file_path.is_file():
        connect_config = ClientConfig.load_client_connect_config(
            profile=settings.profile,
            config_file=str(config_file_path),
        )
        return await Client.connect(**connect_config)
    return await Client.connect(settings.address, namespace=settings.namespace)


def get_config_file_path(system: Optional[str] = None,
                         env: Optional[Mapping[str, str]] = None) -> pathlib.Path:
    """Where temporal.toml lives on this operating system."""
    system = system or platform.system()
    env = os.environ if env is None else env
    home = pathlib.Path.home()

    if system == "Darwin":
        base = home / "Library/Application Support"
    elif system == "Windows":
        if not env.get("AppData"):
            raise RuntimeError("AppData environment variable not set")
        base = pathlib.Path(env["AppData"])
    else:
        base = pathlib.Path(env["XDG_CONFIG_HOME"]) if env.get("XDG_CONFIG_HOME") else home / ".config"
    return base / CONFIG_FILE

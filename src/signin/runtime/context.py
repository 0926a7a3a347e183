from dataclasses import dataclass
from pathlib import Path

from src.signin.runtime.config.config_data import ConfigData
from src.signin.runtime.config.config_template import load_templated_yaml
from src.signin.runtime.settings import EnvironmentVariables


@dataclass(frozen=True)
class AppContext:
    """Application context containing configuration and other app-wide state.

    Built once at process start and passed by reference to the HTTP layer,
    the CLI and the services they construct.
    """

    config: ConfigData

    @property
    def environment(self) -> str:
        return self.config.app.environment


def load_context(settings: EnvironmentVariables | None = None) -> AppContext:
    """Load ``config.yaml`` for the configured environment.

    Args:
        settings: Process settings; read from the environment when omitted.

    Returns:
        AppContext: Immutable application context.
    """
    settings = settings or EnvironmentVariables()
    config = load_templated_yaml(Path(settings.config_file), settings.environment)
    return AppContext(config=config)

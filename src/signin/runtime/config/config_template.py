"""Configuration template substitution utilities."""

import os
import re
from collections.abc import Mapping
from pathlib import Path

import yaml
from loguru import logger
from pydantic import ValidationError

from src.signin.runtime.config.config_data import ConfigData

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")


def environment_overrides(
    env_mode: str, environ: Mapping[str, str] | None = None
) -> dict[str, str]:
    """Return the environment with ``<ENV_MODE>_`` prefixed variables applied.

    ``PRODUCTION_DATABASE_URL`` overrides ``DATABASE_URL`` when the
    environment mode is ``production``.
    """
    source = dict(os.environ if environ is None else environ)
    prefix = f"{env_mode.upper()}_"
    overrides = {
        name[len(prefix) :]: value
        for name, value in source.items()
        if name.startswith(prefix)
    }
    if overrides:
        logger.info(
            "Applying environment-specific overrides: {}", sorted(overrides.keys())
        )
    source.update(overrides)
    return source


def substitute_env_vars(text: str, environ: Mapping[str, str] | None = None) -> str:
    """
    Substitute environment variable placeholders in text.

    Supports formats:
    - ${VAR_NAME} - required variable (raises error if missing)
    - ${VAR_NAME:-default} - optional with default value
    - ${VAR_NAME:?error_message} - required with custom error message

    Full-line YAML comments are left untouched.
    """
    env = os.environ if environ is None else environ

    def replacer(match: re.Match[str]) -> str:
        var_expr = match.group(1)

        # Handle default values: ${VAR:-default}
        if ":-" in var_expr:
            var_name, default = var_expr.split(":-", 1)
            return env.get(var_name, default)

        # Handle error messages: ${VAR:?message}
        if ":?" in var_expr:
            var_name, error_msg = var_expr.split(":?", 1)
            value = env.get(var_name)
            if value is None:
                raise ValueError(f"Required environment variable {var_name}: {error_msg}")
            return value

        value = env.get(var_expr)
        if value is None:
            raise ValueError(f"Required environment variable {var_expr} not set")
        return value

    return "".join(
        line if line.lstrip().startswith("#") else _PLACEHOLDER.sub(replacer, line)
        for line in text.splitlines(keepends=True)
    )


def parse_config(
    content: str, env_mode: str, environ: Mapping[str, str] | None = None
) -> ConfigData:
    """Substitute, parse and validate a config.yaml document.

    Raises:
        ValueError: If required environment variables are missing or the
            document does not validate
    """
    substituted_content = substitute_env_vars(
        content, environment_overrides(env_mode, environ)
    )

    try:
        loaded = yaml.safe_load(substituted_content)
        if not loaded:
            raise ValueError("Failed to parse YAML")
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML: {e}") from e

    try:
        config = ConfigData(**loaded.get("config", {}))
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}") from e

    return _filter_providers(config, env_mode)


def _filter_providers(config: ConfigData, env_mode: str) -> ConfigData:
    """Drop disabled providers, and dev-only providers outside development."""
    enabled_providers = {}
    for name, provider in config.oidc.providers.items():
        if not provider.enabled:
            logger.info("Skipping disabled OAuth provider '{}'", name)
            continue
        if provider.dev_only and env_mode not in ("development", "test"):
            logger.info("Skipping OAuth provider '{}' in non-development environment", name)
            continue
        enabled_providers[name] = provider

    if not enabled_providers and not config.google_one_tap.enabled:
        logger.warning("No sign-in providers are enabled after applying configuration filters")

    oidc = config.oidc.model_copy(update={"providers": enabled_providers})
    return config.model_copy(update={"oidc": oidc})


def load_templated_yaml(
    file_path: Path, env_mode: str | None = None, environ: Mapping[str, str] | None = None
) -> ConfigData:
    """
    Load a YAML file with environment variable substitution.

    Args:
        file_path: Path to the YAML file
        env_mode: Environment mode; defaults to ``APP_ENVIRONMENT``
        environ: Environment mapping; defaults to ``os.environ``

    Returns:
        Validated configuration

    Raises:
        ValueError: If required environment variables are missing
        FileNotFoundError: If the YAML file doesn't exist
    """
    env_mode = env_mode or os.getenv("APP_ENVIRONMENT", "development")
    logger.info("Loading configuration for environment: {}", env_mode)

    with open(file_path) as f:
        content = f.read()

    return parse_config(content, env_mode, environ)

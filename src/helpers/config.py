"""Configuration management and environment variable utilities."""

import os

from dotenv import load_dotenv


# Load environment variables from .env file
load_dotenv()

RPC_URL_ENV_VARS = ("HELIUS_RPC_URL", "SOLANA_RPC_URL")


def get_required_env(key: str) -> str:
    """Get a required environment variable.

    Args:
        key: Environment variable name

    Returns:
        Environment variable value

    Raises:
        ValueError: If the environment variable is not set

    Example:
        ```python
        from src.helpers.config import get_required_env

        rpc_url = get_required_env("HELIUS_RPC_URL")
        ```
    """
    value = os.getenv(key)
    if not value:
        msg = f"{key} environment variable is not set"
        raise ValueError(msg)
    return value


def get_optional_env(key: str, default: str | None = None) -> str | None:
    """Get an optional environment variable with a default value.

    Args:
        key: Environment variable name
        default: Default value if not set

    Returns:
        Environment variable value or default
    """
    return os.getenv(key, default)


def get_int_env(key: str, default: int) -> int:
    """Get an integer environment variable.

    Args:
        key: Environment variable name
        default: Value used when the variable is unset or empty

    Returns:
        Parsed integer

    Raises:
        ValueError: If the variable is set but is not an integer

    Example:
        ```python
        from src.helpers.config import get_int_env

        batch_size = get_int_env("BATCH_SIZE", 10)
        ```
    """
    value = os.getenv(key)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        msg = f"{key} must be an integer, got {value!r}"
        raise ValueError(msg) from None


def get_solana_rpc_url(rpc_url: str | None = None) -> str:
    """Get the Solana JSON-RPC URL from parameter or environment.

    The explicit value wins, then HELIUS_RPC_URL, then SOLANA_RPC_URL.

    Args:
        rpc_url: Optional RPC URL to use directly

    Returns:
        Solana RPC URL

    Raises:
        ValueError: If no URL is provided and none of the env vars are set

    Example:
        ```python
        from src.helpers.config import get_solana_rpc_url

        # Get from environment
        rpc_url = get_solana_rpc_url()

        # Or provide explicitly
        rpc_url = get_solana_rpc_url("https://api.mainnet-beta.solana.com")
        ```
    """
    if rpc_url:
        return rpc_url

    for key in RPC_URL_ENV_VARS:
        env_rpc_url = get_optional_env(key)
        if env_rpc_url:
            return env_rpc_url

    msg = (
        "RPC URL not provided. Use --rpc-url or set "
        f"{' or '.join(RPC_URL_ENV_VARS)} in environment variables"
    )
    raise ValueError(msg)


__all__ = [
    "get_int_env",
    "get_optional_env",
    "get_required_env",
    "get_solana_rpc_url",
]

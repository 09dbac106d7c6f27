import os
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_STATE_FILE = os.path.join("~", ".premium_gate", "state.json")


class ClientConfigurationError(RuntimeError):
    pass


@dataclass(frozen=True)
class ClientConfig:
    verification_endpoint: str
    state_file: str = DEFAULT_STATE_FILE
    http_timeout_seconds: float = 15.0

    @classmethod
    def from_env(cls, *, load_dotenv_file: bool = True) -> "ClientConfig":
        if load_dotenv_file:
            load_dotenv()
        endpoint = os.getenv("VERIFICATION_ENDPOINT", "").strip()
        if not endpoint:
            raise ClientConfigurationError("VERIFICATION_ENDPOINT environment variable is required")
        try:
            timeout = float(os.getenv("HTTP_TIMEOUT_SECONDS", "15"))
        except ValueError as exc:
            raise ClientConfigurationError("HTTP_TIMEOUT_SECONDS must be a number") from exc
        return cls(
            verification_endpoint=endpoint,
            state_file=os.path.expanduser(os.getenv("PREMIUM_STATE_FILE", DEFAULT_STATE_FILE)),
            http_timeout_seconds=timeout,
        )

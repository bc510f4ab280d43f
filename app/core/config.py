from typing import List
from pydantic import SecretStr
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    APP_NAME: str = "ILO Power Control"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # uvicorn bind
    HOST: str = "0.0.0.0"
    PORT: int = 3547

    # ---- iLO SSH endpoint ----
    # Only presence is checked; an empty value disables the session at startup.
    SSH_HOST: str = ""
    SSH_PORT: int = 22
    SSH_USERNAME: str = ""
    SSH_PASSWORD: SecretStr = SecretStr("")
    SSH_CONNECT_TIMEOUT: float = 15.0

    # Session lifecycle
    # Grace delay after the handshake before commands may be sent.
    SSH_SETTLE_SEC: float = 0.5
    # The iLO drops idle sessions, so the session is rebuilt on this cadence.
    SSH_RECONNECT_INTERVAL_SEC: float = 300.0
    # Pause between a planned disconnect and the next connect.
    SSH_RETRY_DELAY_SEC: float = 0.5
    # Upper bound for the backoff between failed connects.
    SSH_BACKOFF_MAX_SEC: float = 30.0

    # ---- command scheduling ----
    POLL_INTERVAL_SEC: float = 4.0
    DISPATCH_INTERVAL_SEC: float = 2.0
    COMMAND_TIMEOUT_SEC: float = 30.0
    # 0 = unbounded; otherwise the oldest queued command is dropped on overflow
    COMMAND_QUEUE_MAX: int = 0

    # ---- request throttling ----
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_WINDOW_SEC: float = 1.0
    RATE_LIMIT_MAX_REQUESTS: int = 10

    def missing_ssh_settings(self) -> List[str]:
        missing = []
        if not self.SSH_HOST:
            missing.append("SSH_HOST")
        if not self.SSH_USERNAME:
            missing.append("SSH_USERNAME")
        if not self.SSH_PASSWORD.get_secret_value():
            missing.append("SSH_PASSWORD")
        return missing

    class Config:
        env_file = ".env"

settings = Settings()

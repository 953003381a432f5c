from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from chatrelay.filtering import check_banned_word


class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=True, env_prefix="CHATRELAY_")

    # Listener
    HOST: str = "0.0.0.0"
    PORT: int = Field(default=8080, ge=0, le=65535)
    LISTEN_BACKLOG: int = Field(default=100, ge=1)

    # Limits
    MAX_CLIENTS: int = Field(default=100, ge=1)
    MAX_NAME_LENGTH: int = Field(default=31, ge=1)
    MAX_MESSAGE_LENGTH: int = Field(default=256, ge=1)

    # Content filter (JSON list when given through the environment)
    BANNED_WORDS: list[str] = ["badword1", "badword2", "badword3"]

    @field_validator("BANNED_WORDS")
    @classmethod
    def validate_banned_words(cls, v: list[str]) -> list[str]:
        """Reject words the content filter can't use (empty, '*', non-ASCII)."""
        return [check_banned_word(word) for word in v]

    # "raw": one receive is one message. "line": newline-delimited messages.
    FRAMING: Literal["raw", "line"] = "raw"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE_PATH: Optional[str] = None
    LOG_JSON: bool = False


app_settings = Settings()

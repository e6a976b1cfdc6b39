"""Settings for mongootils."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    database_uri: str = Field("mongodb://localhost:27017/test", validation_alias="DATABASE_URI")
    database_connection_timeout_ms: int = Field(5000, validation_alias="DATABASE_CONNECTION_TIMEOUT_MS")
    database_app_name: str = Field("", validation_alias="DATABASE_APP_NAME")

    database_backend: str = Field("mongo", validation_alias="DATABASE_BACKEND")

    def connection_options(self) -> dict:
        """Driver options derived from settings; explicit handle options take precedence."""
        options: dict = {"serverSelectionTimeoutMS": self.database_connection_timeout_ms}
        if self.database_app_name:
            options["appname"] = self.database_app_name
        return options

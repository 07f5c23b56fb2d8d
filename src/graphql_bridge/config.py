"""Configuration for the GraphQL bridge."""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GraphQLOptions(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    path: str = Field(default="/graphql")
    graphiql: bool = Field(default=False)


class BridgeOptions(BaseModel):
    """Options accepted by ``mount_graphql``.

    Unknown keys are ignored and the camelCase spellings of the original plugin
    (``exposeRoute``, ``customizeHttpRequest``) are accepted as aliases.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True, arbitrary_types_allowed=True)

    definitions: Dict[str, Any] = Field(default_factory=dict)
    expose_route: bool = Field(default=False, alias="exposeRoute")
    document_path: str = Field(default="/documentation/json", alias="documentPath")
    graphql: GraphQLOptions = Field(default_factory=GraphQLOptions)
    viewer: bool = Field(default=True)
    customize_http_request: Optional[Callable[..., Any]] = Field(
        default=None, alias="customizeHttpRequest"
    )
    keep_generated_operation_ids: bool = Field(
        default=False, alias="keepGeneratedOperationIds"
    )


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    service_name: str = Field(default="openapi-graphql-bridge")

    bridge_host: str = Field(default="0.0.0.0")
    bridge_port: int = Field(default=3000)
    bridge_log_level: str = Field(default="INFO")

    bridge_graphql_path: str = Field(default="/graphql")
    bridge_graphiql: bool = Field(default=True)
    bridge_expose_route: bool = Field(default=True)
    bridge_viewer: bool = Field(default=True)

    bridge_jwt_secret: Optional[str] = Field(default=None)

    def bridge_options(self, **overrides: Any) -> BridgeOptions:
        options: Dict[str, Any] = {
            "expose_route": self.bridge_expose_route,
            "viewer": self.bridge_viewer,
            "graphql": {"path": self.bridge_graphql_path, "graphiql": self.bridge_graphiql},
        }
        options.update(overrides)
        return BridgeOptions(**options)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

"""
Pydantic schemas for Cortex CLI configuration profiles.

One schema per config version. Later versions extend earlier ones with the
fields they introduced.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator


class Registry(BaseModel):
    """A docker registry the CLI can push images to"""
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    url: str
    namespace: Optional[str] = None
    is_cortex: bool = Field(default=False, alias="isCortex")


class TemplateConfig(BaseModel):
    """Where workspace templates are fetched from"""
    model_config = ConfigDict(populate_by_name=True)

    repo: str
    branch: str
    github_token: Optional[str] = Field(default=None, alias="githubToken")


class ProfileV3(BaseModel):
    """Profile as stored by config version 3"""
    model_config = ConfigDict(populate_by_name=True)

    # name is the key in the profiles map; token and feature flags are
    # recomputed every run, so none of these are serialized
    name: Optional[str] = Field(default=None, exclude=True)
    token: Optional[str] = Field(default=None, exclude=True)
    feature_flags: Optional[Dict[str, Any]] = Field(default=None, alias="featureFlags", exclude=True)

    url: str
    username: str
    jwk: Dict[str, Any]
    issuer: str
    audience: str
    project: Optional[str] = None

    @field_validator("url")
    @classmethod
    def url_must_be_uri(cls, value: str) -> str:
        parsed = urlparse(value)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("must be a valid uri")
        return value

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ProfileV4(ProfileV3):
    """Version 4 adds docker registries"""
    registries: Dict[str, Registry]
    current_registry: str = Field(alias="currentRegistry")

    @model_validator(mode="after")
    def current_registry_must_exist(self):
        if self.current_registry not in self.registries:
            raise ValueError(f"currentRegistry '{self.current_registry}' is not one of the configured registries")
        return self


class ProfileV5(ProfileV4):
    """Version 5 adds the workspace template configuration"""
    template_config: TemplateConfig = Field(alias="templateConfig")


PROFILE_SCHEMAS = {
    "3": ProfileV3,
    "4": ProfileV4,
    "5": ProfileV5,
}

# Runtime profiles are always the latest schema
Profile = ProfileV5


def describe_validation_error(exc: ValidationError) -> List[str]:
    """Flatten a pydantic error into one message per violated field."""
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        message = error["msg"]
        problems.append(f'"{location}" {message}' if location else message)
    return problems

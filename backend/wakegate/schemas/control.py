"""Control surface schemas — JSON contract used by the control page."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ActionResponse(BaseModel):
    """Result of a wake / power-off submission."""
    success: bool
    message: str


class ControlStatus(BaseModel):
    """Polled by the control page; keys are camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    is_healthy: bool
    is_waking: bool
    is_powering_off: bool
    message: str
    progress: int

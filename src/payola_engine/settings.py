"""Engine settings."""

from typing_extensions import Annotated
from pydantic import BaseModel, Field


class EngineSettings(BaseModel):
    """Tunables shared by all games handled by an engine instance."""

    model_config = {"frozen": True}

    placement_timeout: Annotated[
        float, Field(gt=0, description="Seconds a player has to place a token.")
    ] = 90.0
    max_generation_attempts: Annotated[
        int, Field(ge=1, description="Growth attempts before using a fixed layout.")
    ] = 150
    frontier_cap: Annotated[int, Field(ge=1)] = 15
    frontier_keep: Annotated[int, Field(ge=1)] = 12
    max_automation_steps: Annotated[
        int, Field(ge=1, description="Safety cap for the automated continuation loop.")
    ] = 500


default_settings = EngineSettings()

"""FastAPI dependency injection functions."""

from typing import Annotated

from fastapi import Depends

from src.core.config import Settings, get_settings
from src.services.assistant_service import AssistantService, get_assistant_service

# Type aliases for cleaner route signatures
Assistant = Annotated[AssistantService, Depends(get_assistant_service)]
AppSettings = Annotated[Settings, Depends(get_settings)]

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from ..core.errors import PreconditionFailed
from ..core.state_machine import SessionStateMachine, SessionStatus
from ..domain.models import GenerationConfig
from .artifact_buffer import ArtifactBuffer
from .conversation import ConversationHistory


@dataclass
class SessionState:
    """All mutable state of one generate-and-iterate session.

    ``settings`` is the editable draft shown in the settings dialog; ``config``
    is the copy captured by the first successful generation and reused for
    every modification afterwards.
    """

    machine: SessionStateMachine = field(default_factory=SessionStateMachine)
    history: ConversationHistory = field(default_factory=ConversationHistory)
    artifact: ArtifactBuffer = field(default_factory=ArtifactBuffer)
    settings: GenerationConfig = field(default_factory=GenerationConfig)
    config: Optional[GenerationConfig] = None
    publishing: bool = False

    @property
    def status(self) -> SessionStatus:
        return self.machine.status

    @property
    def busy(self) -> bool:
        return self.machine.busy

    def merged_settings(self, **changes: Any) -> GenerationConfig:
        """Validate edits against the current draft without storing them."""
        merged = {**self.settings.model_dump(), **{k: v for k, v in changes.items() if v is not None}}
        return GenerationConfig.model_validate(merged)

    def update_settings(self, **changes: Any) -> GenerationConfig:
        """Validate and apply settings edits; refused while a request streams."""
        if self.busy:
            raise PreconditionFailed("update_settings", self.status.value, "a request is in flight")
        self.settings = self.merged_settings(**changes)
        return self.settings

    def reset_settings(self) -> GenerationConfig:
        if self.busy:
            raise PreconditionFailed("reset_settings", self.status.value, "a request is in flight")
        self.settings = GenerationConfig()
        return self.settings

    def can_publish(self) -> bool:
        return (
            self.machine.can_publish(self.history.count("assistant"))
            and not self.publishing
            and bool(self.artifact.current())
        )

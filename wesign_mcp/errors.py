from __future__ import annotations


class ToolValidationError(ValueError):
    """Arguments rejected before anything is sent upstream."""


class ToolNotFoundError(LookupError):
    pass


class WorkflowStepError(RuntimeError):
    """A step of a multi-step workflow failed; earlier steps are left as they are."""

    def __init__(self, step: int, label: str, cause: BaseException) -> None:
        super().__init__(f"Step {step} ({label}) failed: {cause}")
        self.step = step
        self.label = label


class ResourceNotFoundError(LookupError):
    pass

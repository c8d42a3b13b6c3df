"""Models describing a newsletter dispatch and its outcome."""

from typing import List, Optional

from pydantic import BaseModel, Field


class Recipient(BaseModel):
    """A subscriber to deliver one personalized copy to."""

    email: str = Field(..., description="Subscriber address")
    unsubscribe_token: Optional[str] = Field(
        None, description="Stored unsubscribe token; derived when absent"
    )


class SendFailure(BaseModel):
    """A recipient whose delivery failed."""

    email: str = Field(..., description="Subscriber address")
    reason: str = Field(..., description="Transport or validation error")


class SendReport(BaseModel):
    """Summary of a dispatch run."""

    total_attempted: int = Field(0, ge=0, description="Recipients attempted")
    succeeded: int = Field(0, ge=0, description="Messages accepted")
    failed: int = Field(0, ge=0, description="Messages rejected")
    failures: List[SendFailure] = Field(
        default_factory=list, description="Capped list of failures"
    )
    truncated_failure_list: bool = Field(
        False, description="More failures occurred than are listed"
    )
    batch_count: int = Field(0, ge=0, description="Batches processed")
    cancelled: bool = Field(False, description="Stopped before all batches ran")

    @property
    def success(self) -> bool:
        """Partial delivery counts as success; an empty run is a success too."""
        return self.succeeded > 0 or self.total_attempted == 0

    def summary(self) -> str:
        if self.total_attempted == 0:
            return "No recipients - nothing to send"
        message = f"Newsletter sent to {self.succeeded} subscribers"
        if self.failed:
            message += f" ({self.failed} failed)"
        if self.cancelled:
            message += " - cancelled before completion"
        return message

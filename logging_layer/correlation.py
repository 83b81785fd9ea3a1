"""
Correlation context for tagging diagnostic output with a test and request identifier.

The context is a plain value passed explicitly to the calls that log, so the
output does not depend on which thread runs the call.
"""
import uuid
from dataclasses import dataclass, replace
from typing import Dict, Optional


def generate_correlation_id() -> str:
    """Generate a short unique correlation id."""
    return uuid.uuid4().hex[:8]


@dataclass(frozen=True)
class CorrelationContext:
    """Identifies the test, request and step an operation belongs to."""
    correlation_id: str
    test_name: Optional[str] = None
    step_name: Optional[str] = None

    @classmethod
    def start(cls, test_name: Optional[str] = None) -> 'CorrelationContext':
        """Create a fresh context for a test."""
        return cls(correlation_id=generate_correlation_id(), test_name=test_name)

    def with_step(self, step_name: Optional[str]) -> 'CorrelationContext':
        return replace(self, step_name=step_name)

    def full_context(self) -> str:
        return f"Test={self.test_name}, CorrelationId={self.correlation_id}, Step={self.step_name}"

    def as_log_fields(self) -> Dict[str, str]:
        """Fields bound onto structured log events."""
        fields = {'correlation_id': self.correlation_id}
        if self.test_name is not None:
            fields['test'] = self.test_name
        if self.step_name is not None:
            fields['step'] = self.step_name
        return fields

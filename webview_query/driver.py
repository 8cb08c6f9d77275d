"""
Sequential driver over many sessions.

Each session is processed to completion, disconnect included, before the
next one starts. A failing session is logged and skipped.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .logger import StructuredLogger, get_logger
from .query import ExtractedQuery
from .session.descriptor import SessionDescriptor
from .session.processor import SessionProcessor


@dataclass
class SessionOutcome:
    """Result of processing one session."""
    label: str
    bot: str
    query: Optional[ExtractedQuery] = None
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "bot": self.bot,
            "succeeded": self.succeeded,
            "error": str(self.error) if self.error else None,
            "error_type": type(self.error).__name__ if self.error else None,
        }


ProcessorFactory = Callable[[SessionDescriptor], SessionProcessor]


async def process_multiple_sessions(
    sessions: Iterable[SessionDescriptor],
    output_dir: Union[str, Path] = ".",
    processor_factory: Optional[ProcessorFactory] = None,
    logger: Optional[StructuredLogger] = None,
    **processor_options: Any,
) -> List[SessionOutcome]:
    """Process each session in order, isolating failures.

    Args:
        sessions: Session descriptors, processed in order
        output_dir: Directory for ``query_<bot>.txt`` files
        processor_factory: Builds the processor for a descriptor; by default
            ``SessionProcessor(descriptor, output_dir=..., **processor_options)``
        logger: Logger, the global one by default
        **processor_options: Extra SessionProcessor keyword arguments

    Returns:
        One SessionOutcome per session, in input order
    """
    logger = logger or get_logger()
    if processor_factory is None:
        def processor_factory(descriptor: SessionDescriptor) -> SessionProcessor:
            return SessionProcessor(
                descriptor,
                output_dir=output_dir,
                logger=logger,
                **processor_options,
            )

    outcomes: List[SessionOutcome] = []
    for descriptor in sessions:
        outcome = SessionOutcome(label=descriptor.label, bot=descriptor.bot)
        try:
            processor = processor_factory(descriptor)
            outcome.query = await processor.process()
        except Exception as e:
            outcome.error = e
            logger.error("Driver", "session_failed", {
                "session": descriptor.label,
                "error": str(e),
                "error_type": type(e).__name__,
            })
        outcomes.append(outcome)

    succeeded = sum(1 for o in outcomes if o.succeeded)
    logger.info("Driver", "run_complete", {
        "total": len(outcomes),
        "succeeded": succeeded,
        "failed": len(outcomes) - succeeded,
    })
    return outcomes

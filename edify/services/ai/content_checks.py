"""Run every safety check against a piece of input and decide whether to proceed."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from edify.config import get_settings
from edify.schemas.content_flags import ContentFlags
from edify.services.ai.classifiers import CLASSIFIERS, moderation_check

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContentCheckResult:
    violations: ContentFlags
    should_proceed: bool


async def perform_content_checks(text: str, min_severity: Optional[str] = None) -> ContentCheckResult:
    """
    Run the moderation check and every detector concurrently.

    Results are OR-merged so a flag raised by any source stays raised. The
    request may proceed only when no flag at or above ``min_severity``
    (default: settings.content_block_min_severity) is set.

    If the fan-out itself fails the result fails closed: all flags false,
    ``should_proceed`` false.
    """
    threshold = min_severity or get_settings().content_block_min_severity

    try:
        async with asyncio.TaskGroup() as group:
            moderation_task = group.create_task(moderation_check(text))
            detector_tasks = {
                name: group.create_task(detector(text))
                for name, detector in CLASSIFIERS.items()
            }
    except Exception as exc:
        logger.error(f"Content checks failed: {exc}", exc_info=True)
        return ContentCheckResult(violations=ContentFlags(), should_proceed=False)

    detector_flags = {name: task.result() for name, task in detector_tasks.items()}
    violations = ContentFlags.merge(moderation_task.result(), detector_flags)
    blocking = violations.blocking_names(threshold)

    if violations.any_flagged():
        logger.info(f"Content check flagged {violations.flagged_names()} (blocking: {blocking})")
    else:
        logger.debug("Content check passed with no flags")

    return ContentCheckResult(violations=violations, should_proceed=not blocking)


def format_violation_message(flags: ContentFlags) -> str:
    """User-facing message for a blocked request."""
    names = [name.replace("_", " ") for name in flags.flagged_names()]
    if not names:
        return "This request could not be verified as safe. Please try again later"
    return f"This request violates {', '.join(names)}. Please review your input"

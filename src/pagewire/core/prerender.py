"""Server-side pre-expansion of include directives.

Works on raw markup strings so that served pages keep their formatting;
first paint then already contains the included fragments.
"""

import logging

from pagewire.core.directives import DirectiveResolver, has_directive
from pagewire.core.includes import DEFAULT_MAX_PASSES

logger = logging.getLogger(__name__)


async def prerender(
    text: str,
    resolver: DirectiveResolver,
    *,
    base: str,
    max_passes: int = DEFAULT_MAX_PASSES,
) -> str:
    """Expand directives in text until it stops changing.

    Args:
        text: Page markup
        resolver: Directive resolver (one pass per call)
        base: URL of the page, the resolution base for every directive
        max_passes: Upper bound on passes; reaching it logs a warning

    Returns:
        Expanded markup
    """
    for pass_number in range(1, max_passes + 1):
        if not has_directive(text):
            return text
        resolved = await resolver.resolve(text, base=base)
        logger.debug(f"Prerender pass {pass_number} for {base}: changed={resolved != text}")
        if resolved == text:
            return text
        text = resolved

    if has_directive(text):
        logger.warning(f"Reached max passes ({max_passes}) while prerendering {base}")
    return text

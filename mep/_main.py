import sys
import asyncio
import logging

from .errors import UserCancelled
from .prompts import ConfirmPrompt, TextPrompt, SelectPrompt
from .utils import enable_log_forwarding


logger = logging.getLogger("mep")


async def demo():
    """Run a few prompts in sequence. Each prompt has its own session."""

    name = await TextPrompt(
        "What is your name?",
        placeholder="anonymous",
        validate=lambda value: len(value) <= 20 or "That name is too long",
    ).run()

    language = await SelectPrompt(
        "Favourite language?",
        choices=["Python", "Rust", "Go", "TypeScript", "C", "Zig", "Haskell", "Lua"],
    ).run()

    ok = await ConfirmPrompt(f"Is {language} really your favourite?").run()

    return name or "anonymous", language, ok


def main():
    """Run the demo, called from ``mep demo``."""

    # When importing mep, nothing should happen just yet.
    # Only when this function is called, is everything put in place.
    enable_log_forwarding()

    try:
        name, language, ok = asyncio.run(demo())
    except UserCancelled:
        logger.info("demo cancelled")
        return 1

    verdict = "likes" if ok else "is not sure about"
    sys.stdout.write(f"{name} {verdict} {language}.\n")
    sys.stdout.flush()
    return 0

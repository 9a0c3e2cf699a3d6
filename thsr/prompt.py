"""
Interactive input for the booking flows.

Every form field follows the same rule: a value supplied on the command line
wins, otherwise the user is asked and an empty or unparsable answer falls back
to the stated default. The console read lives behind the Prompter interface
so the flows can be driven by a scripted prompter in tests.
"""

from typing import Callable, Optional, Protocol, TypeVar
from PIL import Image
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Prompter(Protocol):
    def ask(self, message: str) -> str:
        ...


class ConsolePrompter:
    """Ask on stdout, read a line from stdin"""

    def ask(self, message: str) -> str:
        print(message)
        return input()


def resolve(
    override: Optional[T],
    prompt: str,
    default: T,
    prompter: Prompter,
    parse: Callable[[str], T] = str,
) -> T:
    """
    Resolve one form field.

    Args:
        override: Value supplied by the caller; returned as is when not None
        prompt: Question shown to the user
        default: Value used for an empty or unparsable answer
        prompter: Source of the answer
        parse: Conversion applied to the trimmed answer

    Returns:
        The resolved value
    """
    if override is not None:
        return override

    answer = prompter.ask(prompt).strip()
    if not answer:
        return default
    try:
        return parse(answer)
    except ValueError:
        logger.debug(f"[PROMPT] Could not parse '{answer}', using default {default!r}")
        return default


def parse_yes_no(answer: str) -> bool:
    return answer.strip().lower() in ("y", "yes")


def ask_non_empty(prompt: str, prompter: Prompter) -> str:
    """Repeat the question until a non-blank answer is given"""
    while True:
        answer = prompter.ask(prompt).strip()
        if answer:
            return answer
        print("ID should not be empty!")


class CaptchaSolver(Protocol):
    def solve(self, image: bytes) -> str:
        ...


class ConsoleCaptchaSolver:
    """
    Let a human read the security code.

    The image is written to a fixed file, opened in the default image viewer
    when possible, and the code is read through the prompter.
    """

    def __init__(self, prompter: Prompter, captcha_path: str = "tmp_code.jpg"):
        self.prompter = prompter
        self.captcha_path = captcha_path

    def solve(self, image: bytes) -> str:
        with open(self.captcha_path, "wb") as f:
            f.write(image)
        logger.info(f"[CAPTCHA] Image saved to {self.captcha_path}")

        try:
            with Image.open(self.captcha_path) as img:
                img.show()
        except OSError as e:
            logger.warning(f"[CAPTCHA] Could not display image ({e}), please open {self.captcha_path} manually")

        return self.prompter.ask("Input security code:").strip()

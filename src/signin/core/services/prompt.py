"""Decides when the One Tap prompt is shown."""

from collections.abc import Callable
from typing import Any


class OneTapPromptTrigger:
    """Observer that shows the One Tap prompt to signed-out visitors.

    The prompt is evaluated only when the session state is reported, on
    mount and on every later change. Loading the provider script only marks
    the client as ready; a session check that runs before the script has
    loaded produces no prompt for that page load.
    """

    def __init__(self, prompt: Callable[[], Any]):
        self._prompt = prompt
        self._script_loaded = False
        self._session: Any = None

    @property
    def should_prompt(self) -> bool:
        return self._script_loaded and not self._session

    def script_loaded(self) -> None:
        self._script_loaded = True

    def session_changed(self, session: Any) -> bool:
        """Record the session state; returns whether the prompt was shown."""
        self._session = session
        if not self.should_prompt:
            return False
        self._prompt()
        return True

"""
Input control module for mouse and keyboard.

Simulates native input with PyAutoGUI. Calls block for the duration of the
typing/movement and are run off the event loop by the dispatcher.
"""

import logging
import sys
import time
from typing import Optional

import pyperclip

from .config import get_config, InputConfig
from .models import (
    MouseMovementParams,
    MouseMovementResult,
    TextInputParams,
    TextInputResult,
)


logger = logging.getLogger(__name__)

# Pause around a clipboard paste so the target sees the new contents
CLIPBOARD_SETTLE = 0.05

PASTE_MODIFIER = "command" if sys.platform == "darwin" else "ctrl"


def _elapsed_ms(start_time: float) -> int:
    return int((time.time() - start_time) * 1000)


def _read_clipboard() -> str:
    try:
        return pyperclip.paste() or ""
    except pyperclip.PyperclipException as e:
        logger.debug("Clipboard not readable: %s", e)
        return ""


def _write_clipboard(text: str) -> None:
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        logger.warning("Could not restore clipboard: %s", e)


class InputController:
    """
    Controls mouse and keyboard input.

    PyAutoGUI is imported on first use: it needs a display at import time.
    """

    def __init__(self, config: Optional[InputConfig] = None):
        self.config = config or get_config().input
        self._pyautogui = None

    @property
    def pyautogui(self):
        if self._pyautogui is None:
            import pyautogui

            pyautogui.PAUSE = 0.0  # We handle pauses ourselves
            pyautogui.FAILSAFE = self.config.failsafe
            self._pyautogui = pyautogui
        return self._pyautogui

    # ==================== Keyboard Operations ====================

    def type_text(self, params: TextInputParams) -> TextInputResult:
        """
        Type text character by character.

        Waits ``initial_delay_ms`` first (e.g. to let focus settle), then
        types with ``delay_ms`` between characters. Characters PyAutoGUI has
        no key for (accents, CJK, emoji) are pasted through the clipboard,
        which is restored afterwards.
        """
        start_time = time.time()
        typed = 0
        saved_clipboard = None

        try:
            gui = self.pyautogui
            if params.initial_delay_ms > 0:
                time.sleep(params.initial_delay_ms / 1000)

            interval = params.delay_ms / 1000
            for char in params.text:
                if char in gui.KEYBOARD_KEYS:
                    gui.write(char)
                else:
                    if saved_clipboard is None:
                        saved_clipboard = _read_clipboard()
                    self._paste(char)
                typed += 1
                if interval > 0:
                    time.sleep(interval)

            return TextInputResult(
                success=True,
                chars_typed=typed,
                duration_ms=_elapsed_ms(start_time),
            )
        except Exception as e:
            return TextInputResult(
                success=False,
                chars_typed=typed,
                duration_ms=_elapsed_ms(start_time),
                error=str(e),
            )
        finally:
            if saved_clipboard is not None:
                _write_clipboard(saved_clipboard)

    def _paste(self, text: str) -> None:
        pyperclip.copy(text)
        time.sleep(CLIPBOARD_SETTLE)
        self.pyautogui.hotkey(PASTE_MODIFIER, "v")
        time.sleep(CLIPBOARD_SETTLE)

    # ==================== Mouse Operations ====================

    def move_mouse(self, params: MouseMovementParams) -> MouseMovementResult:
        """
        Move the mouse to an absolute or relative position, optionally clicking.
        """
        start_time = time.time()

        try:
            gui = self.pyautogui
            if params.relative:
                gui.moveRel(params.x, params.y, duration=self.config.move_duration)
            else:
                gui.moveTo(params.x, params.y, duration=self.config.move_duration)

            if params.click:
                gui.click(button=params.button.value)

            pos = gui.position()
            return MouseMovementResult(
                success=True,
                duration_ms=_elapsed_ms(start_time),
                position=(int(pos[0]), int(pos[1])),
            )
        except Exception as e:
            return MouseMovementResult(
                success=False,
                duration_ms=_elapsed_ms(start_time),
                error=str(e),
            )


"""
Keypad Feedback

Haptic and sound cues for keystrokes. The actual vibration/sound is a
platform concern; this module only decides WHICH cue fires and whether the
user has it switched on.
"""

from enum import Enum
from typing import Callable, Optional

import structlog

from smartledger.models.transaction import BudgetSettings


logger = structlog.get_logger(__name__)


class FeedbackWeight(str, Enum):
    """Haptic intensity."""
    LIGHT = "light"
    MEDIUM = "medium"
    HEAVY = "heavy"


class SoundCue(str, Enum):
    CLICK = "click"
    COMPLETE = "complete"


HapticSink = Callable[[FeedbackWeight], None]
SoundSink = Callable[[SoundCue], None]


class FeedbackDispatcher:
    """
    Routes cues to injected sinks, gated by the user's settings.

    Missing sinks are a no-op. A sink that raises is logged and ignored:
    feedback is never allowed to interrupt input.
    """

    def __init__(
        self,
        settings: Optional[BudgetSettings] = None,
        haptic: Optional[HapticSink] = None,
        sound: Optional[SoundSink] = None,
    ):
        self.settings = settings or BudgetSettings()
        self._haptic = haptic
        self._sound = sound

    def vibrate(self, weight: FeedbackWeight) -> None:
        if not self.settings.haptics_enabled or self._haptic is None:
            return
        try:
            self._haptic(weight)
        except Exception as e:
            logger.warning("haptic_feedback_failed", weight=weight.value, error=str(e))

    def play(self, cue: SoundCue) -> None:
        if not self.settings.sound_enabled or self._sound is None:
            return
        try:
            self._sound(cue)
        except Exception as e:
            logger.warning("sound_feedback_failed", cue=cue.value, error=str(e))

    def keystroke(self, weight: FeedbackWeight) -> None:
        """Standard cue pair for an accepted key."""
        self.vibrate(weight)
        self.play(SoundCue.CLICK)

    def completion(self) -> None:
        self.vibrate(FeedbackWeight.HEAVY)
        self.play(SoundCue.COMPLETE)

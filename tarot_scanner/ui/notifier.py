"""Simple notification system with audio feedback."""

import subprocess
import sys

from ..core.types import RecognitionResult
from ..utils.log import get_logger


class SimpleNotifier:
    """Beeps and logs when a card is confirmed."""

    def __init__(self):
        self.logger = get_logger(__name__)

    def beep(self) -> bool:
        """Play system beep sound."""
        try:
            if sys.platform == "darwin":
                subprocess.run(["afplay", "/System/Library/Sounds/Glass.aiff"],
                               capture_output=True, check=False)
            else:
                print("\a", end="", flush=True)
            return True
        except OSError as e:
            self.logger.debug("Error playing beep", error=str(e))
            return False

    def card_confirmed(self, result: RecognitionResult) -> None:
        self.beep()
        self.logger.info(
            "Card confirmed",
            card_id=result.card.id,
            card=result.card.name,
            reversed=result.is_reversed,
            confidence=round(result.confidence, 3),
            label=result.label,
        )

    def status_toast(self, message: str, level: str = "info"):
        """Log a status message at the given level."""
        if level == "error":
            self.logger.error(message)
        elif level == "warning":
            self.logger.warning(message)
        else:
            self.logger.info(message)


# Global singleton
notifier = SimpleNotifier()

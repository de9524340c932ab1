# backend/services/__init__.py

from .timers import TimerManager
from .tts import TextToSpeechService

__all__ = [
    'TimerManager',
    'TextToSpeechService'
]

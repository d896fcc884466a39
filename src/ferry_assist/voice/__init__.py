"""Ferry Assist voice module.

Contains VOICEVOX speech synthesis, fixed-window speech recognition,
WAV playback, and the push-to-talk hotkey.
"""

from ferry_assist.voice.hotkey import KeyStatePoller, parse_hotkey
from ferry_assist.voice.playback import decode_wav, play_wav
from ferry_assist.voice.recognition import SpeechRecognizer
from ferry_assist.voice.synthesis import SynthesisGateway

__all__ = [
    # Synthesis
    "SynthesisGateway",
    # Recognition
    "SpeechRecognizer",
    # Playback
    "decode_wav",
    "play_wav",
    # Hotkey
    "KeyStatePoller",
    "parse_hotkey",
]

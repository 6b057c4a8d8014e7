import math

NOTE_NAMES = ["C", "C#", "D", "Eb", "E", "F", "F#", "G", "Ab", "A", "Bb", "B"]
# -------------------------
# Pitch to MIDI + note names
# -------------------------


def hz_to_midi(f0):
    """Convert frequency in Hz to MIDI note number."""
    if f0 is None or not math.isfinite(f0) or f0 <= 0:
        return None
    return int(round(69 + 12 * math.log2(f0 / 440.0)))


def midi_to_hz(midi):
    """Convert a MIDI note number to frequency in Hz."""
    return 440.0 * 2.0 ** ((midi - 69) / 12.0)


def hz_to_note_name(f0):
    """Nearest equal-tempered note name, e.g. 130.81 → 'C3'."""
    midi = hz_to_midi(f0)
    if midi is None:
        return None
    return f"{NOTE_NAMES[midi % 12]}{midi // 12 - 1}"


def cents_off(f0, reference):
    """Signed distance in cents from a reference frequency."""
    if f0 is None or reference is None or f0 <= 0 or reference <= 0:
        return None
    return 1200.0 * math.log2(f0 / reference)

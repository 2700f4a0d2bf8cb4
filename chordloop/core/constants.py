"""Global constants for chordloop."""

# Pitch names
PITCH_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

# Natural note letters to pitch class
NATURAL_PITCH_CLASSES = {"C": 0, "D": 2, "E": 4, "F": 5, "G": 7, "A": 9, "B": 11}

# Loop timing
LOOP_MIN_DURATION_MS = 250

# Chroma band (Hz)
CHROMA_FMIN = 65.0
CHROMA_FMAX = 1600.0

# Frame analysis defaults
DEFAULT_SR = 22050
DEFAULT_N_FFT = 2048
DEFAULT_HOP_MS = 1000.0 / 60.0  # one display refresh

# cratemix: DJ library metadata and harmonic playlist generation
# Package: cratemix

__version__ = "2.0.0"
__author__ = "cratemix contributors"
__description__ = "Harmonic (Camelot) playlist generation for DJ libraries"

# Module structure:
#   - cratemix.db        : SQLite track store (tracks, play counts, history)
#   - cratemix.generate  : Key model, energy curves, sequencing, metrics
#   - cratemix.config    : Configuration management
#   - cratemix.cli       : Command-line interface

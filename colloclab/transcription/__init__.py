from .codec import expand, flatten, get_sorted_variable_kinds
from .constraints import ConstraintAccumulator, ConstraintBlock
from .core import (
    SchemeConfiguration,
    Transcription,
    assemble_transcription,
    configure_transcription,
    transcribe,
)
from .grid import TranscriptionGrid, create_mesh
from .schemes import (
    HermiteSimpson,
    LegendreGaussRadau,
    Trapezoidal,
    TranscriptionScheme,
    create_grid,
    parse_transcription_scheme,
)
from .variables import VariableStore, create_variable_store


__all__ = [
    "ConstraintAccumulator",
    "ConstraintBlock",
    "HermiteSimpson",
    "LegendreGaussRadau",
    "SchemeConfiguration",
    "Transcription",
    "TranscriptionGrid",
    "TranscriptionScheme",
    "Trapezoidal",
    "VariableStore",
    "assemble_transcription",
    "configure_transcription",
    "create_grid",
    "create_mesh",
    "create_variable_store",
    "expand",
    "flatten",
    "get_sorted_variable_kinds",
    "parse_transcription_scheme",
    "transcribe",
]

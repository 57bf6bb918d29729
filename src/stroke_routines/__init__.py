"""StrokeRoutines - Run command routines from freehand stroke gestures."""

__version__ = "0.1.0"

from stroke_routines.geometry import Point, Stroke
from stroke_routines.recognizer import DollarRecognizer, Template, Match, NormalizationCache
from stroke_routines.validator import GestureValidator, ValidationResult
from stroke_routines.commands import Command, CommandType
from stroke_routines.store import Routine, RoutineStore, ValidationError, MemoryPersistence, YamlPersistence
from stroke_routines.executor import RoutineExecutor, ExecutionReport, CommandRegistry, SubprocessShell
from stroke_routines.engine import RecognitionEngine, RecognitionResult
from stroke_routines.session import DrawingSession
from stroke_routines.metrics import MetricsCollector
from stroke_routines.blocks import Block, PREDEFINED_BLOCKS

"""Stateless, testable building blocks (script generation, rendering) live here."""

from .script_generator import GeneratedScript, ScriptGenerator
from .script_renderer import RenderedScript, render, segment_label

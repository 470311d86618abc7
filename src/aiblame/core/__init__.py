"""Core attribution pipeline."""

from .blame import blame_file
from .config import get_config_value, load_config, save_config
from .finalizer import finalize_commit
from .notes import NotesRepository
from .rewrite import propagate, propagate_rewrites
from .staging import StagingStore
from .summary import summarize

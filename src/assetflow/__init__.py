from .config import BuildConfig, load_config
from .errors import ConfigError, TaskFailure, TransformError, WatchError
from .glob import GlobSet
from .graph import TaskGraph
from .model import FileEntry, PipelineResult, TaskSpec, WatchBinding
from .pipeline import Pipeline, branch, merge
from .runner import RunReport, RunState, Runner
from .task import BuildContext, Task
from .transform import GatherStep, noop, when
from .watcher import Watcher

__all__ = [
    "BuildConfig", "load_config",
    "ConfigError", "TaskFailure", "TransformError", "WatchError",
    "GlobSet", "TaskGraph",
    "FileEntry", "PipelineResult", "TaskSpec", "WatchBinding",
    "Pipeline", "branch", "merge",
    "RunReport", "RunState", "Runner",
    "BuildContext", "Task",
    "GatherStep", "noop", "when",
    "Watcher",
]

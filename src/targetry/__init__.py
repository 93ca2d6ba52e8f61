"""targetry - A target graph engine for build, validation and packaging sessions."""

from .builder import Builder as Builder
from .commands import Command as Command
from .commands import CommandResult as CommandResult
from .commands import CommandRunner as CommandRunner
from .context import Context as Context
from .errors import BuildAborted as BuildAborted
from .errors import CommandFailed as CommandFailed
from .errors import ConfigurationError as ConfigurationError
from .errors import CycleError as CycleError
from .errors import TargetFailure as TargetFailure
from .options import BuildOptions as BuildOptions
from .options import ExecutionPlatform as ExecutionPlatform
from .report import RunReport as RunReport
from .repository import Repository as Repository
from .targets import CleanTarget as CleanTarget
from .targets import ParallelTarget as ParallelTarget
from .targets import Target as Target
from .targets import TargetStatus as TargetStatus
from .workspace import Workspace as Workspace

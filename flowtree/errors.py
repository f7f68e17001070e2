class FlowTreeError(Exception):
    pass

class ParseError(FlowTreeError):
    pass

class TreeStructureError(FlowTreeError):
    """Raised when a tree has colliding paths or is not a proper tree."""
    pass

class ResumeStateError(FlowTreeError):
    """Raised when the serialized resume state cannot be loaded."""
    pass

class RegistryLockedError(FlowTreeError):
    """Raised when plugins are registered while a run is in progress."""
    pass

class UnknownTagError(FlowTreeError):
    def __init__(self, tag: str, path: str):
        super().__init__(f"unknown tag {tag} '{path}'")
        self.tag = tag
        self.path = path

class ScriptingDisabledError(FlowTreeError):
    def __init__(self, path: str):
        super().__init__(f"eval not allowed: '{path}'")
        self.path = path

class ScriptError(FlowTreeError):
    """Raised when an eval hook raises."""
    def __init__(self, path: str):
        super().__init__(f"eval failed: '{path}'")
        self.path = path

class SubprocessFailedError(FlowTreeError):
    """Raised when a shell command exits with a nonzero status."""
    def __init__(self, path: str, returncode: int, output: str = ""):
        super().__init__(f"command at '{path}' exited with status {returncode}")
        self.path = path
        self.returncode = returncode
        self.output = output

class PluginFailureError(FlowTreeError):
    def __init__(self, tag: str, path: str):
        super().__init__(f"plugin {tag} failed at '{path}'")
        self.tag = tag
        self.path = path

"""
Error types raised by the dashboard components and translated to HTTP
responses at the REST boundary.
"""


class DashboardError(Exception):
    """Base class for every error the dashboard reports to clients"""
    pass


class CliInvocationError(DashboardError):
    """Raised when a bitcoin-cli call fails, exits non-zero or prints non-JSON"""

    def __init__(self, message: str, command=None, returncode=None, stderr: str = ''):
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class SpawnError(DashboardError):
    """Raised when a script cannot be started (missing, not executable)"""

    def __init__(self, message: str, script: str = None):
        super().__init__(message)
        self.script = script


class ScriptExecutionError(DashboardError):
    """Raised when a script exits with a non-zero code"""

    def __init__(self, result):
        super().__init__(f"Script exited with code {result.code}: {result.stderr}")
        self.result = result


class ValidationError(DashboardError):
    """Raised when a request is missing a required field"""

    def __init__(self, message: str, field: str = None):
        super().__init__(message)
        self.field = field

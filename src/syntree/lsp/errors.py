"""
Exceptions raised by the language server client and supervisor.
"""

from typing import Optional


class SyntreeError(Exception):
    """Base exception for syntree errors"""

    pass


class ServerStartError(SyntreeError):
    """Raised when the language server cannot be launched or initialized"""

    pass


class ServerExitedError(ServerStartError):
    """Raised when the server process exits while requests are outstanding"""

    def __init__(self, returncode: Optional[int], stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        message = f"Language server exited with code {returncode}"
        if stderr:
            message = f"{message}: {stderr}"
        super().__init__(message)


class ServerNotRunningError(SyntreeError):
    """Raised when a feature uses a server handle that is no longer live"""

    pass


class ResponseError(SyntreeError):
    """Raised when the server answers a request with an error"""

    def __init__(self, code: int, message: str, data: object = None):
        self.code = code
        self.data = data
        super().__init__(f"{message} (code {code})")

"""Exception types raised by agentpack.

Only LedgerError is fatal for a whole command. Everything else is scoped to a
single flow, resource, or package and is reported by the caller that owns
that scope.
"""


class AgentPackError(Exception):
    """Base class for all agentpack errors."""


class ConfigError(AgentPackError, ValueError):
    """Invalid platform definitions, project config, or package manifest."""


class LedgerError(AgentPackError):
    """The ownership ledger exists but cannot be read or parsed."""


class FlowResolutionError(AgentPackError):
    """A flow could not be resolved for a particular source file."""


class SwitchResolutionError(FlowResolutionError):
    """A $switch target matched no case and declares no default."""


class ResourceValidationError(AgentPackError, ValueError):
    """An explicitly requested resource lies outside the package root."""


class InstallError(AgentPackError):
    """Every target of a package failed to install."""

    def __init__(self, package_name: str, message: str):
        super().__init__(f"{package_name}: {message}")
        self.package_name = package_name


class NotInstalledError(AgentPackError):
    """The named package has no entry in the ledger."""

    def __init__(self, package_name: str):
        super().__init__(f"Package not installed: {package_name}")
        self.package_name = package_name

"""agentpack: Flow-based installer for AI assistant configuration packages.

For external tool integration, use the public API:
    from agentpack.api import install, save, uninstall

Import from submodules:
- version: __version__
- api: Public API for the command layer (install, save, uninstall, list_installed)
"""

from agentpack.version import __version__ as __version__

"""
Error kinds raised by the manifest store and the archive packer/unpacker.

The controller (``injector.LegendaryInjector``) catches every one of these at
the top of an operation and turns it into a dismissible host message.
"""


class InjectorError(Exception):
    """Base class for all Legendary Injector failures."""


class ManifestCorrupt(InjectorError):
    """An installed.json (or an archive's embedded record) could not be parsed."""


class InvalidFormat(InjectorError):
    """The file is not a Legendary Injector zip (wrong extension or missing markers)."""


class CorruptArchive(InjectorError):
    """The zip container itself is unreadable or truncated."""


class AlreadyInstalled(InjectorError):
    def __init__(self, app_name: str):
        super().__init__(f"{app_name} is already installed")
        self.app_name = app_name


class IOFailure(InjectorError):
    """A filesystem copy/create/delete step failed."""


class MetadataMissing(InjectorError):
    def __init__(self, app_name: str, path):
        super().__init__(f"No metadata found for {app_name} at {path}")
        self.app_name = app_name
        self.path = path

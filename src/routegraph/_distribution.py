"""Platform-specific distributions and the packages they download."""

from __future__ import annotations

import logging
import platform
from enum import StrEnum, auto

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class UnsupportedPlatformError(ValueError):
    """The running platform cannot be mapped to a distribution."""


class Platform(StrEnum):
    LINUX = auto()
    WINDOWS = auto()
    OS_X = auto()
    SOLARIS = auto()
    FREE_BSD = auto()


class BitSize(StrEnum):
    B32 = auto()
    B64 = auto()


class ArchiveType(StrEnum):
    ZIP = auto()
    TGZ = auto()
    TBZ2 = auto()
    TXZ = auto()

    @property
    def extension(self) -> str:
        match self:
            case ArchiveType.ZIP:
                return ".zip"
            case ArchiveType.TGZ:
                return ".tar.gz"
            case ArchiveType.TBZ2:
                return ".tar.bz2"
            case ArchiveType.TXZ:
                return ".tar.xz"


class FileType(StrEnum):
    EXECUTABLE = auto()  # The binary to run
    LIBRARY = auto()
    AUXILIARY = auto()  # Extra executables shipped alongside
    SUPPORT = auto()


_SYSTEMS: dict[str, Platform] = {
    "linux": Platform.LINUX,
    "windows": Platform.WINDOWS,
    "darwin": Platform.OS_X,
    "sunos": Platform.SOLARIS,
    "freebsd": Platform.FREE_BSD,
}

_MACHINES: dict[str, BitSize] = {
    "x86_64": BitSize.B64,
    "amd64": BitSize.B64,
    "aarch64": BitSize.B64,
    "arm64": BitSize.B64,
    "i386": BitSize.B32,
    "i686": BitSize.B32,
    "x86": BitSize.B32,
}


def detect_platform(system: str | None = None) -> Platform:
    """Map ``platform.system()`` (or the given name) to a Platform.

    Raises:
        UnsupportedPlatformError: For any system not listed in Platform.

    """
    name = platform.system() if system is None else system
    try:
        return _SYSTEMS[name.lower()]
    except KeyError:
        msg = f"Unsupported platform: {name!r}"
        raise UnsupportedPlatformError(msg) from None


def detect_bit_size(machine: str | None = None) -> BitSize:
    """Map ``platform.machine()`` (or the given name) to a BitSize.

    Raises:
        UnsupportedPlatformError: For an unknown machine architecture.

    """
    name = platform.machine() if machine is None else machine
    try:
        return _MACHINES[name.lower()]
    except KeyError:
        msg = f"Unsupported architecture: {name!r}"
        raise UnsupportedPlatformError(msg) from None


class Version(BaseModel):
    """A release version, e.g. ``2.1.1``."""

    model_config = ConfigDict(frozen=True)

    value: str = Field(min_length=1)

    @classmethod
    def of(cls, value: str) -> Version:
        return cls(value=value)

    def as_in_download_path(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value


class Distribution(BaseModel):
    """A version built for one platform and bit size."""

    model_config = ConfigDict(frozen=True)

    version: Version
    platform: Platform
    bit_size: BitSize

    @classmethod
    def detect_for(
        cls,
        version: Version,
        *,
        platform: Platform | None = None,
        bit_size: BitSize | None = None,
    ) -> Distribution:
        """Create the distribution of ``version`` for the running machine.

        Args:
            version: The version to distribute.
            platform: Overrides the detected platform.
            bit_size: Overrides the detected bit size.

        Raises:
            UnsupportedPlatformError: If detection is needed and fails.

        """
        distribution = cls(
            version=version,
            platform=platform if platform is not None else detect_platform(),
            bit_size=bit_size if bit_size is not None else detect_bit_size(),
        )
        logger.debug("Distribution: %s", distribution)
        return distribution

    def __str__(self) -> str:
        return f"{self.version}:{self.platform}:{self.bit_size}"


class FileSetEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: FileType
    destination: str


class FileSet(BaseModel):
    """The files to take out of a downloaded archive."""

    model_config = ConfigDict(frozen=True)

    entries: tuple[FileSetEntry, ...] = ()

    def with_entry(self, type_: FileType, destination: str) -> FileSet:
        return FileSet(entries=(*self.entries, FileSetEntry(type=type_, destination=destination)))

    def of_type(self, type_: FileType) -> tuple[FileSetEntry, ...]:
        return tuple(entry for entry in self.entries if entry.type == type_)


class DistributionPackage(BaseModel):
    """What to download for a distribution and where it lives remotely.

    Attributes:
        archive_type: Format of the archive.
        file_set: Files to extract from the archive.
        archive_path: Path of the archive relative to the download base URL.

    """

    model_config = ConfigDict(frozen=True)

    archive_type: ArchiveType
    file_set: FileSet
    archive_path: str


def archive_type_of(distribution: Distribution) -> ArchiveType:
    match distribution.platform:
        case Platform.OS_X | Platform.WINDOWS:
            return ArchiveType.ZIP
        case _:
            return ArchiveType.TBZ2


def file_set_of(distribution: Distribution, name: str = "phantomjs") -> FileSet:
    executable = f"{name}.exe" if distribution.platform == Platform.WINDOWS else name
    return FileSet().with_entry(FileType.EXECUTABLE, executable)


def archive_path_of(distribution: Distribution, archive_type: ArchiveType, name: str = "phantomjs") -> str:
    """Build the archive file name, e.g. ``phantomjs-2.1.1-linux-x86_64.tar.bz2``.

    Only the linux-style names carry a bit size suffix.
    """
    match distribution.platform:
        case Platform.OS_X:
            platform_part = "macosx"
        case Platform.WINDOWS:
            platform_part = "windows"
        case _:
            suffix = "-x86_64" if distribution.bit_size == BitSize.B64 else "-i686"
            platform_part = f"linux{suffix}"
    return f"{name}-{distribution.version.as_in_download_path()}-{platform_part}{archive_type.extension}"


def package_of(distribution: Distribution, name: str = "phantomjs") -> DistributionPackage:
    """Describe the package to download for a distribution."""
    archive_type = archive_type_of(distribution)
    return DistributionPackage(
        archive_type=archive_type,
        file_set=file_set_of(distribution, name),
        archive_path=archive_path_of(distribution, archive_type, name),
    )
